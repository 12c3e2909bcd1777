# backend/src/mealprep/services/cache.py
"""In-process read cache with a per-entry TTL.

Values are cached per key such as ``favorites:<user_id>``; writers drop the
keys they affect. A disabled cache is a pure pass-through.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class ReadCache:
    def __init__(
        self,
        ttl_seconds: int = 3600,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self.enabled = enabled

    def get(self, key: str, default: Any = None) -> Any:
        if not self.enabled:
            return default
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._cache[key]
                return default
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if not self.enabled:
            return
        expires_at = self._clock() + (self._ttl if ttl is None else ttl)
        with self._lock:
            self._cache[key] = (value, expires_at)

    def get_or_load(self, key: str, loader: Callable[[], T], ttl: Optional[int] = None) -> T:
        """Return the cached value, or call ``loader`` and cache its result."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = loader()
        self.set(key, value, ttl)
        return value

    def invalidate(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._cache.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._cache if k.startswith(prefix)]:
                del self._cache[key]

    def clear(self) -> None:
        with self._lock:
            self._cache = {}

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._cache)
