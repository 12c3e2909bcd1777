# backend/src/mealprep/deps.py
"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

import uuid
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from mealprep.core.config import get_settings
from mealprep.services.cache import ReadCache
from mealprep.services.favorites import FavoritesService
from mealprep.services.generation import GenerationService, UnconfiguredGenerationService
from mealprep.services.recipes import RecipeService


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> uuid.UUID:
    """Caller identity, resolved upstream and forwarded in ``X-User-Id``."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Malformed X-User-Id header"
        ) from None


@lru_cache
def get_read_cache() -> ReadCache:
    settings = get_settings()
    return ReadCache(ttl_seconds=settings.cache_ttl_seconds, enabled=settings.cache_enabled)


def get_favorites_service(cache: ReadCache = Depends(get_read_cache)) -> FavoritesService:
    return FavoritesService(cache, analytics_ttl_seconds=get_settings().analytics_cache_ttl_seconds)


def get_recipe_service(cache: ReadCache = Depends(get_read_cache)) -> RecipeService:
    return RecipeService(cache)


def get_generation_service() -> GenerationService:
    return UnconfiguredGenerationService()
