"""Error taxonomy shared by repositories, services and the HTTP layer.

Repositories never let driver exceptions escape: every SQLAlchemy error is
translated into one of these kinds (see ``core.database.translate_db_error``).
"""

from __future__ import annotations

from typing import Any, Optional


class MealPrepError(Exception):
    """Base class for every error raised by the data layer."""

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        entity: Optional[str] = None,
        key: Any = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.key = key
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": type(self).__name__, "message": self.message}
        if self.entity:
            payload["entity"] = self.entity
        if self.key is not None:
            payload["key"] = str(self.key)
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NotFoundError(MealPrepError):
    """The requested id or composite key has no row."""


class ConflictError(MealPrepError):
    """Uniqueness violation or a referential conflict."""


class ForbiddenError(MealPrepError):
    """The caller is not allowed to change a row owned by someone else."""


class ValidationError(MealPrepError):
    """Malformed input rejected before it reaches the store."""

    def __init__(self, message: str, *, field: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.field = field

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload


class TransientStoreError(MealPrepError):
    """Connection loss, lock wait or timeout; the whole operation may be retried."""

    retryable = True


class StoreError(MealPrepError):
    """Any other store failure that is not safe to retry blindly."""


class InvariantViolationError(MealPrepError):
    """An invariant that the write path should make unreachable was observed broken."""


class GenerationError(MealPrepError):
    """The generation collaborator failed or returned unusable data."""
