import pytest

from mealprep.core.errors import (
    ConflictError,
    ForbiddenError,
    GenerationError,
    InvariantViolationError,
    MealPrepError,
    NotFoundError,
    StoreError,
    TransientStoreError,
    ValidationError,
)
from mealprep.main import status_for


@pytest.mark.parametrize(
    "error, status_code",
    [
        (NotFoundError("missing"), 404),
        (ForbiddenError("not yours"), 403),
        (ConflictError("taken"), 409),
        (ValidationError("bad"), 422),
        (TransientStoreError("locked"), 503),
        (GenerationError("model down"), 502),
        (InvariantViolationError("two active plans"), 500),
        (StoreError("boom"), 500),
        (MealPrepError("unknown"), 500),
    ],
)
def test_status_for_maps_error_kinds(error, status_code):
    assert status_for(error) == status_code


def test_only_transient_errors_are_retryable():
    assert TransientStoreError("x").retryable
    assert not StoreError("x").retryable
    assert not ConflictError("x").retryable


def test_to_dict_includes_context():
    error = ValidationError("rating out of range", field="rating", entity="favorite", key=42)
    assert error.to_dict() == {
        "error": "ValidationError",
        "message": "rating out of range",
        "entity": "favorite",
        "key": "42",
        "field": "rating",
    }


def test_to_dict_omits_empty_context():
    assert NotFoundError("gone").to_dict() == {"error": "NotFoundError", "message": "gone"}
