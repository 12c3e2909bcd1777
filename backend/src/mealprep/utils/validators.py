# backend/src/mealprep/utils/validators.py
"""Input checks shared by the repositories.

Every check raises ``ValidationError`` with the offending field name before
anything reaches the store.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel

from mealprep.core.errors import ValidationError
from mealprep.models.common import Difficulty, MealType

E = TypeVar("E", bound=Enum)

_WHITESPACE = re.compile(r"\s+")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_USERNAME = re.compile(r"^[A-Za-z0-9_.-]{3,50}$")

NUTRITION_FIELDS = ("calories", "protein", "carbs", "fat", "fiber", "sugar", "sodium")


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def safe_float(x) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return 0.0


def sanitize_text(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Trim and collapse whitespace; empty strings become ``None``."""
    if value is None:
        return None
    cleaned = _WHITESPACE.sub(" ", str(value)).strip()
    if not cleaned:
        return None
    if max_length is not None:
        cleaned = cleaned[:max_length].rstrip()
    return cleaned


def require_text(value: Optional[str], field: str, max_length: Optional[int] = None) -> str:
    cleaned = sanitize_text(value, max_length)
    if cleaned is None:
        raise ValidationError(f"{field} must not be empty", field=field)
    return cleaned


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Trim, drop empties, dedupe case-insensitively keeping the first spelling."""
    seen = set()
    result: List[str] = []
    for tag in tags or []:
        cleaned = sanitize_text(tag, 50)
        if cleaned is None:
            continue
        folded = cleaned.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        result.append(cleaned)
    return result


def _as_dict(item: Any, field: str) -> Dict[str, Any]:
    if isinstance(item, BaseModel):
        return item.model_dump()
    if isinstance(item, dict):
        return dict(item)
    raise ValidationError(f"{field} must be an object", field=field)


def validate_ingredients(ingredients: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
    items = list(ingredients or [])
    if not items:
        raise ValidationError("A recipe needs at least one ingredient", field="ingredients")

    cleaned: List[Dict[str, Any]] = []
    for index, raw in enumerate(items):
        data = _as_dict(raw, "ingredients")
        name = sanitize_text(data.get("name"), 200)
        if name is None:
            raise ValidationError(
                f"Ingredient #{index + 1} has no name", field=f"ingredients[{index}].name"
            )
        try:
            amount = float(data.get("amount"))
        except (TypeError, ValueError):
            amount = 0.0
        if amount <= 0:
            raise ValidationError(
                f"Ingredient '{name}' must have a positive amount",
                field=f"ingredients[{index}].amount",
            )
        entry: Dict[str, Any] = {
            "name": name,
            "amount": amount,
            "unit": sanitize_text(data.get("unit"), 50) or "",
        }
        notes = sanitize_text(data.get("notes"), 200)
        if notes is not None:
            entry["notes"] = notes
        cleaned.append(entry)
    return cleaned


def validate_nutrition(nutrition: Any) -> Dict[str, float]:
    if nutrition is None:
        return {}
    data = _as_dict(nutrition, "nutrition_info")
    cleaned: Dict[str, float] = {}
    for key in NUTRITION_FIELDS:
        value = data.get(key)
        if value is None:
            continue
        number = safe_float(value)
        if number < 0:
            raise ValidationError(f"{key} must not be negative", field=f"nutrition_info.{key}")
        cleaned[key] = number
    return cleaned


def validate_minutes(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number of minutes", field=field)
    if value < 0:
        raise ValidationError(f"{field} must not be negative", field=field)
    return int(value)


def validate_day_of_week(day: Any) -> int:
    if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
        raise ValidationError("day_of_week must be an integer between 0 and 6", field="day_of_week")
    return day


def _validate_enum(value: Any, enum_cls: Type[E], field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}", field=field) from None


def validate_meal_type(value: Any) -> MealType:
    return _validate_enum(value, MealType, "meal_type")


def validate_difficulty(value: Any) -> Difficulty:
    return _validate_enum(value, Difficulty, "difficulty")


def validate_rating(rating: Any) -> Optional[int]:
    if rating is None:
        return None
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("rating must be an integer between 1 and 5", field="rating")
    return rating


def validate_email(email: Optional[str]) -> str:
    cleaned = sanitize_text(email, 255)
    if cleaned is None or not _EMAIL.match(cleaned):
        raise ValidationError("email is not a valid address", field="email")
    return cleaned.lower()


def validate_username(username: Optional[str]) -> str:
    cleaned = (username or "").strip()
    if not _USERNAME.match(cleaned):
        raise ValidationError(
            "username must be 3-50 characters of letters, digits, '.', '_' or '-'",
            field="username",
        )
    return cleaned


def validate_password(password: Optional[str]) -> str:
    if not password or len(password) < 8:
        raise ValidationError("password must be at least 8 characters", field="password")
    return password


_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def validate_color(color: Optional[str]) -> str:
    cleaned = (color or "").strip()
    if not _HEX_COLOR.match(cleaned):
        raise ValidationError("color must be a hex value like #4DB6AC", field="color")
    return cleaned.upper()
