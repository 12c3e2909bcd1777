from datetime import datetime, timezone
from enum import Enum
from typing import List, Type

from sqlalchemy import JSON, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL (GIN-indexable, ?| / ?& operators), plain JSON elsewhere.
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_type() -> DateTime:
    return DateTime(timezone=True)


class MealType(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


# Display order inside a day; the enum values sort alphabetically otherwise.
MEAL_TYPE_ORDER = {
    MealType.breakfast: 0,
    MealType.lunch: 1,
    MealType.dinner: 2,
    MealType.snack: 3,
}


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


def _enum_values(enum_cls: Type[Enum]) -> List[str]:
    return [member.value for member in enum_cls]


def enum_column_type(enum_cls: Type[Enum], length: int = 20) -> SAEnum:
    """VARCHAR storage of the enum *value*; the CHECK lives in ``__table_args__``."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=length,
        values_callable=_enum_values,
    )


def enum_check(column: str, enum_cls: Type[Enum], nullable: bool = False) -> str:
    allowed = ", ".join(f"'{value}'" for value in _enum_values(enum_cls))
    clause = f"{column} IN ({allowed})"
    if nullable:
        return f"{column} IS NULL OR {clause}"
    return clause


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
