import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from sqlalchemy import CheckConstraint, Index, UniqueConstraint, text
from sqlmodel import Field, Relationship, SQLModel

from .common import MealType, enum_check, enum_column_type, timestamp_type, utcnow
from .recipes import RecipeRead


class MealPlan(SQLModel, table=True):
    __tablename__ = "meal_plans"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_meal_plans_user_name"),
        Index("idx_meal_plans_user_id", "user_id"),
        Index("idx_meal_plans_week_start", "week_start_date"),
        Index(
            "idx_meal_plans_active",
            "user_id",
            "is_active",
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE")
    name: str = Field(max_length=255)
    description: Optional[str] = None
    week_start_date: date
    is_active: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=timestamp_type(),
        sa_column_kwargs={"onupdate": utcnow},
    )

    # Rows are removed by the FK cascade; the ORM never loads them just to delete.
    items: List["MealPlanItem"] = Relationship(
        back_populates="meal_plan",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )


class MealPlanItem(SQLModel, table=True):
    __tablename__ = "meal_plan_items"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_meal_plan_items_day"),
        CheckConstraint(enum_check("meal_type", MealType), name="ck_meal_plan_items_meal_type"),
        Index("idx_meal_plan_items_plan_id", "meal_plan_id"),
        Index("idx_meal_plan_items_recipe_id", "recipe_id"),
    )

    meal_plan_id: uuid.UUID = Field(
        foreign_key="meal_plans.id", ondelete="CASCADE", primary_key=True
    )
    day_of_week: int = Field(primary_key=True)
    meal_type: MealType = Field(primary_key=True, sa_type=enum_column_type(MealType))
    recipe_id: uuid.UUID = Field(foreign_key="recipes.id", ondelete="CASCADE")
    added_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())

    meal_plan: Optional[MealPlan] = Relationship(back_populates="items")


class MealPlanCreate(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    week_start_date: date
    is_active: bool = False


class MealPlanUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    week_start_date: Optional[date] = None
    is_active: Optional[bool] = None


class MealPlanItemRead(SQLModel):
    meal_plan_id: uuid.UUID
    recipe_id: uuid.UUID
    day_of_week: int
    meal_type: MealType
    added_at: datetime
    recipe: RecipeRead


class MealPlanRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    description: Optional[str] = None
    week_start_date: date
    is_active: bool
    items: List[MealPlanItemRead] = []
    created_at: datetime
    updated_at: datetime


class SlotAssignment(SQLModel):
    recipe_id: uuid.UUID


class MealPlanFilters(SQLModel):
    user_id: uuid.UUID
    is_active: Optional[bool] = None
    week_start_date: Optional[date] = None
    sort_by: Literal["created_at", "updated_at", "week_start_date", "name"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    include_items: bool = False


class MealPlanPage(SQLModel):
    items: List[MealPlanRead]
    total: int
    limit: int
    offset: int
