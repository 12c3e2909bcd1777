import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel
from sqlalchemy import CheckConstraint, Column, Computed, Index, Integer
from sqlmodel import Field, SQLModel

from .common import (
    Difficulty,
    JSONType,
    MealType,
    enum_check,
    enum_column_type,
    timestamp_type,
    utcnow,
)


class Ingredient(BaseModel):
    name: str
    amount: float
    unit: str = ""
    notes: Optional[str] = None


class NutritionInfo(BaseModel):
    calories: Optional[float] = None
    protein: Optional[float] = None
    carbs: Optional[float] = None
    fat: Optional[float] = None
    fiber: Optional[float] = None
    sugar: Optional[float] = None
    sodium: Optional[float] = None


class Recipe(SQLModel, table=True):
    __tablename__ = "recipes"
    __table_args__ = (
        CheckConstraint(enum_check("difficulty", Difficulty), name="ck_recipes_difficulty"),
        CheckConstraint(enum_check("meal_type", MealType, nullable=True), name="ck_recipes_meal_type"),
        CheckConstraint("prep_time >= 0 AND cook_time >= 0", name="ck_recipes_times"),
        CheckConstraint("avg_rating >= 0 AND avg_rating <= 5", name="ck_recipes_avg_rating"),
        CheckConstraint("rating_count >= 0", name="ck_recipes_rating_count"),
        Index("idx_recipes_cuisine", "cuisine"),
        Index("idx_recipes_meal_type", "meal_type"),
        Index("idx_recipes_difficulty", "difficulty"),
        Index("idx_recipes_avg_rating", "avg_rating"),
        Index("idx_recipes_created_at", "created_at"),
        Index("idx_recipes_created_by", "created_by_user_id"),
        Index("idx_recipes_tags", "tags", postgresql_using="gin"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # Weak reference: recipes outlive their author.
    created_by_user_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL", nullable=True
    )
    name: str = Field(max_length=255)
    description: Optional[str] = None
    ingredients: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSONType, nullable=False)
    )
    instructions: str
    nutrition_info: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSONType, nullable=False)
    )
    cuisine: Optional[str] = Field(default=None, max_length=100)
    meal_type: Optional[MealType] = Field(default=None, sa_type=enum_column_type(MealType))
    prep_time: int = Field(default=0)
    cook_time: int = Field(default=0)
    total_time: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, Computed("prep_time + cook_time", persisted=True)),
    )
    difficulty: Difficulty = Field(
        default=Difficulty.medium, sa_type=enum_column_type(Difficulty, length=10)
    )
    avg_rating: float = Field(default=0.0)
    rating_count: int = Field(default=0)
    image_url: Optional[str] = Field(default=None, max_length=500)
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=timestamp_type(),
        sa_column_kwargs={"onupdate": utcnow},
    )


class RecipeCreate(SQLModel):
    name: str = Field(max_length=255)
    description: Optional[str] = None
    ingredients: List[Ingredient]
    instructions: str
    nutrition_info: NutritionInfo = NutritionInfo()
    cuisine: Optional[str] = Field(default=None, max_length=100)
    meal_type: Optional[MealType] = None
    prep_time: int = 0
    cook_time: int = 0
    difficulty: Difficulty = Difficulty.medium
    image_url: Optional[str] = Field(default=None, max_length=500)
    tags: List[str] = []


class RecipeUpdate(SQLModel):
    """Partial update; only fields that were explicitly set are written."""

    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    ingredients: Optional[List[Ingredient]] = None
    instructions: Optional[str] = None
    nutrition_info: Optional[NutritionInfo] = None
    cuisine: Optional[str] = Field(default=None, max_length=100)
    meal_type: Optional[MealType] = None
    prep_time: Optional[int] = None
    cook_time: Optional[int] = None
    difficulty: Optional[Difficulty] = None
    image_url: Optional[str] = Field(default=None, max_length=500)
    tags: Optional[List[str]] = None


class RecipeRead(SQLModel):
    id: uuid.UUID
    created_by_user_id: Optional[uuid.UUID] = None
    name: str
    description: Optional[str] = None
    ingredients: List[Ingredient]
    instructions: str
    nutrition_info: NutritionInfo
    cuisine: Optional[str] = None
    meal_type: Optional[MealType] = None
    prep_time: int
    cook_time: int
    total_time: int
    difficulty: Difficulty
    avg_rating: float
    rating_count: int
    image_url: Optional[str] = None
    tags: List[str]
    created_at: datetime
    updated_at: datetime


RecipeSortField = Literal["created_at", "avg_rating", "name", "total_time"]


class RecipeSearchFilters(SQLModel):
    search_query: Optional[str] = None
    tags: List[str] = []
    match_all_tags: bool = False
    cuisine: Optional[str] = None
    meal_type: Optional[MealType] = None
    difficulty: Optional[Difficulty] = None
    max_prep_time: Optional[int] = None
    max_cook_time: Optional[int] = None
    min_rating: Optional[float] = None
    created_by_user_id: Optional[uuid.UUID] = None
    sort_by: RecipeSortField = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class RecipePage(SQLModel):
    items: List[RecipeRead]
    total: int
    limit: int
    offset: int


class RecipeUsage(SQLModel):
    meal_plan_id: uuid.UUID
    meal_plan_name: str
    user_id: uuid.UUID
    slots: int
