import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple

from sqlalchemy import CheckConstraint, Column, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from .common import Difficulty, JSONType, MealType, timestamp_type, utcnow
from .recipes import RecipeRead


class Favorite(SQLModel, table=True):
    __tablename__ = "favorites"
    __table_args__ = (
        CheckConstraint(
            "personal_rating IS NULL OR personal_rating BETWEEN 1 AND 5",
            name="ck_favorites_personal_rating",
        ),
        CheckConstraint("use_count >= 0", name="ck_favorites_use_count"),
        Index("idx_favorites_user_id", "user_id"),
        Index("idx_favorites_added_at", "user_id", "added_at"),
        Index("idx_favorites_recipe_id", "recipe_id"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", primary_key=True)
    recipe_id: uuid.UUID = Field(foreign_key="recipes.id", ondelete="CASCADE", primary_key=True)
    personal_rating: Optional[int] = None
    personal_notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    use_count: int = Field(default=0)
    last_used_at: Optional[datetime] = Field(default=None, sa_type=timestamp_type())
    added_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())


class Collection(SQLModel, table=True):
    __tablename__ = "collections"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_collections_user_name"),
        Index("idx_collections_user_id", "user_id"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE")
    name: str = Field(max_length=255)
    description: Optional[str] = None
    color: str = Field(default="#4DB6AC", max_length=7)
    icon: str = Field(default="heart", max_length=50)
    is_public: bool = Field(default=False)
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=timestamp_type(),
        sa_column_kwargs={"onupdate": utcnow},
    )


class CollectionRecipe(SQLModel, table=True):
    __tablename__ = "collection_recipes"
    __table_args__ = (
        Index("idx_collection_recipes_collection_id", "collection_id"),
        Index("idx_collection_recipes_recipe_id", "recipe_id"),
    )

    collection_id: uuid.UUID = Field(
        foreign_key="collections.id", ondelete="CASCADE", primary_key=True
    )
    recipe_id: uuid.UUID = Field(foreign_key="recipes.id", ondelete="CASCADE", primary_key=True)
    added_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())


# ----------------------------
# Favorites: transfer models
# ----------------------------

class FavoriteCreate(SQLModel):
    recipe_id: uuid.UUID
    rating: Optional[int] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class FavoriteUpdate(SQLModel):
    rating: Optional[int] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class FavoriteRead(SQLModel):
    user_id: uuid.UUID
    recipe_id: uuid.UUID
    personal_rating: Optional[int] = None
    personal_notes: Optional[str] = None
    tags: List[str] = []
    use_count: int = 0
    last_used_at: Optional[datetime] = None
    added_at: datetime
    recipe: RecipeRead


class FavoritePage(SQLModel):
    items: List[FavoriteRead]
    total: int
    limit: int
    offset: int


class FavoriteFilters(SQLModel):
    search_query: Optional[str] = None
    tags: List[str] = []
    cuisines: List[str] = []
    meal_types: List[MealType] = []
    rating_range: Optional[Tuple[int, int]] = None
    difficulties: List[Difficulty] = []
    sort_by: Literal["rating", "date", "usage", "name"] = "date"
    sort_order: Literal["asc", "desc"] = "desc"


class FavoriteStatusRequest(SQLModel):
    recipe_ids: List[uuid.UUID]


class BulkDeleteRequest(SQLModel):
    recipe_ids: List[uuid.UUID]


class BulkTagsRequest(SQLModel):
    recipe_ids: List[uuid.UUID]
    tags: List[str]
    replace: bool = True


class BulkResult(SQLModel):
    succeeded: List[uuid.UUID] = []
    failed: Dict[str, str] = {}

    @property
    def ok(self) -> bool:
        return not self.failed


# ----------------------------
# Collections: transfer models
# ----------------------------

class CollectionCreate(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    color: str = Field(default="#4DB6AC", max_length=7)
    icon: str = Field(default="heart", max_length=50)
    is_public: bool = False
    tags: List[str] = []


class CollectionUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, max_length=7)
    icon: Optional[str] = Field(default=None, max_length=50)
    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None


class CollectionRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    description: Optional[str] = None
    color: str
    icon: str
    is_public: bool
    tags: List[str] = []
    recipe_count: int = 0
    created_at: datetime
    updated_at: datetime


class CollectionRecipeRead(SQLModel):
    collection_id: uuid.UUID
    added_at: datetime
    recipe: RecipeRead
