import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from .common import JSONType, timestamp_type, utcnow


class DietType(str, Enum):
    omnivore = "omnivore"
    vegetarian = "vegetarian"
    vegan = "vegan"
    pescatarian = "pescatarian"
    keto = "keto"
    paleo = "paleo"
    gluten_free = "gluten_free"
    other = "other"


class DietaryPreferences(BaseModel):
    diet_type: Optional[DietType] = None
    allergies: List[str] = []
    dislikes: List[str] = []
    calorie_target: Optional[int] = None


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    username: str = Field(max_length=50, unique=True)
    email: str = Field(max_length=255, unique=True)
    password_hash: str = Field(max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=100)
    dietary_preferences: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSONType, nullable=False)
    )
    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=timestamp_type(),
        sa_column_kwargs={"onupdate": utcnow},
    )


class UserCreate(SQLModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(max_length=255)
    password: str = Field(min_length=8)
    display_name: Optional[str] = Field(default=None, max_length=100)
    dietary_preferences: DietaryPreferences = DietaryPreferences()


class UserUpdate(SQLModel):
    email: Optional[str] = Field(default=None, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=100)
    dietary_preferences: Optional[DietaryPreferences] = None


class UserRead(SQLModel):
    id: uuid.UUID
    username: str
    email: str
    display_name: Optional[str] = None
    dietary_preferences: DietaryPreferences
    created_at: datetime
    updated_at: datetime
