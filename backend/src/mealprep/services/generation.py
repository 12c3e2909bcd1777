# backend/src/mealprep/services/generation.py
"""Boundary to the recipe / meal-plan generator.

The generator itself lives outside this package. Whatever it returns is
validated here and stored through the regular repositories; generation is
never retried by the data layer.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import List, Optional, Protocol

from pydantic import BaseModel, Field
from sqlmodel import Session

from mealprep.core.database import transaction
from mealprep.core.errors import GenerationError, ValidationError
from mealprep.models.common import Difficulty, MealType
from mealprep.models.meal_plans import MealPlanRead
from mealprep.models.recipes import Ingredient, NutritionInfo, RecipeCreate, RecipeRead
from mealprep.models.users import DietaryPreferences
from mealprep.repositories.meal_plans import (
    assign_recipe,
    create_meal_plan,
    get_meal_plan_by_id,
)
from mealprep.repositories.recipes import create_recipe

logger = logging.getLogger(__name__)


class WeeklyPlanRequest(BaseModel):
    dietary_preferences: DietaryPreferences = DietaryPreferences()
    meal_types: List[MealType] = [MealType.breakfast, MealType.lunch, MealType.dinner]
    notes: Optional[str] = None


class RecipeRequest(BaseModel):
    prompt: str
    meal_type: Optional[MealType] = None
    cuisine: Optional[str] = None
    dietary_preferences: DietaryPreferences = DietaryPreferences()


class GeneratedRecipe(BaseModel):
    name: str
    description: Optional[str] = None
    ingredients: List[Ingredient]
    instructions: str
    nutrition_info: NutritionInfo = NutritionInfo()
    cuisine: Optional[str] = None
    meal_type: Optional[MealType] = None
    prep_time: int = 0
    cook_time: int = 0
    difficulty: Difficulty = Difficulty.medium
    tags: List[str] = []


class GeneratedSlot(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    meal_type: MealType
    recipe: GeneratedRecipe


class GeneratedWeeklyPlan(BaseModel):
    description: Optional[str] = None
    slots: List[GeneratedSlot] = []


class GenerationService(Protocol):
    def generate_weekly_plan(self, request: WeeklyPlanRequest) -> GeneratedWeeklyPlan: ...

    def generate_recipe(self, request: RecipeRequest) -> GeneratedRecipe: ...


class UnconfiguredGenerationService:
    """Default wiring: every call fails until a real generator is plugged in."""

    def generate_weekly_plan(self, request: WeeklyPlanRequest) -> GeneratedWeeklyPlan:
        raise GenerationError("No meal plan generator is configured")

    def generate_recipe(self, request: RecipeRequest) -> GeneratedRecipe:
        raise GenerationError("No recipe generator is configured")


def _recipe_create(recipe: GeneratedRecipe, meal_type: Optional[MealType] = None) -> RecipeCreate:
    data = recipe.model_dump()
    if data.get("meal_type") is None and meal_type is not None:
        data["meal_type"] = meal_type
    return RecipeCreate.model_validate(data)


def persist_generated_recipe(
    session: Session,
    user_id: Optional[uuid.UUID],
    recipe: GeneratedRecipe,
) -> RecipeRead:
    try:
        return create_recipe(session, _recipe_create(recipe), created_by_user_id=user_id)
    except ValidationError as exc:
        raise GenerationError(
            f"Generated recipe is unusable: {exc.message}",
            entity="recipe",
            details=exc.to_dict(),
        ) from exc


def persist_generated_plan(
    session: Session,
    user_id: uuid.UUID,
    name: str,
    week_start_date: date,
    plan: GeneratedWeeklyPlan,
    activate: bool = False,
) -> MealPlanRead:
    """Store every generated recipe plus the plan and its slots, all or nothing."""
    try:
        with transaction(session, entity="meal_plan", key=name):
            created = create_meal_plan(
                session, user_id, name, plan.description, week_start_date, is_active=activate
            )
            for slot in plan.slots:
                recipe = create_recipe(
                    session, _recipe_create(slot.recipe, slot.meal_type), created_by_user_id=user_id
                )
                assign_recipe(
                    session, user_id, created.id, recipe.id, slot.day_of_week, slot.meal_type
                )
    except ValidationError as exc:
        raise GenerationError(
            f"Generated meal plan is unusable: {exc.message}",
            entity="meal_plan",
            key=name,
            details=exc.to_dict(),
        ) from exc
    logger.info("Stored generated meal plan %s with %d slots", created.id, len(plan.slots))
    return get_meal_plan_by_id(session, user_id, created.id)


def generate_meal_plan(
    generator: GenerationService,
    session: Session,
    user_id: uuid.UUID,
    name: str,
    week_start_date: date,
    request: WeeklyPlanRequest,
    activate: bool = False,
) -> MealPlanRead:
    plan = generator.generate_weekly_plan(request)
    return persist_generated_plan(session, user_id, name, week_start_date, plan, activate)


def generate_recipe(
    generator: GenerationService,
    session: Session,
    user_id: Optional[uuid.UUID],
    request: RecipeRequest,
) -> RecipeRead:
    return persist_generated_recipe(session, user_id, generator.generate_recipe(request))
