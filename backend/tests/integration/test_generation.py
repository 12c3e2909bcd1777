from datetime import date

import pytest
from sqlmodel import select

from mealprep.core.errors import GenerationError
from mealprep.models import MealPlan, MealType, Recipe
from mealprep.services.generation import (
    GeneratedRecipe,
    GeneratedSlot,
    GeneratedWeeklyPlan,
    RecipeRequest,
    UnconfiguredGenerationService,
    WeeklyPlanRequest,
    generate_meal_plan,
    generate_recipe,
    persist_generated_plan,
)

WEEK = date(2025, 1, 6)


def _generated(name, ingredients=None, **kwargs):
    return GeneratedRecipe(
        name=name,
        ingredients=ingredients if ingredients is not None else [{"name": "Rice", "amount": 100, "unit": "g"}],
        instructions="Cook it.",
        **kwargs,
    )


class FakeGenerator:
    def __init__(self, plan=None, recipe=None):
        self.plan = plan
        self.recipe = recipe
        self.requests = []

    def generate_weekly_plan(self, request):
        self.requests.append(request)
        return self.plan

    def generate_recipe(self, request):
        self.requests.append(request)
        return self.recipe


def test_generate_meal_plan_persists_recipes_and_slots(db_session, user):
    plan = GeneratedWeeklyPlan(
        description="Generated week",
        slots=[
            GeneratedSlot(day_of_week=0, meal_type=MealType.breakfast, recipe=_generated("Oats")),
            GeneratedSlot(day_of_week=0, meal_type=MealType.dinner, recipe=_generated("Risotto")),
        ],
    )
    generator = FakeGenerator(plan=plan)

    stored = generate_meal_plan(
        generator, db_session, user.id, "AI week", WEEK, WeeklyPlanRequest(), activate=True
    )

    assert stored.is_active
    assert stored.description == "Generated week"
    assert [(i.day_of_week, i.meal_type, i.recipe.name) for i in stored.items] == [
        (0, MealType.breakfast, "Oats"),
        (0, MealType.dinner, "Risotto"),
    ]
    # The slot's meal type is carried onto recipes that did not state one.
    assert stored.items[0].recipe.meal_type == MealType.breakfast
    assert stored.items[0].recipe.created_by_user_id == user.id
    assert len(generator.requests) == 1


def test_unusable_plan_is_rolled_back_completely(db_session, user):
    plan = GeneratedWeeklyPlan(
        slots=[
            GeneratedSlot(day_of_week=1, meal_type=MealType.lunch, recipe=_generated("Fine")),
            GeneratedSlot(day_of_week=2, meal_type=MealType.lunch, recipe=_generated("Broken", ingredients=[])),
        ]
    )

    with pytest.raises(GenerationError):
        persist_generated_plan(db_session, user.id, "Broken week", WEEK, plan)

    assert db_session.exec(select(MealPlan)).all() == []
    assert db_session.exec(select(Recipe)).all() == []


def test_generate_recipe(db_session, user):
    generator = FakeGenerator(recipe=_generated("Soup", cuisine="French"))
    recipe = generate_recipe(generator, db_session, user.id, RecipeRequest(prompt="warm soup"))
    assert recipe.name == "Soup"
    assert recipe.cuisine == "French"


def test_unusable_recipe_becomes_generation_error(db_session, user):
    generator = FakeGenerator(recipe=_generated("Empty", ingredients=[]))
    with pytest.raises(GenerationError):
        generate_recipe(generator, db_session, user.id, RecipeRequest(prompt="anything"))


def test_unconfigured_generator_fails(db_session, user):
    with pytest.raises(GenerationError):
        generate_recipe(UnconfiguredGenerationService(), db_session, user.id, RecipeRequest(prompt="x"))
    with pytest.raises(GenerationError):
        generate_meal_plan(
            UnconfiguredGenerationService(), db_session, user.id, "Week", WEEK, WeeklyPlanRequest()
        )
