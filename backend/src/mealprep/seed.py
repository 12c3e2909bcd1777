# backend/src/mealprep/seed.py
"""Sample data for local development. Refuses to touch a production database."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Optional, Sequence, Tuple

from sqlalchemy.engine import Engine
from sqlmodel import Session

from mealprep.core import database as core_database
from mealprep.core.config import Settings, get_settings
from mealprep.core.errors import MealPrepError
from mealprep.models.common import Difficulty, MealType
from mealprep.models.favorites import CollectionCreate
from mealprep.models.recipes import Ingredient, NutritionInfo, RecipeCreate
from mealprep.models.users import DietaryPreferences, DietType, UserCreate
from mealprep.repositories import collections as collections_repo
from mealprep.repositories import favorites as favorites_repo
from mealprep.repositories import meal_plans as meal_plans_repo
from mealprep.repositories import recipes as recipes_repo
from mealprep.repositories import users as users_repo

logger = logging.getLogger(__name__)

DEMO_USERNAME = "demo"
DEMO_PASSWORD = "demo-password"


class SeedRefusedError(MealPrepError):
    """Seeding or resetting was requested against a production environment."""


@dataclass(frozen=True)
class RecipeSeed:
    name: str
    description: str
    ingredients: Sequence[Tuple[str, float, str]]
    instructions: str
    cuisine: str
    meal_type: MealType
    prep_time: int
    cook_time: int
    difficulty: Difficulty
    calories: float
    tags: Sequence[str]


RECIPES: Sequence[RecipeSeed] = (
    RecipeSeed(
        "Scrambled Eggs with Toast",
        "Soft scrambled eggs on buttered toast.",
        (("Eggs", 2, "pieces"), ("Butter", 1, "tbsp"), ("Bread", 2, "slices"), ("Salt", 1, "pinch")),
        "Whisk the eggs, cook gently in butter, serve on toast.",
        "American",
        MealType.breakfast,
        5,
        10,
        Difficulty.easy,
        350,
        ("quick", "vegetarian"),
    ),
    RecipeSeed(
        "Grilled Chicken Salad",
        "Grilled chicken over mixed greens with lemon dressing.",
        (
            ("Chicken breast", 150, "g"),
            ("Mixed greens", 100, "g"),
            ("Cherry tomatoes", 50, "g"),
            ("Olive oil", 2, "tbsp"),
            ("Lemon juice", 1, "tbsp"),
        ),
        "Grill the chicken, slice it and toss with the greens and dressing.",
        "Mediterranean",
        MealType.lunch,
        10,
        15,
        Difficulty.easy,
        420,
        ("high-protein", "low-carb"),
    ),
    RecipeSeed(
        "Spaghetti Carbonara",
        "Roman pasta with eggs, pancetta and parmesan.",
        (
            ("Spaghetti", 100, "g"),
            ("Pancetta", 50, "g"),
            ("Eggs", 2, "pieces"),
            ("Parmesan cheese", 30, "g"),
            ("Black pepper", 1, "tsp"),
        ),
        "Boil the pasta, crisp the pancetta, toss off the heat with egg and cheese.",
        "Italian",
        MealType.dinner,
        10,
        20,
        Difficulty.medium,
        620,
        ("pasta", "comfort"),
    ),
    RecipeSeed(
        "Greek Yogurt with Berries",
        "Thick yogurt topped with berries, honey and granola.",
        (("Greek yogurt", 150, "g"), ("Mixed berries", 80, "g"), ("Honey", 1, "tbsp"), ("Granola", 20, "g")),
        "Layer yogurt, berries and granola; drizzle with honey.",
        "Mediterranean",
        MealType.snack,
        3,
        0,
        Difficulty.easy,
        250,
        ("quick", "vegetarian", "no-cook"),
    ),
    RecipeSeed(
        "Beef Stew",
        "Slow braised beef with root vegetables.",
        (("Beef chuck", 500, "g"), ("Carrots", 3, "pieces"), ("Potatoes", 4, "pieces"), ("Beef stock", 750, "ml")),
        "Brown the beef, add vegetables and stock, braise for two hours.",
        "French",
        MealType.dinner,
        20,
        120,
        Difficulty.hard,
        710,
        ("comfort", "batch-cooking"),
    ),
)


def _ensure_not_production(settings: Settings, action: str) -> None:
    if settings.is_production:
        raise SeedRefusedError(f"Refusing to {action} in the production environment")


def _recipe_create(seed: RecipeSeed) -> RecipeCreate:
    return RecipeCreate(
        name=seed.name,
        description=seed.description,
        ingredients=[Ingredient(name=n, amount=a, unit=u) for n, a, u in seed.ingredients],
        instructions=seed.instructions,
        nutrition_info=NutritionInfo(calories=seed.calories),
        cuisine=seed.cuisine,
        meal_type=seed.meal_type,
        prep_time=seed.prep_time,
        cook_time=seed.cook_time,
        difficulty=seed.difficulty,
        tags=list(seed.tags),
    )


def create_sample_data(session: Session, settings: Optional[Settings] = None) -> Dict[str, int]:
    """Insert a demo user with recipes, an active plan, favorites and a collection.

    Running it twice is a no-op once the demo user exists.
    """
    settings = settings or get_settings()
    _ensure_not_production(settings, "seed sample data")

    if users_repo.get_user_by_username(session, DEMO_USERNAME) is not None:
        logger.info("Sample data already present; skipping")
        return {"users": 0, "recipes": 0, "meal_plans": 0, "favorites": 0, "collections": 0}

    user = users_repo.create_user(
        session,
        UserCreate(
            username=DEMO_USERNAME,
            email="demo@example.com",
            password=DEMO_PASSWORD,
            display_name="Demo Cook",
            dietary_preferences=DietaryPreferences(diet_type=DietType.omnivore, calorie_target=2200),
        ),
    )
    recipes = [
        recipes_repo.create_recipe(session, _recipe_create(seed), created_by_user_id=user.id)
        for seed in RECIPES
    ]

    monday = date.today() - timedelta(days=date.today().weekday())
    plan = meal_plans_repo.create_meal_plan(
        session, user.id, "This week", "Seeded sample plan", monday, is_active=True
    )
    by_meal_type = {recipe.meal_type: recipe for recipe in recipes}
    for day in range(7):
        for meal_type in (MealType.breakfast, MealType.lunch, MealType.dinner):
            meal_plans_repo.assign_recipe(
                session, user.id, plan.id, by_meal_type[meal_type].id, day, meal_type
            )

    for rating, recipe in zip((5, 4, 5, 3), recipes):
        favorites_repo.add_favorite(session, user.id, recipe.id, rating=rating, tags=recipe.tags[:1])

    collection = collections_repo.create_collection(
        session, user.id, CollectionCreate(name="Weeknight dinners", tags=["dinner"])
    )
    for recipe in recipes:
        if recipe.meal_type == MealType.dinner:
            collections_repo.add_to_collection(session, user.id, collection.id, recipe.id)

    summary = {
        "users": 1,
        "recipes": len(recipes),
        "meal_plans": 1,
        "favorites": 4,
        "collections": 1,
    }
    logger.info("Sample data created: %s", summary)
    return summary


def reset_database(bind: Optional[Engine] = None, settings: Optional[Settings] = None) -> None:
    """Drop and recreate every table."""
    settings = settings or get_settings()
    _ensure_not_production(settings, "reset the database")
    core_database.drop_db(bind)
    core_database.init_db(bind)
    logger.warning("Database reset")
