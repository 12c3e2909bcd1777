from .common import MEAL_TYPE_ORDER, Difficulty, MealType
from .favorites import (
    BulkResult,
    Collection,
    CollectionCreate,
    CollectionRead,
    CollectionRecipe,
    CollectionRecipeRead,
    CollectionUpdate,
    Favorite,
    FavoriteCreate,
    FavoriteFilters,
    FavoritePage,
    FavoriteRead,
    FavoriteUpdate,
)
from .meal_plans import (
    MealPlan,
    MealPlanCreate,
    MealPlanFilters,
    MealPlanItem,
    MealPlanItemRead,
    MealPlanPage,
    MealPlanRead,
    MealPlanUpdate,
)
from .recipes import (
    Ingredient,
    NutritionInfo,
    Recipe,
    RecipeCreate,
    RecipePage,
    RecipeRead,
    RecipeSearchFilters,
    RecipeUpdate,
    RecipeUsage,
)
from .users import DietaryPreferences, DietType, User, UserCreate, UserRead, UserUpdate
from . import ddl  # noqa: F401  (registers PostgreSQL DDL hooks)
from .ddl import REQUIRED_TABLES

__all__ = [
    "BulkResult",
    "Collection",
    "CollectionCreate",
    "CollectionRead",
    "CollectionRecipe",
    "CollectionRecipeRead",
    "CollectionUpdate",
    "DietType",
    "DietaryPreferences",
    "Difficulty",
    "Favorite",
    "FavoriteCreate",
    "FavoriteFilters",
    "FavoritePage",
    "FavoriteRead",
    "FavoriteUpdate",
    "Ingredient",
    "MEAL_TYPE_ORDER",
    "MealPlan",
    "MealPlanCreate",
    "MealPlanFilters",
    "MealPlanItem",
    "MealPlanItemRead",
    "MealPlanPage",
    "MealPlanRead",
    "MealPlanUpdate",
    "MealType",
    "NutritionInfo",
    "REQUIRED_TABLES",
    "Recipe",
    "RecipeCreate",
    "RecipePage",
    "RecipeRead",
    "RecipeSearchFilters",
    "RecipeUpdate",
    "RecipeUsage",
    "User",
    "UserCreate",
    "UserRead",
    "UserUpdate",
]
