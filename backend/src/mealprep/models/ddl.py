"""PostgreSQL-only schema objects that SQLModel metadata cannot express.

Attached as DDL events so ``init_db()`` installs them right after the tables
are created; other dialects skip them.
"""

from sqlalchemy import DDL, event
from sqlmodel import SQLModel

from .favorites import Collection
from .meal_plans import MealPlan
from .recipes import Recipe
from .users import User

REQUIRED_TABLES = (
    "users",
    "recipes",
    "meal_plans",
    "meal_plan_items",
    "favorites",
    "collections",
    "collection_recipes",
)

# Shared between the index definition and the search query so the planner can use it.
RECIPE_SEARCH_CONFIG = "english"

_UPDATED_AT_FUNCTION = DDL(
    """
    CREATE OR REPLACE FUNCTION set_updated_at() RETURNS TRIGGER AS $$
    BEGIN
        NEW.updated_at = NOW();
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
    """
)

_RECIPE_SEARCH_INDEX = DDL(
    "CREATE INDEX IF NOT EXISTS idx_recipes_search ON recipes USING gin "
    f"(to_tsvector('{RECIPE_SEARCH_CONFIG}', name || ' ' || coalesce(description, '')))"
)


def _updated_at_trigger(table_name: str) -> DDL:
    return DDL(
        f"CREATE TRIGGER trg_{table_name}_updated_at BEFORE UPDATE ON {table_name} "
        "FOR EACH ROW EXECUTE FUNCTION set_updated_at()"
    )


event.listen(
    SQLModel.metadata,
    "before_create",
    _UPDATED_AT_FUNCTION.execute_if(dialect="postgresql"),
)

for _model in (User, Recipe, MealPlan, Collection):
    event.listen(
        _model.__table__,
        "after_create",
        _updated_at_trigger(_model.__tablename__).execute_if(dialect="postgresql"),
    )

event.listen(
    Recipe.__table__,
    "after_create",
    _RECIPE_SEARCH_INDEX.execute_if(dialect="postgresql"),
)
