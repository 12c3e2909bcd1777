# backend/src/mealprep/repositories/recipes.py
"""Recipe catalogue: CRUD, search, usage lookups and rating aggregates."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import and_, delete, exists, func, literal_column, or_, update
from sqlalchemy.dialects import postgresql
from sqlmodel import Session, select

from mealprep.core.database import dialect_name, transaction
from mealprep.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from mealprep.models.ddl import RECIPE_SEARCH_CONFIG
from mealprep.models.favorites import Favorite
from mealprep.models.meal_plans import MealPlan, MealPlanItem
from mealprep.models.recipes import (
    Recipe,
    RecipeCreate,
    RecipePage,
    RecipeRead,
    RecipeSearchFilters,
    RecipeUpdate,
    RecipeUsage,
)
from mealprep.utils.validators import (
    normalize_tags,
    require_text,
    sanitize_text,
    validate_difficulty,
    validate_ingredients,
    validate_meal_type,
    validate_minutes,
    validate_nutrition,
)

logger = logging.getLogger(__name__)

# Maintained only by recalculate_recipe_rating / the store.
READ_ONLY_FIELDS = frozenset(
    {"id", "avg_rating", "rating_count", "total_time", "created_at", "updated_at", "created_by_user_id"}
)

SORT_COLUMNS = {
    "created_at": Recipe.created_at,
    "avg_rating": Recipe.avg_rating,
    "name": Recipe.name,
    "total_time": Recipe.total_time,
}


def to_recipe_read(row: Recipe) -> RecipeRead:
    return RecipeRead.model_validate(row)


def _clean_instructions(value: Optional[str]) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError("instructions must not be empty", field="instructions")
    return cleaned


def _clean_description(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None


def create_recipe(
    session: Session,
    data: RecipeCreate,
    created_by_user_id: Optional[uuid.UUID] = None,
) -> RecipeRead:
    recipe = Recipe(
        created_by_user_id=created_by_user_id,
        name=require_text(data.name, "name", 255),
        description=_clean_description(data.description),
        ingredients=validate_ingredients(data.ingredients),
        instructions=_clean_instructions(data.instructions),
        nutrition_info=validate_nutrition(data.nutrition_info),
        cuisine=sanitize_text(data.cuisine, 100),
        meal_type=validate_meal_type(data.meal_type) if data.meal_type is not None else None,
        prep_time=validate_minutes(data.prep_time, "prep_time"),
        cook_time=validate_minutes(data.cook_time, "cook_time"),
        difficulty=validate_difficulty(data.difficulty),
        image_url=sanitize_text(data.image_url, 500),
        tags=normalize_tags(data.tags),
    )
    with transaction(session, entity="recipe", key=recipe.id):
        session.add(recipe)
        session.flush()
    logger.info("Created recipe %s (%s)", recipe.id, recipe.name)
    return to_recipe_read(recipe)


def get_recipe_by_id(session: Session, recipe_id: uuid.UUID) -> RecipeRead:
    recipe = session.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFoundError(f"Recipe {recipe_id} not found", entity="recipe", key=recipe_id)
    return to_recipe_read(recipe)


def _update_values(updates: Union[RecipeUpdate, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(updates, Mapping):
        blocked = READ_ONLY_FIELDS.intersection(updates)
        if blocked:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(blocked))}",
                field=sorted(blocked)[0],
            )
        updates = RecipeUpdate.model_validate(dict(updates))

    provided = updates.model_dump(exclude_unset=True)
    if not provided:
        raise ValidationError("No updatable recipe fields were provided")

    values: Dict[str, Any] = {}
    for name in provided:
        value = getattr(updates, name)
        if name == "name":
            values[name] = require_text(value, "name", 255)
        elif name == "description":
            values[name] = _clean_description(value)
        elif name == "ingredients":
            values[name] = validate_ingredients(value)
        elif name == "instructions":
            values[name] = _clean_instructions(value)
        elif name == "nutrition_info":
            values[name] = validate_nutrition(value)
        elif name == "cuisine":
            values[name] = sanitize_text(value, 100)
        elif name == "meal_type":
            values[name] = validate_meal_type(value) if value is not None else None
        elif name in ("prep_time", "cook_time"):
            values[name] = validate_minutes(value, name)
        elif name == "difficulty":
            values[name] = validate_difficulty(value)
        elif name == "image_url":
            values[name] = sanitize_text(value, 500)
        elif name == "tags":
            values[name] = normalize_tags(value)
    return values


def _check_owner(
    recipe_id: uuid.UUID, created_by: Optional[uuid.UUID], user_id: Optional[uuid.UUID]
) -> None:
    # Only the creator may change a recipe; orphaned recipes are frozen.
    if user_id is not None and created_by != user_id:
        raise ForbiddenError(
            f"Recipe {recipe_id} was not created by user {user_id}", entity="recipe", key=recipe_id
        )


def update_recipe(
    session: Session,
    recipe_id: uuid.UUID,
    updates: Union[RecipeUpdate, Mapping[str, Any]],
    user_id: Optional[uuid.UUID] = None,
) -> RecipeRead:
    """Merge the provided fields into the recipe; total time follows from the store.

    With ``user_id`` set, only that user's own recipes can be changed.
    """
    values = _update_values(updates)
    with transaction(session, entity="recipe", key=recipe_id):
        recipe = session.get(Recipe, recipe_id)
        if recipe is None:
            raise NotFoundError(f"Recipe {recipe_id} not found", entity="recipe", key=recipe_id)
        _check_owner(recipe_id, recipe.created_by_user_id, user_id)
        for name, value in values.items():
            setattr(recipe, name, value)
        session.add(recipe)
    return to_recipe_read(recipe)


def get_recipe_usage(session: Session, recipe_id: uuid.UUID) -> List[RecipeUsage]:
    stmt = (
        select(MealPlan.id, MealPlan.name, MealPlan.user_id, func.count(MealPlanItem.day_of_week))
        .join(MealPlanItem, MealPlanItem.meal_plan_id == MealPlan.id)
        .where(MealPlanItem.recipe_id == recipe_id)
        .group_by(MealPlan.id, MealPlan.name, MealPlan.user_id)
        .order_by(MealPlan.name, MealPlan.id)
    )
    return [
        RecipeUsage(meal_plan_id=plan_id, meal_plan_name=name, user_id=user_id, slots=slots)
        for plan_id, name, user_id, slots in session.exec(stmt).all()
    ]


def _recipe_creator(session: Session, recipe_id: uuid.UUID) -> Optional[tuple]:
    stmt = select(Recipe.id, Recipe.created_by_user_id).where(Recipe.id == recipe_id)
    return session.exec(stmt).first()


def is_recipe_used_in_meal_plans(session: Session, recipe_id: uuid.UUID) -> bool:
    stmt = select(func.count()).select_from(MealPlanItem).where(MealPlanItem.recipe_id == recipe_id)
    return session.exec(stmt).one() > 0


def delete_recipe(
    session: Session,
    recipe_id: uuid.UUID,
    remove_from_meal_plans: bool = False,
    user_id: Optional[uuid.UUID] = None,
) -> None:
    """Delete a recipe.

    A recipe still scheduled in a meal plan is only deleted when
    ``remove_from_meal_plans`` is set; the slots then go in the same
    transaction. Favorites and collection entries follow by FK cascade.
    With ``user_id`` set, only that user's own recipes can be deleted.
    """
    with transaction(session, entity="recipe", key=recipe_id):
        row = _recipe_creator(session, recipe_id)
        if row is None:
            raise NotFoundError(f"Recipe {recipe_id} not found", entity="recipe", key=recipe_id)
        _check_owner(recipe_id, row[1], user_id)

        usage = get_recipe_usage(session, recipe_id)
        if usage and not remove_from_meal_plans:
            names = ", ".join(item.meal_plan_name for item in usage)
            raise ConflictError(
                f"Recipe is used in {len(usage)} meal plan(s): {names}",
                entity="recipe",
                key=recipe_id,
                details=[
                    {"meal_plan_id": str(item.meal_plan_id), "meal_plan_name": item.meal_plan_name}
                    for item in usage
                ],
            )

        session.exec(delete(MealPlanItem).where(MealPlanItem.recipe_id == recipe_id))
        session.exec(delete(Recipe).where(Recipe.id == recipe_id))
    logger.info("Deleted recipe %s (removed from %d plan(s))", recipe_id, len(usage))


# ----------------------------
# Search
# ----------------------------

def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _text_condition(dialect: str, query: str):
    if dialect == "postgresql":
        config = literal_column(f"'{RECIPE_SEARCH_CONFIG}'")
        document = func.to_tsvector(config, Recipe.name + " " + func.coalesce(Recipe.description, ""))
        return document.op("@@")(func.plainto_tsquery(config, query))

    haystack = func.lower(Recipe.name + " " + func.coalesce(Recipe.description, ""))
    return and_(
        *[haystack.like(f"%{_escape_like(term)}%", escape="\\") for term in query.lower().split()]
    )


def _has_tag(tag: str):
    each = func.json_each(Recipe.tags).table_valued("value")
    return exists().select_from(each).where(each.c.value == tag)


def _tag_condition(dialect: str, tags: List[str], match_all: bool):
    if dialect == "postgresql":
        operator = "?&" if match_all else "?|"
        return Recipe.tags.op(operator)(postgresql.array(tags))
    conditions = [_has_tag(tag) for tag in tags]
    return and_(*conditions) if match_all else or_(*conditions)


def _search_conditions(session: Session, filters: RecipeSearchFilters) -> list:
    dialect = dialect_name(session)
    conditions = []

    query = sanitize_text(filters.search_query)
    if query:
        conditions.append(_text_condition(dialect, query))

    tags = normalize_tags(filters.tags)
    if tags:
        conditions.append(_tag_condition(dialect, tags, filters.match_all_tags))

    if filters.cuisine:
        conditions.append(func.lower(Recipe.cuisine) == filters.cuisine.strip().lower())
    if filters.meal_type is not None:
        conditions.append(Recipe.meal_type == filters.meal_type)
    if filters.difficulty is not None:
        conditions.append(Recipe.difficulty == filters.difficulty)
    if filters.max_prep_time is not None:
        conditions.append(Recipe.prep_time <= filters.max_prep_time)
    if filters.max_cook_time is not None:
        conditions.append(Recipe.cook_time <= filters.max_cook_time)
    if filters.min_rating is not None:
        conditions.append(Recipe.avg_rating >= filters.min_rating)
    if filters.created_by_user_id is not None:
        conditions.append(Recipe.created_by_user_id == filters.created_by_user_id)
    return conditions


def search_recipes(session: Session, filters: RecipeSearchFilters) -> RecipePage:
    conditions = _search_conditions(session, filters)

    total = session.exec(select(func.count()).select_from(Recipe).where(*conditions)).one()

    column = SORT_COLUMNS[filters.sort_by]
    ordering = column.asc() if filters.sort_order == "asc" else column.desc()
    stmt = (
        select(Recipe)
        .where(*conditions)
        .order_by(ordering, Recipe.id.asc())
        .offset(filters.offset)
        .limit(filters.limit)
    )
    rows = session.exec(stmt).all()
    return RecipePage(
        items=[to_recipe_read(row) for row in rows],
        total=total,
        limit=filters.limit,
        offset=filters.offset,
    )


def get_recipes_by_user(
    session: Session,
    user_id: uuid.UUID,
    limit: int = 20,
    offset: int = 0,
) -> RecipePage:
    filters = RecipeSearchFilters(created_by_user_id=user_id, limit=limit, offset=offset)
    return search_recipes(session, filters)


def get_popular_recipes(session: Session, limit: int = 10) -> List[RecipeRead]:
    stmt = (
        select(Recipe)
        .where(Recipe.rating_count > 0)
        .order_by(Recipe.avg_rating.desc(), Recipe.rating_count.desc(), Recipe.id.asc())
        .limit(limit)
    )
    return [to_recipe_read(row) for row in session.exec(stmt).all()]


# ----------------------------
# Rating aggregates
# ----------------------------

def recalculate_recipe_rating(session: Session, recipe_id: uuid.UUID) -> RecipeRead:
    """Recompute avg_rating / rating_count from the favorites' personal ratings."""
    with transaction(session, entity="recipe", key=recipe_id):
        average, count = session.exec(
            select(func.avg(Favorite.personal_rating), func.count(Favorite.personal_rating)).where(
                Favorite.recipe_id == recipe_id,
                Favorite.personal_rating.is_not(None),
            )
        ).one()
        result = session.exec(
            update(Recipe)
            .where(Recipe.id == recipe_id)
            .values(
                avg_rating=round(float(average), 2) if count else 0.0,
                rating_count=count,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Recipe {recipe_id} not found", entity="recipe", key=recipe_id)
    recipe = session.get(Recipe, recipe_id, populate_existing=True)
    return to_recipe_read(recipe)
