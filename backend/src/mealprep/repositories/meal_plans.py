# backend/src/mealprep/repositories/meal_plans.py
"""Meal plans and their (day, meal type) slots.

A user has at most one active plan. Every activation runs the
deactivate-others / activate-target pair inside one transaction after locking
the user's plan rows, then re-counts active plans before committing.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy import delete, func, update
from sqlmodel import Session, select

from mealprep.core.database import dialect_insert, transaction
from mealprep.core.errors import (
    ConflictError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from mealprep.models.common import MEAL_TYPE_ORDER, MealType, utcnow
from mealprep.models.meal_plans import (
    MealPlan,
    MealPlanFilters,
    MealPlanItem,
    MealPlanItemRead,
    MealPlanPage,
    MealPlanRead,
    MealPlanUpdate,
)
from mealprep.models.recipes import Recipe
from mealprep.repositories.recipes import to_recipe_read
from mealprep.utils.validators import (
    require_text,
    validate_day_of_week,
    validate_meal_type,
)

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": MealPlan.created_at,
    "updated_at": MealPlan.updated_at,
    "week_start_date": MealPlan.week_start_date,
    "name": MealPlan.name,
}


def _not_found(meal_plan_id: uuid.UUID) -> NotFoundError:
    return NotFoundError(
        f"Meal plan {meal_plan_id} not found", entity="meal_plan", key=meal_plan_id
    )


def _get_owned_plan(session: Session, user_id: uuid.UUID, meal_plan_id: uuid.UUID) -> MealPlan:
    # Plans of other users are indistinguishable from missing ones.
    stmt = select(MealPlan).where(MealPlan.id == meal_plan_id, MealPlan.user_id == user_id)
    plan = session.exec(stmt).first()
    if plan is None:
        raise _not_found(meal_plan_id)
    return plan


def _plan_read(plan: MealPlan, items: Optional[List[MealPlanItemRead]] = None) -> MealPlanRead:
    return MealPlanRead(
        id=plan.id,
        user_id=plan.user_id,
        name=plan.name,
        description=plan.description,
        week_start_date=plan.week_start_date,
        is_active=plan.is_active,
        items=items or [],
        created_at=plan.created_at,
        updated_at=plan.updated_at,
    )


def _item_read(item: MealPlanItem, recipe: Recipe) -> MealPlanItemRead:
    return MealPlanItemRead(
        meal_plan_id=item.meal_plan_id,
        recipe_id=item.recipe_id,
        day_of_week=item.day_of_week,
        meal_type=item.meal_type,
        added_at=item.added_at,
        recipe=to_recipe_read(recipe),
    )


def _slot_order(item: MealPlanItemRead):
    return item.day_of_week, MEAL_TYPE_ORDER[item.meal_type]


def _load_items(
    session: Session,
    meal_plan_ids: Sequence[uuid.UUID],
    day_of_week: Optional[int] = None,
) -> Dict[uuid.UUID, List[MealPlanItemRead]]:
    grouped: Dict[uuid.UUID, List[MealPlanItemRead]] = defaultdict(list)
    if not meal_plan_ids:
        return grouped
    stmt = (
        select(MealPlanItem, Recipe)
        .join(Recipe, Recipe.id == MealPlanItem.recipe_id)
        .where(MealPlanItem.meal_plan_id.in_(list(meal_plan_ids)))
    )
    if day_of_week is not None:
        stmt = stmt.where(MealPlanItem.day_of_week == day_of_week)
    for item, recipe in session.exec(stmt).all():
        grouped[item.meal_plan_id].append(_item_read(item, recipe))
    for items in grouped.values():
        items.sort(key=_slot_order)
    return grouped


def _hydrate(session: Session, plans: Sequence[MealPlan]) -> List[MealPlanRead]:
    items = _load_items(session, [plan.id for plan in plans])
    return [_plan_read(plan, items.get(plan.id, [])) for plan in plans]


def _touch_plan(session: Session, meal_plan_id: uuid.UUID, now: datetime) -> None:
    session.exec(update(MealPlan).where(MealPlan.id == meal_plan_id).values(updated_at=now))


def _activate(session: Session, user_id: uuid.UUID, meal_plan_id: uuid.UUID) -> None:
    """Make ``meal_plan_id`` the user's only active plan. Caller owns the transaction."""
    # Row locks on PostgreSQL; SQLite serialises writers on the database lock instead.
    session.exec(
        select(MealPlan.id).where(MealPlan.user_id == user_id).with_for_update()
    ).all()

    session.exec(
        update(MealPlan)
        .where(
            MealPlan.user_id == user_id,
            MealPlan.id != meal_plan_id,
            MealPlan.is_active.is_(True),
        )
        .values(is_active=False)
    )
    session.exec(update(MealPlan).where(MealPlan.id == meal_plan_id).values(is_active=True))

    active = session.exec(
        select(func.count())
        .select_from(MealPlan)
        .where(MealPlan.user_id == user_id, MealPlan.is_active.is_(True))
    ).one()
    if active != 1:
        logger.error("User %s has %d active meal plans after activation", user_id, active)
        raise InvariantViolationError(
            f"Expected exactly one active meal plan, found {active}",
            entity="meal_plan",
            key=meal_plan_id,
        )


# ----------------------------
# Plans
# ----------------------------

def create_meal_plan(
    session: Session,
    owner_id: uuid.UUID,
    name: str,
    description: Optional[str],
    week_start_date: date,
    is_active: bool = False,
) -> MealPlanRead:
    name = require_text(name, "name", 255)
    if week_start_date is None:
        raise ValidationError("week_start_date is required", field="week_start_date")

    plan = MealPlan(
        user_id=owner_id,
        name=name,
        description=(description or "").strip() or None,
        week_start_date=week_start_date,
        is_active=False,
    )
    with transaction(session, entity="meal_plan", key=name):
        duplicate = session.exec(
            select(MealPlan.id).where(MealPlan.user_id == owner_id, MealPlan.name == name)
        ).first()
        if duplicate is not None:
            raise ConflictError(
                f"A meal plan named '{name}' already exists", entity="meal_plan", key=name
            )
        session.add(plan)
        session.flush()
        if is_active:
            _activate(session, owner_id, plan.id)
    logger.info("Created meal plan %s for user %s", plan.id, owner_id)
    return _plan_read(plan)


def get_meal_plan_by_id(
    session: Session,
    user_id: uuid.UUID,
    meal_plan_id: uuid.UUID,
    include_items: bool = True,
) -> MealPlanRead:
    plan = _get_owned_plan(session, user_id, meal_plan_id)
    if not include_items:
        return _plan_read(plan)
    return _hydrate(session, [plan])[0]


def set_active_meal_plan(
    session: Session,
    user_id: uuid.UUID,
    meal_plan_id: uuid.UUID,
) -> MealPlanRead:
    with transaction(session, entity="meal_plan", key=meal_plan_id):
        _get_owned_plan(session, user_id, meal_plan_id)
        _activate(session, user_id, meal_plan_id)
    logger.info("Activated meal plan %s for user %s", meal_plan_id, user_id)
    return get_meal_plan_by_id(session, user_id, meal_plan_id)


def deactivate_meal_plan(
    session: Session,
    user_id: uuid.UUID,
    meal_plan_id: uuid.UUID,
) -> MealPlanRead:
    with transaction(session, entity="meal_plan", key=meal_plan_id):
        _get_owned_plan(session, user_id, meal_plan_id)
        session.exec(
            update(MealPlan).where(MealPlan.id == meal_plan_id).values(is_active=False)
        )
    return get_meal_plan_by_id(session, user_id, meal_plan_id)


def get_active_meal_plan(session: Session, user_id: uuid.UUID) -> Optional[MealPlanRead]:
    plans = session.exec(
        select(MealPlan).where(MealPlan.user_id == user_id, MealPlan.is_active.is_(True))
    ).all()
    if len(plans) > 1:
        logger.error("User %s has %d active meal plans", user_id, len(plans))
        raise InvariantViolationError(
            f"User has {len(plans)} active meal plans", entity="meal_plan", key=user_id
        )
    if not plans:
        return None
    return _hydrate(session, plans)[0]


def update_meal_plan(
    session: Session,
    user_id: uuid.UUID,
    meal_plan_id: uuid.UUID,
    updates: Union[MealPlanUpdate, Mapping[str, Any]],
) -> MealPlanRead:
    if isinstance(updates, Mapping):
        updates = MealPlanUpdate.model_validate(dict(updates))
    provided = updates.model_dump(exclude_unset=True)
    if not provided:
        raise ValidationError("No updatable meal plan fields were provided")

    with transaction(session, entity="meal_plan", key=meal_plan_id):
        plan = _get_owned_plan(session, user_id, meal_plan_id)

        if "name" in provided:
            name = require_text(updates.name, "name", 255)
            if name != plan.name:
                clash = session.exec(
                    select(MealPlan.id).where(
                        MealPlan.user_id == user_id,
                        MealPlan.name == name,
                        MealPlan.id != meal_plan_id,
                    )
                ).first()
                if clash is not None:
                    raise ConflictError(
                        f"A meal plan named '{name}' already exists", entity="meal_plan", key=name
                    )
            plan.name = name
        if "description" in provided:
            plan.description = (updates.description or "").strip() or None
        if "week_start_date" in provided:
            if updates.week_start_date is None:
                raise ValidationError("week_start_date cannot be cleared", field="week_start_date")
            plan.week_start_date = updates.week_start_date
        session.add(plan)
        session.flush()

        if provided.get("is_active") is True:
            _activate(session, user_id, meal_plan_id)
        elif provided.get("is_active") is False:
            session.exec(
                update(MealPlan).where(MealPlan.id == meal_plan_id).values(is_active=False)
            )
    return get_meal_plan_by_id(session, user_id, meal_plan_id)


def delete_meal_plan(session: Session, user_id: uuid.UUID, meal_plan_id: uuid.UUID) -> None:
    with transaction(session, entity="meal_plan", key=meal_plan_id):
        _get_owned_plan(session, user_id, meal_plan_id)
        session.exec(delete(MealPlan).where(MealPlan.id == meal_plan_id))
    logger.info("Deleted meal plan %s", meal_plan_id)


def get_meal_plans_for_user(session: Session, filters: MealPlanFilters) -> MealPlanPage:
    conditions = [MealPlan.user_id == filters.user_id]
    if filters.is_active is not None:
        conditions.append(MealPlan.is_active.is_(filters.is_active))
    if filters.week_start_date is not None:
        conditions.append(MealPlan.week_start_date == filters.week_start_date)

    total = session.exec(select(func.count()).select_from(MealPlan).where(*conditions)).one()

    column = SORT_COLUMNS[filters.sort_by]
    ordering = column.asc() if filters.sort_order == "asc" else column.desc()
    plans = session.exec(
        select(MealPlan)
        .where(*conditions)
        .order_by(ordering, MealPlan.id.asc())
        .offset(filters.offset)
        .limit(filters.limit)
    ).all()

    items = _hydrate(session, plans) if filters.include_items else [_plan_read(p) for p in plans]
    return MealPlanPage(items=items, total=total, limit=filters.limit, offset=filters.offset)


# ----------------------------
# Slots
# ----------------------------

def _upsert_slot(
    session: Session,
    meal_plan_id: uuid.UUID,
    day_of_week: int,
    meal_type: MealType,
    recipe_id: uuid.UUID,
    now: datetime,
) -> None:
    stmt = dialect_insert(session, MealPlanItem).values(
        meal_plan_id=meal_plan_id,
        day_of_week=day_of_week,
        meal_type=meal_type,
        recipe_id=recipe_id,
        added_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["meal_plan_id", "day_of_week", "meal_type"],
        set_={"recipe_id": stmt.excluded.recipe_id, "added_at": stmt.excluded.added_at},
    )
    session.exec(stmt)


def _require_recipe(session: Session, recipe_id: uuid.UUID) -> Recipe:
    recipe = session.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFoundError(f"Recipe {recipe_id} not found", entity="recipe", key=recipe_id)
    return recipe


def assign_recipe(
    session: Session,
    user_id: uuid.UUID,
    meal_plan_id: uuid.UUID,
    recipe_id: uuid.UUID,
    day_of_week: int,
    meal_type: Union[MealType, str],
) -> MealPlanItemRead:
    """Put ``recipe_id`` into a slot; an occupied slot is overwritten."""
    day = validate_day_of_week(day_of_week)
    meal = validate_meal_type(meal_type)
    now = utcnow()

    with transaction(session, entity="meal_plan_item", key=f"{meal_plan_id}/{day}/{meal.value}"):
        _get_owned_plan(session, user_id, meal_plan_id)
        recipe = _require_recipe(session, recipe_id)
        _upsert_slot(session, meal_plan_id, day, meal, recipe_id, now)
        _touch_plan(session, meal_plan_id, now)

    return MealPlanItemRead(
        meal_plan_id=meal_plan_id,
        recipe_id=recipe_id,
        day_of_week=day,
        meal_type=meal,
        added_at=now,
        recipe=to_recipe_read(recipe),
    )


def remove_recipe(
    session: Session,
    user_id: uuid.UUID,
    meal_plan_id: uuid.UUID,
    day_of_week: int,
    meal_type: Union[MealType, str],
) -> bool:
    """Empty a slot. Returns False when the slot was already empty."""
    day = validate_day_of_week(day_of_week)
    meal = validate_meal_type(meal_type)

    with transaction(session, entity="meal_plan_item", key=f"{meal_plan_id}/{day}/{meal.value}"):
        _get_owned_plan(session, user_id, meal_plan_id)
        result = session.exec(
            delete(MealPlanItem).where(
                MealPlanItem.meal_plan_id == meal_plan_id,
                MealPlanItem.day_of_week == day,
                MealPlanItem.meal_type == meal,
            )
        )
        removed = result.rowcount > 0
        if removed:
            _touch_plan(session, meal_plan_id, utcnow())
    return removed


def move_meal_plan_item(
    session: Session,
    user_id: uuid.UUID,
    meal_plan_id: uuid.UUID,
    from_day: int,
    from_meal_type: Union[MealType, str],
    to_day: int,
    to_meal_type: Union[MealType, str],
) -> MealPlanItemRead:
    """Move a slot's recipe to another slot, replacing whatever was there."""
    source_day = validate_day_of_week(from_day)
    source_meal = validate_meal_type(from_meal_type)
    target_day = validate_day_of_week(to_day)
    target_meal = validate_meal_type(to_meal_type)
    now = utcnow()

    with transaction(session, entity="meal_plan_item", key=f"{meal_plan_id}/{source_day}/{source_meal.value}"):
        _get_owned_plan(session, user_id, meal_plan_id)
        source = (
            MealPlanItem.meal_plan_id == meal_plan_id,
            MealPlanItem.day_of_week == source_day,
            MealPlanItem.meal_type == source_meal,
        )
        recipe_id = session.exec(select(MealPlanItem.recipe_id).where(*source)).first()
        if recipe_id is None:
            raise NotFoundError(
                f"No recipe in slot day {source_day} / {source_meal.value}",
                entity="meal_plan_item",
                key=f"{meal_plan_id}/{source_day}/{source_meal.value}",
            )
        if (source_day, source_meal) != (target_day, target_meal):
            session.exec(delete(MealPlanItem).where(*source))
            _upsert_slot(session, meal_plan_id, target_day, target_meal, recipe_id, now)
            _touch_plan(session, meal_plan_id, now)

    items = get_meal_plan_items(session, meal_plan_id, day_of_week=target_day)
    moved = next((item for item in items if item.meal_type == target_meal), None)
    if moved is None:
        # The recipe was deleted concurrently and took the slot with it.
        raise NotFoundError(f"Recipe {recipe_id} not found", entity="recipe", key=recipe_id)
    return moved


def get_meal_plan_items(
    session: Session,
    meal_plan_id: uuid.UUID,
    day_of_week: Optional[int] = None,
) -> List[MealPlanItemRead]:
    if day_of_week is not None:
        validate_day_of_week(day_of_week)
    return _load_items(session, [meal_plan_id], day_of_week).get(meal_plan_id, [])


def clear_meal_plan(session: Session, user_id: uuid.UUID, meal_plan_id: uuid.UUID) -> int:
    with transaction(session, entity="meal_plan", key=meal_plan_id):
        _get_owned_plan(session, user_id, meal_plan_id)
        result = session.exec(delete(MealPlanItem).where(MealPlanItem.meal_plan_id == meal_plan_id))
        removed = result.rowcount
        if removed:
            _touch_plan(session, meal_plan_id, utcnow())
    return removed
