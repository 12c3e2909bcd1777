# backend/src/mealprep/routers/meal_plans.py
import uuid
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel
from sqlmodel import Session

from mealprep.core.database import get_session
from mealprep.deps import get_current_user_id, get_generation_service
from mealprep.models.meal_plans import (
    MealPlanCreate,
    MealPlanFilters,
    MealPlanItemRead,
    MealPlanPage,
    MealPlanRead,
    MealPlanUpdate,
    SlotAssignment,
)
from mealprep.repositories import meal_plans as meal_plans_repo
from mealprep.services.generation import GenerationService, WeeklyPlanRequest, generate_meal_plan

router = APIRouter()


class SlotMove(BaseModel):
    from_day: int
    from_meal_type: str
    to_day: int
    to_meal_type: str


class GeneratePlanRequest(BaseModel):
    name: str
    week_start_date: date
    activate: bool = False
    request: WeeklyPlanRequest = WeeklyPlanRequest()


@router.get("", response_model=MealPlanPage)
def list_plans(
    is_active: Optional[bool] = None,
    week_start_date: Optional[date] = None,
    sort_by: Literal["created_at", "updated_at", "week_start_date", "name"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    include_items: bool = False,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    filters = MealPlanFilters(
        user_id=user_id,
        is_active=is_active,
        week_start_date=week_start_date,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
        include_items=include_items,
    )
    return meal_plans_repo.get_meal_plans_for_user(session, filters)


@router.post("", response_model=MealPlanRead, status_code=status.HTTP_201_CREATED)
def create(
    payload: MealPlanCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return meal_plans_repo.create_meal_plan(
        session,
        user_id,
        payload.name,
        payload.description,
        payload.week_start_date,
        is_active=payload.is_active,
    )


@router.get("/active", response_model=Optional[MealPlanRead], summary="The user's active plan, or null")
def active(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return meal_plans_repo.get_active_meal_plan(session, user_id)


@router.post(
    "/generate",
    response_model=MealPlanRead,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a weekly plan and store it with its recipes",
)
def generate(
    payload: GeneratePlanRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    generator: GenerationService = Depends(get_generation_service),
):
    return generate_meal_plan(
        generator,
        session,
        user_id,
        payload.name,
        payload.week_start_date,
        payload.request,
        activate=payload.activate,
    )


@router.get("/{meal_plan_id}", response_model=MealPlanRead)
def get_one(
    meal_plan_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return meal_plans_repo.get_meal_plan_by_id(session, user_id, meal_plan_id)


@router.patch("/{meal_plan_id}", response_model=MealPlanRead)
def update(
    meal_plan_id: uuid.UUID,
    payload: MealPlanUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return meal_plans_repo.update_meal_plan(session, user_id, meal_plan_id, payload)


@router.delete("/{meal_plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    meal_plan_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    meal_plans_repo.delete_meal_plan(session, user_id, meal_plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{meal_plan_id}/activate", response_model=MealPlanRead)
def activate(
    meal_plan_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return meal_plans_repo.set_active_meal_plan(session, user_id, meal_plan_id)


@router.post("/{meal_plan_id}/deactivate", response_model=MealPlanRead)
def deactivate(
    meal_plan_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return meal_plans_repo.deactivate_meal_plan(session, user_id, meal_plan_id)


@router.get("/{meal_plan_id}/items", response_model=List[MealPlanItemRead])
def items(
    meal_plan_id: uuid.UUID,
    day_of_week: Optional[int] = None,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    meal_plans_repo.get_meal_plan_by_id(session, user_id, meal_plan_id, include_items=False)
    return meal_plans_repo.get_meal_plan_items(session, meal_plan_id, day_of_week)


@router.delete("/{meal_plan_id}/items", summary="Empty every slot")
def clear(
    meal_plan_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return {"removed": meal_plans_repo.clear_meal_plan(session, user_id, meal_plan_id)}


@router.post("/{meal_plan_id}/items/move", response_model=MealPlanItemRead)
def move(
    meal_plan_id: uuid.UUID,
    payload: SlotMove,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return meal_plans_repo.move_meal_plan_item(
        session,
        user_id,
        meal_plan_id,
        payload.from_day,
        payload.from_meal_type,
        payload.to_day,
        payload.to_meal_type,
    )


@router.put(
    "/{meal_plan_id}/items/{day_of_week}/{meal_type}",
    response_model=MealPlanItemRead,
    summary="Assign a recipe to a slot (replaces the current one)",
)
def assign(
    meal_plan_id: uuid.UUID,
    day_of_week: int,
    meal_type: str,
    payload: SlotAssignment,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return meal_plans_repo.assign_recipe(
        session, user_id, meal_plan_id, payload.recipe_id, day_of_week, meal_type
    )


@router.delete("/{meal_plan_id}/items/{day_of_week}/{meal_type}")
def remove(
    meal_plan_id: uuid.UUID,
    day_of_week: int,
    meal_type: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    removed = meal_plans_repo.remove_recipe(session, user_id, meal_plan_id, day_of_week, meal_type)
    return {"removed": removed}
