# backend/src/mealprep/routers/recipes.py
import uuid
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlmodel import Session

from mealprep.core.database import get_session
from mealprep.deps import get_current_user_id, get_generation_service, get_recipe_service
from mealprep.models.common import Difficulty, MealType
from mealprep.models.recipes import (
    RecipeCreate,
    RecipePage,
    RecipeRead,
    RecipeSearchFilters,
    RecipeSortField,
    RecipeUsage,
)
from mealprep.repositories import recipes as recipes_repo
from mealprep.services.generation import GenerationService, RecipeRequest, generate_recipe
from mealprep.services.recipes import RecipeService

router = APIRouter()


@router.get("", response_model=RecipePage, summary="Search recipes (text, tags, filters)")
def search(
    q: Optional[str] = Query(default=None, description="Words that must appear in name/description"),
    tags: List[str] = Query(default=[]),
    match_all_tags: bool = False,
    cuisine: Optional[str] = None,
    meal_type: Optional[MealType] = None,
    difficulty: Optional[Difficulty] = None,
    max_prep_time: Optional[int] = Query(default=None, ge=0),
    max_cook_time: Optional[int] = Query(default=None, ge=0),
    min_rating: Optional[float] = Query(default=None, ge=0, le=5),
    created_by_user_id: Optional[uuid.UUID] = None,
    sort_by: RecipeSortField = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
):
    filters = RecipeSearchFilters(
        search_query=q,
        tags=tags,
        match_all_tags=match_all_tags,
        cuisine=cuisine,
        meal_type=meal_type,
        difficulty=difficulty,
        max_prep_time=max_prep_time,
        max_cook_time=max_cook_time,
        min_rating=min_rating,
        created_by_user_id=created_by_user_id,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return recipes_repo.search_recipes(session, filters)


@router.get("/popular", response_model=List[RecipeRead])
def popular(limit: int = Query(default=10, ge=1, le=100), session: Session = Depends(get_session)):
    return recipes_repo.get_popular_recipes(session, limit)


@router.post("", response_model=RecipeRead, status_code=status.HTTP_201_CREATED)
def create(
    payload: RecipeCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return recipes_repo.create_recipe(session, payload, created_by_user_id=user_id)


@router.post(
    "/generate",
    response_model=RecipeRead,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a recipe and store it",
)
def generate(
    payload: RecipeRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    generator: GenerationService = Depends(get_generation_service),
):
    return generate_recipe(generator, session, user_id, payload)


@router.get("/{recipe_id}", response_model=RecipeRead)
def get_one(recipe_id: uuid.UUID, session: Session = Depends(get_session)):
    return recipes_repo.get_recipe_by_id(session, recipe_id)


@router.patch("/{recipe_id}", response_model=RecipeRead, summary="Partial update (creator only)")
def update(
    recipe_id: uuid.UUID,
    payload: Dict[str, Any] = Body(...),
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: RecipeService = Depends(get_recipe_service),
):
    return service.update_recipe(session, user_id, recipe_id, payload)


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    recipe_id: uuid.UUID,
    remove_from_meal_plans: bool = Query(
        default=False, description="Also empty every meal plan slot that uses the recipe"
    ),
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: RecipeService = Depends(get_recipe_service),
):
    service.delete_recipe(session, user_id, recipe_id, remove_from_meal_plans=remove_from_meal_plans)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{recipe_id}/usage", response_model=List[RecipeUsage], summary="Meal plans using the recipe")
def usage(recipe_id: uuid.UUID, session: Session = Depends(get_session)):
    recipes_repo.get_recipe_by_id(session, recipe_id)
    return recipes_repo.get_recipe_usage(session, recipe_id)
