# backend/src/mealprep/routers/favorites.py
import uuid
from typing import Dict, List

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from mealprep.core.database import get_session
from mealprep.deps import get_current_user_id, get_favorites_service
from mealprep.models.favorites import (
    BulkDeleteRequest,
    BulkResult,
    BulkTagsRequest,
    FavoriteCreate,
    FavoriteFilters,
    FavoritePage,
    FavoriteRead,
    FavoriteStatusRequest,
    FavoriteUpdate,
)
from mealprep.repositories import favorites as favorites_repo
from mealprep.services.favorites import FavoritesService

router = APIRouter()


@router.get("", response_model=FavoritePage, summary="Favorites, newest first")
def list_favorites(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    favorites = service.get_favorites(session, user_id)
    return FavoritePage(
        items=favorites[offset : offset + limit],
        total=len(favorites),
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=FavoriteRead, status_code=status.HTTP_201_CREATED)
def add(
    payload: FavoriteCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.add_favorite(
        session, user_id, payload.recipe_id, payload.rating, payload.notes, payload.tags
    )


@router.post("/search", response_model=List[FavoriteRead])
def search(
    filters: FavoriteFilters,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.search_favorites(session, user_id, filters)


@router.post("/status", response_model=Dict[uuid.UUID, bool], summary="Favorited flag per recipe id")
def favorite_status(
    payload: FavoriteStatusRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return favorites_repo.get_favorite_status_for_recipes(session, user_id, payload.recipe_ids)


@router.get("/analytics")
def analytics(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.get_analytics(session, user_id).to_dict()


@router.get("/analytics/tags")
def tag_analytics(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.get_tag_analytics(session, user_id).to_dict()


@router.get("/meal-type/{meal_type}", response_model=List[FavoriteRead])
def by_meal_type(
    meal_type: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return favorites_repo.get_favorites_by_meal_type(session, user_id, meal_type)


@router.post("/bulk-delete", response_model=BulkResult)
def bulk_delete(
    payload: BulkDeleteRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.bulk_delete(session, user_id, payload.recipe_ids)


@router.post("/bulk-tags", response_model=BulkResult)
def bulk_tags(
    payload: BulkTagsRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.bulk_update_tags(session, user_id, payload.recipe_ids, payload.tags, payload.replace)


@router.get("/{recipe_id}", response_model=FavoriteRead)
def get_one(
    recipe_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return favorites_repo.get_favorite(session, user_id, recipe_id)


@router.patch("/{recipe_id}", response_model=FavoriteRead, summary="Rating, notes and/or tags")
def update(
    recipe_id: uuid.UUID,
    payload: FavoriteUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.update_favorite(session, user_id, recipe_id, payload)


@router.delete("/{recipe_id}")
def remove(
    recipe_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return {"removed": service.remove_favorite(session, user_id, recipe_id)}


@router.post("/{recipe_id}/use", response_model=FavoriteRead, summary="Record that the recipe was cooked")
def use(
    recipe_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.increment_use_count(session, user_id, recipe_id)
