# backend/src/mealprep/routers/collections.py
import uuid
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from mealprep.core.database import get_session
from mealprep.deps import get_current_user_id, get_favorites_service
from mealprep.models.favorites import (
    CollectionCreate,
    CollectionRead,
    CollectionRecipeRead,
    CollectionUpdate,
)
from mealprep.repositories import collections as collections_repo
from mealprep.services.favorites import FavoritesService

router = APIRouter()


@router.get("", response_model=List[CollectionRead], summary="Collections, most recently updated first")
def list_collections(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.get_collections(session, user_id)


@router.post("", response_model=CollectionRead, status_code=status.HTTP_201_CREATED)
def create(
    payload: CollectionCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.create_collection(session, user_id, payload)


@router.get("/{collection_id}", response_model=CollectionRead)
def get_one(
    collection_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return collections_repo.get_collection(session, user_id, collection_id)


@router.patch("/{collection_id}", response_model=CollectionRead)
def update(
    collection_id: uuid.UUID,
    payload: CollectionUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.update_collection(session, user_id, collection_id, payload)


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(
    collection_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    service.delete_collection(session, user_id, collection_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{collection_id}/recipes", response_model=List[CollectionRecipeRead])
def recipes(
    collection_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return service.get_collection_meals(session, user_id, collection_id)


@router.put("/{collection_id}/recipes/{recipe_id}")
def add_recipe(
    collection_id: uuid.UUID,
    recipe_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return {"added": service.add_to_collection(session, user_id, collection_id, recipe_id)}


@router.delete("/{collection_id}/recipes/{recipe_id}")
def remove_recipe(
    collection_id: uuid.UUID,
    recipe_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: FavoritesService = Depends(get_favorites_service),
):
    return {"removed": service.remove_from_collection(session, user_id, collection_id, recipe_id)}
