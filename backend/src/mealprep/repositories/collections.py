# backend/src/mealprep/repositories/collections.py
"""User-defined recipe collections and their membership rows."""

from __future__ import annotations

import logging
import uuid
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy import delete, func, update
from sqlmodel import Session, select

from mealprep.core.database import dialect_insert, transaction
from mealprep.core.errors import ConflictError, NotFoundError, ValidationError
from mealprep.models.common import utcnow
from mealprep.models.favorites import (
    Collection,
    CollectionCreate,
    CollectionRead,
    CollectionRecipe,
    CollectionRecipeRead,
    CollectionUpdate,
)
from mealprep.models.recipes import Recipe
from mealprep.repositories.recipes import get_recipe_by_id, to_recipe_read
from mealprep.utils.validators import normalize_tags, require_text, sanitize_text, validate_color

logger = logging.getLogger(__name__)


def _get_owned_collection(
    session: Session,
    user_id: uuid.UUID,
    collection_id: uuid.UUID,
) -> Collection:
    stmt = select(Collection).where(Collection.id == collection_id, Collection.user_id == user_id)
    collection = session.exec(stmt).first()
    if collection is None:
        raise NotFoundError(
            f"Collection {collection_id} not found", entity="collection", key=collection_id
        )
    return collection


def _collection_read(collection: Collection, recipe_count: int) -> CollectionRead:
    return CollectionRead(
        id=collection.id,
        user_id=collection.user_id,
        name=collection.name,
        description=collection.description,
        color=collection.color,
        icon=collection.icon,
        is_public=collection.is_public,
        tags=list(collection.tags or []),
        recipe_count=recipe_count,
        created_at=collection.created_at,
        updated_at=collection.updated_at,
    )


def _recipe_count(session: Session, collection_id: uuid.UUID) -> int:
    stmt = (
        select(func.count())
        .select_from(CollectionRecipe)
        .where(CollectionRecipe.collection_id == collection_id)
    )
    return session.exec(stmt).one()


def _ensure_unique_name(
    session: Session,
    user_id: uuid.UUID,
    name: str,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    stmt = select(Collection.id).where(Collection.user_id == user_id, Collection.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Collection.id != exclude_id)
    if session.exec(stmt).first() is not None:
        raise ConflictError(
            f"A collection named '{name}' already exists", entity="collection", key=name
        )


def create_collection(
    session: Session,
    user_id: uuid.UUID,
    data: CollectionCreate,
) -> CollectionRead:
    name = require_text(data.name, "name", 255)
    collection = Collection(
        user_id=user_id,
        name=name,
        description=sanitize_text(data.description),
        color=validate_color(data.color),
        icon=require_text(data.icon, "icon", 50),
        is_public=data.is_public,
        tags=normalize_tags(data.tags),
    )
    with transaction(session, entity="collection", key=name):
        _ensure_unique_name(session, user_id, name)
        session.add(collection)
        session.flush()
    logger.info("Created collection %s for user %s", collection.id, user_id)
    return _collection_read(collection, 0)


def get_collection(
    session: Session,
    user_id: uuid.UUID,
    collection_id: uuid.UUID,
) -> CollectionRead:
    collection = _get_owned_collection(session, user_id, collection_id)
    return _collection_read(collection, _recipe_count(session, collection_id))


def get_collections_for_user(session: Session, user_id: uuid.UUID) -> List[CollectionRead]:
    stmt = (
        select(Collection, func.count(CollectionRecipe.recipe_id))
        .outerjoin(CollectionRecipe, CollectionRecipe.collection_id == Collection.id)
        .where(Collection.user_id == user_id)
        .group_by(Collection.id)
        .order_by(Collection.updated_at.desc(), Collection.id.asc())
    )
    return [_collection_read(collection, count) for collection, count in session.exec(stmt).all()]


def update_collection(
    session: Session,
    user_id: uuid.UUID,
    collection_id: uuid.UUID,
    updates: Union[CollectionUpdate, Mapping[str, Any]],
) -> CollectionRead:
    if isinstance(updates, Mapping):
        updates = CollectionUpdate.model_validate(dict(updates))
    provided = updates.model_dump(exclude_unset=True)
    if not provided:
        raise ValidationError("No updatable collection fields were provided")

    with transaction(session, entity="collection", key=collection_id):
        collection = _get_owned_collection(session, user_id, collection_id)
        if "name" in provided:
            name = require_text(updates.name, "name", 255)
            if name != collection.name:
                _ensure_unique_name(session, user_id, name, exclude_id=collection_id)
            collection.name = name
        if "description" in provided:
            collection.description = sanitize_text(updates.description)
        if "color" in provided:
            collection.color = validate_color(updates.color)
        if "icon" in provided:
            collection.icon = require_text(updates.icon, "icon", 50)
        if "is_public" in provided:
            if updates.is_public is None:
                raise ValidationError("is_public cannot be cleared", field="is_public")
            collection.is_public = updates.is_public
        if "tags" in provided:
            collection.tags = normalize_tags(updates.tags)
        collection.updated_at = utcnow()
        session.add(collection)
    return get_collection(session, user_id, collection_id)


def delete_collection(session: Session, user_id: uuid.UUID, collection_id: uuid.UUID) -> None:
    with transaction(session, entity="collection", key=collection_id):
        _get_owned_collection(session, user_id, collection_id)
        session.exec(delete(Collection).where(Collection.id == collection_id))
    logger.info("Deleted collection %s", collection_id)


def _touch(session: Session, collection_id: uuid.UUID) -> None:
    session.exec(
        update(Collection).where(Collection.id == collection_id).values(updated_at=utcnow())
    )


def add_to_collection(
    session: Session,
    user_id: uuid.UUID,
    collection_id: uuid.UUID,
    recipe_id: uuid.UUID,
) -> bool:
    """Add a recipe; returns False when it was already in the collection."""
    with transaction(session, entity="collection_recipe", key=f"{collection_id}/{recipe_id}"):
        _get_owned_collection(session, user_id, collection_id)
        get_recipe_by_id(session, recipe_id)
        stmt = (
            dialect_insert(session, CollectionRecipe)
            .values(collection_id=collection_id, recipe_id=recipe_id, added_at=utcnow())
            .on_conflict_do_nothing(index_elements=["collection_id", "recipe_id"])
        )
        added = session.exec(stmt).rowcount > 0
        if added:
            _touch(session, collection_id)
    return added


def remove_from_collection(
    session: Session,
    user_id: uuid.UUID,
    collection_id: uuid.UUID,
    recipe_id: uuid.UUID,
) -> bool:
    with transaction(session, entity="collection_recipe", key=f"{collection_id}/{recipe_id}"):
        _get_owned_collection(session, user_id, collection_id)
        result = session.exec(
            delete(CollectionRecipe).where(
                CollectionRecipe.collection_id == collection_id,
                CollectionRecipe.recipe_id == recipe_id,
            )
        )
        removed = result.rowcount > 0
        if removed:
            _touch(session, collection_id)
    return removed


def get_collection_meals(
    session: Session,
    user_id: uuid.UUID,
    collection_id: uuid.UUID,
) -> List[CollectionRecipeRead]:
    _get_owned_collection(session, user_id, collection_id)
    rows = session.exec(
        select(CollectionRecipe, Recipe)
        .join(Recipe, Recipe.id == CollectionRecipe.recipe_id)
        .where(CollectionRecipe.collection_id == collection_id)
        .order_by(CollectionRecipe.added_at.desc(), CollectionRecipe.recipe_id.asc())
    ).all()
    return [
        CollectionRecipeRead(
            collection_id=entry.collection_id,
            added_at=entry.added_at,
            recipe=to_recipe_read(recipe),
        )
        for entry, recipe in rows
    ]
