# backend/src/mealprep/repositories/favorites.py
"""Per-user favorites: upserts, personal rating/notes/tags and bulk edits.

Every write that touches a personal rating recalculates the recipe's rating
aggregates in the same transaction.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Union

from sqlalchemy import delete, func, update
from sqlmodel import Session, select

from mealprep.core.database import dialect_insert, transaction
from mealprep.core.errors import MealPrepError, NotFoundError, ValidationError
from mealprep.models.common import MealType, utcnow
from mealprep.models.favorites import (
    BulkResult,
    Collection,
    CollectionRecipe,
    Favorite,
    FavoriteFilters,
    FavoritePage,
    FavoriteRead,
    FavoriteUpdate,
)
from mealprep.models.recipes import Recipe
from mealprep.repositories.recipes import (
    get_recipe_by_id,
    recalculate_recipe_rating,
    to_recipe_read,
)
from mealprep.utils.analytics import filter_favorites
from mealprep.utils.validators import normalize_tags, validate_meal_type, validate_rating

logger = logging.getLogger(__name__)


def _key(user_id: uuid.UUID, recipe_id: uuid.UUID) -> str:
    return f"{user_id}/{recipe_id}"


def _not_found(user_id: uuid.UUID, recipe_id: uuid.UUID) -> NotFoundError:
    return NotFoundError(
        f"Recipe {recipe_id} is not a favorite", entity="favorite", key=_key(user_id, recipe_id)
    )


def _pk(user_id: uuid.UUID, recipe_id: uuid.UUID) -> tuple:
    return Favorite.user_id == user_id, Favorite.recipe_id == recipe_id


def _clean_notes(notes: Optional[str]) -> Optional[str]:
    return (notes or "").strip() or None


def _favorite_read(favorite: Favorite, recipe: Recipe) -> FavoriteRead:
    return FavoriteRead(
        user_id=favorite.user_id,
        recipe_id=favorite.recipe_id,
        personal_rating=favorite.personal_rating,
        personal_notes=favorite.personal_notes,
        tags=list(favorite.tags or []),
        use_count=favorite.use_count,
        last_used_at=favorite.last_used_at,
        added_at=favorite.added_at,
        recipe=to_recipe_read(recipe),
    )


def _joined():
    return select(Favorite, Recipe).join(Recipe, Recipe.id == Favorite.recipe_id)


def get_favorite(session: Session, user_id: uuid.UUID, recipe_id: uuid.UUID) -> FavoriteRead:
    row = session.exec(_joined().where(*_pk(user_id, recipe_id))).first()
    if row is None:
        raise _not_found(user_id, recipe_id)
    favorite, recipe = row
    return _favorite_read(favorite, recipe)


def add_favorite(
    session: Session,
    user_id: uuid.UUID,
    recipe_id: uuid.UUID,
    rating: Optional[int] = None,
    notes: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
) -> FavoriteRead:
    """Favorite a recipe, or refresh rating/notes/added_at if already favorited.

    Tags are only overwritten on a repeat call when ``tags`` is given.
    """
    rating = validate_rating(rating)
    tag_list = normalize_tags(tags) if tags is not None else None
    now = utcnow()

    with transaction(session, entity="favorite", key=_key(user_id, recipe_id)):
        get_recipe_by_id(session, recipe_id)
        stmt = dialect_insert(session, Favorite).values(
            user_id=user_id,
            recipe_id=recipe_id,
            personal_rating=rating,
            personal_notes=_clean_notes(notes),
            tags=tag_list or [],
            use_count=0,
            last_used_at=None,
            added_at=now,
        )
        refreshed = {
            "personal_rating": stmt.excluded.personal_rating,
            "personal_notes": stmt.excluded.personal_notes,
            "added_at": stmt.excluded.added_at,
        }
        if tag_list is not None:
            refreshed["tags"] = stmt.excluded.tags
        session.exec(
            stmt.on_conflict_do_update(index_elements=["user_id", "recipe_id"], set_=refreshed)
        )
        recalculate_recipe_rating(session, recipe_id)
    logger.info("User %s favorited recipe %s", user_id, recipe_id)
    return get_favorite(session, user_id, recipe_id)


def remove_favorite(session: Session, user_id: uuid.UUID, recipe_id: uuid.UUID) -> bool:
    """Unfavorite. Returns False when there was nothing to remove."""
    with transaction(session, entity="favorite", key=_key(user_id, recipe_id)):
        result = session.exec(delete(Favorite).where(*_pk(user_id, recipe_id)))
        removed = result.rowcount > 0
        if removed:
            recalculate_recipe_rating(session, recipe_id)
    return removed


def _update_columns(
    session: Session,
    user_id: uuid.UUID,
    recipe_id: uuid.UUID,
    values: Dict[str, Any],
) -> None:
    """UPDATE one favorite row inside the caller's transaction; NotFound if absent."""
    result = session.exec(update(Favorite).where(*_pk(user_id, recipe_id)).values(**values))
    if result.rowcount == 0:
        raise _not_found(user_id, recipe_id)
    if "personal_rating" in values:
        recalculate_recipe_rating(session, recipe_id)


def update_favorite(
    session: Session,
    user_id: uuid.UUID,
    recipe_id: uuid.UUID,
    updates: FavoriteUpdate,
) -> FavoriteRead:
    provided = updates.model_dump(exclude_unset=True)
    if not provided:
        raise ValidationError("No updatable favorite fields were provided")

    values: Dict[str, Any] = {}
    if "rating" in provided:
        values["personal_rating"] = validate_rating(updates.rating)
    if "notes" in provided:
        values["personal_notes"] = _clean_notes(updates.notes)
    if "tags" in provided:
        values["tags"] = normalize_tags(updates.tags)

    with transaction(session, entity="favorite", key=_key(user_id, recipe_id)):
        _update_columns(session, user_id, recipe_id, values)
    return get_favorite(session, user_id, recipe_id)


def update_favorite_rating(
    session: Session,
    user_id: uuid.UUID,
    recipe_id: uuid.UUID,
    rating: Optional[int],
) -> FavoriteRead:
    return update_favorite(session, user_id, recipe_id, FavoriteUpdate(rating=rating))


def update_favorite_notes(
    session: Session,
    user_id: uuid.UUID,
    recipe_id: uuid.UUID,
    notes: Optional[str],
) -> FavoriteRead:
    return update_favorite(session, user_id, recipe_id, FavoriteUpdate(notes=notes))


def update_favorite_tags(
    session: Session,
    user_id: uuid.UUID,
    recipe_id: uuid.UUID,
    tags: Iterable[str],
) -> FavoriteRead:
    return update_favorite(session, user_id, recipe_id, FavoriteUpdate(tags=list(tags)))


def increment_use_count(session: Session, user_id: uuid.UUID, recipe_id: uuid.UUID) -> FavoriteRead:
    # One statement, so concurrent increments never lose an update.
    with transaction(session, entity="favorite", key=_key(user_id, recipe_id)):
        _update_columns(
            session,
            user_id,
            recipe_id,
            {"use_count": Favorite.use_count + 1, "last_used_at": utcnow()},
        )
    return get_favorite(session, user_id, recipe_id)


# ----------------------------
# Reads
# ----------------------------

def get_user_favorites(
    session: Session,
    user_id: uuid.UUID,
    limit: int = 20,
    offset: int = 0,
) -> FavoritePage:
    if limit < 1 or offset < 0:
        raise ValidationError("limit must be positive and offset non-negative", field="limit")
    total = session.exec(
        select(func.count()).select_from(Favorite).where(Favorite.user_id == user_id)
    ).one()
    rows = session.exec(
        _joined()
        .where(Favorite.user_id == user_id)
        .order_by(Favorite.added_at.desc(), Favorite.recipe_id.asc())
        .offset(offset)
        .limit(limit)
    ).all()
    return FavoritePage(
        items=[_favorite_read(fav, recipe) for fav, recipe in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


def get_all_favorites(session: Session, user_id: uuid.UUID) -> List[FavoriteRead]:
    rows = session.exec(
        _joined()
        .where(Favorite.user_id == user_id)
        .order_by(Favorite.added_at.desc(), Favorite.recipe_id.asc())
    ).all()
    return [_favorite_read(fav, recipe) for fav, recipe in rows]


def get_favorites_by_meal_type(
    session: Session,
    user_id: uuid.UUID,
    meal_type: Union[MealType, str],
) -> List[FavoriteRead]:
    meal = validate_meal_type(meal_type)
    rows = session.exec(
        _joined()
        .where(Favorite.user_id == user_id, Recipe.meal_type == meal)
        .order_by(Favorite.added_at.desc(), Favorite.recipe_id.asc())
    ).all()
    return [_favorite_read(fav, recipe) for fav, recipe in rows]


def is_favorited(session: Session, user_id: uuid.UUID, recipe_id: uuid.UUID) -> bool:
    stmt = select(Favorite.recipe_id).where(*_pk(user_id, recipe_id))
    return session.exec(stmt).first() is not None


def get_favorite_status_for_recipes(
    session: Session,
    user_id: uuid.UUID,
    recipe_ids: Sequence[uuid.UUID],
) -> Dict[uuid.UUID, bool]:
    ids = list(dict.fromkeys(recipe_ids))
    if not ids:
        return {}
    found = set(
        session.exec(
            select(Favorite.recipe_id).where(
                Favorite.user_id == user_id, Favorite.recipe_id.in_(ids)
            )
        ).all()
    )
    return {recipe_id: recipe_id in found for recipe_id in ids}


def users_holding_recipes(session: Session, recipe_ids: Iterable[uuid.UUID]) -> Set[uuid.UUID]:
    """Users whose favorites or collections include any of the recipes."""
    ids = list(dict.fromkeys(recipe_ids))
    if not ids:
        return set()
    holders = set(
        session.exec(select(Favorite.user_id).where(Favorite.recipe_id.in_(ids))).all()
    )
    holders.update(
        session.exec(
            select(Collection.user_id)
            .join(CollectionRecipe, CollectionRecipe.collection_id == Collection.id)
            .where(CollectionRecipe.recipe_id.in_(ids))
        ).all()
    )
    return holders


def search_favorites(
    session: Session,
    user_id: uuid.UUID,
    filters: FavoriteFilters,
) -> List[FavoriteRead]:
    return filter_favorites(get_all_favorites(session, user_id), filters)


# ----------------------------
# Bulk operations
# ----------------------------

def bulk_delete(
    session: Session,
    user_id: uuid.UUID,
    recipe_ids: Sequence[uuid.UUID],
) -> BulkResult:
    """Unfavorite each recipe in its own transaction."""
    result = BulkResult()
    for recipe_id in dict.fromkeys(recipe_ids):
        try:
            if remove_favorite(session, user_id, recipe_id):
                result.succeeded.append(recipe_id)
            else:
                result.failed[str(recipe_id)] = "Favorite not found"
        except MealPrepError as exc:
            result.failed[str(recipe_id)] = exc.message
    logger.info(
        "Bulk delete for user %s: %d removed, %d failed",
        user_id,
        len(result.succeeded),
        len(result.failed),
    )
    return result


def _apply_tags(
    session: Session,
    user_id: uuid.UUID,
    recipe_id: uuid.UUID,
    tags: List[str],
    replace: bool,
) -> None:
    with transaction(session, entity="favorite", key=_key(user_id, recipe_id)):
        current = session.exec(select(Favorite.tags).where(*_pk(user_id, recipe_id))).first()
        if current is None:
            raise _not_found(user_id, recipe_id)
        merged = tags if replace else list(current) + tags
        _update_columns(session, user_id, recipe_id, {"tags": normalize_tags(merged)})


def bulk_update_tags(
    session: Session,
    user_id: uuid.UUID,
    recipe_ids: Sequence[uuid.UUID],
    tags: Iterable[str],
    replace: bool = True,
) -> BulkResult:
    """Replace (or extend, with ``replace=False``) the personal tags of each favorite."""
    tag_list = normalize_tags(tags)
    result = BulkResult()
    for recipe_id in dict.fromkeys(recipe_ids):
        try:
            _apply_tags(session, user_id, recipe_id, tag_list, replace)
            result.succeeded.append(recipe_id)
        except MealPrepError as exc:
            result.failed[str(recipe_id)] = exc.message
    return result
