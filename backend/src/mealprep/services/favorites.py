# backend/src/mealprep/services/favorites.py
"""Cached favorites/collections facade used by the HTTP layer."""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Sequence

from sqlmodel import Session

from mealprep.core.database import transaction
from mealprep.models.favorites import (
    BulkResult,
    CollectionCreate,
    CollectionRead,
    CollectionRecipeRead,
    FavoriteFilters,
    FavoriteRead,
    FavoriteUpdate,
)
from mealprep.repositories import collections as collections_repo
from mealprep.repositories import favorites as favorites_repo
from mealprep.services.cache import ReadCache
from mealprep.utils.analytics import (
    FavoriteAnalytics,
    TagAnalytics,
    build_favorite_analytics,
    filter_favorites,
    tag_usage,
)

TAG_ANALYTICS_TTL_SECONDS = 3600


def user_cache_keys(user_id: uuid.UUID) -> List[str]:
    return [
        f"favorites:{user_id}",
        f"analytics:{user_id}",
        f"tag-analytics:{user_id}",
        f"collections:{user_id}",
    ]


@contextmanager
def invalidating_holders(
    cache: ReadCache,
    session: Session,
    recipe_ids: Iterable[uuid.UUID],
    user_id: Optional[uuid.UUID] = None,
) -> Iterator[None]:
    """Drop the cached reads of everyone whose favorites or collections show these recipes.

    Cached favorites embed the recipe (fields, rating aggregates), so a write
    to shared recipe data reaches other users' entries too. Holders are
    looked up before the write, while cascaded rows still exist.
    """
    with transaction(session, entity="recipe"):
        affected = favorites_repo.users_holding_recipes(session, recipe_ids)
    if user_id is not None:
        affected.add(user_id)
    try:
        yield
    finally:
        for holder in affected:
            cache.invalidate(user_cache_keys(holder))


class FavoritesService:
    def __init__(self, cache: ReadCache, analytics_ttl_seconds: Optional[int] = None):
        self.cache = cache
        self.analytics_ttl_seconds = analytics_ttl_seconds

    @contextmanager
    def _writing(self, user_id: uuid.UUID) -> Iterator[None]:
        # Dropped even when the write fails: a partial failure may still have changed rows.
        try:
            yield
        finally:
            self.cache.invalidate(user_cache_keys(user_id))

    def _rating_write(
        self, session: Session, user_id: uuid.UUID, recipe_ids: Iterable[uuid.UUID]
    ):
        # Rating aggregates are shared, so every holder of the recipe goes stale.
        return invalidating_holders(self.cache, session, recipe_ids, user_id)

    # ---- reads ----

    def get_favorites(self, session: Session, user_id: uuid.UUID) -> List[FavoriteRead]:
        return self.cache.get_or_load(
            f"favorites:{user_id}",
            lambda: favorites_repo.get_all_favorites(session, user_id),
        )

    def search_favorites(
        self, session: Session, user_id: uuid.UUID, filters: FavoriteFilters
    ) -> List[FavoriteRead]:
        return filter_favorites(self.get_favorites(session, user_id), filters)

    def get_analytics(self, session: Session, user_id: uuid.UUID) -> FavoriteAnalytics:
        return self.cache.get_or_load(
            f"analytics:{user_id}",
            lambda: build_favorite_analytics(self.get_favorites(session, user_id)),
            ttl=self.analytics_ttl_seconds,
        )

    def get_tag_analytics(self, session: Session, user_id: uuid.UUID) -> TagAnalytics:
        return self.cache.get_or_load(
            f"tag-analytics:{user_id}",
            lambda: tag_usage(self.get_favorites(session, user_id)),
            ttl=TAG_ANALYTICS_TTL_SECONDS,
        )

    def get_collections(self, session: Session, user_id: uuid.UUID) -> List[CollectionRead]:
        return self.cache.get_or_load(
            f"collections:{user_id}",
            lambda: collections_repo.get_collections_for_user(session, user_id),
        )

    # ---- favorite writes ----

    def add_favorite(
        self,
        session: Session,
        user_id: uuid.UUID,
        recipe_id: uuid.UUID,
        rating: Optional[int] = None,
        notes: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> FavoriteRead:
        with self._rating_write(session, user_id, [recipe_id]):
            return favorites_repo.add_favorite(session, user_id, recipe_id, rating, notes, tags)

    def remove_favorite(self, session: Session, user_id: uuid.UUID, recipe_id: uuid.UUID) -> bool:
        with self._rating_write(session, user_id, [recipe_id]):
            return favorites_repo.remove_favorite(session, user_id, recipe_id)

    def update_favorite(
        self,
        session: Session,
        user_id: uuid.UUID,
        recipe_id: uuid.UUID,
        updates: FavoriteUpdate,
    ) -> FavoriteRead:
        with self._rating_write(session, user_id, [recipe_id]):
            return favorites_repo.update_favorite(session, user_id, recipe_id, updates)

    def increment_use_count(
        self, session: Session, user_id: uuid.UUID, recipe_id: uuid.UUID
    ) -> FavoriteRead:
        with self._writing(user_id):
            return favorites_repo.increment_use_count(session, user_id, recipe_id)

    def bulk_delete(
        self, session: Session, user_id: uuid.UUID, recipe_ids: Sequence[uuid.UUID]
    ) -> BulkResult:
        with self._rating_write(session, user_id, recipe_ids):
            return favorites_repo.bulk_delete(session, user_id, recipe_ids)

    def bulk_update_tags(
        self,
        session: Session,
        user_id: uuid.UUID,
        recipe_ids: Sequence[uuid.UUID],
        tags: Iterable[str],
        replace: bool = True,
    ) -> BulkResult:
        with self._writing(user_id):
            return favorites_repo.bulk_update_tags(session, user_id, recipe_ids, tags, replace)

    # ---- collection writes ----

    def create_collection(
        self, session: Session, user_id: uuid.UUID, data: CollectionCreate
    ) -> CollectionRead:
        with self._writing(user_id):
            return collections_repo.create_collection(session, user_id, data)

    def update_collection(self, session: Session, user_id: uuid.UUID, collection_id, updates):
        with self._writing(user_id):
            return collections_repo.update_collection(session, user_id, collection_id, updates)

    def delete_collection(self, session: Session, user_id: uuid.UUID, collection_id) -> None:
        with self._writing(user_id):
            collections_repo.delete_collection(session, user_id, collection_id)

    def add_to_collection(
        self, session: Session, user_id: uuid.UUID, collection_id, recipe_id
    ) -> bool:
        with self._writing(user_id):
            return collections_repo.add_to_collection(session, user_id, collection_id, recipe_id)

    def remove_from_collection(
        self, session: Session, user_id: uuid.UUID, collection_id, recipe_id
    ) -> bool:
        with self._writing(user_id):
            return collections_repo.remove_from_collection(
                session, user_id, collection_id, recipe_id
            )

    def get_collection_meals(
        self, session: Session, user_id: uuid.UUID, collection_id
    ) -> List[CollectionRecipeRead]:
        return collections_repo.get_collection_meals(session, user_id, collection_id)
