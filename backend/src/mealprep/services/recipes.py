# backend/src/mealprep/services/recipes.py
"""Recipe and account writes whose effects show up in other users' cached favorites."""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Union

from sqlmodel import Session

from mealprep.models.recipes import RecipeRead, RecipeUpdate
from mealprep.repositories import recipes as recipes_repo
from mealprep.repositories import users as users_repo
from mealprep.services.cache import ReadCache
from mealprep.services.favorites import invalidating_holders


class RecipeService:
    def __init__(self, cache: ReadCache):
        self.cache = cache

    def update_recipe(
        self,
        session: Session,
        user_id: uuid.UUID,
        recipe_id: uuid.UUID,
        updates: Union[RecipeUpdate, Mapping[str, Any]],
    ) -> RecipeRead:
        with invalidating_holders(self.cache, session, [recipe_id]):
            return recipes_repo.update_recipe(session, recipe_id, updates, user_id=user_id)

    def delete_recipe(
        self,
        session: Session,
        user_id: uuid.UUID,
        recipe_id: uuid.UUID,
        remove_from_meal_plans: bool = False,
    ) -> None:
        with invalidating_holders(self.cache, session, [recipe_id]):
            recipes_repo.delete_recipe(
                session,
                recipe_id,
                remove_from_meal_plans=remove_from_meal_plans,
                user_id=user_id,
            )

    def delete_user_account(self, session: Session, user_id: uuid.UUID) -> None:
        """Delete the account; recipes it favorited or created get new aggregates or creators."""
        recipe_ids = users_repo.account_recipe_ids(session, user_id)
        with invalidating_holders(self.cache, session, recipe_ids, user_id):
            users_repo.delete_user_account(session, user_id)
