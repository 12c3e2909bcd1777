# backend/src/mealprep/repositories/users.py
"""Accounts: registration, credential checks, profile edits and deletion."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Union

import bcrypt
from sqlalchemy import delete, or_, update
from sqlmodel import Session, select

from mealprep.core.config import get_settings
from mealprep.core.database import transaction
from mealprep.core.errors import ConflictError, NotFoundError, ValidationError
from mealprep.models.favorites import Collection, CollectionRecipe, Favorite
from mealprep.models.meal_plans import MealPlan, MealPlanItem
from mealprep.models.recipes import Recipe
from mealprep.models.users import DietaryPreferences, User, UserCreate, UserRead, UserUpdate
from mealprep.repositories.recipes import recalculate_recipe_rating
from mealprep.utils.validators import (
    sanitize_text,
    validate_email,
    validate_password,
    validate_username,
)

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    rounds = max(4, get_settings().password_hash_rounds)
    # bcrypt only looks at the first 72 bytes.
    return bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def to_user_read(user: User) -> UserRead:
    return UserRead.model_validate(user)


def _get_user(session: Session, user_id: uuid.UUID) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", entity="user", key=user_id)
    return user


def _preferences(prefs: Optional[DietaryPreferences]) -> Dict[str, Any]:
    if prefs is None:
        return {}
    if prefs.calorie_target is not None and prefs.calorie_target <= 0:
        raise ValidationError(
            "calorie_target must be positive", field="dietary_preferences.calorie_target"
        )
    return prefs.model_dump(mode="json")


def _ensure_unique(
    session: Session,
    username: Optional[str] = None,
    email: Optional[str] = None,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    if username is not None:
        stmt = select(User.id).where(User.username == username)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if session.exec(stmt).first() is not None:
            raise ConflictError(
                f"Username '{username}' is already taken", entity="user", key=username
            )
    if email is not None:
        stmt = select(User.id).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if session.exec(stmt).first() is not None:
            raise ConflictError(f"Email '{email}' is already registered", entity="user", key=email)


def create_user(session: Session, data: UserCreate) -> UserRead:
    username = validate_username(data.username)
    email = validate_email(data.email)
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(validate_password(data.password)),
        display_name=sanitize_text(data.display_name, 100),
        dietary_preferences=_preferences(data.dietary_preferences),
    )
    with transaction(session, entity="user", key=username):
        _ensure_unique(session, username=username, email=email)
        session.add(user)
        session.flush()
    logger.info("Registered user %s (%s)", user.id, username)
    return to_user_read(user)


def get_user_by_id(session: Session, user_id: uuid.UUID) -> UserRead:
    return to_user_read(_get_user(session, user_id))


def get_user_by_username(session: Session, username: str) -> Optional[UserRead]:
    user = session.exec(select(User).where(User.username == username.strip())).first()
    return to_user_read(user) if user is not None else None


def authenticate_user(session: Session, login: str, password: str) -> Optional[UserRead]:
    """Check credentials by username or email. ``None`` on any mismatch."""
    login = (login or "").strip()
    user = session.exec(
        select(User).where(or_(User.username == login, User.email == login.lower()))
    ).first()
    if user is None or not verify_password(password or "", user.password_hash):
        logger.info("Failed login attempt for %r", login)
        return None
    return to_user_read(user)


def update_user_profile(
    session: Session,
    user_id: uuid.UUID,
    updates: Union[UserUpdate, Mapping[str, Any]],
) -> UserRead:
    if isinstance(updates, Mapping):
        updates = UserUpdate.model_validate(dict(updates))
    provided = updates.model_dump(exclude_unset=True)
    if not provided:
        raise ValidationError("No updatable profile fields were provided")

    with transaction(session, entity="user", key=user_id):
        user = _get_user(session, user_id)
        if "email" in provided:
            email = validate_email(updates.email)
            _ensure_unique(session, email=email, exclude_id=user_id)
            user.email = email
        if "display_name" in provided:
            user.display_name = sanitize_text(updates.display_name, 100)
        if "dietary_preferences" in provided:
            user.dietary_preferences = _preferences(updates.dietary_preferences)
        session.add(user)
    return to_user_read(user)


def change_password(
    session: Session,
    user_id: uuid.UUID,
    current_password: str,
    new_password: str,
) -> None:
    with transaction(session, entity="user", key=user_id):
        user = _get_user(session, user_id)
        if not verify_password(current_password or "", user.password_hash):
            raise ValidationError("Current password is incorrect", field="current_password")
        user.password_hash = hash_password(validate_password(new_password))
        session.add(user)
    logger.info("Password changed for user %s", user_id)


def account_recipe_ids(session: Session, user_id: uuid.UUID) -> List[uuid.UUID]:
    """Recipes whose shared data changes when the account goes: favorited or created."""
    favorited = session.exec(select(Favorite.recipe_id).where(Favorite.user_id == user_id)).all()
    created = session.exec(select(Recipe.id).where(Recipe.created_by_user_id == user_id)).all()
    return list(dict.fromkeys([*favorited, *created]))


def delete_user_account(session: Session, user_id: uuid.UUID) -> None:
    """Remove the user and everything they own; authored recipes survive unowned."""
    with transaction(session, entity="user", key=user_id):
        _get_user(session, user_id)

        rated = session.exec(
            select(Favorite.recipe_id).where(
                Favorite.user_id == user_id, Favorite.personal_rating.is_not(None)
            )
        ).all()

        plan_ids = select(MealPlan.id).where(MealPlan.user_id == user_id)
        session.exec(delete(MealPlanItem).where(MealPlanItem.meal_plan_id.in_(plan_ids)))
        session.exec(delete(MealPlan).where(MealPlan.user_id == user_id))

        collection_ids = select(Collection.id).where(Collection.user_id == user_id)
        session.exec(
            delete(CollectionRecipe).where(CollectionRecipe.collection_id.in_(collection_ids))
        )
        session.exec(delete(Collection).where(Collection.user_id == user_id))
        session.exec(delete(Favorite).where(Favorite.user_id == user_id))

        session.exec(
            update(Recipe)
            .where(Recipe.created_by_user_id == user_id)
            .values(created_by_user_id=None)
        )
        for recipe_id in rated:
            recalculate_recipe_rating(session, recipe_id)

        session.exec(delete(User).where(User.id == user_id))
    logger.info("Deleted account %s", user_id)
