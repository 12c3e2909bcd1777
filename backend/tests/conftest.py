import os

# Must be set before mealprep.core.config is first imported.
os.environ.setdefault("MEALPREP_ENVIRONMENT", "test")
os.environ.setdefault("MEALPREP_PASSWORD_HASH_ROUNDS", "4")

import tempfile  # noqa: E402
import uuid  # noqa: E402
from contextlib import suppress  # noqa: E402
from datetime import date  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import AsyncIterator, Iterator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlmodel import Session  # noqa: E402

from mealprep.core import database as core_database  # noqa: E402
from mealprep.core.database import build_engine, get_session  # noqa: E402
from mealprep.deps import get_read_cache  # noqa: E402
from mealprep.main import create_app  # noqa: E402
from mealprep.models import Ingredient, MealType, RecipeCreate, UserCreate  # noqa: E402
from mealprep.repositories import meal_plans as meal_plans_repo  # noqa: E402
from mealprep.repositories import recipes as recipes_repo  # noqa: E402
from mealprep.repositories import users as users_repo  # noqa: E402
from mealprep.services.cache import ReadCache  # noqa: E402

WEEK = date(2025, 1, 6)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine() -> Iterator[Engine]:
    # Fresh SQLite file per test for isolation
    tmp = tempfile.TemporaryDirectory()
    db_path = Path(tmp.name) / "test.db"
    bind = build_engine(f"sqlite:///{db_path}", timeout=5.0)
    core_database.init_db(bind)
    try:
        yield bind
    finally:
        with suppress(Exception):
            bind.dispose()
        tmp.cleanup()


@pytest.fixture
def session_factory(engine):
    def _make() -> Session:
        return Session(engine)

    return _make


@pytest.fixture
def db_session(engine) -> Iterator[Session]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def cache() -> ReadCache:
    return ReadCache(ttl_seconds=60)


@pytest.fixture
def test_app(engine, cache, monkeypatch) -> Iterator[FastAPI]:
    def _override_get_session():
        with Session(engine) as session:
            yield session

    # patch global engine/init_db so startup hooks and health checks use the test database
    monkeypatch.setattr(core_database, "engine", engine, raising=False)
    monkeypatch.setattr(core_database, "init_db", lambda bind=None: None, raising=False)

    app = create_app()
    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_read_cache] = lambda: cache
    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ----------------------------
# Factories
# ----------------------------

@pytest.fixture
def make_user(db_session):
    def _make(username=None, password="correct-horse", **kwargs):
        username = username or f"user_{uuid.uuid4().hex[:8]}"
        data = UserCreate(
            username=username,
            email=kwargs.pop("email", f"{username}@example.com"),
            password=password,
            **kwargs,
        )
        return users_repo.create_user(db_session, data)

    return _make


def recipe_data(name="Test Recipe", **overrides) -> RecipeCreate:
    payload = {
        "name": name,
        "description": "A recipe used in tests",
        "ingredients": [Ingredient(name="Oats", amount=50, unit="g")],
        "instructions": "Mix and serve.",
        "cuisine": "Italian",
        "meal_type": MealType.dinner,
        "prep_time": 10,
        "cook_time": 20,
        "tags": ["quick"],
    }
    payload.update(overrides)
    return RecipeCreate(**payload)


@pytest.fixture
def make_recipe(db_session):
    def _make(name="Test Recipe", created_by_user_id=None, **overrides):
        return recipes_repo.create_recipe(
            db_session, recipe_data(name, **overrides), created_by_user_id=created_by_user_id
        )

    return _make


@pytest.fixture
def make_plan(db_session):
    def _make(user_id, name=None, is_active=False, week_start_date=WEEK):
        return meal_plans_repo.create_meal_plan(
            db_session,
            user_id,
            name or f"Plan {uuid.uuid4().hex[:6]}",
            None,
            week_start_date,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def user(make_user):
    return make_user()
