# backend/src/mealprep/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import inspect
from starlette.requests import Request

from mealprep.core import database as core_database
from mealprep.core.config import get_settings
from mealprep.core.errors import (
    ConflictError,
    ForbiddenError,
    GenerationError,
    InvariantViolationError,
    MealPrepError,
    NotFoundError,
    StoreError,
    TransientStoreError,
    ValidationError,
)
from mealprep.core.logging_config import configure_logging
from mealprep.routers import collections, favorites, health, meal_plans, recipes, users

logger = logging.getLogger(__name__)

CORE_ROUTERS = (
    (health.router, {"tags": ["health"]}),
    (users.router, {"prefix": "/users", "tags": ["users"]}),
    (recipes.router, {"prefix": "/recipes", "tags": ["recipes"]}),
    (meal_plans.router, {"prefix": "/meal-plans", "tags": ["meal-plans"]}),
    (favorites.router, {"prefix": "/favorites", "tags": ["favorites"]}),
    (collections.router, {"prefix": "/collections", "tags": ["collections"]}),
)

ERROR_STATUS = (
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (ConflictError, 409),
    (ValidationError, 422),
    (TransientStoreError, 503),
    (GenerationError, 502),
    (InvariantViolationError, 500),
    (StoreError, 500),
)


def status_for(error: MealPrepError) -> int:
    for error_cls, status_code in ERROR_STATUS:
        if isinstance(error, error_cls):
            return status_code
    return 500


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=settings.docs_url,
    )

    @application.middleware("http")
    async def enforce_utf8_json(request: Request, call_next):
        response = await call_next(request)
        if response.headers.get("content-type", "").startswith("application/json"):
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    @application.exception_handler(MealPrepError)
    async def handle_data_error(request: Request, exc: MealPrepError):
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)

    @application.get("/favicon.ico")
    def favicon():
        return Response(status_code=204)

    for router, include_kwargs in CORE_ROUTERS:
        application.include_router(router, **include_kwargs)

    @application.get("/", include_in_schema=False)
    def root():
        target = settings.docs_url or "/docs"
        return RedirectResponse(target)

    @application.get("/__routes", include_in_schema=False)
    def routes_snapshot():
        return sorted(f"{route.path}  [{','.join(route.methods)}]" for route in application.router.routes)

    @application.get("/__dbcheck", include_in_schema=False)
    def dbcheck():
        return {"tables": inspect(core_database.engine).get_table_names()}

    @application.on_event("startup")
    def _startup():
        core_database.init_db()
        logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)

    return application


app = create_app()
