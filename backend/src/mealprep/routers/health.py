# backend/src/mealprep/routers/health.py
from fastapi import APIRouter

from mealprep.core.health import get_database_health, verify_database_schema

router = APIRouter()


@router.get("/health", summary="Database connectivity, schema and row counts")
def health():
    return get_database_health()


@router.get("/health/schema", summary="Required tables present?")
def schema():
    return verify_database_schema()
