# backend/src/mealprep/core/health.py
"""Connectivity and schema checks used by ``/health`` and ``mealprep-db``."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from sqlalchemy import func, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from mealprep.core import database as core_database
from mealprep.models import REQUIRED_TABLES
from mealprep.models.ddl import RECIPE_SEARCH_CONFIG

logger = logging.getLogger(__name__)


def _bind(bind: Optional[Engine]) -> Engine:
    # Resolved per call so a patched module-level engine is honoured.
    return bind if bind is not None else core_database.engine


def test_connection(bind: Optional[Engine] = None) -> bool:
    try:
        with _bind(bind).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.error("Database connection failed: %s", exc)
        return False


# Not a pytest test despite the name.
test_connection.__test__ = False


def table_exists(table_name: str, bind: Optional[Engine] = None) -> bool:
    return inspect(_bind(bind)).has_table(table_name)


def _full_text_available(engine: Engine) -> bool:
    if engine.dialect.name != "postgresql":
        return True
    try:
        with engine.connect() as conn:
            conn.execute(
                text("SELECT to_tsvector(:config, 'health check')"),
                {"config": RECIPE_SEARCH_CONFIG},
            )
        return True
    except SQLAlchemyError as exc:
        logger.warning("Full-text search unavailable: %s", exc)
        return False


def verify_database_schema(bind: Optional[Engine] = None) -> Dict[str, Any]:
    engine = _bind(bind)
    existing = set(inspect(engine).get_table_names())
    missing: List[str] = [name for name in REQUIRED_TABLES if name not in existing]
    full_text = _full_text_available(engine)
    valid = not missing and full_text
    if not valid:
        logger.warning("Schema check failed: missing=%s full_text=%s", missing, full_text)
    return {
        "valid": valid,
        "missing_tables": missing,
        "full_text_search": full_text,
        "dialect": engine.dialect.name,
    }


def get_database_stats(bind: Optional[Engine] = None) -> Dict[str, int]:
    engine = _bind(bind)
    existing = set(inspect(engine).get_table_names())
    stats: Dict[str, int] = {}
    with engine.connect() as conn:
        for name in REQUIRED_TABLES:
            if name not in existing:
                continue
            table = SQLModel.metadata.tables[name]
            stats[name] = conn.execute(select(func.count()).select_from(table)).scalar_one()
    return stats


def get_database_health(bind: Optional[Engine] = None) -> Dict[str, Any]:
    engine = _bind(bind)
    started = time.perf_counter()
    connected = test_connection(engine)
    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    if not connected:
        return {"status": "unhealthy", "connected": False, "latency_ms": latency_ms}

    schema = verify_database_schema(engine)
    return {
        "status": "healthy" if schema["valid"] else "degraded",
        "connected": True,
        "latency_ms": latency_ms,
        "schema": schema,
        "stats": get_database_stats(engine) if schema["valid"] else {},
    }
