from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlmodel import Session, SQLModel, create_engine

from .config import get_settings
from .errors import (
    ConflictError,
    MealPrepError,
    NotFoundError,
    StoreError,
    TransientStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_TX_DEPTH = "mealprep.tx_depth"

# SQLSTATE classes/codes that mean "try again later".
_TRANSIENT_SQLSTATES = ("40001", "40P01", "57014", "57P01", "57P03")
_TRANSIENT_MARKERS = (
    "database is locked",
    "database is busy",
    "timeout",
    "timed out",
    "could not connect",
    "connection refused",
    "server closed the connection",
    "terminating connection",
)


def _connect_args(url: str, timeout: Optional[float] = None) -> dict:
    if url.startswith("sqlite"):
        # Required for SQLite when used with FastAPI in threaded servers.
        args: dict = {"check_same_thread": False}
        if timeout is not None:
            args["timeout"] = timeout
        return args
    if url.startswith("postgresql") and timeout:
        return {"options": f"-c statement_timeout={int(timeout * 1000)}"}
    return {}


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ships with FK enforcement off; cascades depend on it.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, echo: bool = False, timeout: Optional[float] = None) -> Engine:
    bind = create_engine(url, echo=echo, connect_args=_connect_args(url, timeout))
    if bind.dialect.name == "sqlite":
        event.listen(bind, "connect", _enable_sqlite_foreign_keys)
    return bind


settings = get_settings()

engine = build_engine(
    settings.database_url,
    echo=settings.database_echo,
    timeout=settings.database_timeout_seconds,
)


def init_db(bind: Optional[Engine] = None) -> None:
    # Import models so SQLModel sees the metadata (and the PostgreSQL DDL hooks).
    from mealprep import models  # noqa: F401  (import for side effect)

    SQLModel.metadata.create_all(bind or engine)


def drop_db(bind: Optional[Engine] = None) -> None:
    from mealprep import models  # noqa: F401

    SQLModel.metadata.drop_all(bind or engine)


def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session


def dialect_name(session: Session) -> str:
    return session.get_bind().dialect.name


def dialect_insert(session: Session, model: Any):
    """Return an INSERT for ``model`` that supports ON CONFLICT clauses."""
    table = model.__table__
    if dialect_name(session) == "postgresql":
        return postgresql.insert(table)
    return sqlite.insert(table)


def _describe(entity: Optional[str], key: Any) -> str:
    label = (entity or "record").replace("_", " ")
    return f"{label} {key}" if key is not None else label


def _is_transient(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, PoolTimeoutError):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code and (code.startswith("08") or code in _TRANSIENT_SQLSTATES):
        return True
    if isinstance(exc, OperationalError):
        text = str(orig or exc).lower()
        return any(marker in text for marker in _TRANSIENT_MARKERS)
    return False


def translate_db_error(
    exc: SQLAlchemyError,
    entity: Optional[str] = None,
    key: Any = None,
) -> MealPrepError:
    """Map a SQLAlchemy/driver error onto the data-layer taxonomy."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    detail = str(orig or exc)
    text = detail.lower()
    what = _describe(entity, key)

    if isinstance(exc, IntegrityError):
        if code == "23505" or "unique constraint" in text or "duplicate key" in text:
            return ConflictError(f"{what} already exists", entity=entity, key=key, details=detail)
        if code == "23503" or "foreign key" in text:
            return NotFoundError(
                f"Referenced record for {what} does not exist",
                entity=entity,
                key=key,
                details=detail,
            )
        if code in ("23514", "23502") or "check constraint" in text or "not null" in text:
            return ValidationError(
                f"Value for {what} does not meet constraints",
                entity=entity,
                key=key,
                details=detail,
            )
        return ConflictError(f"Integrity error on {what}", entity=entity, key=key, details=detail)

    if _is_transient(exc):
        return TransientStoreError(
            f"Store temporarily unavailable while handling {what}",
            entity=entity,
            key=key,
            details=detail,
        )
    return StoreError(f"Store error while handling {what}", entity=entity, key=key, details=detail)


def _log_translated(error: MealPrepError) -> None:
    if isinstance(error, (StoreError, TransientStoreError)):
        logger.error("%s: %s", type(error).__name__, error.details)
    else:
        logger.warning("%s: %s", type(error).__name__, error.message)


def execute(session: Session, statement: Any, *, entity: Optional[str] = None, key: Any = None):
    """Run a single statement, translating driver errors."""
    try:
        return session.exec(statement)
    except SQLAlchemyError as exc:
        error = translate_db_error(exc, entity, key)
        _log_translated(error)
        raise error from exc


@contextmanager
def transaction(
    session: Session,
    *,
    entity: Optional[str] = None,
    key: Any = None,
) -> Iterator[Session]:
    """Run the enclosed statements atomically.

    Commits when the block exits cleanly, rolls everything back on any
    exception. A nested ``transaction`` joins the outermost one, so only the
    outermost block commits.
    """
    depth = session.info.get(_TX_DEPTH, 0)
    session.info[_TX_DEPTH] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except SQLAlchemyError as exc:
        if depth == 0:
            session.rollback()
        error = translate_db_error(exc, entity, key)
        _log_translated(error)
        raise error from exc
    except BaseException:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info[_TX_DEPTH] = depth
