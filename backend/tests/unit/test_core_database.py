import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlmodel import select

from mealprep.core.database import _connect_args, transaction, translate_db_error
from mealprep.core.errors import (
    ConflictError,
    NotFoundError,
    StoreError,
    TransientStoreError,
    ValidationError,
)
from mealprep.models import User


def _user(username="ghost"):
    return User(username=username, email=f"{username}@example.com", password_hash="x")


def test_sqlite_connect_args_returns_thread_check_flag():
    assert _connect_args("sqlite:///foo.db") == {"check_same_thread": False}
    assert _connect_args("sqlite:///foo.db", 2.5) == {"check_same_thread": False, "timeout": 2.5}


def test_postgres_connect_args_set_statement_timeout():
    assert _connect_args("postgresql://example", 5) == {"options": "-c statement_timeout=5000"}


def test_other_connect_args_returns_empty_dict():
    assert _connect_args("mysql://example") == {}


def test_foreign_keys_enabled_on_sqlite(engine):
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1


@pytest.mark.parametrize(
    "message, expected",
    [
        ("UNIQUE constraint failed: users.username", ConflictError),
        ("FOREIGN KEY constraint failed", NotFoundError),
        ("CHECK constraint failed: ck_recipes_times", ValidationError),
        ("NOT NULL constraint failed: recipes.name", ValidationError),
    ],
)
def test_integrity_errors_are_classified(message, expected):
    exc = IntegrityError("INSERT ...", {}, Exception(message))
    error = translate_db_error(exc, "recipe", "abc")
    assert type(error) is expected
    assert error.entity == "recipe"
    assert error.key == "abc"


def test_locked_database_is_transient():
    exc = OperationalError("UPDATE ...", {}, Exception("database is locked"))
    error = translate_db_error(exc)
    assert isinstance(error, TransientStoreError)
    assert error.retryable is True


def test_unknown_errors_become_store_errors():
    exc = ProgrammingError("SELECT ...", {}, Exception("syntax error"))
    error = translate_db_error(exc)
    assert type(error) is StoreError
    assert error.retryable is False


def test_transaction_commits_on_success(db_session, session_factory):
    with transaction(db_session):
        db_session.add(_user())

    with session_factory() as other:
        assert other.exec(select(User.username)).all() == ["ghost"]


def test_transaction_rolls_back_on_error(db_session):
    with pytest.raises(RuntimeError):
        with transaction(db_session):
            db_session.add(_user())
            db_session.flush()
            raise RuntimeError("boom")

    assert db_session.exec(select(User)).all() == []


def test_nested_transaction_is_rolled_back_with_outer(db_session):
    with pytest.raises(RuntimeError):
        with transaction(db_session):
            with transaction(db_session):
                db_session.add(_user())
            raise RuntimeError("boom")

    assert db_session.exec(select(User)).all() == []


def test_transaction_translates_integrity_errors(db_session):
    with transaction(db_session):
        db_session.add(_user("dup"))

    with pytest.raises(ConflictError) as info:
        with transaction(db_session, entity="user", key="dup"):
            db_session.add(_user("dup"))
            db_session.flush()
    assert info.value.key == "dup"
    # session is usable again after the rollback
    assert len(db_session.exec(select(User)).all()) == 1
