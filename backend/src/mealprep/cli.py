# backend/src/mealprep/cli.py
"""``mealprep-db``: database maintenance commands."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Optional, Sequence

from sqlmodel import Session

from mealprep.core import database as core_database
from mealprep.core.config import get_settings
from mealprep.core.errors import MealPrepError
from mealprep.core.health import get_database_health, verify_database_schema
from mealprep.core.logging_config import configure_logging
from mealprep.seed import create_sample_data, reset_database


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def cmd_init(args: argparse.Namespace) -> int:
    core_database.init_db()
    print("Schema created.")
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to drop all tables without --yes.", file=sys.stderr)
        return 2
    reset_database()
    print("Database reset.")
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    core_database.init_db()
    with Session(core_database.engine) as session:
        _print(create_sample_data(session))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_database_schema()
    _print(result)
    return 0 if result["valid"] else 1


def cmd_health(args: argparse.Namespace) -> int:
    result = get_database_health()
    _print(result)
    return 0 if result["status"] == "healthy" else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mealprep-db", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="create tables, indexes and triggers").set_defaults(func=cmd_init)

    reset = sub.add_parser("reset", help="drop and recreate every table")
    reset.add_argument("--yes", action="store_true", help="confirm data loss")
    reset.set_defaults(func=cmd_reset)

    sub.add_parser("seed", help="insert sample data").set_defaults(func=cmd_seed)
    sub.add_parser("verify", help="check required tables").set_defaults(func=cmd_verify)
    sub.add_parser("health", help="connectivity, schema and row counts").set_defaults(func=cmd_health)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging(get_settings().log_level)
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except MealPrepError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
