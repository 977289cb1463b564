"""Apply database migrations or create tables directly.

Usage::

    python -m murmur.scripts.migrate            # alembic upgrade head
    python -m murmur.scripts.migrate --create   # metadata.create_all (dev only)
"""
from __future__ import annotations

import argparse
import logging
import os

from alembic import command
from alembic.config import Config

from murmur.core.logging import configure_logging
from murmur.core.settings import settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "..", "..", "migrations")
)


def alembic_config(url: str | None = None) -> Config:
    """Build an Alembic config pointing at the project's migrations folder."""
    cfg = Config()
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    cfg.set_main_option("sqlalchemy.url", url or settings.database_url_sync)
    return cfg


def run_upgrade_head(url: str | None = None) -> None:
    logger.info("Upgrading database to head")
    command.upgrade(alembic_config(url), "head")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Prepare the Murmur database")
    parser.add_argument(
        "--create",
        action="store_true",
        help="Create tables from the ORM metadata instead of running migrations",
    )
    parser.add_argument("--url", help="Override DATABASE_URL")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)
    if args.create:
        from murmur.db.session import create_tables

        create_tables()
        logger.info("Tables created")
    else:
        run_upgrade_head(args.url)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
