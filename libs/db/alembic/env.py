# ruff: noqa: I001
"""
Alembic configuration for the `db` library.

The database URL comes from the `DATABASE_URL` environment variable (a `.env`
in the working directory or the repository root is loaded first) and falls
back to `sqlalchemy.url` in `alembic.ini`. Supports offline and online runs.
"""

from __future__ import annotations

import os
import logging
from pathlib import Path
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from dotenv import find_dotenv, load_dotenv


def _load_dotenv_candidates() -> None:  # pragma: no cover - side-effectful
    candidates = [
        Path.cwd() / ".env",
        # repo root: libs/db/alembic/env.py → ../../..
        Path(__file__).resolve().parents[3] / ".env",
    ]
    found = find_dotenv(usecwd=True)
    if found:
        candidates.append(Path(found))
    for p in candidates:
        if p.is_file():
            load_dotenv(dotenv_path=p, override=False)


_load_dotenv_candidates()

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Env wins over the INI value.
db_url_maybe = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
if not db_url_maybe:
    raise RuntimeError(
        "DATABASE_URL is not set. Provide it via environment or set "
        "'sqlalchemy.url' in alembic.ini."
    )
db_url: str = db_url_maybe

config.set_main_option("sqlalchemy.url", db_url)
config.set_section_option(config.config_ini_section, "sqlalchemy.url", db_url)

logger = logging.getLogger("alembic.env")

# Requires libs/db/src to be importable (installed with the project).
import db as _db_pkg  # noqa: E402

target_metadata = _db_pkg.metadata
logger.debug("Using metadata with tables: %s", sorted(target_metadata.tables))


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = db_url
    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite cannot ALTER constraints in place
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
