"""
Toprank: Alembic Environment

Migrations run against the runtime database by default. Set
``ALEMBIC_DB=historical`` to target the prices database instead. There is a
single revision chain; the application only reads ``prices_daily`` from
the historical database.

Connection settings come from :func:`toprank.core.config.load_config`, so
the CLI and the migrations always read the same ``.env``.
"""

from __future__ import annotations

import os
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import URL

from toprank.core.config import DatabaseConfig, load_config


alembic_config = context.config

if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

# Storage layers issue raw SQL, so there is nothing to autogenerate from.
target_metadata = None


def _selected_database() -> DatabaseConfig:
    env_file = Path(__file__).resolve().parents[1] / ".env"
    app_config = load_config(env_file if env_file.exists() else None)
    if os.environ.get("ALEMBIC_DB", "runtime").lower() == "historical":
        return app_config.historical_db
    return app_config.runtime_db


def _database_url() -> URL:
    db = _selected_database()
    return URL.create(
        "postgresql+psycopg2",
        username=db.user,
        password=db.password or None,
        host=db.host,
        port=db.port,
        database=db.name,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting."""

    context.configure(
        url=_database_url().render_as_string(hide_password=False),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
