"""
Alembic environment for the business directory schema.

The target URL comes from ``-x db_url=...`` first, then ``sqlalchemy.url``
in alembic.ini, then the application's DATABASE_URL resolution.
"""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import engine_from_config, pool

from db.base import Base
from db.config import normalize_postgres_url, resolve_database_url
from db.models import (  # noqa: F401 imports trigger Base.metadata registration
    Business,
    BusinessImportJob,
    Category,
    Neighbourhood,
)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_COMPARE_OPTIONS: dict[str, Any] = {
    "compare_type": True,
    "compare_server_default": True,
}


def _migration_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    ini_url = (config.get_main_option("sqlalchemy.url") or "").strip()
    url = normalize_postgres_url(override or ini_url) if (override or ini_url) else resolve_database_url()

    if not url.startswith("postgresql"):
        raise RuntimeError(f"Directory migrations target PostgreSQL only, got {url.split(':', 1)[0]!r}.")
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=_migration_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_COMPARE_OPTIONS,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _migration_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, **_COMPARE_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
