"""Alembic migration environment.

Reads DATABASE_URL from the project's .env (then .env.local) so migrations
run against the same database the materializer writes to.
"""

import os
import pathlib
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine

from Labelstage import models  # noqa: F401  (registers tables on Base.metadata)
from Labelstage.db import Base

_ROOT = pathlib.Path(__file__).resolve().parents[1]
_ENV_PATH = _ROOT / ".env"
_ENV_LOCAL_PATH = _ROOT / ".env.local"

if _ENV_PATH.exists():
    load_dotenv(dotenv_path=_ENV_PATH)
else:
    load_dotenv()

if _ENV_LOCAL_PATH.exists():
    load_dotenv(dotenv_path=_ENV_LOCAL_PATH, override=True)


config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
target_metadata = Base.metadata


def _sync_db_url() -> str:
    """Return a sync DB URL for Alembic.

    - Postgres: force the psycopg (v3) driver, postgresql+psycopg://
    - SQLite: drop the aiosqlite suffix to use the builtin pysqlite driver.
    """
    url = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./labelstage.sqlite3")
    if url.startswith("postgresql+") or url.startswith("postgresql://"):
        base = url.replace("+asyncpg", "").replace("+psycopg", "")
        if base.startswith("postgresql://"):
            return base.replace("postgresql://", "postgresql+psycopg://", 1)
        return "postgresql+psycopg://" + base.split("://", 1)[1]
    return url.replace("+aiosqlite", "")


def run_migrations_offline() -> None:
    context.configure(url=_sync_db_url(), target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(_sync_db_url())
    with connectable.connect() as connection:
        # SQLite needs batch mode to alter constrained tables in later revisions
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
