# tests/conftest.py

import gc
import os
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Point the app's engine at a process-local in-memory DB before any app module
# builds one. A file-backed SQLite can be used instead for debugging.
if os.environ.get("LABELSTAGE_TEST_USE_FILE_SQLITE") == "1":
    test_db_path = os.path.abspath(
        os.environ.get("LABELSTAGE_TEST_DB_PATH", "./labelstage_test.sqlite3")
    )
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{test_db_path}"
else:
    os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

if os.environ.get("LABELSTAGE_SQLITE_STATIC_POOL", "1") != "0":
    os.environ["LABELSTAGE_SQLITE_STATIC_POOL"] = "1"

# TOML has higher precedence than env, so override the module-level URL
# before any engine is created.
import Labelstage.db as _db

_db.DATABASE_URL = os.environ["DATABASE_URL"]
_db._engine = None
_db._sessionmaker = None
_db._schema_initialized = False

from Labelstage import models as _models  # noqa: F401,E402
from Labelstage.db import Base, get_engine, get_sessionmaker  # noqa: E402
from Labelstage.metrics import reset_counters  # noqa: E402
from Labelstage.source import XmlSourceNode, load_source  # noqa: E402

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session", autouse=True)
async def _app_engine_lifecycle() -> AsyncIterator[None]:
    """Create tables on the app engine and dispose it after the test session."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield None
    finally:
        await engine.dispose()
    gc.collect()


@pytest.fixture(autouse=True)
async def _reset_db_per_test() -> AsyncIterator[None]:
    # Recreate the schema each test; materializer commits are real commits.
    engine = get_engine()
    async with engine.begin() as conn:
        is_sqlite = conn.dialect.name == "sqlite"
        if is_sqlite:
            await conn.execute(sa.text("PRAGMA foreign_keys=OFF"))
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
        if is_sqlite:
            await conn.execute(sa.text("PRAGMA foreign_keys=ON"))
    reset_counters()
    yield None


@pytest.fixture
def sessionmaker() -> async_sessionmaker[AsyncSession]:
    return get_sessionmaker()


@pytest.fixture
async def db(sessionmaker) -> AsyncIterator[AsyncSession]:
    async with sessionmaker() as s:
        try:
            yield s
        finally:
            await s.rollback()
            await s.close()


@pytest.fixture
def load_fixture():
    def _load(name: str) -> XmlSourceNode:
        return load_source(FIXTURES / name)

    return _load
