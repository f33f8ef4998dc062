# src/Labelstage/db.py
from __future__ import annotations

import contextlib
import os
from collections.abc import AsyncIterator

import structlog
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from Labelstage.config import load_settings

settings = load_settings()
log = structlog.get_logger()


def _normalize_url(url: str) -> str:
    # Upgrade to async drivers if user supplies sync URLs
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://") and not url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


DATABASE_URL = _normalize_url(settings.database_url)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None
_schema_initialized: bool = False


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for(url: str) -> AsyncEngine:
    """Build an async engine with backend-appropriate pool settings.

    SQLite connections always enforce foreign keys; the materializer relies on
    the store rejecting a child row whose parent id does not exist.
    """
    url = _normalize_url(url)
    kwargs: dict[str, object] = {}
    if url.startswith("sqlite+aiosqlite://"):
        connect_args: dict[str, object] = {"timeout": 30}
        if "file::memory:?cache=shared" in url:
            connect_args["uri"] = True
        kwargs.update(connect_args=connect_args)
        # Critical for in-memory DBs: share a single connection so schema persists
        if ":memory:" in url or "file::memory:?cache=shared" in url:
            kwargs.update(poolclass=StaticPool)
        if os.environ.get("LABELSTAGE_SQLITE_STATIC_POOL") == "1":
            kwargs.update(poolclass=StaticPool)
    elif url.startswith("postgresql+asyncpg://"):
        kwargs.update(
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
        )

    engine = create_async_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    parsed = make_url(url)
    backend = "postgres" if url.startswith("postgresql") else (
        "sqlite" if url.startswith("sqlite") else "other"
    )
    log.info(
        "db.connection.config",
        backend=backend,
        user=parsed.username or "",
        host=parsed.host or "",
        database=parsed.database or "",
        driver=parsed.drivername,
    )
    if backend == "postgres" and (not parsed.username or not parsed.password):
        log.warning(
            "db.connection.missing_credentials",
            has_user=bool(parsed.username),
            has_password=bool(parsed.password),
        )
    return engine


def get_engine() -> AsyncEngine:
    global _engine, _sessionmaker
    if _engine is None:
        _engine = create_engine_for(DATABASE_URL)
        _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        get_engine()
    return _sessionmaker  # type: ignore[return-value]


async def create_schema(engine: AsyncEngine) -> None:
    from Labelstage import models as _models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _ensure_schema_created_if_needed() -> None:
    """Ensure tables exist for in-memory SQLite during tests.

    Creating the schema here is idempotent and fast for SQLite; real databases
    are migrated through Alembic instead.
    """
    global _schema_initialized
    if _schema_initialized:
        return
    if DATABASE_URL.startswith("sqlite+aiosqlite://") and ":memory:" in DATABASE_URL:
        await create_schema(get_engine())
    _schema_initialized = True


@contextlib.asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    await _ensure_schema_created_if_needed()
    sm = get_sessionmaker()
    async with sm() as s:
        try:
            yield s
            await s.commit()
        except BaseException:
            log.error("db.session.error", exc_info=True)
            await s.rollback()
            raise
