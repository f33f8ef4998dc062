import pytest
from sqlalchemy import func, select, text
from structlog.testing import capture_logs

from Labelstage import models
from Labelstage.db import _normalize_url, create_engine_for, session_scope


@pytest.mark.parametrize(
    "url,expected",
    [
        ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("sqlite:///./x.sqlite3", "sqlite+aiosqlite:///./x.sqlite3"),
        ("sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
        ("postgresql+asyncpg://h/db", "postgresql+asyncpg://h/db"),
    ],
)
def test_normalize_url(url, expected):
    assert _normalize_url(url) == expected


@pytest.mark.asyncio
async def test_engine_enforces_sqlite_foreign_keys(tmp_path):
    with capture_logs() as logs:
        engine = create_engine_for(f"sqlite:///{tmp_path / 'fk.sqlite3'}")
    try:
        async with engine.connect() as conn:
            assert (await conn.execute(text("PRAGMA foreign_keys"))).scalar_one() == 1
    finally:
        await engine.dispose()
    (event,) = [e for e in logs if e["event"] == "db.connection.config"]
    assert event["backend"] == "sqlite"
    assert event["driver"] == "sqlite+aiosqlite"


@pytest.mark.asyncio
async def test_session_scope_commits(sessionmaker):
    async with session_scope() as s:
        s.add(models.Organization(identifier="100", name="Committed"))
    async with sessionmaker() as s:
        n = (await s.execute(select(func.count()).select_from(models.Organization))).scalar_one()
    assert n == 1


@pytest.mark.asyncio
async def test_session_scope_rolls_back_and_reraises(sessionmaker):
    with capture_logs() as logs:
        with pytest.raises(RuntimeError):
            async with session_scope() as s:
                s.add(models.Organization(identifier="200"))
                await s.flush()
                raise RuntimeError("boom")
    assert any(e["event"] == "db.session.error" for e in logs)
    async with sessionmaker() as s:
        n = (await s.execute(select(func.count()).select_from(models.Organization))).scalar_one()
    assert n == 0
