"""Storage collaborator for the materializer.

``RowStore`` is everything the coordinator needs from a store: one scoped
existence query per family, one bulk insert that hands back real ids in
parameter order, a conflict-tolerant insert for shared reference rows, and
explicit commit/rollback. ``SqlRowStore`` implements it over an AsyncSession.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Collection, Mapping
from typing import Any, Protocol, TypeVar

import structlog
from sqlalchemy import insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from Labelstage.materializer.errors import PersistenceError
from Labelstage.materializer.families import FamilySpec
from Labelstage.materializer.policy import FlushPolicy
from Labelstage.metrics import record_store_round_trip

log = structlog.get_logger()

T = TypeVar("T")


class RowStore(Protocol):
    round_trips: int

    def begin(self, policy: FlushPolicy) -> None: ...

    async def find_existing(
        self, spec: FamilySpec, scope_values: Collection[Any]
    ) -> dict[tuple, int]: ...

    async def insert_rows(self, spec: FamilySpec, rows: list[dict[str, Any]]) -> list[int]: ...

    async def insert_shared(self, spec: FamilySpec, row: Mapping[str, Any]) -> tuple[int, bool]: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


def _uniform_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # A single executemany needs one column set across parameter dicts
    columns: list[str] = []
    for row in rows:
        for col in row:
            if col not in columns:
                columns.append(col)
    return [{col: row.get(col) for col in columns} for row in rows]


class SqlRowStore:
    def __init__(self, session: AsyncSession, *, retry_attempts: int = 5, retry_delay: float = 0.2):
        self.session = session
        self.round_trips = 0
        self.policy: FlushPolicy | None = None
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay

    def begin(self, policy: FlushPolicy) -> None:
        self.policy = policy
        log.debug("materializer.store.begin", policy=policy.value)

    async def _round_trip(self, op: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run one store call, retrying transient SQLite lock errors.

        Exponential backoff: delay * 2^i between attempts. Any other
        SQLAlchemy failure is raised as PersistenceError.
        """
        for i in range(self._retry_attempts):
            self.round_trips += 1
            record_store_round_trip()
            try:
                return await fn()
            except OperationalError as e:
                msg = str(e).lower()
                transient = "database is locked" in msg or "database is busy" in msg
                if transient and i < self._retry_attempts - 1:
                    await asyncio.sleep(self._retry_delay * (2**i))
                    continue
                raise PersistenceError(f"{op} failed: {e}") from e
            except SQLAlchemyError as e:
                raise PersistenceError(f"{op} failed: {e}") from e
        raise PersistenceError(f"{op} failed after {self._retry_attempts} attempts")

    async def find_existing(
        self, spec: FamilySpec, scope_values: Collection[Any]
    ) -> dict[tuple, int]:
        """Map stored natural-key tuples to ids for every row in the given scopes."""
        if not scope_values:
            return {}
        model = spec.model
        stmt = (
            select(model.id, *[getattr(model, col) for col in spec.key_columns])
            .where(getattr(model, spec.scope_column).in_(list(scope_values)))
            .order_by(model.id)
        )

        async def _run():
            return (await self.session.execute(stmt)).all()

        rows = await self._round_trip(f"{spec.name}.find_existing", _run)
        found: dict[tuple, int] = {}
        for row in rows:
            # Oldest row wins when legacy data holds duplicates
            found.setdefault(tuple(row[1:]), row[0])
        return found

    async def insert_rows(self, spec: FamilySpec, rows: list[dict[str, Any]]) -> list[int]:
        if not rows:
            return []
        model = spec.model
        params = _uniform_rows(rows)
        stmt = insert(model).returning(model.id, sort_by_parameter_order=True)

        async def _run():
            return list(await self.session.scalars(stmt, params))

        ids = await self._round_trip(f"{spec.name}.insert", _run)
        if len(ids) != len(rows):
            raise PersistenceError(
                f"{spec.name}.insert returned {len(ids)} ids for {len(rows)} rows",
                family=spec.name,
            )
        return ids

    async def insert_shared(self, spec: FamilySpec, row: Mapping[str, Any]) -> tuple[int, bool]:
        """Insert a shared reference row unless another writer already has.

        Returns (id, created). The table's unique constraint arbitrates races
        between concurrent documents; the loser re-reads the winner's id.
        """
        model = spec.model
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            stmt = sqlite.insert(model).values(**row).on_conflict_do_nothing()
        elif dialect == "postgresql":
            stmt = postgresql.insert(model).values(**row).on_conflict_do_nothing()
        else:
            stmt = insert(model).values(**row)
        stmt = stmt.returning(model.id)

        async def _insert():
            return (await self.session.execute(stmt)).scalar_one_or_none()

        new_id = await self._round_trip(f"{spec.name}.insert_shared", _insert)
        if new_id is not None:
            return new_id, True

        where = [getattr(model, col) == row.get(col) for col in spec.key_columns]

        async def _requery():
            return (await self.session.execute(select(model.id).where(*where))).scalar_one()

        existing = await self._round_trip(f"{spec.name}.requery", _requery)
        log.info("materializer.shared.reused", family=spec.name, id=existing)
        return existing, False

    async def commit(self) -> None:
        await self._round_trip("commit", self.session.commit)

    async def rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            log.error("materializer.store.rollback_failed", exc_info=True)
            raise
