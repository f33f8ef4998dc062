"""Bulk flush/commit coordination.

Nodes are grouped into waves by dependency level, ``(family rank, depth)``.
Each wave is staged, deduplicated and, depending on the flush policy, either
inserted and committed right away (EAGER) or queued in the pending change set
until ``commit()`` (DEFERRED). Either way a wave costs one existence query and
one bulk insert per family it contains, so the number of round trips grows
with nesting levels rather than with sibling counts.
"""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import structlog

from Labelstage.materializer.dedup import NaturalKeyDeduplicator
from Labelstage.materializer.errors import (
    MaterializerError,
    NodeValidationError,
    ReferentialIntegrityError,
)
from Labelstage.materializer.families import SECTION_HIERARCHY, get_family
from Labelstage.materializer.keys import NaturalKey
from Labelstage.materializer.nodes import ContentNode, RowCandidate
from Labelstage.materializer.policy import FlushPolicy
from Labelstage.materializer.provisional import (
    IdentifierResolutionMap,
    ProvisionalId,
    ProvisionalIdAllocator,
)
from Labelstage.materializer.result import MaterializationResult
from Labelstage.materializer.staging import EntityGraphStager
from Labelstage.materializer.store import RowStore
from Labelstage.metrics import observe_histogram, record_duplicates, record_rows_created

log = structlog.get_logger()

Level = tuple[int, int]
ProgressCallback = Callable[[str], None]


@dataclass
class PendingWave:
    level: Level
    by_family: dict[str, list[RowCandidate]] = field(default_factory=dict)

    def __len__(self) -> int:
        return sum(len(c) for c in self.by_family.values())


class PendingChangeSet:
    """Waves staged but not yet written, in the order they must be inserted."""

    def __init__(self) -> None:
        self.waves: list[PendingWave] = []

    def __len__(self) -> int:
        return sum(len(w) for w in self.waves)

    def add(self, wave: PendingWave) -> None:
        if wave.by_family:
            self.waves.append(wave)

    def candidates(self, family: str | None = None) -> list[RowCandidate]:
        return [
            c
            for w in self.waves
            for fam, cands in w.by_family.items()
            if family is None or fam == family
            for c in cands
        ]

    def clear(self) -> None:
        self.waves.clear()


@dataclass(frozen=True)
class FlushRecord:
    """One inserted row, kept so callers can audit insertion order."""

    flush_index: int
    family: str
    natural_key: NaturalKey
    real_id: int
    parent_ids: tuple[int, ...]


def wave_level(node: ContentNode) -> Level:
    return (get_family(node.family).rank, node.depth)


def group_into_waves(nodes: Iterable[ContentNode]) -> list[tuple[Level, list[ContentNode]]]:
    grouped: dict[Level, list[ContentNode]] = defaultdict(list)
    for node in nodes:
        grouped[wave_level(node)].append(node)
    return sorted(grouped.items(), key=lambda kv: kv[0])


class BulkFlushCoordinator:
    def __init__(
        self,
        store: RowStore,
        *,
        policy: FlushPolicy,
        allocator: ProvisionalIdAllocator | None = None,
        resolution: IdentifierResolutionMap | None = None,
        result: MaterializationResult | None = None,
        report_progress: ProgressCallback | None = None,
    ):
        self.store = store
        self.policy = policy
        self.allocator = allocator if allocator is not None else ProvisionalIdAllocator()
        self.resolution = resolution if resolution is not None else IdentifierResolutionMap()
        self.result = result if result is not None else MaterializationResult()
        self.stager = EntityGraphStager(self.allocator, self.resolution, policy=policy)
        self.dedup = NaturalKeyDeduplicator(store, self.resolution)
        self.pending = PendingChangeSet()
        self.flushed: list[FlushRecord] = []
        self._flush_count = 0
        self._report_progress = report_progress
        self._aborted = False
        # Written since the last commit; published only once it lands
        self._uncommitted_created: dict[str, int] = defaultdict(int)
        self._uncommitted_duplicates: dict[str, int] = defaultdict(int)
        self.store.begin(policy)

    def _progress(self, message: str) -> None:
        if self._report_progress is None:
            return
        try:
            self._report_progress(message)
        except Exception:
            log.warning("materializer.progress.callback_failed", exc_info=True)

    async def run(self, nodes: Iterable[ContentNode]) -> None:
        """Stage, deduplicate and flush (or queue) ``nodes`` wave by wave.

        Nodes whose references cannot be resolved yet are carried into the
        next wave. Whatever is still unresolved once no wave makes progress
        is discarded with a ReferentialIntegrityError recorded on the result.
        PersistenceError propagates; the caller decides to abort.
        """
        if self._aborted:
            raise MaterializerError("coordinator was aborted")
        carried: list[ContentNode] = []
        for level, wave_nodes in group_into_waves(nodes):
            staged = self.stager.stage(carried + wave_nodes)
            carried = staged.deferred
            if staged.candidates:
                await self._process_wave(level, staged.candidates)

        while carried:
            staged = self.stager.stage(carried)
            if not staged.candidates:
                break
            carried = staged.deferred
            await self._process_wave(wave_level(staged.candidates[0].node), staged.candidates)

        for node in carried:
            self._discard_unresolved(node)

    def _discard_unresolved(self, node: ContentNode) -> None:
        exc = ReferentialIntegrityError(
            f"{node.family} {node.node_type} #{node.sequence}: parent reference never resolved",
            family=node.family,
            key=str(node.natural_key),
        )
        if node.family == SECTION_HIERARCHY.name:
            log.warning(
                "materializer.edge.dropped",
                family=node.family,
                key=str(node.natural_key),
                reason="endpoint unresolved",
            )
        else:
            log.warning(
                "materializer.reference.unresolved",
                family=node.family,
                key=str(node.natural_key),
                node_type=node.node_type,
            )
        self.result.record_issue(exc)

    def _drop_self_edges(self, candidates: list[RowCandidate]) -> list[RowCandidate]:
        kept: list[RowCandidate] = []
        for cand in candidates:
            if cand.family == SECTION_HIERARCHY.name:
                parent = self.resolution.resolve(cand.refs["parent_section_id"])
                child = self.resolution.resolve(cand.refs["child_section_id"])
                if parent == child:
                    log.warning(
                        "materializer.edge.dropped",
                        family=cand.family,
                        key=str(cand.natural_key),
                        reason="parent equals child",
                    )
                    self.result.record_issue(
                        NodeValidationError(
                            "hierarchy edge endpoints resolve to the same section",
                            family=cand.family,
                            key=str(cand.natural_key),
                        )
                    )
                    continue
            kept.append(cand)
        return kept

    async def _process_wave(self, level: Level, candidates: list[RowCandidate]) -> None:
        started = time.perf_counter()
        by_family: dict[str, list[RowCandidate]] = defaultdict(list)
        for cand in self._drop_self_edges(candidates):
            by_family[cand.family].append(cand)

        wave = PendingWave(level=level)
        for family in sorted(by_family, key=lambda f: (get_family(f).rank, f)):
            spec = get_family(family)
            outcome = await self.dedup.check(spec, by_family[family])
            if outcome.duplicates:
                self.result.record_duplicate(family, len(outcome.duplicates))
                record_duplicates(family, len(outcome.duplicates))
            if outcome.new:
                wave.by_family[family] = outcome.new

        if self.policy is FlushPolicy.eager:
            await self._flush_wave(wave)
            await self.store.commit()
            self._publish_counts()
        else:
            self.pending.add(wave)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        observe_histogram("materializer.wave.duration_ms", elapsed_ms)
        log.info(
            "materializer.wave.processed",
            level=list(level),
            policy=self.policy.value,
            candidates=len(candidates),
            new=len(wave),
            duration_ms=elapsed_ms,
        )
        self._progress(f"wave {level[0]}.{level[1]}: {len(wave)} new of {len(candidates)}")

    async def _flush_wave(self, wave: PendingWave) -> None:
        self._flush_count += 1
        for family, cands in wave.by_family.items():
            spec = get_family(family)
            rows = [c.row_values(self.resolution.real_for) for c in cands]
            if spec.shared:
                created = 0
                for cand, row in zip(cands, rows):
                    real, was_created = await self.store.insert_shared(spec, row)
                    self._reconcile(cand, real, row)
                    created += int(was_created)
                    if not was_created:
                        self._uncommitted_duplicates[family] += 1
            else:
                ids = await self.store.insert_rows(spec, rows)
                for cand, real, row in zip(cands, ids, rows):
                    self._reconcile(cand, real, row)
                created = len(ids)
            self._uncommitted_created[family] += created
            log.debug(
                "materializer.wave.flushed",
                family=family,
                level=list(wave.level),
                rows=created,
            )

    def _publish_counts(self) -> None:
        for family, count in self._uncommitted_created.items():
            self.result.record_created(family, count)
            record_rows_created(family, count)
        for family, count in self._uncommitted_duplicates.items():
            self.result.record_duplicate(family, count)
            record_duplicates(family, count)
        self._uncommitted_created.clear()
        self._uncommitted_duplicates.clear()

    def _reconcile(self, cand: RowCandidate, real: int, row: dict) -> None:
        if isinstance(cand.row_id, ProvisionalId):
            self.resolution.reconcile(cand.row_id, real)
        parent_ids = tuple(row[col] for col in cand.spec.ref_columns if row.get(col) is not None)
        self.flushed.append(
            FlushRecord(
                flush_index=self._flush_count,
                family=cand.family,
                natural_key=cand.natural_key,
                real_id=real,
                parent_ids=parent_ids,
            )
        )

    async def commit(self) -> None:
        """Write any queued waves in dependency order, then commit once."""
        if self._aborted:
            raise MaterializerError("coordinator was aborted")
        if self.policy is FlushPolicy.deferred:
            for wave in self.pending.waves:
                await self._flush_wave(wave)
            leftover = self.resolution.unreconciled()
            if leftover:
                raise ReferentialIntegrityError(
                    f"{len(leftover)} provisional ids left unreconciled before commit",
                    key=str(leftover[0]),
                )
        await self.store.commit()
        self._publish_counts()
        self.pending.clear()
        self.result.round_trips = self.store.round_trips

    async def abort(self) -> None:
        self._aborted = True
        self.pending.clear()
        self._uncommitted_created.clear()
        self._uncommitted_duplicates.clear()
        self.result.round_trips = self.store.round_trips
        await self.store.rollback()

