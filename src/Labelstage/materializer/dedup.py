"""Natural-key deduplication against the store and the pending batch."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from Labelstage.materializer.errors import DuplicateFound
from Labelstage.materializer.families import FamilySpec
from Labelstage.materializer.keys import NaturalKey
from Labelstage.materializer.nodes import CandidateState, RowCandidate
from Labelstage.materializer.provisional import Identifier, IdentifierResolutionMap
from Labelstage.materializer.store import RowStore

log = structlog.get_logger()


@dataclass
class DedupOutcome:
    new: list[RowCandidate] = field(default_factory=list)
    duplicates: list[tuple[RowCandidate, DuplicateFound]] = field(default_factory=list)


class NaturalKeyDeduplicator:
    """Decides, per candidate, "new" or "already exists as X".

    Store matches are checked first and win over in-batch matches. Only
    candidates whose key is fully real can match a stored row: a key that
    still contains a provisional parent id belongs to a parent created in
    this batch, so nothing in the store can be its duplicate.
    """

    def __init__(self, store: RowStore, resolution: IdentifierResolutionMap):
        self.store = store
        self.resolution = resolution
        self._pending: dict[NaturalKey, Identifier] = {}
        self._pending_by_store_key: dict[tuple[str, tuple], Identifier] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def _pending_match(self, spec: FamilySpec, candidate: RowCandidate) -> Identifier | None:
        hit = self._pending.get(candidate.natural_key)
        if hit is None:
            store_key = candidate.store_key()
            if store_key is not None:
                hit = self._pending_by_store_key.get((spec.name, store_key))
        return hit

    async def check(self, spec: FamilySpec, candidates: Sequence[RowCandidate]) -> DedupOutcome:
        out = DedupOutcome()
        if not candidates:
            return out

        scopes = {
            c.scope_value() for c in candidates if c.store_key() is not None
        }
        scopes.discard(None)
        existing = await self.store.find_existing(spec, scopes) if scopes else {}

        for cand in candidates:
            store_key = cand.store_key()
            found: DuplicateFound | None = None
            if store_key is not None and store_key in existing:
                found = DuplicateFound(spec.name, existing[store_key], "store")
            else:
                pending = self._pending_match(spec, cand)
                if pending is not None:
                    found = DuplicateFound(spec.name, pending, "batch")

            if found is not None:
                self.resolution.bind(cand.natural_key, found.existing_id)
                out.duplicates.append((cand.with_state(CandidateState.discarded_duplicate), found))
                continue

            self._pending[cand.natural_key] = cand.row_id
            if store_key is not None:
                self._pending_by_store_key[(spec.name, store_key)] = cand.row_id
            self.resolution.bind(cand.natural_key, cand.row_id)
            out.new.append(cand.with_state(CandidateState.deduplicated))

        if out.duplicates:
            log.debug(
                "materializer.dedup.matched",
                family=spec.name,
                duplicates=len(out.duplicates),
                new=len(out.new),
            )
        return out
