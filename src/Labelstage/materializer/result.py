"""Structured outcome of one materialization run.

``MaterializationResult`` is what callers get back instead of an exception for
every recoverable condition: per-family created and duplicate counts, the
items that were discarded and why, warnings, fatal errors, and a canonical
digest of the run so two runs can be compared byte-for-byte.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from Labelstage.canonical_json import compute_canonical_hash
from Labelstage.materializer.errors import (
    MaterializerError,
    NodeValidationError,
    ReferentialIntegrityError,
)
from Labelstage.materializer.nodes import CandidateState


@dataclass(frozen=True)
class DiscardedItem:
    family: str | None
    key: str | None
    reason: str
    state: str
    error: str


@dataclass
class MaterializationResult:
    document_guid: str | None = None
    document_id: int | None = None
    flush_policy: str | None = None
    created: dict[str, int] = field(default_factory=dict)
    duplicates: dict[str, int] = field(default_factory=dict)
    discarded: list[DiscardedItem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fatal_errors: list[str] = field(default_factory=list)
    round_trips: int = 0

    def record_created(self, family: str, count: int = 1) -> None:
        if count:
            self.created[family] = self.created.get(family, 0) + count

    def record_duplicate(self, family: str, count: int = 1) -> None:
        if count:
            self.duplicates[family] = self.duplicates.get(family, 0) + count

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def record_issue(self, exc: MaterializerError) -> None:
        """Record a recoverable error as a discarded item plus a warning."""
        if isinstance(exc, NodeValidationError):
            state = CandidateState.discarded_malformed
        elif isinstance(exc, ReferentialIntegrityError):
            state = CandidateState.discarded_unresolved
        else:
            state = CandidateState.discarded_malformed
        self.discarded.append(
            DiscardedItem(
                family=exc.family,
                key=exc.key,
                reason=str(exc),
                state=state.value,
                error=type(exc).__name__,
            )
        )
        self.warn(f"{type(exc).__name__}: {exc}")

    def fail(self, exc: BaseException) -> None:
        self.fatal_errors.append(f"{type(exc).__name__}: {exc}")

    @property
    def success(self) -> bool:
        return not self.fatal_errors

    @property
    def status(self) -> str:
        if self.fatal_errors:
            return "failed"
        if self.discarded or self.warnings:
            return "partial"
        return "success"

    def total_created(self) -> int:
        return sum(self.created.values())

    def summary_counts(self) -> dict[str, int]:
        """Flat, sorted counts suitable for logs and CLI output."""
        out: dict[str, int] = {}
        for family in sorted(self.created):
            out[f"created.{family}"] = self.created[family]
        for family in sorted(self.duplicates):
            out[f"duplicate.{family}"] = self.duplicates[family]
        out["discarded"] = len(self.discarded)
        out["warnings"] = len(self.warnings)
        out["fatal_errors"] = len(self.fatal_errors)
        return out

    def state_digest(self) -> str:
        """Canonical SHA-256 over counts and discards (ids and timings excluded)."""
        payload: dict[str, Any] = {
            "document_guid": self.document_guid,
            "created": dict(self.created),
            "duplicates": dict(self.duplicates),
            "discarded": sorted(
                [[d.family or "", d.key or "", d.state] for d in self.discarded]
            ),
            "status": self.status,
        }
        return compute_canonical_hash(payload).hex()

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_guid": self.document_guid,
            "document_id": self.document_id,
            "flush_policy": self.flush_policy,
            "status": self.status,
            "success": self.success,
            "created": dict(self.created),
            "duplicates": dict(self.duplicates),
            "discarded": [asdict(d) for d in self.discarded],
            "warnings": list(self.warnings),
            "fatal_errors": list(self.fatal_errors),
            "round_trips": self.round_trips,
            "state_digest": self.state_digest(),
        }
