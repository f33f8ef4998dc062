"""Shared machinery for content-family processors."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from Labelstage.materializer.coordinator import BulkFlushCoordinator
from Labelstage.materializer.errors import MaterializerError, NodeValidationError
from Labelstage.materializer.families import FamilySpec
from Labelstage.materializer.nodes import ContentNode, make_node
from Labelstage.materializer.policy import FlushPolicy
from Labelstage.materializer.provisional import Ref
from Labelstage.materializer.result import MaterializationResult
from Labelstage.materializer.store import SqlRowStore
from Labelstage.source import SourceNode

log = structlog.get_logger()


def int_attr(node: SourceNode, name: str) -> int | None:
    """Positive integer attribute, or None when absent, malformed or not > 0."""
    raw = node.attr(name)
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value > 0 else None


@dataclass
class Collected:
    nodes: list[ContentNode] = field(default_factory=list)
    issues: list[MaterializerError] = field(default_factory=list)

    def merge(self, other: Collected) -> Collected:
        self.nodes.extend(other.nodes)
        self.issues.extend(other.issues)
        return self

    def count(self, family: str) -> int:
        return sum(1 for n in self.nodes if n.family == family)


class ContentFamilyProcessor:
    """Base class for processors that turn a source subtree into nodes.

    ``collect`` is pure: it reads the subtree and returns nodes and issues
    without touching the store. ``materialize_content_for`` runs the same
    stage, dedup and flush cycle the document pipeline uses, for callers that
    already hold a real parent id.
    """

    family: str = ""

    def collect(self, parent_ref: Ref, subtree: SourceNode, *, depth: int = 0) -> Collected:
        raise NotImplementedError

    def _node(
        self,
        out: Collected,
        spec: FamilySpec,
        node_type: str,
        sequence: int,
        *,
        refs: Mapping[str, Ref | None],
        values: Mapping[str, Any],
        depth: int = 0,
        source: SourceNode | None = None,
    ) -> ContentNode | None:
        try:
            node = make_node(
                spec, node_type, sequence, refs=refs, values=values, depth=depth, source=source
            )
        except NodeValidationError as exc:
            log.warning(
                "materializer.validation.skipped",
                family=spec.name,
                node_type=node_type,
                sequence=sequence,
                reason=str(exc),
            )
            exc.key = f"{spec.name}:{node_type}#{sequence}"
            out.issues.append(exc)
            return None
        out.nodes.append(node)
        return node

    async def materialize_content_for(
        self,
        session: AsyncSession,
        parent_id: int,
        subtree: SourceNode,
        *,
        flush_policy: FlushPolicy = FlushPolicy.deferred,
        result: MaterializationResult | None = None,
    ) -> int:
        """Materialize ``subtree`` under an existing parent row; return rows created.

        Idempotent: a second call with the same parent and subtree creates
        nothing. Recoverable issues land on ``result`` when one is given.
        PersistenceError is raised after the session is rolled back.
        """
        result = result if result is not None else MaterializationResult()
        result.flush_policy = flush_policy.value
        before = result.total_created()
        collected = self.collect(parent_id, subtree)
        for issue in collected.issues:
            result.record_issue(issue)
        coordinator = BulkFlushCoordinator(
            SqlRowStore(session), policy=flush_policy, result=result
        )
        try:
            await coordinator.run(collected.nodes)
            await coordinator.commit()
        except MaterializerError:
            log.error("materializer.content.failed", family=self.family, exc_info=True)
            await coordinator.abort()
            raise
        return result.total_created() - before
