"""Entity graph staging: discovered nodes to row candidates."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from Labelstage.materializer.nodes import CandidateState, ContentNode, RowCandidate
from Labelstage.materializer.policy import FlushPolicy
from Labelstage.materializer.provisional import (
    Identifier,
    IdentifierResolutionMap,
    ProvisionalId,
    ProvisionalIdAllocator,
)


def resolve_candidate_refs(
    node: ContentNode,
    resolution: IdentifierResolutionMap,
    *,
    require_real: bool,
) -> dict[str, Identifier | None] | None:
    """Resolve every reference of ``node`` without touching the node.

    Returns a new mapping, or None when some reference is not yet usable:
    unbound, or still provisional while ``require_real`` is set. A reference
    that is None stays None (for example a top-level text block's parent).
    """
    resolved: dict[str, Identifier | None] = {}
    for col, ref in node.refs.items():
        if ref is None:
            resolved[col] = None
            continue
        ident = resolution.resolve(ref)
        if ident is None:
            return None
        if require_real and isinstance(ident, ProvisionalId):
            return None
        resolved[col] = ident
    return resolved


@dataclass
class StagingOutcome:
    candidates: list[RowCandidate] = field(default_factory=list)
    deferred: list[ContentNode] = field(default_factory=list)


class EntityGraphStager:
    def __init__(
        self,
        allocator: ProvisionalIdAllocator,
        resolution: IdentifierResolutionMap,
        *,
        policy: FlushPolicy,
    ):
        self.allocator = allocator
        self.resolution = resolution
        self.policy = policy

    def stage(self, nodes: Iterable[ContentNode]) -> StagingOutcome:
        """Turn one level of nodes into candidates; unresolvable nodes are deferred."""
        out = StagingOutcome()
        for node in nodes:
            refs = resolve_candidate_refs(
                node, self.resolution, require_real=self.policy.requires_real_refs
            )
            if refs is None:
                out.deferred.append(node)
                continue
            out.candidates.append(
                RowCandidate(
                    node=node,
                    row_id=self.allocator.allocate(),
                    refs=refs,
                    state=CandidateState.staged,
                )
            )
        return out
