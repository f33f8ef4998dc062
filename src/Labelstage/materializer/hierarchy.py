"""Parent/child edge construction."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from Labelstage.materializer.errors import MaterializerError, NodeValidationError
from Labelstage.materializer.families import SECTION_HIERARCHY, FamilySpec
from Labelstage.materializer.nodes import ContentNode, make_node
from Labelstage.materializer.provisional import Ref

log = structlog.get_logger()


@dataclass(frozen=True)
class EdgeCandidate:
    """A discovered relationship, expressed in natural-key (or real id) form."""

    parent: Ref
    child: Ref
    sequence: int


@dataclass
class HierarchyBuild:
    nodes: list[ContentNode] = field(default_factory=list)
    issues: list[MaterializerError] = field(default_factory=list)


class HierarchyBuilder:
    """Turns edge candidates into edge nodes for the coordinator.

    Endpoints stay as references; the coordinator holds an edge back until
    both resolve and drops it with a warning if either never does. Self
    edges and repeated (parent, child) pairs are rejected here.
    """

    def __init__(
        self,
        spec: FamilySpec = SECTION_HIERARCHY,
        *,
        parent_column: str = "parent_section_id",
        child_column: str = "child_section_id",
    ):
        self.spec = spec
        self.parent_column = parent_column
        self.child_column = child_column

    def build(self, edges: Iterable[EdgeCandidate]) -> HierarchyBuild:
        out = HierarchyBuild()
        seen: set[tuple[Ref, Ref]] = set()
        for edge in edges:
            if edge.parent == edge.child:
                out.issues.append(
                    NodeValidationError(
                        f"self edge on {edge.parent}", family=self.spec.name, key=str(edge.parent)
                    )
                )
                continue
            pair = (edge.parent, edge.child)
            if pair in seen:
                log.debug(
                    "materializer.edge.repeated", family=self.spec.name, child=str(edge.child)
                )
                continue
            seen.add(pair)
            try:
                node = make_node(
                    self.spec,
                    "edge",
                    edge.sequence,
                    refs={self.parent_column: edge.parent, self.child_column: edge.child},
                    values={"sequence_number": edge.sequence},
                    parent_key=edge.parent,
                )
            except NodeValidationError as exc:
                out.issues.append(exc)
                continue
            out.nodes.append(node)
        return out
