"""Discovered nodes and staged row candidates."""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from Labelstage.materializer.errors import ReferentialIntegrityError
from Labelstage.materializer.families import FamilySpec, get_family
from Labelstage.materializer.keys import NaturalKey
from Labelstage.materializer.provisional import Identifier, ProvisionalId, Ref
from Labelstage.source import SourceNode


class CandidateState(str, enum.Enum):
    discovered = "Discovered"
    staged = "Staged"
    deduplicated = "Deduplicated"
    flushed = "Flushed"
    discarded_duplicate = "Discarded(duplicate)"
    discarded_malformed = "Discarded(malformed)"
    discarded_unresolved = "Discarded(unresolved)"

    @property
    def is_terminal(self) -> bool:
        return self in (
            CandidateState.flushed,
            CandidateState.discarded_duplicate,
            CandidateState.discarded_malformed,
            CandidateState.discarded_unresolved,
        )


@dataclass(frozen=True)
class ContentNode:
    """A unit discovered in the source tree.

    Never mutated after creation: ``refs`` and ``values`` are read-only views
    and reference resolution produces a separate RowCandidate.
    """

    family: str
    node_type: str
    sequence: int
    natural_key: NaturalKey
    parent_key: Ref | None = None
    refs: Mapping[str, Ref | None] = field(default_factory=dict, hash=False)
    values: Mapping[str, Any] = field(default_factory=dict, hash=False)
    depth: int = 0
    source: SourceNode | None = field(default=None, compare=False, hash=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "refs", MappingProxyType(dict(self.refs)))
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @property
    def spec(self) -> FamilySpec:
        return get_family(self.family)


def make_node(
    spec: FamilySpec,
    node_type: str,
    sequence: int,
    *,
    refs: Mapping[str, Ref | None] | None = None,
    values: Mapping[str, Any] | None = None,
    parent_key: Ref | None = None,
    depth: int = 0,
    source: SourceNode | None = None,
) -> ContentNode:
    """Validate fields and build a node with its natural key.

    Raises NodeValidationError when a required field is missing.
    """
    refs = dict(refs or {})
    values = dict(values or {})
    spec.validate(values, refs)
    if parent_key is None and spec.ref_columns:
        parent_key = refs.get(spec.ref_columns[0])
    return ContentNode(
        family=spec.name,
        node_type=node_type,
        sequence=sequence,
        natural_key=spec.natural_key(refs, values),
        parent_key=parent_key,
        refs=refs,
        values=values,
        depth=depth,
        source=source,
    )


@dataclass(frozen=True)
class RowCandidate:
    """A node paired with its own identifier and resolved references."""

    node: ContentNode
    row_id: Identifier
    refs: Mapping[str, Identifier | None] = field(default_factory=dict, hash=False)
    state: CandidateState = CandidateState.staged

    @property
    def family(self) -> str:
        return self.node.family

    @property
    def spec(self) -> FamilySpec:
        return self.node.spec

    @property
    def natural_key(self) -> NaturalKey:
        return self.node.natural_key

    def with_state(self, state: CandidateState) -> RowCandidate:
        return replace(self, state=state)

    def _column_value(self, col: str) -> Any:
        if col in self.spec.ref_columns:
            return self.refs.get(col)
        return self.node.values.get(col)

    def store_key(self) -> tuple | None:
        """Key tuple comparable with stored rows, or None while a part is provisional."""
        parts = tuple(self._column_value(col) for col in self.spec.key_columns)
        if any(isinstance(p, ProvisionalId) for p in parts):
            return None
        return parts

    def scope_value(self) -> Any:
        return self._column_value(self.spec.scope_column)

    def row_values(self, resolve: Callable[[Identifier], int | None] | None = None) -> dict:
        """Column values ready for insertion.

        Provisional references are substituted through ``resolve``; any that
        remain raise ReferentialIntegrityError so they never reach the store.
        """
        row = dict(self.node.values)
        for col in self.spec.ref_columns:
            ident = self.refs.get(col)
            if isinstance(ident, ProvisionalId):
                real = resolve(ident) if resolve is not None else None
                if real is None:
                    raise ReferentialIntegrityError(
                        f"{self.family}.{col} still references {ident}",
                        family=self.family,
                        key=str(self.natural_key),
                    )
                ident = real
            row[col] = ident
        return row
