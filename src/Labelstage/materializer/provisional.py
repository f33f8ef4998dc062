"""Provisional identifiers and the per-batch resolution map.

Real identifiers are the positive integers the store assigns. Rows that have
been staged but not yet inserted carry a ``ProvisionalId`` instead: a negative
sentinel that can never collide with a real id and is never written to the
store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from Labelstage.materializer.keys import NaturalKey


@dataclass(frozen=True, order=True)
class ProvisionalId:
    value: int

    def __post_init__(self) -> None:
        if self.value >= 0:
            raise ValueError(f"provisional ids are negative, got {self.value}")

    def __str__(self) -> str:
        return f"prov{self.value}"


Identifier = Union[int, ProvisionalId]
Ref = Union[NaturalKey, int, ProvisionalId]


def is_real(ident: object) -> bool:
    return isinstance(ident, int) and not isinstance(ident, bool) and ident > 0


class ProvisionalIdAllocator:
    """Issues batch-scoped placeholders: -1, -2, -3, ..."""

    def __init__(self) -> None:
        self._next = -1

    def allocate(self) -> ProvisionalId:
        pid = ProvisionalId(self._next)
        self._next -= 1
        return pid

    @property
    def issued(self) -> int:
        return -self._next - 1


class IdentifierResolutionMap:
    """Bidirectional map of natural key / provisional id to real id.

    One instance serves one document pass and is discarded after the final
    commit. Keys are bound when a candidate is staged (to its provisional id)
    or deduplicated (to the existing id); provisional ids are reconciled to
    real ids as waves are inserted.
    """

    def __init__(self) -> None:
        self._by_key: dict[NaturalKey, Identifier] = {}
        self._real_by_prov: dict[ProvisionalId, int] = {}
        self._prov_by_real: dict[int, ProvisionalId] = {}

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def bind(self, key: NaturalKey, ident: Identifier) -> None:
        current = self._by_key.get(key)
        if current is not None and current != ident and self.resolve(current) != ident:
            raise ValueError(f"{key} already bound to {current}, refusing {ident}")
        self._by_key[key] = ident

    def reconcile(self, provisional: ProvisionalId, real: int) -> None:
        if not is_real(real):
            raise ValueError(f"cannot reconcile {provisional} to non-real id {real!r}")
        known = self._real_by_prov.get(provisional)
        if known is not None and known != real:
            raise ValueError(f"{provisional} already reconciled to {known}")
        self._real_by_prov[provisional] = real
        self._prov_by_real[real] = provisional

    def resolve(self, ref: Ref) -> Identifier | None:
        """Best-known identifier for ``ref``: real when reconciled, else provisional.

        Returns None when a natural key has not been bound.
        """
        ident: Identifier | None
        if isinstance(ref, NaturalKey):
            ident = self._by_key.get(ref)
        else:
            ident = ref
        if isinstance(ident, ProvisionalId):
            return self._real_by_prov.get(ident, ident)
        return ident

    def real_for(self, ident: Identifier) -> int | None:
        if isinstance(ident, ProvisionalId):
            return self._real_by_prov.get(ident)
        return ident if is_real(ident) else None

    def provisional_for(self, real: int) -> ProvisionalId | None:
        return self._prov_by_real.get(real)

    def unreconciled(self) -> list[NaturalKey]:
        return [
            key
            for key, ident in self._by_key.items()
            if isinstance(ident, ProvisionalId) and ident not in self._real_by_prov
        ]
