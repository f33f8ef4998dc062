"""Batch-wide flush policy."""

from __future__ import annotations

import enum


class FlushPolicy(str, enum.Enum):
    """When staged rows reach the store.

    EAGER inserts and commits each wave before the next one is staged, so
    children always see real parent ids. DEFERRED queues every wave in one
    pending change set that is inserted and committed as a unit at the end.
    """

    eager = "eager"
    deferred = "deferred"

    @classmethod
    def parse(cls, value: str | FlushPolicy) -> FlushPolicy:
        if isinstance(value, FlushPolicy):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"unknown flush policy {value!r}; expected 'eager' or 'deferred'"
            ) from None

    @property
    def requires_real_refs(self) -> bool:
        return self is FlushPolicy.eager
