"""Materializer error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class MaterializerError(Exception):
    """Base exception for materializer errors.

    ``family`` and ``key`` identify the row family and natural key (as text)
    involved, when known, so callers can report the skipped item.
    """

    def __init__(self, message: str, *, family: str | None = None, key: str | None = None):
        super().__init__(message)
        self.family = family
        self.key = key


class NodeValidationError(MaterializerError):
    """A discovered node lacks a required field; the node is skipped."""

    pass


class ReferentialIntegrityError(MaterializerError):
    """A candidate's parent never resolved; the candidate and its subtree are discarded."""

    pass


class PersistenceError(MaterializerError):
    """A store round trip failed; fatal for the current document only."""

    pass


@dataclass(frozen=True)
class DuplicateFound:
    """Dedup outcome: an equivalent row already exists under ``existing_id``.

    Not an error. ``source`` is "store" or "batch".
    """

    family: str
    existing_id: Any
    source: str
