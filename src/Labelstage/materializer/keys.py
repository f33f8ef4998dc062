"""Natural keys and content hashing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from Labelstage.canonical_json import compute_canonical_hash
from Labelstage.source import normalize_whitespace


def content_hash(text: str | None, *, allow_empty: bool = False) -> str | None:
    """SHA-256 hex of the whitespace- and NFC-normalized text.

    Blank text hashes to None unless ``allow_empty`` is set (table cells may be empty).
    """
    normalized = normalize_whitespace(text)
    if not normalized and not allow_empty:
        return None
    return compute_canonical_hash([normalized]).hex()


def _jsonable(part: Any) -> Any:
    if isinstance(part, NaturalKey):
        return {"family": part.family, "parts": [_jsonable(p) for p in part.parts]}
    if part is None or isinstance(part, bool | int | str):
        return part
    return str(part)


@dataclass(frozen=True)
class NaturalKey:
    """Composite, content-derived identity of a row.

    ``parts`` follows the family's key columns in order. Reference parts are
    the parent's own NaturalKey when the parent was discovered in the same
    pass, or a real id when the caller supplied one.
    """

    family: str
    parts: tuple[Any, ...]

    def digest(self) -> str:
        return compute_canonical_hash(_jsonable(self)).hex()

    def short(self) -> str:
        return f"{self.family}:{self.digest()[:12]}"

    def __str__(self) -> str:
        return self.short()
