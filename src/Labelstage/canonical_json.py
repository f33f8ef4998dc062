"""Canonical JSON encoding used for natural-key digests and run digests.

The encoding is deterministic:
- UTF-8 NFC Unicode normalization
- Lexicographic key ordering
- Null field elision inside objects (nulls inside arrays are kept)
- Integer-only numeric policy (rejects floats/NaN)
"""

from __future__ import annotations

import hashlib
import json
import math
import unicodedata
from collections.abc import Mapping
from typing import Any


class CanonicalJSONError(ValueError):
    """Raised when input violates canonical JSON constraints."""

    pass


def _normalize_unicode(value: str) -> str:
    return unicodedata.normalize("NFC", value)


def _validate_number(value: int | float) -> int:
    """Validate numeric value meets the integer-only policy.

    Raises:
        CanonicalJSONError: If value is a non-integral float, NaN, infinity,
            or outside the signed 64-bit range.
    """
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise CanonicalJSONError(f"Non-finite number not permitted: {value}")
        if not value.is_integer():
            raise CanonicalJSONError(
                f"Float values not permitted in canonical JSON: {value}. "
                "Store measurements as strings."
            )
        value = int(value)
    if value < -9223372036854775808 or value > 9223372036854775807:
        raise CanonicalJSONError(f"Integer {value} outside signed 64-bit range.")
    return value


def _canonicalize_value(value: Any) -> Any:
    if value is None:
        return None
    elif isinstance(value, bool):
        return value
    elif isinstance(value, str):
        return _normalize_unicode(value)
    elif isinstance(value, int | float):
        return _validate_number(value)
    elif isinstance(value, list | tuple):
        return [_canonicalize_value(item) for item in value]
    elif isinstance(value, Mapping):
        result = {}
        for key, val in value.items():
            if val is not None:
                result[_normalize_unicode(str(key))] = _canonicalize_value(val)
        return result
    else:
        raise CanonicalJSONError(
            f"Unsupported type {type(value)} in canonical JSON. "
            "Only dict, list, tuple, str, int, bool, and null are permitted."
        )


def canonical_json_bytes(payload: Mapping[str, Any] | list | None) -> bytes:
    """Encode payload as canonical JSON bytes.

    Args:
        payload: Mapping or list to encode, or None (treated as empty dict)

    Returns:
        UTF-8 encoded canonical JSON with compact separators.

    Raises:
        CanonicalJSONError: If payload contains invalid types or values
    """
    if payload is None:
        payload = {}
    canonical_payload = _canonicalize_value(payload)
    json_str = json.dumps(
        canonical_payload,
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=True,
        allow_nan=False,
    )
    return _normalize_unicode(json_str).encode("utf-8")


def compute_canonical_hash(payload: Mapping[str, Any] | list | None) -> bytes:
    """Compute the 32-byte SHA-256 digest of the canonical JSON encoding."""
    return hashlib.sha256(canonical_json_bytes(payload)).digest()


__all__ = [
    "CanonicalJSONError",
    "canonical_json_bytes",
    "compute_canonical_hash",
]
