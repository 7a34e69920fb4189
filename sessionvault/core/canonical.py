"""
Canonical JSON for signatures and content identifiers.

Deltas, index entries and proof commitments are signed or hashed over these
bytes, and the other side recomputes them from parsed JSON. Only values that
survive a JSON round trip unchanged are accepted: string keys, no NaN or
Infinity.
"""

import json
from typing import Any


def canonicalize(obj: Any) -> Any:
    """
    Normalize nested dicts/lists into the form that is serialized.

    Rules:
    - dict keys sorted lexicographically; keys must be strings
    - tuples become lists
    - applied recursively

    Raises:
        ValueError: If a dict key is not a string
    """
    if isinstance(obj, dict):
        for key in obj:
            if not isinstance(key, str):
                raise ValueError(f"Canonical JSON keys must be strings, got {key!r}")
        return {k: canonicalize(obj[k]) for k in sorted(obj)}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(x) for x in obj]
    return obj


def canonical_json_bytes(obj: Any) -> bytes:
    """
    UTF-8 bytes of the canonical form: sorted keys, no whitespace, non-ASCII
    kept as is (the same text JSON.stringify produces for sorted input).

    Raises:
        ValueError: On non-string keys or non-finite floats
    """
    text = json.dumps(
        canonicalize(obj), sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    )
    return text.encode("utf-8")


def canonical_json_str(obj: Any) -> str:
    """Canonical form as text, for EIP-191 signing and storage."""
    return canonical_json_bytes(obj).decode("utf-8")
