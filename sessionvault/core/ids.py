"""
Content identifier generation.

Identifiers are CIDv1 values with the raw codec and a sha2-256 multihash,
rendered in lowercase base32 multibase (leading "b"). No scheme prefix.
"""

import base64
import hashlib
from typing import Any

from .canonical import canonical_json_bytes

# CIDv1 | raw codec | sha2-256 | 32-byte digest
CID_PREFIX = bytes([0x01, 0x55, 0x12, 0x20])
MULTIBASE_BASE32 = "b"


def content_id(data: bytes) -> str:
    """
    Compute the content identifier for raw bytes.

    Example:
        content_id(b"hello") -> "bafkrei..."
    """
    digest = hashlib.sha256(data).digest()
    encoded = base64.b32encode(CID_PREFIX + digest).decode("ascii").lower().rstrip("=")
    return MULTIBASE_BASE32 + encoded


def object_id(obj: Any) -> str:
    """Content identifier of a JSON-compatible object's canonical bytes."""
    return content_id(canonical_json_bytes(obj))


def is_content_id(value: str) -> bool:
    """Check that value looks like an identifier produced by content_id()."""
    if not isinstance(value, str) or not value.startswith(MULTIBASE_BASE32):
        return False
    body = value[1:].upper()
    body += "=" * (-len(body) % 8)
    try:
        raw = base64.b32decode(body)
    except ValueError:
        return False
    return raw.startswith(CID_PREFIX) and len(raw) == len(CID_PREFIX) + 32
