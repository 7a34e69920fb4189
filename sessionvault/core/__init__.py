"""
Core primitives shared by every layer.

- Canonical: deterministic serialization for signatures
- IDs: content identifiers
- Clock: millisecond time source
- Errors: error taxonomy
"""

from .canonical import canonicalize, canonical_json_bytes, canonical_json_str
from .clock import ManualClock, SystemClock
from .ids import content_id, object_id, is_content_id
from .errors import (
    SessionVaultError,
    TransientStorageError,
    IndexConsistencyError,
    VerificationError,
    NotFoundError,
    EncryptionError,
    CheckpointOrderError,
    RecoveryUnavailableError,
)

__all__ = [
    "canonicalize",
    "canonical_json_bytes",
    "canonical_json_str",
    "ManualClock",
    "SystemClock",
    "content_id",
    "object_id",
    "is_content_id",
    "SessionVaultError",
    "TransientStorageError",
    "IndexConsistencyError",
    "VerificationError",
    "NotFoundError",
    "EncryptionError",
    "CheckpointOrderError",
    "RecoveryUnavailableError",
]
