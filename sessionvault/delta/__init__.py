"""
Delta codec: conversation messages and checkpoint deltas in their canonical,
signed, and optionally encrypted wire forms.
"""

from .model import (
    ROLES,
    Message,
    CheckpointDelta,
    EncryptedCheckpointDelta,
    WireDelta,
    is_encrypted_delta,
    parse_wire_delta,
)
from .codec import (
    messages_payload,
    encode_messages,
    decode_messages,
    sign_messages,
    verify_messages_signature,
    build_delta,
    encode_delta,
    decode_delta,
    encrypt_delta,
    decrypt_delta,
    verify_ciphertext_signature,
)

__all__ = [
    "ROLES",
    "Message",
    "CheckpointDelta",
    "EncryptedCheckpointDelta",
    "WireDelta",
    "is_encrypted_delta",
    "parse_wire_delta",
    "messages_payload",
    "encode_messages",
    "decode_messages",
    "sign_messages",
    "verify_messages_signature",
    "build_delta",
    "encode_delta",
    "decode_delta",
    "encrypt_delta",
    "decrypt_delta",
    "verify_ciphertext_signature",
]
