"""
Checkpoint delta model.

A delta carries the messages produced during one proof interval. It exists in
two wire forms that coexist in the same index:
- CheckpointDelta: plaintext, signed over its messages
- EncryptedCheckpointDelta: the canonical plaintext delta sealed to the
  client's recovery key, signed over the ciphertext

The `encrypted` field is the discriminant; readers dispatch on it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

ROLES = ("user", "assistant")


def _require(data: Dict[str, Any], name: str, kind: Any, what: str) -> Any:
    value = data.get(name)
    # bool is an int subclass; never accept it for numeric fields
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ValueError(f"Invalid {what} structure: missing or invalid '{name}'")
    return value


@dataclass(frozen=True)
class Message:
    """
    One conversation turn.

    Fields:
        role: "user" or "assistant"
        content: Message text
        timestamp: Milliseconds since epoch
        metadata: Optional metadata; partial=True means the content continues
            in the next checkpoint's first message of the same role
    """
    role: str
    content: str
    timestamp: int
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")

    @property
    def partial(self) -> bool:
        return bool(self.metadata and self.metadata.get("partial") is True)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.metadata is not None:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        if not isinstance(data, dict):
            raise ValueError("Invalid message structure: not an object")
        metadata = data.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValueError("Invalid message structure: metadata must be an object")
        return cls(
            role=_require(data, "role", str, "message"),
            content=_require(data, "content", str, "message"),
            timestamp=_require(data, "timestamp", int, "message"),
            metadata=dict(metadata) if metadata is not None else None,
        )


@dataclass(frozen=True)
class CheckpointDelta:
    """
    Plaintext delta for one proof interval.

    host_signature signs the canonical encoding of messages only; it survives
    encryption so the client can verify it after decrypting.
    """
    session_id: str
    checkpoint_index: int
    proof_hash: str
    start_token: int
    end_token: int
    messages: Tuple[Message, ...]
    host_signature: str

    @property
    def token_range(self) -> List[int]:
        return [self.start_token, self.end_token]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "checkpointIndex": self.checkpoint_index,
            "proofHash": self.proof_hash,
            "startToken": self.start_token,
            "endToken": self.end_token,
            "messages": [m.to_dict() for m in self.messages],
            "hostSignature": self.host_signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckpointDelta":
        if not isinstance(data, dict):
            raise ValueError("Invalid delta structure: not an object")
        messages = _require(data, "messages", list, "delta")
        return cls(
            session_id=_require(data, "sessionId", str, "delta"),
            checkpoint_index=_require(data, "checkpointIndex", int, "delta"),
            proof_hash=_require(data, "proofHash", str, "delta"),
            start_token=_require(data, "startToken", int, "delta"),
            end_token=_require(data, "endToken", int, "delta"),
            messages=tuple(Message.from_dict(m) for m in messages),
            host_signature=_require(data, "hostSignature", str, "delta"),
        )


@dataclass(frozen=True)
class EncryptedCheckpointDelta:
    """
    Confidential wire form of a CheckpointDelta.

    Fields:
        version: Envelope version (selects the HKDF label)
        user_recovery_pub_key: Recipient's stable public key (echoed)
        ephemeral_public_key: One-time public key for this checkpoint
        nonce: 24-byte XChaCha20 nonce (hex, no prefix)
        ciphertext: Sealed canonical CheckpointDelta (hex, no prefix)
        host_signature: Signature over the ciphertext bytes
    """
    version: int
    user_recovery_pub_key: str
    ephemeral_public_key: str
    nonce: str
    ciphertext: str
    host_signature: str
    encrypted: bool = field(default=True, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "encrypted": True,
            "version": self.version,
            "userRecoveryPubKey": self.user_recovery_pub_key,
            "ephemeralPublicKey": self.ephemeral_public_key,
            "nonce": self.nonce,
            "ciphertext": self.ciphertext,
            "hostSignature": self.host_signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedCheckpointDelta":
        if not isinstance(data, dict) or data.get("encrypted") is not True:
            raise ValueError("Invalid encrypted delta structure: missing encrypted=true")
        return cls(
            version=_require(data, "version", int, "encrypted delta"),
            user_recovery_pub_key=_require(data, "userRecoveryPubKey", str, "encrypted delta"),
            ephemeral_public_key=_require(data, "ephemeralPublicKey", str, "encrypted delta"),
            nonce=_require(data, "nonce", str, "encrypted delta"),
            ciphertext=_require(data, "ciphertext", str, "encrypted delta"),
            host_signature=_require(data, "hostSignature", str, "encrypted delta"),
        )


WireDelta = Union[CheckpointDelta, EncryptedCheckpointDelta]


def is_encrypted_delta(data: Any) -> bool:
    """True only for objects tagged encrypted=true; legacy deltas have no tag."""
    return isinstance(data, dict) and data.get("encrypted") is True


def parse_wire_delta(data: Dict[str, Any]) -> WireDelta:
    """Dispatch on the encrypted tag and parse the matching wire form."""
    if is_encrypted_delta(data):
        return EncryptedCheckpointDelta.from_dict(data)
    return CheckpointDelta.from_dict(data)
