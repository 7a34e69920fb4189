"""
Checkpoint index model.

One index per (host, session). It is an ordered, append-only list of entries,
each pointing at an uploaded delta, plus host signatures over the message
content chain and over the entries array.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple


def _field(data: Dict[str, Any], name: str, kind: Any, what: str) -> Any:
    value = data.get(name)
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ValueError(f"Invalid {what} structure: missing or invalid '{name}'")
    return value


@dataclass(frozen=True)
class CheckpointEntry:
    """
    One row of the index.

    Fields:
        index: 0-based checkpoint index
        proof_hash: Proof hash submitted to the ledger for this interval
        delta_cid: Content identifier of the (plaintext or encrypted) delta
        token_range: (start_token, end_token)
        timestamp: Milliseconds since epoch when the entry was written
        content_hash: Hash chain value over all message content up to here
        proof_cid: Optional content identifier of the full proof
        encrypted: True when delta_cid points at an encrypted delta
    """
    index: int
    proof_hash: str
    delta_cid: str
    token_range: Tuple[int, int]
    timestamp: int
    content_hash: str
    proof_cid: Optional[str] = None
    encrypted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "index": self.index,
            "proofHash": self.proof_hash,
            "deltaCid": self.delta_cid,
            "tokenRange": [self.token_range[0], self.token_range[1]],
            "timestamp": self.timestamp,
            "contentHash": self.content_hash,
        }
        if self.proof_cid is not None:
            data["proofCid"] = self.proof_cid
        if self.encrypted:
            data["encrypted"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckpointEntry":
        if not isinstance(data, dict):
            raise ValueError("Invalid checkpoint entry structure: not an object")
        token_range = _field(data, "tokenRange", list, "checkpoint entry")
        if len(token_range) != 2 or not all(
            isinstance(t, int) and not isinstance(t, bool) for t in token_range
        ):
            raise ValueError("Invalid checkpoint entry structure: tokenRange must be [start, end]")
        proof_cid = data.get("proofCid")
        if proof_cid is not None and not isinstance(proof_cid, str):
            raise ValueError("Invalid checkpoint entry structure: proofCid must be a string")
        return cls(
            index=_field(data, "index", int, "checkpoint entry"),
            proof_hash=_field(data, "proofHash", str, "checkpoint entry"),
            delta_cid=_field(data, "deltaCid", str, "checkpoint entry"),
            token_range=(token_range[0], token_range[1]),
            timestamp=_field(data, "timestamp", int, "checkpoint entry"),
            content_hash=_field(data, "contentHash", str, "checkpoint entry"),
            proof_cid=proof_cid,
            encrypted=data.get("encrypted") is True,
        )


@dataclass(frozen=True)
class CheckpointIndex:
    """Per-(host, session) ledger of checkpoint entries."""
    session_id: str
    host_address: str
    checkpoints: Tuple[CheckpointEntry, ...] = field(default_factory=tuple)
    messages_signature: str = ""
    checkpoints_signature: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "host_address", self.host_address.lower())

    @property
    def last(self) -> Optional[CheckpointEntry]:
        return self.checkpoints[-1] if self.checkpoints else None

    @property
    def token_count(self) -> int:
        return self.checkpoints[-1].token_range[1] if self.checkpoints else 0

    def with_checkpoints(self, checkpoints: List[CheckpointEntry]) -> "CheckpointIndex":
        """Copy with new entries and cleared signatures (must be re-signed)."""
        return replace(
            self,
            checkpoints=tuple(checkpoints),
            messages_signature="",
            checkpoints_signature="",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "hostAddress": self.host_address,
            "checkpoints": [e.to_dict() for e in self.checkpoints],
            "messagesSignature": self.messages_signature,
            "checkpointsSignature": self.checkpoints_signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckpointIndex":
        if not isinstance(data, dict):
            raise ValueError("Invalid checkpoint index structure: not an object")
        entries = _field(data, "checkpoints", list, "checkpoint index")
        return cls(
            session_id=_field(data, "sessionId", str, "checkpoint index"),
            host_address=_field(data, "hostAddress", str, "checkpoint index"),
            checkpoints=tuple(CheckpointEntry.from_dict(e) for e in entries),
            messages_signature=_field(data, "messagesSignature", str, "checkpoint index"),
            checkpoints_signature=_field(data, "checkpointsSignature", str, "checkpoint index"),
        )
