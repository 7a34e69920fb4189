"""
Ledger interface for settled proof hashes.

The settlement layer is external; recovery only needs to read the proof hash
recorded for (session, checkpoint index) and compare it with the index entry.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple


def normalize_proof_hash(value: str) -> int:
    """
    Parse a hex proof hash into an integer (case-insensitive, 0x optional).

    Raises:
        ValueError: If value is not hex
    """
    if not isinstance(value, str):
        raise ValueError(f"Proof hash must be a string, got {type(value).__name__}")
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not text:
        raise ValueError("Proof hash is empty")
    return int(text, 16)


def compare_proof_hashes(a: str, b: str) -> bool:
    """True when a and b denote the same 32-byte value; malformed input never matches."""
    try:
        return normalize_proof_hash(a) == normalize_proof_hash(b)
    except ValueError:
        return False


class ProofLedger(ABC):
    """Read side of the settlement ledger."""

    @abstractmethod
    def get_proof_hash(self, session_id: str, checkpoint_index: int) -> Optional[str]:
        """
        Return the proof hash settled for a checkpoint.

        Returns:
            Hex proof hash, or None if nothing is recorded
        """
        ...


class InMemoryProofLedger(ProofLedger):
    """
    Process-local ledger.

    Settled entries are immutable: a second submission for the same
    (session, index) is refused.
    """

    def __init__(self):
        self._proofs: Dict[Tuple[str, int], str] = {}
        self._lock = threading.Lock()

    def submit_proof(self, session_id: str, checkpoint_index: int, proof_hash: str) -> None:
        """
        Record a settled proof hash.

        Raises:
            ValueError: If the index is already settled or the hash is malformed
        """
        normalize_proof_hash(proof_hash)
        key = (session_id, checkpoint_index)
        with self._lock:
            if key in self._proofs:
                raise ValueError(
                    f"Proof for session {session_id} checkpoint {checkpoint_index} already submitted"
                )
            self._proofs[key] = proof_hash

    def get_proof_hash(self, session_id: str, checkpoint_index: int) -> Optional[str]:
        with self._lock:
            return self._proofs.get((session_id, checkpoint_index))
