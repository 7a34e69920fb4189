"""
Ledger interface and an in-memory implementation.
"""

from .ledger import (
    InMemoryProofLedger,
    ProofLedger,
    compare_proof_hashes,
    normalize_proof_hash,
)

__all__ = [
    "InMemoryProofLedger",
    "ProofLedger",
    "compare_proof_hashes",
    "normalize_proof_hash",
]
