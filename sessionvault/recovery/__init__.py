"""
Checkpoint recovery: verification, decryption, and merge.
"""

from ..delta.model import is_encrypted_delta
from .engine import RecoveredConversation, RecoveryEngine
from .merge import merge_deltas

__all__ = [
    "RecoveredConversation",
    "RecoveryEngine",
    "is_encrypted_delta",
    "merge_deltas",
]
