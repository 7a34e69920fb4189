"""
Checkpoint index: per-(host, session) append-only ledger of checkpoint entries.
"""

from .model import CheckpointEntry, CheckpointIndex
from .integrity import (
    ZERO_HASH,
    chain_content_hash,
    check_entry_order,
    checkpoints_signing_text,
    messages_signing_text,
    extend_index,
    prev_content_hash,
    sign_index,
    verify_index_signatures,
    verify_content_chain,
)
from .store import CHECKPOINT_BASE_PATH, IndexStore, index_path, validate_session_id

__all__ = [
    "CheckpointEntry",
    "CheckpointIndex",
    "ZERO_HASH",
    "chain_content_hash",
    "check_entry_order",
    "checkpoints_signing_text",
    "messages_signing_text",
    "extend_index",
    "prev_content_hash",
    "sign_index",
    "verify_index_signatures",
    "verify_content_chain",
    "CHECKPOINT_BASE_PATH",
    "IndexStore",
    "index_path",
    "validate_session_id",
]
