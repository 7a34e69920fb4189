"""
Index integrity: content hash chain, ordering invariants, and signatures.

Content chain:
    content_hash[i] = SHA-256(content_hash[i-1] || canonical(messages[i]))
    content_hash[-1] = ZERO_HASH

The messages signature covers the last chain value, so it commits to the
concatenated message content of every entry. The checkpoints signature covers
the canonical entries array.
"""

import hashlib
from typing import List, Optional, Sequence, Tuple

from ..core.canonical import canonical_json_str
from ..core.errors import CheckpointOrderError, VerificationError
from ..crypto.signer import HostSigner, verify_text_signature
from ..delta.codec import encode_messages
from ..delta.model import Message
from .model import CheckpointEntry, CheckpointIndex

ZERO_HASH = "0" * 64


def chain_content_hash(prev_hash: str, messages: Sequence[Message]) -> str:
    """
    Compute the content hash of a delta chained to the previous entry.

    Args:
        prev_hash: Previous entry's content_hash (or ZERO_HASH for index 0)
        messages: Messages of this delta

    Returns:
        SHA-256 hash as hex string
    """
    return hashlib.sha256(prev_hash.encode("utf-8") + encode_messages(messages)).hexdigest()


def checkpoints_signing_text(entries: Sequence[CheckpointEntry]) -> str:
    return canonical_json_str([e.to_dict() for e in entries])


def messages_signing_text(entries: Sequence[CheckpointEntry]) -> str:
    return entries[-1].content_hash if entries else ZERO_HASH


def check_entry_order(entries: Sequence[CheckpointEntry]) -> None:
    """
    Enforce index invariants.

    - entries[i].index == i
    - token ranges are well-formed and contiguous

    Raises:
        CheckpointOrderError: On the first violation
    """
    for i, entry in enumerate(entries):
        if entry.index != i:
            raise CheckpointOrderError(f"Entry at position {i} has index {entry.index}")
        start, end = entry.token_range
        if start > end:
            raise CheckpointOrderError(f"Entry {i} has inverted token range [{start}, {end}]")
        if i > 0 and entries[i - 1].token_range[1] != start:
            raise CheckpointOrderError(
                f"Entry {i} token range starts at {start}, "
                f"previous entry ends at {entries[i - 1].token_range[1]}"
            )


def extend_index(index: CheckpointIndex, entry: CheckpointEntry) -> Tuple[CheckpointIndex, bool]:
    """
    Append entry, or replace the last entry when it carries the same index.

    Replacing is how a crash-restart republish resolves: the last successfully
    indexed write wins. Earlier entries are immutable.

    Returns:
        (unsigned new index, replaced) tuple

    Raises:
        CheckpointOrderError: If entry would break index/token contiguity
    """
    entries: List[CheckpointEntry] = list(index.checkpoints)
    replaced = False

    if entries and entry.index == entries[-1].index:
        if tuple(entry.token_range) != tuple(entries[-1].token_range):
            raise CheckpointOrderError(
                f"Checkpoint {entry.index} already indexed with token range "
                f"{list(entries[-1].token_range)}, got {list(entry.token_range)}"
            )
        entries[-1] = entry
        replaced = True
    elif entry.index < len(entries):
        raise CheckpointOrderError(
            f"Checkpoint {entry.index} is already indexed and is not the latest entry"
        )
    elif entry.index > len(entries):
        raise CheckpointOrderError(
            f"Checkpoint {entry.index} would leave a gap (next expected index is {len(entries)})"
        )
    else:
        entries.append(entry)

    check_entry_order(entries)
    return index.with_checkpoints(entries), replaced


def prev_content_hash(index: Optional[CheckpointIndex], checkpoint_index: int) -> str:
    """Content hash that checkpoint_index must chain from."""
    if index is None or checkpoint_index == 0:
        return ZERO_HASH
    return index.checkpoints[checkpoint_index - 1].content_hash


def sign_index(index: CheckpointIndex, signer: HostSigner) -> CheckpointIndex:
    """Return a copy of index carrying fresh messages/checkpoints signatures."""
    if signer.address != index.host_address:
        raise ValueError(
            f"Signer {signer.address} cannot sign index owned by {index.host_address}"
        )
    entries = index.checkpoints
    return CheckpointIndex(
        session_id=index.session_id,
        host_address=index.host_address,
        checkpoints=entries,
        messages_signature=signer.sign_text(messages_signing_text(entries)),
        checkpoints_signature=signer.sign_text(checkpoints_signing_text(entries)),
    )


def verify_index_signatures(index: CheckpointIndex, address: Optional[str] = None) -> None:
    """
    Verify both index signatures against address (default: index.host_address).

    Raises:
        VerificationError: If either signature does not recover to address
    """
    address = (address or index.host_address).lower()
    entries = index.checkpoints
    if not verify_text_signature(checkpoints_signing_text(entries), index.checkpoints_signature, address):
        raise VerificationError(f"Invalid checkpoints signature for session {index.session_id}")
    if not verify_text_signature(messages_signing_text(entries), index.messages_signature, address):
        raise VerificationError(f"Invalid messages signature for session {index.session_id}")


def verify_content_chain(
    entries: Sequence[CheckpointEntry], messages_per_entry: Sequence[Sequence[Message]]
) -> None:
    """
    Recompute the content hash chain from recovered messages.

    Raises:
        VerificationError: If any entry's content_hash does not match
    """
    if len(entries) != len(messages_per_entry):
        raise VerificationError("Recovered delta count does not match index")
    prev = ZERO_HASH
    for entry, messages in zip(entries, messages_per_entry):
        computed = chain_content_hash(prev, messages)
        if computed != entry.content_hash:
            raise VerificationError(
                f"Content hash mismatch at checkpoint {entry.index}: "
                f"computed {computed}, index has {entry.content_hash}"
            )
        prev = computed
