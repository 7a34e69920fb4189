"""
Merge verified deltas into one conversation.
"""

from dataclasses import replace
from typing import List, Sequence, Tuple

from ..delta.model import CheckpointDelta, Message


def _complete(metadata):
    if metadata is None:
        return None
    rest = {k: v for k, v in metadata.items() if k != "partial"}
    return rest or None


def merge_deltas(deltas: Sequence[CheckpointDelta]) -> Tuple[List[Message], int]:
    """
    Concatenate delta messages in ascending checkpoint_index order.

    A message marked partial absorbs the next message when it has the same
    role; the merged message stays partial only if that continuation is
    partial. A partial message followed by another role is kept as is.

    Returns:
        (messages, token_count) where token_count is the last delta's end_token
    """
    if not deltas:
        return [], 0

    ordered = sorted(deltas, key=lambda d: d.checkpoint_index)
    merged: List[Message] = []

    for delta in ordered:
        for msg in delta.messages:
            if merged and merged[-1].partial and merged[-1].role == msg.role:
                last = merged[-1]
                metadata = dict(last.metadata) if msg.partial else _complete(last.metadata)
                merged[-1] = replace(last, content=last.content + msg.content, metadata=metadata)
                continue
            merged.append(msg)

    return merged, ordered[-1].end_token
