"""
Host-side checkpoint tracking for one session.

Counts tokens as the host generates them and, every interval_tokens, publishes
a checkpoint with the messages produced since the previous one and then
settles its proof hash. Publishing always happens before settling, so a
settled interval always has a recoverable delta. If settling fails the
checkpoint stays published and only the settle step is retried, before the
next checkpoint is published.

A streaming assistant reply cut by a checkpoint boundary is published with
metadata.partial = true; the remainder goes into the next checkpoint and is
merged back during recovery.
"""

import hashlib
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .core.canonical import canonical_json_bytes
from .delta.codec import messages_payload
from .delta.model import Message
from .logging_config import get_logger
from .publish.publisher import CheckpointPublisher

SettleFn = Callable[[str, int, str], Any]
ProveFn = Callable[[str, int, int, int, Sequence[Message]], str]

DEFAULT_INTERVAL_TOKENS = 1000


def default_proof_hash(
    session_id: str,
    checkpoint_index: int,
    start_token: int,
    end_token: int,
    messages: Sequence[Message],
) -> str:
    """Commitment over the interval, used when no prover is supplied."""
    payload = {
        "sessionId": session_id,
        "checkpointIndex": checkpoint_index,
        "tokenRange": [start_token, end_token],
        "messages": messages_payload(messages),
    }
    return "0x" + hashlib.sha256(canonical_json_bytes(payload)).hexdigest()


class CheckpointSession:
    """
    Checkpoint tracker for a single session.

    Args:
        publisher: Publisher used for every checkpoint
        settle: Called as settle(session_id, checkpoint_index, proof_hash)
            after the checkpoint is published
        session_id: Session being tracked
        interval_tokens: Tokens per checkpoint
        recipient_pubkey: Client recovery key; deltas are encrypted when set
        prove: Computes the proof hash for an interval (default: default_proof_hash)
    """

    def __init__(
        self,
        publisher: CheckpointPublisher,
        settle: SettleFn,
        session_id: str,
        interval_tokens: int = DEFAULT_INTERVAL_TOKENS,
        recipient_pubkey: Optional[str] = None,
        prove: Optional[ProveFn] = None,
    ):
        if interval_tokens < 1:
            raise ValueError("interval_tokens must be at least 1")
        self.publisher = publisher
        self.settle = settle
        self.session_id = session_id
        self.interval_tokens = interval_tokens
        self.recipient_pubkey = recipient_pubkey
        self.prove = prove or default_proof_hash

        self.tokens = 0
        self.checkpoints = 0
        self.delta_cids: List[str] = []
        self._checkpoint_start = 0
        self._pending: List[Message] = []
        self._stream: Optional[str] = None
        self._stream_started = 0
        self._stream_cut = False
        self._unsettled: Optional[Tuple[int, str]] = None
        self._lock = threading.RLock()
        self._logger = get_logger(__name__, trace_id=session_id)

    def _now(self) -> int:
        return self.publisher.clock.now_ms()

    @property
    def pending_messages(self) -> int:
        return len(self._pending) + (1 if self._stream else 0)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "tokens": self.tokens,
                "checkpoints": self.checkpoints,
                "pending_messages": self.pending_messages,
            }

    def add_message(self, role: str, content: str, timestamp: Optional[int] = None) -> Message:
        """Buffer a complete message for the next checkpoint."""
        with self._lock:
            if timestamp is None:
                timestamp = self._now()
            message = Message(role=role, content=content, timestamp=timestamp)
            self._pending.append(message)
            return message

    def add_tokens(self, count: int) -> Optional[str]:
        """
        Account for generated tokens, publishing when the interval is reached.

        Returns:
            The delta_cid if a checkpoint was published, else None
        """
        if count < 0:
            raise ValueError("token count must not be negative")
        with self._lock:
            self.tokens += count
            if self.tokens - self._checkpoint_start >= self.interval_tokens:
                return self._emit(None)
            return None

    def stream(self, chunk: str, tokens: int = 0) -> Optional[str]:
        """Append a chunk of the assistant reply currently being generated."""
        with self._lock:
            if self._stream is None:
                self._stream = ""
                self._stream_started = self._now()
                self._stream_cut = False
            self._stream += chunk
            return self.add_tokens(tokens)

    def end_stream(self) -> Optional[Message]:
        """
        Finish the streaming reply; it becomes a complete buffered message.

        When part of the reply was already published as partial, the rest is
        buffered first so it directly follows the cut message, and is buffered
        even when empty so the recovered reply is no longer marked partial.
        """
        with self._lock:
            if self._stream is None:
                return None
            content, cut = self._stream, self._stream_cut
            self._stream = None
            self._stream_cut = False
            if not content and not cut:
                return None
            message = Message(role="assistant", content=content, timestamp=self._stream_started)
            if cut:
                self._pending.insert(0, message)
            else:
                self._pending.append(message)
            return message

    def flush(self, proof_hash: Optional[str] = None) -> Optional[str]:
        """
        Publish whatever is buffered as a final checkpoint.

        Returns:
            The delta_cid, or None when nothing is pending
        """
        with self._lock:
            return self._emit(proof_hash)

    def _settle_pending(self) -> None:
        if self._unsettled is None:
            return
        index, proof_hash = self._unsettled
        self.settle(self.session_id, index, proof_hash)
        self._unsettled = None
        self._logger.info(f"Checkpoint {index} settled")

    def _emit(self, proof_hash: Optional[str]) -> Optional[str]:
        # A checkpoint whose settle failed is settled before the next one is published
        self._settle_pending()

        messages = list(self._pending)
        cut_stream = bool(self._stream)
        if cut_stream:
            tail = Message(
                role="assistant",
                content=self._stream,
                timestamp=self._stream_started,
                metadata={"partial": True},
            )
            if self._stream_cut:
                messages.insert(0, tail)
            else:
                messages.append(tail)
        if not messages:
            self._logger.debug(f"No messages buffered at token {self.tokens}, deferring checkpoint")
            return None

        index = self.checkpoints
        start, end = self._checkpoint_start, self.tokens
        proof_hash = proof_hash or self.prove(self.session_id, index, start, end, messages)

        delta_cid = self.publisher.publish(
            self.session_id, index, proof_hash, start, end, messages,
            recipient_pubkey=self.recipient_pubkey,
        )
        self._logger.info(f"Checkpoint {index} published for tokens [{start}, {end}]")

        self.delta_cids.append(delta_cid)
        self.checkpoints += 1
        self._checkpoint_start = end
        self._pending = []
        if cut_stream:
            self._stream = ""
            self._stream_started = self._now()
            self._stream_cut = True
        self._unsettled = (index, proof_hash)

        self._settle_pending()
        return delta_cid
