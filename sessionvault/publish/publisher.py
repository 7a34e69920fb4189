"""
Checkpoint publisher.

Publishes one delta per proof interval and appends it to the session's index:

    validate -> build + sign delta -> [seal + sign ciphertext] -> upload (retried)
             -> extend index -> sign index -> save index

The index entry is written only after the delta upload succeeded. If the
index step fails, IndexConsistencyError carries the uploaded delta_cid and
retry_index() completes the step without re-uploading. The uploaded delta is
also recorded as an orphan of the session so retention deletes it even when
the caller never retries.

Calls for one session are serialized by a per-session lock; the index is
re-read from storage at the start of each call.
"""

import re
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence

from ..core.clock import SystemClock
from ..core.errors import (
    CheckpointOrderError,
    IndexConsistencyError,
    SessionVaultError,
)
from ..crypto.signer import HostSigner
from ..delta.codec import build_delta, encrypt_delta
from ..delta.model import Message
from ..index.integrity import chain_content_hash, extend_index, prev_content_hash, sign_index
from ..index.model import CheckpointEntry, CheckpointIndex
from ..index.store import IndexStore, validate_session_id
from ..logging_config import get_logger
from ..metrics import track_publish
from ..storage.store import ContentStore
from .retry import DEFAULT_BACKOFF_SECONDS, DEFAULT_MAX_ATTEMPTS, upload_with_retry

_PROOF_HASH_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_publish_args(
    checkpoint_index: int,
    proof_hash: str,
    start_token: int,
    end_token: int,
    messages: Sequence[Message],
) -> None:
    """
    Reject malformed publish inputs before anything is signed or uploaded.

    Raises:
        ValueError: On the first invalid argument
    """
    if not _is_int(checkpoint_index) or checkpoint_index < 0:
        raise ValueError(f"checkpoint_index must be a non-negative integer, got {checkpoint_index!r}")
    if not isinstance(proof_hash, str) or not _PROOF_HASH_RE.match(proof_hash):
        raise ValueError(f"proof_hash must be 32 bytes of hex, got {proof_hash!r}")
    if not _is_int(start_token) or not _is_int(end_token) or start_token < 0:
        raise ValueError("start_token and end_token must be non-negative integers")
    if start_token > end_token:
        raise ValueError(f"start_token {start_token} is after end_token {end_token}")
    if not messages:
        raise ValueError("A checkpoint must carry at least one message")
    for message in messages:
        if not isinstance(message, Message):
            raise ValueError(f"Expected Message, got {type(message).__name__}")


class CheckpointPublisher:
    """
    Host-side checkpoint writer.

    Args:
        store: Content store receiving deltas and the index namespace
        signer: Host signing key; its address owns the index path
        index_store: Optional IndexStore (default: one over store for signer.address)
        clock: Source of entry timestamps (default: SystemClock)
        max_attempts: Upload attempts per publish
        backoff_seconds: Linear backoff step between upload attempts
        sleep: Injectable sleep used between attempts
    """

    def __init__(
        self,
        store: ContentStore,
        signer: HostSigner,
        index_store: Optional[IndexStore] = None,
        clock=None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.signer = signer
        self.index_store = index_store or IndexStore(store, signer.address)
        if self.index_store.host_address != signer.address:
            raise ValueError("index_store belongs to a different host than signer")
        self.clock = clock or SystemClock()
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def host_address(self) -> str:
        return self.signer.address

    def session_lock(self, session_id: str) -> threading.Lock:
        """Lock serializing writers of one session's deltas and index."""
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock

    def publish(
        self,
        session_id: str,
        checkpoint_index: int,
        proof_hash: str,
        start_token: int,
        end_token: int,
        messages: Sequence[Message],
        recipient_pubkey: Optional[str] = None,
        proof_cid: Optional[str] = None,
    ) -> str:
        """
        Publish the delta for one proof interval.

        When recipient_pubkey is given the delta is sealed to it; a sealing
        failure raises and nothing is uploaded.

        Returns:
            Content identifier of the uploaded delta

        Raises:
            ValueError: If the arguments are malformed
            CheckpointOrderError: If the entry would break index contiguity
            EncryptionError: If the recipient key is malformed or sealing fails
            TransientStorageError: If the upload fails after all attempts, or
                the index cannot be read
            IndexConsistencyError: If the index update fails after the upload
        """
        validate_session_id(session_id)
        messages = list(messages)
        validate_publish_args(checkpoint_index, proof_hash, start_token, end_token, messages)
        encrypted = recipient_pubkey is not None
        mode = "encrypted" if encrypted else "plaintext"
        logger = get_logger(__name__, trace_id=session_id)

        with track_publish(mode), self.session_lock(session_id):
            index = self._load_or_new(session_id)
            entry = self._make_entry(
                index, checkpoint_index, proof_hash, start_token, end_token,
                messages, delta_cid="", encrypted=encrypted, proof_cid=proof_cid,
            )
            # Rejected orders must not upload anything
            extend_index(index, entry)

            delta = build_delta(
                self.signer, session_id, checkpoint_index, proof_hash,
                start_token, end_token, messages,
            )
            if encrypted:
                wire = encrypt_delta(delta, self.signer, recipient_pubkey).to_dict()
            else:
                wire = delta.to_dict()

            delta_cid = upload_with_retry(
                lambda: self.store.put(wire),
                max_attempts=self.max_attempts,
                backoff_seconds=self.backoff_seconds,
                sleep=self.sleep,
            )
            logger.info(f"Uploaded {mode} delta {checkpoint_index} as {delta_cid}")

            self._commit_entry(index, replace(entry, delta_cid=delta_cid))
            logger.info(
                f"Indexed checkpoint {checkpoint_index} tokens [{start_token}, {end_token}]"
            )
            return delta_cid

    def retry_index(
        self,
        session_id: str,
        checkpoint_index: int,
        proof_hash: str,
        start_token: int,
        end_token: int,
        messages: Sequence[Message],
        delta_cid: str,
        encrypted: bool = False,
        proof_cid: Optional[str] = None,
    ) -> None:
        """
        Complete the index step for an already uploaded delta.

        Use after IndexConsistencyError, with the same arguments as the failed
        publish and the error's delta_cid.

        Raises:
            CheckpointOrderError: If the entry no longer fits the index
            IndexConsistencyError: If the index update fails again
        """
        validate_session_id(session_id)
        messages = list(messages)
        validate_publish_args(checkpoint_index, proof_hash, start_token, end_token, messages)
        logger = get_logger(__name__, trace_id=session_id)

        with self.session_lock(session_id):
            try:
                index = self._load_or_new(session_id)
            except SessionVaultError as e:
                raise IndexConsistencyError(
                    f"Could not read index for session {session_id}: {e}", delta_cid=delta_cid
                ) from e
            entry = self._make_entry(
                index, checkpoint_index, proof_hash, start_token, end_token,
                messages, delta_cid=delta_cid, encrypted=encrypted, proof_cid=proof_cid,
            )
            self._commit_entry(index, entry)
            self._forget_orphan(session_id, delta_cid)
            logger.info(f"Index retry succeeded for checkpoint {checkpoint_index} ({delta_cid})")

    def _load_or_new(self, session_id: str) -> CheckpointIndex:
        index = self.index_store.load(session_id)
        if index is None:
            return CheckpointIndex(session_id=session_id, host_address=self.host_address)
        return index

    def _make_entry(
        self,
        index: CheckpointIndex,
        checkpoint_index: int,
        proof_hash: str,
        start_token: int,
        end_token: int,
        messages: List[Message],
        delta_cid: str,
        encrypted: bool,
        proof_cid: Optional[str],
    ) -> CheckpointEntry:
        if checkpoint_index > len(index.checkpoints):
            raise CheckpointOrderError(
                f"Checkpoint {checkpoint_index} would leave a gap "
                f"(next expected index is {len(index.checkpoints)})"
            )
        return CheckpointEntry(
            index=checkpoint_index,
            proof_hash=proof_hash,
            delta_cid=delta_cid,
            token_range=(start_token, end_token),
            timestamp=self.clock.now_ms(),
            content_hash=chain_content_hash(prev_content_hash(index, checkpoint_index), messages),
            proof_cid=proof_cid,
            encrypted=encrypted,
        )

    def _commit_entry(self, index: CheckpointIndex, entry: CheckpointEntry) -> None:
        logger = get_logger(__name__, trace_id=index.session_id)
        updated, replaced = extend_index(index, entry)
        if replaced:
            logger.warning(
                f"Checkpoint {entry.index} was already indexed; "
                f"replacing {index.checkpoints[-1].delta_cid} with {entry.delta_cid}"
            )
        try:
            self.index_store.save(sign_index(updated, self.signer))
        except (SessionVaultError, ValueError, OSError) as e:
            logger.error(f"Index update failed for checkpoint {entry.index}; orphan delta {entry.delta_cid}: {e}")
            self._record_orphan(index.session_id, entry.delta_cid)
            raise IndexConsistencyError(
                f"Delta {entry.delta_cid} uploaded but index update failed: {e}",
                delta_cid=entry.delta_cid,
            ) from e

    def _record_orphan(self, session_id: str, delta_cid: str) -> None:
        try:
            self.index_store.record_orphan(session_id, delta_cid, self.clock.now_ms())
        except SessionVaultError as e:
            get_logger(__name__, trace_id=session_id).error(
                f"Could not record orphan delta {delta_cid}; it will not be swept: {e}"
            )

    def _forget_orphan(self, session_id: str, delta_cid: str) -> None:
        try:
            self.index_store.discard_orphan(session_id, delta_cid)
        except SessionVaultError as e:
            # Still listed as an orphan; retention deletes it with the session
            get_logger(__name__, trace_id=session_id).warning(
                f"Could not clear orphan record for {delta_cid}: {e}"
            )
