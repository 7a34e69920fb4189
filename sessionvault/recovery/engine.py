"""
Client-side recovery: discover, verify, decrypt, and merge checkpoints.

Verification order:
1. Index: session id, host address (when expected), both index signatures,
   entry contiguity
2. Per entry (concurrently): ledger proof hash, fetch delta, signatures
   (ciphertext then inner messages for encrypted deltas), delta fields
   against the entry
3. Content hash chain across all recovered deltas

Recovery is all-or-nothing: any failure raises and no messages are returned.
"""

import concurrent.futures
from dataclasses import dataclass, field
from typing import List, Optional, Union

from cryptography.hazmat.primitives.asymmetric import ec

from ..core.errors import (
    CheckpointOrderError,
    EncryptionError,
    RecoveryUnavailableError,
    SessionVaultError,
    TransientStorageError,
    VerificationError,
)
from ..core.ids import is_content_id
from ..crypto.envelope import RecoveryKeyPair, load_private_key
from ..delta.codec import decrypt_delta, verify_ciphertext_signature, verify_messages_signature
from ..delta.model import CheckpointDelta, EncryptedCheckpointDelta, Message, parse_wire_delta
from ..discovery.client import DiscoveryClient, HttpDiscoveryClient
from ..index.integrity import check_entry_order, verify_content_chain, verify_index_signatures
from ..index.model import CheckpointEntry, CheckpointIndex
from ..ledger.ledger import ProofLedger, compare_proof_hashes
from ..logging_config import get_logger
from ..metrics import track_recovery, track_verification_failure
from ..storage.store import ContentStore
from .merge import merge_deltas

PrivateKeyLike = Union[str, RecoveryKeyPair, ec.EllipticCurvePrivateKey]


@dataclass(frozen=True)
class RecoveredConversation:
    """
    Result of a successful recovery.

    Fields:
        messages: Merged conversation
        token_count: end_token of the last checkpoint (0 when empty)
        checkpoints: Verified index entries, ascending
    """
    messages: List[Message] = field(default_factory=list)
    token_count: int = 0
    checkpoints: List[CheckpointEntry] = field(default_factory=list)


def _fail(reason: str, message: str) -> VerificationError:
    track_verification_failure(reason)
    return VerificationError(message)


def _resolve_private_key(key: Optional[PrivateKeyLike]) -> Optional[ec.EllipticCurvePrivateKey]:
    if key is None or isinstance(key, ec.EllipticCurvePrivateKey):
        return key
    if isinstance(key, RecoveryKeyPair):
        return key.private_key
    try:
        return load_private_key(key)
    except EncryptionError as e:
        raise VerificationError(f"Invalid recovery private key: {e}") from e


class RecoveryEngine:
    """
    Rebuilds a conversation from a host's published checkpoints.

    Args:
        discovery: Client for the host's discovery endpoint
        store: Content store holding the deltas
        ledger: Settled proof hashes
        max_workers: Concurrent delta fetch/verify workers
    """

    def __init__(
        self,
        discovery: DiscoveryClient,
        store: ContentStore,
        ledger: ProofLedger,
        max_workers: int = 4,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.discovery = discovery
        self.store = store
        self.ledger = ledger
        self.max_workers = max_workers

    @classmethod
    def for_endpoint(
        cls,
        host_base_endpoint: str,
        store: ContentStore,
        ledger: ProofLedger,
        max_workers: int = 4,
        request_timeout: float = 10.0,
    ) -> "RecoveryEngine":
        """Engine that discovers indexes through a host's HTTP endpoint."""
        return cls(HttpDiscoveryClient(host_base_endpoint, timeout=request_timeout), store, ledger, max_workers)

    def recover(
        self,
        session_id: str,
        user_private_key: Optional[PrivateKeyLike] = None,
        expected_host_address: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RecoveredConversation:
        """
        Recover a session's conversation.

        Args:
            session_id: Session to recover
            user_private_key: Recovery key (hex, RecoveryKeyPair or EC key);
                required when any delta is encrypted
            expected_host_address: Host the client negotiated with; the index
                must belong to it
            timeout: Overall seconds for the per-entry phase (None = no limit)

        Returns:
            RecoveredConversation; empty when the session has no checkpoints

        Raises:
            VerificationError: On any authenticity, integrity, or ledger mismatch
            TransientStorageError: If discovery or a delta fetch fails
            RecoveryUnavailableError: If the timeout elapses
        """
        logger = get_logger(__name__, trace_id=session_id)
        try:
            result = self._recover(session_id, user_private_key, expected_host_address, timeout)
        except VerificationError as e:
            logger.error(f"Recovery verification failed: {e}")
            track_recovery("verification_failed")
            raise
        except RecoveryUnavailableError as e:
            logger.error(f"Recovery unavailable: {e}")
            track_recovery("unavailable")
            raise
        except SessionVaultError as e:
            logger.error(f"Recovery failed: {e}")
            track_recovery("error")
            raise

        if result.checkpoints:
            logger.info(
                f"Recovered {len(result.messages)} messages from "
                f"{len(result.checkpoints)} checkpoints ({result.token_count} tokens)"
            )
            track_recovery("success")
        else:
            logger.info("No checkpoints published for session")
            track_recovery("empty")
        return result

    def _recover(
        self,
        session_id: str,
        user_private_key: Optional[PrivateKeyLike],
        expected_host_address: Optional[str],
        timeout: Optional[float],
    ) -> RecoveredConversation:
        index = self.discovery.get_index(session_id)
        if index is None or not index.checkpoints:
            return RecoveredConversation()

        self._verify_index(session_id, index, expected_host_address)
        private_key = _resolve_private_key(user_private_key)
        entries = list(index.checkpoints)

        deltas = self._verify_entries(session_id, index.host_address, entries, private_key, timeout)

        try:
            verify_content_chain(entries, [d.messages for d in deltas])
        except VerificationError as e:
            raise _fail("content_hash", str(e)) from e

        messages, token_count = merge_deltas(deltas)
        return RecoveredConversation(messages=messages, token_count=token_count, checkpoints=entries)

    def _verify_index(
        self, session_id: str, index: CheckpointIndex, expected_host_address: Optional[str]
    ) -> None:
        if index.session_id != session_id:
            raise _fail(
                "session_id",
                f"Index is for session {index.session_id}, requested {session_id}",
            )
        if expected_host_address and index.host_address != expected_host_address.lower():
            raise _fail(
                "host_address",
                f"Index host {index.host_address} does not match expected {expected_host_address.lower()}",
            )
        try:
            verify_index_signatures(index)
        except VerificationError as e:
            raise _fail("index_signature", str(e)) from e
        try:
            check_entry_order(index.checkpoints)
        except CheckpointOrderError as e:
            raise _fail("index_order", f"Index entries are not contiguous: {e}") from e

    def _verify_entries(
        self,
        session_id: str,
        host_address: str,
        entries: List[CheckpointEntry],
        private_key: Optional[ec.EllipticCurvePrivateKey],
        timeout: Optional[float],
    ) -> List[CheckpointDelta]:
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers)
        timed_out = False
        try:
            futures = [
                executor.submit(self._verify_entry, session_id, host_address, entry, private_key)
                for entry in entries
            ]
            _, not_done = concurrent.futures.wait(futures, timeout=timeout)
            if not_done:
                timed_out = True
                for f in not_done:
                    f.cancel()
                raise RecoveryUnavailableError(
                    f"Recovery of session {session_id} did not finish within {timeout}s "
                    f"({len(not_done)} of {len(entries)} checkpoints pending)"
                )
            # Results come back in entry order; the first failure wins
            return [f.result() for f in futures]
        finally:
            executor.shutdown(wait=not timed_out)

    def _verify_entry(
        self,
        session_id: str,
        host_address: str,
        entry: CheckpointEntry,
        private_key: Optional[ec.EllipticCurvePrivateKey],
    ) -> CheckpointDelta:
        settled = self.ledger.get_proof_hash(session_id, entry.index)
        if settled is None or not compare_proof_hashes(settled, entry.proof_hash):
            raise _fail(
                "proof_hash",
                f"Checkpoint {entry.index} proof hash {entry.proof_hash} "
                f"does not match ledger value {settled}",
            )

        if not is_content_id(entry.delta_cid):
            raise _fail(
                "malformed_delta",
                f"Checkpoint {entry.index} has an invalid delta identifier {entry.delta_cid!r}",
            )
        data = self.store.get(entry.delta_cid)
        if data is None:
            raise TransientStorageError(f"Delta {entry.delta_cid} for checkpoint {entry.index} not found")

        try:
            wire = parse_wire_delta(data)
        except ValueError as e:
            raise _fail("malformed_delta", f"Checkpoint {entry.index} delta is malformed: {e}") from e

        if isinstance(wire, EncryptedCheckpointDelta):
            delta = self._open_encrypted(entry, wire, host_address, private_key)
        else:
            delta = wire

        if not verify_messages_signature(delta.messages, delta.host_signature, host_address):
            raise _fail("delta_signature", f"Checkpoint {entry.index} messages signature is invalid")

        if (
            delta.session_id != session_id
            or delta.checkpoint_index != entry.index
            or not compare_proof_hashes(delta.proof_hash, entry.proof_hash)
            or (delta.start_token, delta.end_token) != tuple(entry.token_range)
        ):
            raise _fail("delta_mismatch", f"Checkpoint {entry.index} delta does not match its index entry")
        return delta

    def _open_encrypted(
        self,
        entry: CheckpointEntry,
        wire: EncryptedCheckpointDelta,
        host_address: str,
        private_key: Optional[ec.EllipticCurvePrivateKey],
    ) -> CheckpointDelta:
        if not verify_ciphertext_signature(wire, host_address):
            raise _fail("ciphertext_signature", f"Checkpoint {entry.index} ciphertext signature is invalid")
        if private_key is None:
            raise _fail("missing_key", f"Checkpoint {entry.index} is encrypted and no recovery key was given")
        try:
            return decrypt_delta(wire, private_key)
        except VerificationError as e:
            raise _fail("decryption", f"Checkpoint {entry.index} could not be decrypted: {e}") from e
