"""
Post-session retention of checkpoint data.

Checkpoints are kept for a retention window after the session's last
checkpoint (default 7 days) and then deleted. A cancelled session is deleted
immediately.
"""

import logging
from typing import List, Optional

from .core.clock import SystemClock
from .core.errors import SessionVaultError
from .index.store import IndexStore
from .publish.publisher import CheckpointPublisher
from .storage.store import ContentStore

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_MS = 7 * 24 * 60 * 60 * 1000


class RetentionManager:
    """
    Deletes deltas and indexes for finished sessions.

    Args:
        store: Content store holding the deltas
        index_store: Index store for the host
        retention_ms: Age of the newest checkpoint after which a session is swept
        clock: Time source (default: SystemClock)
        publisher: When given, deletions hold its per-session lock so they
            never interleave with an in-flight publish
    """

    def __init__(
        self,
        store: ContentStore,
        index_store: IndexStore,
        retention_ms: int = DEFAULT_RETENTION_MS,
        clock=None,
        publisher: Optional[CheckpointPublisher] = None,
    ):
        if retention_ms < 0:
            raise ValueError("retention_ms must not be negative")
        self.store = store
        self.index_store = index_store
        self.retention_ms = retention_ms
        self.clock = clock or SystemClock()
        self.publisher = publisher

    def cancel_session(self, session_id: str) -> bool:
        """
        Delete a session's deltas, orphaned deltas included, and its index now.

        Returns:
            True if an index or orphan record existed and was deleted
        """
        if self.publisher is not None:
            with self.publisher.session_lock(session_id):
                return self._delete_session(session_id)
        return self._delete_session(session_id)

    def sweep(self) -> List[str]:
        """
        Delete every session whose newest checkpoint or orphan record is older
        than retention_ms.

        A session that fails to delete is logged and left for the next sweep.

        Returns:
            Deleted session ids
        """
        now = self.clock.now_ms()
        deleted = []
        for session_id in self.index_store.list_sessions():
            try:
                index = self.index_store.load(session_id)
                orphans = self.index_store.load_orphans(session_id)
            except SessionVaultError as e:
                logger.warning(f"Skipping session {session_id} during sweep: {e}")
                continue
            stamps = list(orphans.values())
            if index is not None and index.last is not None:
                stamps.append(index.last.timestamp)
            if stamps and now - max(stamps) < self.retention_ms:
                continue
            try:
                if self.cancel_session(session_id):
                    deleted.append(session_id)
            except SessionVaultError as e:
                logger.warning(f"Failed to delete expired session {session_id}: {e}")

        if deleted:
            logger.info(f"Retention sweep deleted {len(deleted)} sessions")
        return deleted

    def _delete_session(self, session_id: str) -> bool:
        index = self.index_store.load(session_id)
        orphans = self.index_store.load_orphans(session_id)
        if index is None and not orphans:
            return False
        indexed = [entry.delta_cid for entry in index.checkpoints] if index is not None else []
        for cid in indexed + [cid for cid in orphans if cid not in indexed]:
            self.store.delete(cid)
        # Records go last so an interrupted delete is retried by the next sweep
        self.index_store.delete_orphans(session_id)
        self.index_store.delete(session_id)
        logger.info(
            f"Deleted {len(indexed)} checkpoints and {len(orphans)} orphan deltas for session {session_id}"
        )
        return True
