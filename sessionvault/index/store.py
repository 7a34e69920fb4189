"""
Index storage in the host's private namespace.

Path convention: home/checkpoints/{lowercaseHostAddress}/{sessionId}/index.json

Deltas uploaded without a matching index entry are recorded next to it in
orphans.json so retention can still delete them.

Only the host reads and writes this path directly; clients reach it through
the discovery endpoint.
"""

import re
from typing import Dict, List, Optional

from ..core.errors import TransientStorageError
from ..storage.store import ContentStore
from .model import CheckpointIndex

CHECKPOINT_BASE_PATH = "home/checkpoints"
INDEX_FILENAME = "index.json"
ORPHANS_FILENAME = "orphans.json"

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_.\-]{1,128}$")


def validate_session_id(session_id: str) -> str:
    """
    Ensure session_id is a single safe path segment.

    Raises:
        ValueError: If session_id is empty, too long, or contains separators
    """
    if not isinstance(session_id, str) or not _SESSION_ID_RE.match(session_id) or session_id in (".", ".."):
        raise ValueError(f"Invalid session id: {session_id!r}")
    return session_id


def index_path(host_address: str, session_id: str) -> str:
    return f"{CHECKPOINT_BASE_PATH}/{host_address.lower()}/{validate_session_id(session_id)}/{INDEX_FILENAME}"


def orphans_path(host_address: str, session_id: str) -> str:
    return f"{CHECKPOINT_BASE_PATH}/{host_address.lower()}/{validate_session_id(session_id)}/{ORPHANS_FILENAME}"


class IndexStore:
    """
    Load and save checkpoint indexes for one host.

    The index is re-read from storage at the start of every publish, so no
    in-process copy is cached here.
    """

    def __init__(self, store: ContentStore, host_address: str):
        self.store = store
        self.host_address = host_address.lower()

    def path_for(self, session_id: str) -> str:
        return index_path(self.host_address, session_id)

    def load(self, session_id: str) -> Optional[CheckpointIndex]:
        """
        Load the index for a session.

        Returns:
            CheckpointIndex, or None when no checkpoints exist yet

        Raises:
            TransientStorageError: If the read fails or the stored index is malformed
        """
        data = self.store.read_path(self.path_for(session_id))
        if data is None:
            return None
        try:
            return CheckpointIndex.from_dict(data)
        except ValueError as e:
            raise TransientStorageError(f"Stored index for session {session_id} is malformed: {e}") from e

    def save(self, index: CheckpointIndex) -> None:
        if index.host_address != self.host_address:
            raise ValueError(f"Index belongs to {index.host_address}, store is for {self.host_address}")
        self.store.write_path(self.path_for(index.session_id), index.to_dict())

    def delete(self, session_id: str) -> None:
        self.store.delete_path(self.path_for(session_id))

    def orphans_path(self, session_id: str) -> str:
        return orphans_path(self.host_address, session_id)

    def load_orphans(self, session_id: str) -> Dict[str, int]:
        """
        Deltas uploaded for a session whose index update failed.

        Returns:
            Mapping of delta_cid to the time (ms) the orphan was recorded

        Raises:
            TransientStorageError: If the read fails or the record is malformed
        """
        data = self.store.read_path(self.orphans_path(session_id))
        if data is None:
            return {}
        orphans = data.get("orphans") if isinstance(data, dict) else None
        if not isinstance(orphans, dict) or not all(
            isinstance(cid, str) and isinstance(ts, int) for cid, ts in orphans.items()
        ):
            raise TransientStorageError(f"Stored orphan record for session {session_id} is malformed")
        return dict(orphans)

    def record_orphan(self, session_id: str, delta_cid: str, timestamp: int) -> None:
        """Remember an uploaded delta that no index entry references."""
        orphans = self.load_orphans(session_id)
        orphans[delta_cid] = timestamp
        self._save_orphans(session_id, orphans)

    def discard_orphan(self, session_id: str, delta_cid: str) -> None:
        """Forget an orphan once an index entry references it."""
        orphans = self.load_orphans(session_id)
        if orphans.pop(delta_cid, None) is None:
            return
        if orphans:
            self._save_orphans(session_id, orphans)
        else:
            self.delete_orphans(session_id)

    def delete_orphans(self, session_id: str) -> None:
        self.store.delete_path(self.orphans_path(session_id))

    def _save_orphans(self, session_id: str, orphans: Dict[str, int]) -> None:
        self.store.write_path(
            self.orphans_path(session_id), {"sessionId": session_id, "orphans": orphans}
        )

    def list_sessions(self) -> List[str]:
        """Session ids with an index or orphan record under this host's namespace."""
        prefix = f"{CHECKPOINT_BASE_PATH}/{self.host_address}"
        sessions = set()
        for path in self.store.list_paths(prefix):
            parts = path.split("/")
            if len(parts) == 5 and parts[-1] in (INDEX_FILENAME, ORPHANS_FILENAME):
                sessions.add(parts[3])
        return sorted(sessions)
