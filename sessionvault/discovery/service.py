"""
Discovery service: read-only view of a host's checkpoint indexes.
"""

from ..core.errors import NotFoundError
from ..index.model import CheckpointIndex
from ..index.store import IndexStore


class DiscoveryService:
    """
    Answers "which checkpoints exist for this session".

    Pure read: never creates or modifies an index.
    """

    def __init__(self, index_store: IndexStore):
        self.index_store = index_store

    @property
    def host_address(self) -> str:
        return self.index_store.host_address

    def get_checkpoints(self, session_id: str) -> CheckpointIndex:
        """
        Return the signed index for session_id.

        Raises:
            ValueError: If session_id is not a valid identifier
            NotFoundError: If the session has no checkpoints
            TransientStorageError: If the index cannot be read
        """
        index = self.index_store.load(session_id)
        if index is None or not index.checkpoints:
            raise NotFoundError(f"No checkpoints found for session {session_id}")
        return index
