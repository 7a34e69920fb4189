"""
ContentStore abstract interface.

Defines the contract consumed from the storage network:
- immutable objects addressed by content identifier (put/get/delete)
- a host-private mutable namespace addressed by path (index files)
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.ids import object_id

JsonObject = Dict[str, Any]


def normalize_path(path: str) -> str:
    """
    Normalize a namespace path and reject traversal.

    Raises:
        ValueError: If the path is empty, absolute, or escapes the namespace
    """
    parts = [p for p in path.strip().split("/") if p]
    if not parts or path.startswith("/"):
        raise ValueError(f"Invalid storage path: {path!r}")
    if any(p in (".", "..") for p in parts):
        raise ValueError(f"Storage path may not contain '.' or '..': {path!r}")
    return "/".join(parts)


class ContentStore(ABC):
    """
    Abstract storage interface.

    All implementations must guarantee:
    - put() returns only after the object is durably stored
    - the same object always yields the same identifier
    - get() returns None for unknown identifiers (not an error)
    - failures surface as TransientStorageError
    """

    def put(self, obj: JsonObject) -> str:
        """
        Store a JSON object and return its content identifier.

        Raises:
            TransientStorageError: If the write fails
        """
        cid = object_id(obj)
        self._put_object(cid, obj)
        return cid

    @abstractmethod
    def _put_object(self, cid: str, obj: JsonObject) -> None:
        ...

    @abstractmethod
    def get(self, cid: str) -> Optional[JsonObject]:
        """
        Fetch an object by content identifier.

        Returns:
            The object, or None if it does not exist

        Raises:
            TransientStorageError: If the read fails
        """
        ...

    @abstractmethod
    def delete(self, cid: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""
        ...

    @abstractmethod
    def write_path(self, path: str, obj: JsonObject) -> None:
        """Write (replace) the object stored at a namespace path."""
        ...

    @abstractmethod
    def read_path(self, path: str) -> Optional[JsonObject]:
        """Read the object at a namespace path, or None if absent."""
        ...

    @abstractmethod
    def delete_path(self, path: str) -> None:
        """Delete the object at a namespace path. Missing is not an error."""
        ...

    @abstractmethod
    def list_paths(self, prefix: str) -> List[str]:
        """List namespace paths under prefix, sorted."""
        ...
