"""
File-based content store.

Layout under root:
- blobs/{cid}.json: immutable content-addressed objects
- {path}: mutable namespace (e.g. home/checkpoints/.../index.json)

Writes go to a temp file, are fsynced, then atomically renamed into place.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from ..core.canonical import canonical_json_bytes
from ..core.errors import TransientStorageError
from ..core.ids import is_content_id
from .store import ContentStore, JsonObject, normalize_path


class FileContentStore(ContentStore):
    """
    Local directory implementation of ContentStore.

    Suitable for a single host process and for tests; objects are canonical
    JSON so identifiers stay stable across restarts.
    """

    def __init__(self, root: str) -> None:
        self.root = Path(root)
        self.blob_dir = self.root / "blobs"
        try:
            self.blob_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TransientStorageError(f"Cannot create store at {root}: {e}") from e

    def _blob_path(self, cid: str) -> Path:
        if not is_content_id(cid):
            raise ValueError(f"Invalid content identifier: {cid!r}")
        return self.blob_dir / f"{cid}.json"

    def _ns_path(self, path: str) -> Path:
        return self.root / normalize_path(path)

    def _atomic_write(self, target: Path, data: bytes) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(target.parent), prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, target)
            except BaseException:
                if os.path.exists(tmp):
                    os.remove(tmp)
                raise
        except OSError as e:
            raise TransientStorageError(f"Write failed for {target}: {e}") from e

    def _read(self, target: Path) -> Optional[JsonObject]:
        try:
            with open(target, "rb") as f:
                return json.loads(f.read().decode("utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise TransientStorageError(f"Read failed for {target}: {e}") from e

    def _remove(self, target: Path) -> None:
        try:
            os.remove(target)
        except FileNotFoundError:
            return
        except OSError as e:
            raise TransientStorageError(f"Delete failed for {target}: {e}") from e

    def _put_object(self, cid: str, obj: JsonObject) -> None:
        target = self._blob_path(cid)
        if target.exists():
            return  # content-addressed: identical object already stored
        self._atomic_write(target, canonical_json_bytes(obj))

    def get(self, cid: str) -> Optional[JsonObject]:
        return self._read(self._blob_path(cid))

    def delete(self, cid: str) -> None:
        self._remove(self._blob_path(cid))

    def write_path(self, path: str, obj: JsonObject) -> None:
        self._atomic_write(self._ns_path(path), canonical_json_bytes(obj))

    def read_path(self, path: str) -> Optional[JsonObject]:
        return self._read(self._ns_path(path))

    def delete_path(self, path: str) -> None:
        self._remove(self._ns_path(path))

    def list_paths(self, prefix: str) -> List[str]:
        base = self._ns_path(prefix)
        if not base.exists():
            return []
        paths = []
        for p in base.rglob("*"):
            if p.is_file() and not p.name.startswith(".tmp-"):
                paths.append(p.relative_to(self.root).as_posix())
        return sorted(paths)
