"""
Storage adapters for the content-addressed store.

This module provides:
- ContentStore: Abstract interface (put/get/delete + host namespace paths)
- FileContentStore: Local directory storage
- S3ContentStore: S3-compatible object storage
"""

from .store import ContentStore, JsonObject, normalize_path
from .file_store import FileContentStore
from .s3_store import S3ContentStore

__all__ = [
    "ContentStore",
    "JsonObject",
    "normalize_path",
    "FileContentStore",
    "S3ContentStore",
]
