"""
Checkpoint publishing: delta upload with retry and index maintenance.
"""

from .publisher import CheckpointPublisher, validate_publish_args
from .retry import upload_with_retry

__all__ = [
    "CheckpointPublisher",
    "validate_publish_args",
    "upload_with_retry",
]
