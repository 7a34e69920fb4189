"""
Bounded upload retry with linear backoff.
"""

import logging
import time
from typing import Callable, TypeVar

from ..core.errors import TransientStorageError
from ..metrics import track_storage_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.5


def upload_with_retry(
    upload: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call upload() until it succeeds or max_attempts is exhausted.

    Only TransientStorageError is retried; the wait before attempt n+1 is
    backoff_seconds * n.

    Raises:
        TransientStorageError: The last failure, once attempts run out
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return upload()
        except TransientStorageError as e:
            if attempt == max_attempts:
                raise TransientStorageError(
                    f"Upload failed after {max_attempts} attempts: {e}"
                ) from e
            delay = backoff_seconds * attempt
            logger.warning(f"Upload attempt {attempt}/{max_attempts} failed ({e}), retrying in {delay}s")
            track_storage_retry()
            sleep(delay)

    raise AssertionError("unreachable")
