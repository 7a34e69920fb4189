"""
Exception types for checkpoint publishing and recovery.
"""

from typing import Optional


class SessionVaultError(Exception):
    """Base class for all sessionvault errors."""
    pass


class TransientStorageError(SessionVaultError):
    """Raised when a storage upload or read fails (retryable, bounded)."""
    pass


class IndexConsistencyError(SessionVaultError):
    """
    Raised when the index update fails after the delta upload succeeded.

    The uploaded delta is an orphan until the index step is retried; the
    interval must not be settled until then.
    """

    def __init__(self, message: str, delta_cid: Optional[str] = None):
        super().__init__(message)
        self.delta_cid = delta_cid


class VerificationError(SessionVaultError):
    """Raised on signature mismatch, ciphertext authentication failure, or proof-hash mismatch."""
    pass


class NotFoundError(SessionVaultError):
    """Raised when no checkpoints exist for a session (not a fault)."""
    pass


class EncryptionError(SessionVaultError):
    """Raised when a recipient key is malformed or the cipher fails during publish."""
    pass


class CheckpointOrderError(SessionVaultError, ValueError):
    """Raised when a checkpoint would break index or token-range contiguity."""
    pass


class RecoveryUnavailableError(SessionVaultError):
    """Raised when recovery does not finish within its timeout."""
    pass
