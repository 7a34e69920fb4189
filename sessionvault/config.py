"""
Runtime configuration from environment variables.

Environment Variables:
    SESSIONVAULT_STORAGE: Storage backend (file, s3) - default: file
    SESSIONVAULT_STORAGE_ROOT: Root directory for file storage - default: ~/.sessionvault/store
    SESSIONVAULT_S3_BUCKET / SESSIONVAULT_S3_PREFIX / SESSIONVAULT_S3_ENDPOINT / SESSIONVAULT_S3_REGION
    SESSIONVAULT_HOST_KEY_PATH: Host secp256k1 PEM key - default: ~/.sessionvault/keys/host_secp256k1.pem
    SESSIONVAULT_UPLOAD_ATTEMPTS: Upload attempts per publish - default: 3
    SESSIONVAULT_UPLOAD_BACKOFF: Linear backoff step in seconds - default: 0.5
    SESSIONVAULT_RECOVERY_WORKERS: Concurrent fetches per recovery - default: 4
    SESSIONVAULT_RECOVERY_TIMEOUT: Overall recovery timeout in seconds (0 = none) - default: 30
    SESSIONVAULT_RETENTION_DAYS: Post-session retention - default: 7
    SESSIONVAULT_DISCOVERY_HOST / SESSIONVAULT_DISCOVERY_PORT - default: 0.0.0.0 / 8083
    SESSIONVAULT_METRICS_ENABLED / SESSIONVAULT_METRICS_PORT - default: false / 9108
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .storage import ContentStore, FileContentStore, S3ContentStore

DAY_MS = 24 * 60 * 60 * 1000


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    val = env.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {val!r}") from e


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    val = env.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {val!r}") from e


@dataclass(frozen=True)
class Settings:
    storage_backend: str = "file"
    storage_root: str = str(Path.home() / ".sessionvault" / "store")
    s3_bucket: Optional[str] = None
    s3_prefix: str = "sessionvault"
    s3_endpoint: Optional[str] = None
    s3_region: str = "us-east-1"
    host_key_path: str = str(Path.home() / ".sessionvault" / "keys" / "host_secp256k1.pem")
    upload_attempts: int = 3
    upload_backoff: float = 0.5
    recovery_workers: int = 4
    recovery_timeout: float = 30.0
    retention_days: int = 7
    discovery_host: str = "0.0.0.0"
    discovery_port: int = 8083
    metrics_enabled: bool = False
    metrics_port: int = 9108

    @property
    def retention_ms(self) -> int:
        return self.retention_days * DAY_MS

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        defaults = cls()
        settings = cls(
            storage_backend=env.get("SESSIONVAULT_STORAGE", defaults.storage_backend).lower(),
            storage_root=env.get("SESSIONVAULT_STORAGE_ROOT", defaults.storage_root),
            s3_bucket=env.get("SESSIONVAULT_S3_BUCKET") or None,
            s3_prefix=env.get("SESSIONVAULT_S3_PREFIX", defaults.s3_prefix),
            s3_endpoint=env.get("SESSIONVAULT_S3_ENDPOINT") or None,
            s3_region=env.get("SESSIONVAULT_S3_REGION", defaults.s3_region),
            host_key_path=env.get("SESSIONVAULT_HOST_KEY_PATH", defaults.host_key_path),
            upload_attempts=_env_int(env, "SESSIONVAULT_UPLOAD_ATTEMPTS", defaults.upload_attempts),
            upload_backoff=_env_float(env, "SESSIONVAULT_UPLOAD_BACKOFF", defaults.upload_backoff),
            recovery_workers=_env_int(env, "SESSIONVAULT_RECOVERY_WORKERS", defaults.recovery_workers),
            recovery_timeout=_env_float(env, "SESSIONVAULT_RECOVERY_TIMEOUT", defaults.recovery_timeout),
            retention_days=_env_int(env, "SESSIONVAULT_RETENTION_DAYS", defaults.retention_days),
            discovery_host=env.get("SESSIONVAULT_DISCOVERY_HOST", defaults.discovery_host),
            discovery_port=_env_int(env, "SESSIONVAULT_DISCOVERY_PORT", defaults.discovery_port),
            metrics_enabled=env.get("SESSIONVAULT_METRICS_ENABLED", "false").lower() == "true",
            metrics_port=_env_int(env, "SESSIONVAULT_METRICS_PORT", defaults.metrics_port),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.storage_backend not in ("file", "s3"):
            raise ValueError(f"Unsupported storage backend: {self.storage_backend}")
        if self.storage_backend == "s3" and not self.s3_bucket:
            raise ValueError("SESSIONVAULT_S3_BUCKET is required for the s3 backend")
        if self.upload_attempts < 1:
            raise ValueError("SESSIONVAULT_UPLOAD_ATTEMPTS must be at least 1")
        if self.recovery_workers < 1:
            raise ValueError("SESSIONVAULT_RECOVERY_WORKERS must be at least 1")
        if self.retention_days < 0:
            raise ValueError("SESSIONVAULT_RETENTION_DAYS must not be negative")


def build_store(settings: Settings) -> ContentStore:
    """Instantiate the configured storage backend."""
    if settings.storage_backend == "s3":
        return S3ContentStore(
            bucket=settings.s3_bucket,
            prefix=settings.s3_prefix,
            endpoint_url=settings.s3_endpoint,
            region=settings.s3_region,
        )
    return FileContentStore(settings.storage_root)
