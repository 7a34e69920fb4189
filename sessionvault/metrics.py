"""
Prometheus metrics for checkpoint publishing and recovery.

Environment Variables:
    SESSIONVAULT_METRICS_ENABLED: Enable metrics server (true/false) - default: false
    SESSIONVAULT_METRICS_PORT: HTTP port for /metrics endpoint - default: 9108

Usage:
    from sessionvault.metrics import init_metrics, track_publish

    init_metrics()
    with track_publish(mode="encrypted"):
        publisher.publish(...)
"""

import logging
import threading
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

PUBLISH_TOTAL: "Counter" = None  # type: ignore
PUBLISH_DURATION: "Histogram" = None  # type: ignore
STORAGE_RETRIES: "Counter" = None  # type: ignore
RECOVERY_TOTAL: "Counter" = None  # type: ignore
VERIFICATION_FAILURES: "Counter" = None  # type: ignore

_metrics_initialized = False
_metrics_lock = threading.Lock()


def init_metrics() -> None:
    """
    Initialize Prometheus metrics (idempotent, thread-safe).

    Until this is called every track_* helper is a no-op, so library users
    that never enable metrics do not touch the global registry.
    """
    global PUBLISH_TOTAL, PUBLISH_DURATION, STORAGE_RETRIES
    global RECOVERY_TOTAL, VERIFICATION_FAILURES, _metrics_initialized

    with _metrics_lock:
        if _metrics_initialized:
            return

        PUBLISH_TOTAL = Counter(
            "sessionvault_publish_total",
            "Checkpoint publish attempts",
            labelnames=["mode", "outcome"],
        )
        PUBLISH_DURATION = Histogram(
            "sessionvault_publish_duration_seconds",
            "Duration of checkpoint publish calls in seconds",
            labelnames=["mode"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )
        STORAGE_RETRIES = Counter(
            "sessionvault_storage_retries_total",
            "Storage upload retries after a transient failure",
        )
        RECOVERY_TOTAL = Counter(
            "sessionvault_recovery_total",
            "Recovery attempts by outcome",
            labelnames=["outcome"],
        )
        VERIFICATION_FAILURES = Counter(
            "sessionvault_verification_failures_total",
            "Recovery verification failures",
            labelnames=["reason"],
        )

        _metrics_initialized = True
        logger.info("Prometheus metrics initialized")


def start_metrics_server(enabled: bool, port: int) -> None:
    """
    Start Prometheus metrics HTTP server in a daemon thread.

    Example:
        start_metrics_server(enabled=True, port=9108)
        # curl http://localhost:9108/metrics
    """
    if not enabled:
        logger.info("Metrics server disabled")
        return

    init_metrics()
    start_http_server(port, addr="0.0.0.0")
    logger.info(f"Metrics server started on http://0.0.0.0:{port}/metrics")


@contextmanager
def track_publish(mode: str) -> Generator[None, None, None]:
    """
    Time a publish call and count its outcome.

    Args:
        mode: "plaintext" or "encrypted"
    """
    if PUBLISH_TOTAL is None:
        yield
        return

    with PUBLISH_DURATION.labels(mode=mode).time():
        try:
            yield
        except Exception:
            PUBLISH_TOTAL.labels(mode=mode, outcome="failure").inc()
            raise
    PUBLISH_TOTAL.labels(mode=mode, outcome="success").inc()


def track_storage_retry() -> None:
    if STORAGE_RETRIES is not None:
        STORAGE_RETRIES.inc()


def track_recovery(outcome: str) -> None:
    """outcome: success, empty, verification_failed, unavailable, error."""
    if RECOVERY_TOTAL is not None:
        RECOVERY_TOTAL.labels(outcome=outcome).inc()


def track_verification_failure(reason: str) -> None:
    if VERIFICATION_FAILURES is not None:
        VERIFICATION_FAILURES.labels(reason=reason).inc()
