"""
Serve command: run the discovery endpoint
"""

from typing import Optional

import typer
import uvicorn

from sessionvault.crypto.signer import ensure_host_key
from sessionvault.discovery.app import create_app
from sessionvault.discovery.service import DiscoveryService
from sessionvault.index.store import IndexStore
from sessionvault.logging_config import setup_logging
from sessionvault.metrics import start_metrics_server

from ._context import load_settings, open_store


def serve_command(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: SESSIONVAULT_DISCOVERY_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: SESSIONVAULT_DISCOVERY_PORT)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level override"),
):
    """
    Serve GET /checkpoints/{session_id} for this host.

    Examples:
        sessionvault serve
        sessionvault serve --port 8083
    """
    settings = load_settings()
    setup_logging(level=log_level)
    start_metrics_server(settings.metrics_enabled, settings.metrics_port)

    signer = ensure_host_key(settings.host_key_path)
    service = DiscoveryService(IndexStore(open_store(settings), signer.address))

    uvicorn.run(
        create_app(service),
        host=host or settings.discovery_host,
        port=port or settings.discovery_port,
        log_config=None,
    )
