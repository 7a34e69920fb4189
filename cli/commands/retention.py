"""
Retention commands: sweep, cancel
"""

import json
from typing import Optional

import typer
from rich.console import Console

from sessionvault.core.errors import SessionVaultError
from sessionvault.config import DAY_MS
from sessionvault.retention import RetentionManager

from ._context import fail, load_settings, open_index_store

app = typer.Typer()
console = Console()


def _manager(days: Optional[int], host_address: Optional[str]) -> RetentionManager:
    settings = load_settings()
    index_store = open_index_store(settings, host_address)
    retention_ms = days * DAY_MS if days is not None else settings.retention_ms
    return RetentionManager(index_store.store, index_store, retention_ms=retention_ms)


@app.command()
def sweep(
    days: Optional[int] = typer.Option(None, "--days", help="Retention window (default: SESSIONVAULT_RETENTION_DAYS)"),
    host_address: Optional[str] = typer.Option(None, "--host-address", help="Index owner"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Delete sessions whose last checkpoint is older than the retention window.

    Examples:
        sessionvault retention sweep
        sessionvault retention sweep --days 1
    """
    try:
        deleted = _manager(days, host_address).sweep()
    except (SessionVaultError, ValueError) as e:
        fail(str(e), json_output)

    if json_output:
        print(json.dumps({"deleted": deleted, "count": len(deleted)}, indent=2))
    elif deleted:
        console.print(f"[green]✓ Deleted {len(deleted)} sessions[/green]")
        for session_id in deleted:
            console.print(f"  {session_id}")
    else:
        console.print("[yellow]Nothing to delete[/yellow]")


@app.command()
def cancel(
    session_id: str = typer.Argument(..., help="Session id"),
    host_address: Optional[str] = typer.Option(None, "--host-address", help="Index owner"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Delete a cancelled session's checkpoints immediately."""
    try:
        deleted = _manager(None, host_address).cancel_session(session_id)
    except (SessionVaultError, ValueError) as e:
        fail(str(e), json_output)

    if json_output:
        print(json.dumps({"session_id": session_id, "deleted": deleted}, indent=2))
    elif deleted:
        console.print(f"[green]✓ Deleted checkpoints for {session_id}[/green]")
    else:
        console.print(f"[yellow]No checkpoints found for {session_id}[/yellow]")
