"""
Index commands: show
"""

import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from sessionvault.core.errors import SessionVaultError, VerificationError
from sessionvault.index.integrity import verify_index_signatures

from ._context import fail, load_settings, open_index_store

app = typer.Typer()
console = Console()


@app.command()
def show(
    session_id: str = typer.Argument(..., help="Session id"),
    host_address: Optional[str] = typer.Option(
        None, "--host-address", help="Index owner (default: configured host key)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show a session's checkpoint index and check its signatures.

    Examples:
        sessionvault index show session-42
        sessionvault index show session-42 --json
    """
    settings = load_settings()
    try:
        index = open_index_store(settings, host_address).load(session_id)
    except (SessionVaultError, ValueError) as e:
        fail(str(e), json_output)

    if index is None:
        fail(f"No checkpoints found for session {session_id}", json_output, code=1)

    try:
        verify_index_signatures(index)
        signatures_ok = True
    except VerificationError:
        signatures_ok = False

    if json_output:
        print(json.dumps({"index": index.to_dict(), "signatures_valid": signatures_ok}, indent=2))
        return

    table = Table(title=f"Checkpoints: {session_id} ({index.host_address})")
    table.add_column("Index", style="cyan")
    table.add_column("Tokens", style="green")
    table.add_column("Delta CID", style="yellow")
    table.add_column("Proof hash (prefix)", style="dim")
    table.add_column("Encrypted")

    for entry in index.checkpoints:
        table.add_row(
            str(entry.index),
            f"{entry.token_range[0]}-{entry.token_range[1]}",
            entry.delta_cid,
            entry.proof_hash[:18] + "...",
            "yes" if entry.encrypted else "no",
        )
    console.print(table)

    if signatures_ok:
        console.print("[green]✓ Index signatures valid[/green]")
    else:
        console.print("[red]✗ Index signatures invalid[/red]")
        raise typer.Exit(1)
