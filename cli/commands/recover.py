"""
Recover command: rebuild and verify a conversation from checkpoints
"""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from sessionvault.core.errors import SessionVaultError, VerificationError
from sessionvault.discovery.client import DiscoveryClient, HttpDiscoveryClient, LocalDiscoveryClient
from sessionvault.discovery.service import DiscoveryService
from sessionvault.ledger.ledger import InMemoryProofLedger
from sessionvault.recovery.engine import RecoveryEngine

from ._context import fail, load_settings, open_index_store, open_store

console = Console()


def load_ledger_file(path: str, session_id: str) -> InMemoryProofLedger:
    """
    Build a ledger from a JSON file of settled proofs.

    Format: {"0": "0x<proof hash>", "1": "0x...", ...} keyed by checkpoint index.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Ledger file must map checkpoint index to proof hash")
    ledger = InMemoryProofLedger()
    for key, proof_hash in data.items():
        ledger.submit_proof(session_id, int(key), proof_hash)
    return ledger


def recover_command(
    session_id: str = typer.Argument(..., help="Session id"),
    ledger_path: str = typer.Option(..., "--ledger", help="JSON file of settled proof hashes"),
    private_key: Optional[str] = typer.Option(
        None, "--key", "-k", help="Recovery private key (hex) for encrypted checkpoints"
    ),
    host_address: Optional[str] = typer.Option(
        None, "--host-address", help="Expected host address"
    ),
    url: Optional[str] = typer.Option(
        None, "--url", help="Discovery endpoint base URL (default: read local storage)"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Recovery timeout in seconds"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Recover a conversation and verify it against the ledger.

    Examples:
        sessionvault recover session-42 --ledger proofs.json
        sessionvault recover session-42 --ledger proofs.json --key 0x... --url http://host:8083
    """
    settings = load_settings()
    try:
        ledger = load_ledger_file(ledger_path, session_id)
    except (OSError, ValueError) as e:
        fail(f"Cannot read ledger file: {e}", json_output)

    discovery: DiscoveryClient
    if url:
        discovery = HttpDiscoveryClient(url)
    else:
        discovery = LocalDiscoveryClient(DiscoveryService(open_index_store(settings, host_address)))

    engine = RecoveryEngine(discovery, open_store(settings), ledger, max_workers=settings.recovery_workers)
    try:
        result = engine.recover(
            session_id,
            user_private_key=private_key,
            expected_host_address=host_address,
            timeout=timeout if timeout is not None else (settings.recovery_timeout or None),
        )
    except VerificationError as e:
        fail(f"Verification failed: {e}", json_output, code=1)
    except SessionVaultError as e:
        fail(str(e), json_output)

    if json_output:
        print(
            json.dumps(
                {
                    "session_id": session_id,
                    "token_count": result.token_count,
                    "checkpoints": len(result.checkpoints),
                    "messages": [m.to_dict() for m in result.messages],
                },
                indent=2,
            )
        )
        return

    if not result.checkpoints:
        console.print(f"[yellow]No checkpoints published for session {session_id}[/yellow]")
        return

    table = Table(title=f"Recovered: {session_id}")
    table.add_column("Role", style="cyan")
    table.add_column("Content")
    for message in result.messages:
        table.add_row(message.role, message.content)
    console.print(table)
    console.print(
        f"[green]✓ Verified {len(result.checkpoints)} checkpoints, {result.token_count} tokens[/green]"
    )
