"""
Key commands: host-generate, recovery-generate
"""

import json
import os
from typing import Optional

import typer
from rich.console import Console

from sessionvault.crypto.envelope import RecoveryKeyPair
from sessionvault.crypto.signer import HostSigner

from ._context import fail, load_settings

app = typer.Typer()
console = Console()


@app.command("host-generate")
def host_generate(
    out: Optional[str] = typer.Option(
        None,
        "--out",
        "-o",
        help="Key file (default: SESSIONVAULT_HOST_KEY_PATH)",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing key"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Generate the host's secp256k1 signing key.

    Examples:
        sessionvault keys host-generate
        sessionvault keys host-generate --out host.pem
    """
    path = out or load_settings().host_key_path
    if os.path.exists(path) and not force:
        fail(f"{path} already exists (use --force to overwrite)", json_output)

    signer = HostSigner.generate()
    signer.save_to_file(path)

    if json_output:
        print(json.dumps({"key_path": path, "address": signer.address}, indent=2))
    else:
        console.print("[green]✓ Host key generated[/green]")
        console.print(f"  File: [cyan]{path}[/cyan]")
        console.print(f"  Address: {signer.address}")


@app.command("recovery-generate")
def recovery_generate(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Generate a client recovery keypair.

    The public key is given to the host; keep the private key to decrypt
    checkpoints during recovery.
    """
    pair = RecoveryKeyPair.generate()
    if json_output:
        print(json.dumps({"public_key": pair.public_key_hex, "private_key": pair.private_key_hex}, indent=2))
    else:
        console.print("[green]✓ Recovery keypair generated[/green]")
        console.print(f"  Public key:  {pair.public_key_hex}")
        console.print(f"  Private key: [yellow]{pair.private_key_hex}[/yellow]")
