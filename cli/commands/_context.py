"""
Shared wiring for CLI commands: settings, storage, host identity.
"""

import json
from typing import Optional

import typer
from rich.console import Console

from sessionvault.config import Settings, build_store
from sessionvault.crypto.signer import HostSigner
from sessionvault.index.store import IndexStore
from sessionvault.storage.store import ContentStore

console = Console()


def load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2)


def open_store(settings: Settings) -> ContentStore:
    return build_store(settings)


def host_address_for(settings: Settings, host_address: Optional[str]) -> str:
    """Explicit --host-address, else the address of the configured host key."""
    if host_address:
        return host_address.lower()
    try:
        return HostSigner.load_from_file(settings.host_key_path).address
    except FileNotFoundError:
        console.print(
            f"[red]Error:[/red] no host key at {settings.host_key_path} "
            "(pass --host-address or run 'sessionvault keys host-generate')"
        )
        raise typer.Exit(2)


def open_index_store(settings: Settings, host_address: Optional[str] = None) -> IndexStore:
    return IndexStore(open_store(settings), host_address_for(settings, host_address))


def fail(message: str, json_output: bool, code: int = 2) -> None:
    if json_output:
        print(json.dumps({"error": message}))
    else:
        console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code)
