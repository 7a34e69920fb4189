#!/usr/bin/env python3
"""
sessionvault CLI

Main entrypoint for the sessionvault command-line tool.
"""

import typer
from rich.console import Console
from rich.table import Table

from cli.commands import index, keys, recover, retention, serve

app = typer.Typer(
    name="sessionvault",
    help="Durable, verifiable conversation checkpoints",
    add_completion=False,
)

console = Console()

app.add_typer(keys.app, name="keys", help="Host and recovery key management")
app.add_typer(index.app, name="index", help="Checkpoint index inspection")
app.add_typer(retention.app, name="retention", help="Checkpoint retention")

app.command(name="serve")(serve.serve_command)
app.command(name="recover")(recover.recover_command)


@app.command()
def version():
    """Show version information."""
    from cli import __version__
    from sessionvault.crypto.envelope import ENVELOPE_VERSION

    table = Table(show_header=False, box=None)
    table.add_row("[bold]sessionvault[/bold]", f"v{__version__}")
    table.add_row("Delta envelope", f"v{ENVELOPE_VERSION}")

    console.print(table)


def main():
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
