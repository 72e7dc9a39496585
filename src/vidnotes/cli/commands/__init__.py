"""Command registration utilities for the Vidnotes CLI."""

from __future__ import annotations

import typer
from rich.console import Console

from vidnotes.cli.commands import import_channel


def register_commands(app: typer.Typer, console: Console) -> None:
    """Attach command groups to the provided Typer application."""

    import_channel.register(app, console)

    @app.callback(invoke_without_command=True)
    def main_callback() -> None:
        """Display a default message when no subcommand is provided."""

        console.print("[bold green]Vidnotes CLI ready for commands.[/bold green]")


__all__ = ["register_commands"]
