"""Command-line control panel for Vidnotes."""

from vidnotes.cli.main import CLIApplication, create_app

__all__ = ["CLIApplication", "create_app"]
