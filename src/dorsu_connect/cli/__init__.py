"""
CLI Module - Command-line interface for DOrSU Connect.
======================================================

Usage:
    dorsu-connect --help
    dorsu-connect refresh
    dorsu-connect ask "Who is the president of DOrSU?"
    dorsu-connect serve --port 3000

Components:
- main: Typer CLI application
"""

from dorsu_connect.cli.main import app, cli

__all__ = ["app", "cli"]
