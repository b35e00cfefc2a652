"""Command-line interface for lopen-memory.

The main Typer app is exported for use as the entry point:
    lopen-memory = "lopen_memory.cli:app"
"""

from lopen_memory.cli.app import app

__all__ = ["app"]
