"""Shared CLI helper utilities.

This module provides common utilities used across CLI command modules:
- CliState: per-invocation state (database location, output mode, lazy store)
- handle_errors: maps core errors to messages and exit codes
- emit / emit_json: text vs JSON output
- table and field renderers for rich output

Usage:
    from lopen_memory.cli.helpers import console, get_state, handle_errors
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Sequence

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from lopen_memory.core.clock import format_timestamp
from lopen_memory.core.config import Settings
from lopen_memory.core.errors import StorageError, UserInputError
from lopen_memory.core.models import LinkedEntity, RemovalSummary, Research, WorkItem
from lopen_memory.core.state_machine import LifecycleState
from lopen_memory.core.store import Store

logger = logging.getLogger(__name__)

# Shared console instances for all CLI modules
console = Console()
err_console = Console(stderr=True)

EXIT_USER_ERROR = 1
EXIT_STORAGE_ERROR = 2

STATE_STYLES = {
    LifecycleState.DRAFT: "white",
    LifecycleState.PLANNING: "cyan",
    LifecycleState.BUILDING: "yellow",
    LifecycleState.COMPLETE: "green",
    LifecycleState.AMENDING: "magenta",
}


@dataclass
class CliState:
    """Options from the root command, shared with every subcommand."""

    db_path: Path
    json_output: bool = False
    settings: Settings = field(default_factory=Settings)
    _store: Optional[Store] = None

    @property
    def store(self) -> Store:
        """Open the database on first use."""
        if self._store is None:
            self._store = Store.open(self.db_path, busy_timeout=self.settings.busy_timeout)
        return self._store

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None


def get_state(ctx: typer.Context) -> CliState:
    state = ctx.obj
    if not isinstance(state, CliState):
        raise RuntimeError("CLI state not initialised; invoke through the root app")
    return state


@contextmanager
def handle_errors() -> Iterator[None]:
    """Render core errors to stderr and exit with the matching code.

    User-input failures exit 1. Storage failures, and any stray
    ValueError or OverflowError from the core, exit 2.
    """
    try:
        yield
    except UserInputError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_USER_ERROR)
    except StorageError as e:
        logger.debug("Storage failure", exc_info=True)
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_STORAGE_ERROR)
    except (ValueError, OverflowError) as e:
        logger.debug("Unexpected failure in core operation", exc_info=True)
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_STORAGE_ERROR)


def emit_json(data: Any) -> None:
    """Print indented JSON without rich wrapping or highlighting."""
    typer.echo(json.dumps(data, indent=2))


def emit(state: CliState, data: Any, message: str) -> None:
    """Print ``data`` as JSON in --json mode, otherwise ``message``."""
    if state.json_output:
        emit_json(data)
    else:
        console.print(message, highlight=False)


def print_fields(fields: Sequence[tuple[str, Any]]) -> None:
    """Print aligned ``label: value`` lines."""
    width = max(len(label) for label, _ in fields)
    for label, value in fields:
        text = "" if value is None else str(value)
        console.print(f"[bold]{label + ':':<{width + 1}}[/bold] {escape(text)}", highlight=False)


def print_block(title: str, text: str) -> None:
    """Print a multi-line text field indented under a heading."""
    if not text:
        return
    console.print()
    console.print(f"[bold]{title}:[/bold]")
    for line in text.splitlines():
        console.print(f"  {escape(line)}", highlight=False)


def state_markup(state: LifecycleState) -> str:
    style = STATE_STYLES.get(state, "white")
    return f"[{style}]{state.value}[/{style}]"


def work_item_table(title: str, items: Iterable[WorkItem]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("State")
    table.add_column("Description")
    for item in items:
        table.add_row(
            str(item.id), escape(item.name), state_markup(item.state), escape(item.description)
        )
    return table


def research_table(title: str, records: Iterable[Research]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Researched", no_wrap=True)
    table.add_column("Description")
    for record in records:
        table.add_row(
            str(record.id),
            escape(record.name),
            record.researched_at.strftime("%Y-%m-%d"),
            escape(record.description),
        )
    return table


def linked_table(title: str, links: Iterable[LinkedEntity]) -> Table:
    table = Table(title=title)
    table.add_column("Type", style="yellow")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Context")
    for linked in links:
        table.add_row(linked.kind.value, str(linked.id), escape(linked.name), escape(linked.context))
    return table


def print_research_section(records: Sequence[Research]) -> None:
    if records:
        console.print()
        console.print(research_table("Linked research", records))


def print_empty(what: str) -> None:
    """Report an empty list or search result."""
    console.print(f"[yellow]no {what} found[/yellow]")


def print_work_item(item: WorkItem, parents: Sequence[tuple[str, str]]) -> None:
    """Field lines for a module, feature or task, with its ancestor names."""
    fields: list[tuple[str, Any]] = [("id", item.id), ("name", item.name)]
    fields.extend(parents)
    fields.extend(
        [
            ("state", item.state.value),
            ("description", item.description),
            ("created_at", format_timestamp(item.created_at)),
            ("updated_at", format_timestamp(item.updated_at)),
        ]
    )
    print_fields(fields)
    print_block("details", item.details)


def describe_removal(summary: RemovalSummary) -> str:
    """One-line text report of a removal."""
    message = f"removed {summary.kind}: {escape(summary.name)}"
    extra = [
        f"{count} {kind}(s)"
        for kind, count in summary.removed.items()
        if kind != summary.kind and count
    ]
    if extra:
        message += f" (with {', '.join(extra)})"
    if summary.links_removed:
        message += f"; {summary.links_removed} research link(s) removed"
    return message
