"""CLI research commands.

This module provides commands for research records:
- add / list / show / search
- rename / set-description / set-content / set-source / set-researched-at
- link / unlink / links: bridge rows to projects, modules, features and tasks
- remove: delete a record and its links (linked entities are untouched)

Usage:
    lopen-memory research add jwt-rfc "IETF JSON Web Token specification"
    lopen-memory research set-content --research jwt-rfc "JWTs are compact..."
    lopen-memory research link --research jwt-rfc --task implement-jwt
    lopen-memory research search jwt --stale-days 90
"""

from typing import Optional

import typer
from rich.markup import escape

from lopen_memory.cli.helpers import (
    console,
    describe_removal,
    emit,
    emit_json,
    get_state,
    handle_errors,
    linked_table,
    print_block,
    print_empty,
    print_fields,
    research_table,
)
from lopen_memory.core import research
from lopen_memory.core.clock import format_timestamp
from lopen_memory.core.errors import InvalidArgumentError
from lopen_memory.core.models import EntityKind, LinkChange
from lopen_memory.core.resolve import Token

research_app = typer.Typer(
    name="research",
    help="Research management commands",
    no_args_is_help=True,
)

RESEARCH_OPTION = typer.Option(..., "--research", help="Research name or numeric ID")
STALE_OPTION = typer.Option(
    None, "--stale-days", help="Only records researched more than N days ago"
)


def pick_target(
    project: Optional[str],
    module: Optional[str],
    feature: Optional[str],
    task: Optional[str],
) -> tuple[EntityKind, Token, dict]:
    """Choose the link target: the most specific flag given.

    Broader flags become hints for resolving it.

    Returns:
        (kind, token, hints)

    Raises:
        InvalidArgumentError: If no target flag was given
    """
    hints = {"project": project, "module": module, "feature": feature}
    for kind, token in (
        (EntityKind.TASK, task),
        (EntityKind.FEATURE, feature),
        (EntityKind.MODULE, module),
        (EntityKind.PROJECT, project),
    ):
        if token is not None:
            scoped = {
                name: value
                for name, value in hints.items()
                if value is not None and EntityKind(name) in kind.ancestors()
            }
            return kind, token, scoped
    raise InvalidArgumentError("specify one of --project, --module, --feature or --task")


@research_app.command()
def add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Unique research name"),
    description: str = typer.Argument("", help="One-sentence summary of what was researched"),
):
    """Create a research record."""
    state = get_state(ctx)
    with handle_errors():
        record = research.create(state.store, name, description)
    emit(state, record.to_dict(), f"created research: {escape(record.name)} (id {record.id})")


@research_app.command("list")
def list_research(
    ctx: typer.Context,
    stale_days: Optional[int] = STALE_OPTION,
):
    """List research records, optionally only stale ones."""
    state = get_state(ctx)
    with handle_errors():
        records = research.list_research(state.store, stale_days=stale_days)

    if state.json_output:
        emit_json([r.to_dict() for r in records])
    elif not records:
        print_empty("research")
    else:
        console.print(research_table("Research", records))


@research_app.command()
def show(ctx: typer.Context, research_ref: str = RESEARCH_OPTION):
    """Show a research record with its content and links."""
    state = get_state(ctx)
    with handle_errors():
        detail = research.show(state.store, research_ref)

    if state.json_output:
        emit_json(detail.to_dict())
        return

    r = detail.research
    print_fields(
        [
            ("id", r.id),
            ("name", r.name),
            ("description", r.description),
            ("source", r.source),
            ("researched_at", format_timestamp(r.researched_at)),
            ("created_at", format_timestamp(r.created_at)),
            ("updated_at", format_timestamp(r.updated_at)),
        ]
    )
    print_block("content", r.content)
    if detail.links:
        console.print()
        console.print(linked_table("Linked to", detail.links))


@research_app.command()
def rename(
    ctx: typer.Context,
    research_ref: str = RESEARCH_OPTION,
    new_name: str = typer.Argument(..., help="New research name"),
):
    """Rename a research record."""
    state = get_state(ctx)
    with handle_errors():
        updated = research.rename(state.store, research_ref, new_name)
    emit(state, updated.to_dict(), f"renamed research {updated.id} to {escape(updated.name)}")


@research_app.command("set-description")
def set_description(
    ctx: typer.Context,
    research_ref: str = RESEARCH_OPTION,
    description: str = typer.Argument(..., help="New description (replaces the old one)"),
):
    """Replace a research record's description."""
    state = get_state(ctx)
    with handle_errors():
        updated = research.set_description(state.store, research_ref, description)
    emit(state, updated.to_dict(), f"updated description for research: {escape(updated.name)}")


@research_app.command("set-content")
def set_content(
    ctx: typer.Context,
    research_ref: str = RESEARCH_OPTION,
    content: str = typer.Argument(..., help="Findings text (replaces the old content)"),
    no_update_date: bool = typer.Option(
        False, "--no-update-date", help="Keep the current researched_at date"
    ),
):
    """Replace the findings; stamps researched_at unless --no-update-date."""
    state = get_state(ctx)
    with handle_errors():
        updated = research.set_content(
            state.store, research_ref, content, update_date=not no_update_date
        )
    emit(state, updated.to_dict(), f"updated content for research: {escape(updated.name)}")


@research_app.command("set-source")
def set_source(
    ctx: typer.Context,
    research_ref: str = RESEARCH_OPTION,
    source: str = typer.Argument(..., help="Citation: URL, document or person"),
):
    """Replace a research record's source."""
    state = get_state(ctx)
    with handle_errors():
        updated = research.set_source(state.store, research_ref, source)
    emit(state, updated.to_dict(), f"updated source for research: {escape(updated.name)}")


@research_app.command("set-researched-at")
def set_researched_at(
    ctx: typer.Context,
    research_ref: str = RESEARCH_OPTION,
    date: str = typer.Argument(..., help="YYYY-MM-DD or an ISO-8601 datetime"),
):
    """Override the researched_at timestamp."""
    state = get_state(ctx)
    with handle_errors():
        updated = research.set_researched_at(state.store, research_ref, date)
    emit(
        state,
        updated.to_dict(),
        f"updated researched_at for research: {escape(updated.name)} -> "
        f"{format_timestamp(updated.researched_at)}",
    )


@research_app.command()
def search(
    ctx: typer.Context,
    term: str = typer.Argument(..., help="Case-insensitive substring"),
    stale_days: Optional[int] = STALE_OPTION,
):
    """Search names, descriptions, content and sources."""
    state = get_state(ctx)
    with handle_errors():
        records = research.search(state.store, term, stale_days=stale_days)

    if state.json_output:
        emit_json([r.to_dict() for r in records])
    elif not records:
        print_empty("research")
    else:
        console.print(research_table(f"Research matching '{escape(term)}'", records))


@research_app.command()
def link(
    ctx: typer.Context,
    research_ref: str = RESEARCH_OPTION,
    project: Optional[str] = typer.Option(None, "--project", help="Project name or ID"),
    module: Optional[str] = typer.Option(None, "--module", help="Module name or ID"),
    feature: Optional[str] = typer.Option(None, "--feature", help="Feature name or ID"),
    task: Optional[str] = typer.Option(None, "--task", help="Task name or ID"),
):
    """Link a research record to a work entity.

    The most specific flag is the target; broader flags narrow its lookup.
    """
    state = get_state(ctx)
    with handle_errors():
        kind, token, hints = pick_target(project, module, feature, task)
        change = research.link(state.store, research_ref, kind, token, **hints)
    verb = "linked" if change.changed else "already linked"
    emit(state, change.to_dict(), _describe_link(change, verb, "->"))


@research_app.command()
def unlink(
    ctx: typer.Context,
    research_ref: str = RESEARCH_OPTION,
    project: Optional[str] = typer.Option(None, "--project", help="Project name or ID"),
    module: Optional[str] = typer.Option(None, "--module", help="Module name or ID"),
    feature: Optional[str] = typer.Option(None, "--feature", help="Feature name or ID"),
    task: Optional[str] = typer.Option(None, "--task", help="Task name or ID"),
):
    """Remove the link between a research record and a work entity."""
    state = get_state(ctx)
    with handle_errors():
        kind, token, hints = pick_target(project, module, feature, task)
        change = research.unlink(state.store, research_ref, kind, token, **hints)
    verb = "unlinked" if change.changed else "was not linked"
    emit(state, change.to_dict(), _describe_link(change, verb, "from"))


@research_app.command()
def links(ctx: typer.Context, research_ref: str = RESEARCH_OPTION):
    """List the work entities a research record is linked to."""
    state = get_state(ctx)
    with handle_errors():
        linked = research.links(state.store, research_ref)

    if state.json_output:
        emit_json([entry.to_dict() for entry in linked])
    elif not linked:
        print_empty("links")
    else:
        console.print(linked_table("Linked to", linked))


@research_app.command()
def remove(ctx: typer.Context, research_ref: str = RESEARCH_OPTION):
    """Delete a research record and its links. Linked entities are untouched."""
    state = get_state(ctx)
    with handle_errors():
        summary = research.remove(state.store, research_ref)
    emit(state, summary.to_dict(), describe_removal(summary))


def _describe_link(change: LinkChange, verb: str, joiner: str) -> str:
    target = change.target
    where = f" ({escape(target.context)})" if target.context else ""
    return (
        f"{verb}: research {escape(change.research.name)} {joiner} "
        f"{target.kind.value} {escape(target.name)}{where}"
    )
