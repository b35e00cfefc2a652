"""CLI project commands.

This module provides commands for project management:
- add: Register a new project
- list: List projects (optionally only completed or incomplete)
- show: Project details with modules and linked research
- rename / set-description / set-path: Update fields
- complete / reopen: Toggle the completed flag
- remove: Delete a project (--cascade for its subtree)

Usage:
    lopen-memory project add my-app /src/my-app "Core application rewrite"
    lopen-memory project show --project my-app
    lopen-memory project remove --project my-app --cascade
"""

import logging
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from lopen_memory.cli.helpers import (
    console,
    describe_removal,
    emit,
    emit_json,
    get_state,
    handle_errors,
    print_empty,
    print_fields,
    print_research_section,
    work_item_table,
)
from lopen_memory.core import projects
from lopen_memory.core.clock import format_timestamp
from lopen_memory.core.errors import InvalidArgumentError

logger = logging.getLogger(__name__)

project_app = typer.Typer(
    name="project",
    help="Project management commands",
    no_args_is_help=True,
)

PROJECT_OPTION = typer.Option(..., "--project", help="Project name or numeric ID")


@project_app.command()
def add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Unique project name"),
    path: str = typer.Argument(..., help="Filesystem path of the codebase"),
    description: str = typer.Argument("", help="One-sentence description of the project's purpose"),
):
    """Register a new project (one per codebase or repository)."""
    state = get_state(ctx)
    with handle_errors():
        project = projects.create(state.store, name, path, description)
    emit(state, project.to_dict(), f"created project: {escape(project.name)} (id {project.id})")


@project_app.command("list")
def list_projects(
    ctx: typer.Context,
    completed: bool = typer.Option(False, "--completed", help="Only completed projects"),
    incomplete: bool = typer.Option(False, "--incomplete", help="Only incomplete (active) projects"),
):
    """List projects in creation order."""
    state = get_state(ctx)
    with handle_errors():
        if completed and incomplete:
            raise InvalidArgumentError("--completed and --incomplete are mutually exclusive")
        flag: Optional[bool] = True if completed else (False if incomplete else None)
        rows = projects.list_projects(state.store, completed=flag)

    if state.json_output:
        emit_json([p.to_dict() for p in rows])
        return
    if not rows:
        print_empty("projects")
        return

    table = Table(title="Projects")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Status")
    table.add_column("Path")
    table.add_column("Description")
    for project in rows:
        status = "[green]complete[/green]" if project.completed else "active"
        table.add_row(
            str(project.id),
            escape(project.name),
            status,
            escape(project.path),
            escape(project.description),
        )
    console.print(table)


@project_app.command()
def show(ctx: typer.Context, project: str = PROJECT_OPTION):
    """Show a project with its modules and linked research."""
    state = get_state(ctx)
    with handle_errors():
        detail = projects.show(state.store, project)

    if state.json_output:
        emit_json(detail.to_dict())
        return

    p = detail.project
    print_fields(
        [
            ("id", p.id),
            ("name", p.name),
            ("path", p.path),
            ("description", p.description),
            ("completed", "yes" if p.completed else "no"),
            ("created_at", format_timestamp(p.created_at)),
            ("updated_at", format_timestamp(p.updated_at)),
        ]
    )
    console.print()
    if detail.modules:
        console.print(work_item_table("Modules", detail.modules))
    else:
        print_empty("modules")
    print_research_section(detail.research)


@project_app.command()
def rename(
    ctx: typer.Context,
    project: str = PROJECT_OPTION,
    new_name: str = typer.Argument(..., help="New project name"),
):
    """Rename a project."""
    state = get_state(ctx)
    with handle_errors():
        updated = projects.rename(state.store, project, new_name)
    emit(state, updated.to_dict(), f"renamed project {updated.id} to {escape(updated.name)}")


@project_app.command("set-description")
def set_description(
    ctx: typer.Context,
    project: str = PROJECT_OPTION,
    description: str = typer.Argument(..., help="New description (replaces the old one)"),
):
    """Replace a project's description."""
    state = get_state(ctx)
    with handle_errors():
        updated = projects.set_description(state.store, project, description)
    emit(state, updated.to_dict(), f"updated description for project: {escape(updated.name)}")


@project_app.command("set-path")
def set_path(
    ctx: typer.Context,
    project: str = PROJECT_OPTION,
    path: str = typer.Argument(..., help="New filesystem path"),
):
    """Replace a project's filesystem path."""
    state = get_state(ctx)
    with handle_errors():
        updated = projects.set_path(state.store, project, path)
    emit(state, updated.to_dict(), f"updated path for project: {escape(updated.name)}")


@project_app.command()
def complete(ctx: typer.Context, project: str = PROJECT_OPTION):
    """Mark a project as complete."""
    state = get_state(ctx)
    with handle_errors():
        updated = projects.complete(state.store, project)
    emit(state, updated.to_dict(), f"completed project: {escape(updated.name)}")


@project_app.command()
def reopen(ctx: typer.Context, project: str = PROJECT_OPTION):
    """Reopen a completed project."""
    state = get_state(ctx)
    with handle_errors():
        updated = projects.reopen(state.store, project)
    emit(state, updated.to_dict(), f"reopened project: {escape(updated.name)}")


@project_app.command()
def remove(
    ctx: typer.Context,
    project: str = PROJECT_OPTION,
    cascade: bool = typer.Option(
        False, "--cascade", help="Also delete all modules, features and tasks beneath it"
    ),
):
    """Delete a project. Linked research is kept; only the links go."""
    state = get_state(ctx)
    with handle_errors():
        summary = projects.remove(state.store, project, cascade=cascade)
    emit(state, summary.to_dict(), describe_removal(summary))
