"""CLI module commands.

Usage:
    lopen-memory module add --project my-app auth "Handles authentication"
    lopen-memory module list --project my-app --state Building
    lopen-memory module transition --module auth --project my-app Planning
    lopen-memory module remove --module auth --cascade
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
    print_empty,
    print_research_section,
    print_work_item,
    work_item_table,
)
from lopen_memory.core import modules

module_app = typer.Typer(
    name="module",
    help="Module management commands",
    no_args_is_help=True,
)

MODULE_OPTION = typer.Option(..., "--module", help="Module name or numeric ID")
PROJECT_HINT = typer.Option(
    None, "--project", help="Project name or ID, to disambiguate the module name"
)


@module_app.command()
def add(
    ctx: typer.Context,
    project: str = typer.Option(..., "--project", help="Parent project name or numeric ID"),
    name: str = typer.Argument(..., help="Module name, unique within the project"),
    description: str = typer.Argument("", help="One-sentence description of the area it covers"),
):
    """Create a module in a project (starts in Draft)."""
    state = get_state(ctx)
    with handle_errors():
        module = modules.create(state.store, project, name, description)
    emit(state, module.to_dict(), f"created module: {escape(module.name)} (id {module.id})")


@module_app.command("list")
def list_modules(
    ctx: typer.Context,
    project: str = typer.Option(..., "--project", help="Parent project name or numeric ID"),
    state_filter: Optional[str] = typer.Option(
        None, "--state", help="Only modules in this state (Draft, Planning, Building, Complete, Amending)"
    ),
):
    """List the modules of a project."""
    state = get_state(ctx)
    with handle_errors():
        rows = modules.list_modules(state.store, project, state=state_filter)

    if state.json_output:
        emit_json([m.to_dict() for m in rows])
    elif not rows:
        print_empty("modules")
    else:
        console.print(work_item_table("Modules", rows))


@module_app.command()
def show(ctx: typer.Context, module: str = MODULE_OPTION, project: Optional[str] = PROJECT_HINT):
    """Show a module with its features and linked research."""
    state = get_state(ctx)
    with handle_errors():
        detail = modules.show(state.store, module, project=project)

    if state.json_output:
        emit_json(detail.to_dict())
        return

    print_work_item(detail.module, [("project", detail.project.name)])
    console.print()
    if detail.features:
        console.print(work_item_table("Features", detail.features))
    else:
        print_empty("features")
    print_research_section(detail.research)


@module_app.command()
def rename(
    ctx: typer.Context,
    module: str = MODULE_OPTION,
    new_name: str = typer.Argument(..., help="New module name"),
    project: Optional[str] = PROJECT_HINT,
):
    """Rename a module."""
    state = get_state(ctx)
    with handle_errors():
        updated = modules.rename(state.store, module, new_name, project=project)
    emit(state, updated.to_dict(), f"renamed module {updated.id} to {escape(updated.name)}")


@module_app.command("set-description")
def set_description(
    ctx: typer.Context,
    module: str = MODULE_OPTION,
    description: str = typer.Argument(..., help="New description (replaces the old one)"),
    project: Optional[str] = PROJECT_HINT,
):
    """Replace a module's description."""
    state = get_state(ctx)
    with handle_errors():
        updated = modules.set_description(state.store, module, description, project=project)
    emit(state, updated.to_dict(), f"updated description for module: {escape(updated.name)}")


@module_app.command("set-details")
def set_details(
    ctx: typer.Context,
    module: str = MODULE_OPTION,
    details: str = typer.Argument(..., help="Working notes (replace the old ones entirely)"),
    project: Optional[str] = PROJECT_HINT,
):
    """Replace a module's working notes."""
    state = get_state(ctx)
    with handle_errors():
        updated = modules.set_details(state.store, module, details, project=project)
    emit(state, updated.to_dict(), f"updated details for module: {escape(updated.name)}")


@module_app.command()
def transition(
    ctx: typer.Context,
    module: str = MODULE_OPTION,
    target: str = typer.Argument(..., help="Draft, Planning, Building, Complete or Amending"),
    project: Optional[str] = PROJECT_HINT,
):
    """Move a module to a new lifecycle state."""
    state = get_state(ctx)
    with handle_errors():
        updated = modules.transition(state.store, module, target, project=project)
    emit(
        state,
        updated.to_dict(),
        f"module {escape(updated.name)} is now {updated.state.value}",
    )


@module_app.command()
def remove(
    ctx: typer.Context,
    module: str = MODULE_OPTION,
    project: Optional[str] = PROJECT_HINT,
    cascade: bool = typer.Option(False, "--cascade", help="Also delete its features and tasks"),
):
    """Delete a module. Linked research is kept; only the links go."""
    state = get_state(ctx)
    with handle_errors():
        summary = modules.remove(state.store, module, project=project, cascade=cascade)
    emit(state, summary.to_dict(), describe_removal(summary))
