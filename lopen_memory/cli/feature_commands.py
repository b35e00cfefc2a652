"""CLI feature commands.

Usage:
    lopen-memory feature add --module auth --project my-app login-flow "User login"
    lopen-memory feature list --module auth
    lopen-memory feature show --feature login-flow --module auth
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
from lopen_memory.core import features

feature_app = typer.Typer(
    name="feature",
    help="Feature management commands",
    no_args_is_help=True,
)

FEATURE_OPTION = typer.Option(..., "--feature", help="Feature name or numeric ID")
MODULE_HINT = typer.Option(
    None, "--module", help="Module name or ID, to disambiguate the feature name"
)
PROJECT_HINT = typer.Option(
    None, "--project", help="Project name or ID, to disambiguate the module or feature"
)


@feature_app.command()
def add(
    ctx: typer.Context,
    module: str = typer.Option(..., "--module", help="Parent module name or numeric ID"),
    name: str = typer.Argument(..., help="Feature name, unique within the module"),
    description: str = typer.Argument("", help='One-sentence goal ("the ability to X")'),
    project: Optional[str] = typer.Option(
        None, "--project", help="Project name or ID, to disambiguate the module name"
    ),
):
    """Create a feature in a module (starts in Draft)."""
    state = get_state(ctx)
    with handle_errors():
        feature = features.create(state.store, module, name, description, project=project)
    emit(state, feature.to_dict(), f"created feature: {escape(feature.name)} (id {feature.id})")


@feature_app.command("list")
def list_features(
    ctx: typer.Context,
    module: str = typer.Option(..., "--module", help="Parent module name or numeric ID"),
    project: Optional[str] = typer.Option(
        None, "--project", help="Project name or ID, to disambiguate the module name"
    ),
    state_filter: Optional[str] = typer.Option(
        None, "--state", help="Only features in this state (Draft, Planning, Building, Complete, Amending)"
    ),
):
    """List the features of a module."""
    state = get_state(ctx)
    with handle_errors():
        rows = features.list_features(state.store, module, state=state_filter, project=project)

    if state.json_output:
        emit_json([f.to_dict() for f in rows])
    elif not rows:
        print_empty("features")
    else:
        console.print(work_item_table("Features", rows))


@feature_app.command()
def show(
    ctx: typer.Context,
    feature: str = FEATURE_OPTION,
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Show a feature with its tasks and linked research."""
    state = get_state(ctx)
    with handle_errors():
        detail = features.show(state.store, feature, module=module, project=project)

    if state.json_output:
        emit_json(detail.to_dict())
        return

    print_work_item(
        detail.feature,
        [("project", detail.project.name), ("module", detail.module.name)],
    )
    console.print()
    if detail.tasks:
        console.print(work_item_table("Tasks", detail.tasks))
    else:
        print_empty("tasks")
    print_research_section(detail.research)


@feature_app.command()
def rename(
    ctx: typer.Context,
    feature: str = FEATURE_OPTION,
    new_name: str = typer.Argument(..., help="New feature name"),
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Rename a feature."""
    state = get_state(ctx)
    with handle_errors():
        updated = features.rename(state.store, feature, new_name, module=module, project=project)
    emit(state, updated.to_dict(), f"renamed feature {updated.id} to {escape(updated.name)}")


@feature_app.command("set-description")
def set_description(
    ctx: typer.Context,
    feature: str = FEATURE_OPTION,
    description: str = typer.Argument(..., help="New description (replaces the old one)"),
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Replace a feature's description."""
    state = get_state(ctx)
    with handle_errors():
        updated = features.set_description(
            state.store, feature, description, module=module, project=project
        )
    emit(state, updated.to_dict(), f"updated description for feature: {escape(updated.name)}")


@feature_app.command("set-details")
def set_details(
    ctx: typer.Context,
    feature: str = FEATURE_OPTION,
    details: str = typer.Argument(..., help="Working notes (replace the old ones entirely)"),
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Replace a feature's working notes."""
    state = get_state(ctx)
    with handle_errors():
        updated = features.set_details(
            state.store, feature, details, module=module, project=project
        )
    emit(state, updated.to_dict(), f"updated details for feature: {escape(updated.name)}")


@feature_app.command()
def transition(
    ctx: typer.Context,
    feature: str = FEATURE_OPTION,
    target: str = typer.Argument(..., help="Draft, Planning, Building, Complete or Amending"),
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Move a feature to a new lifecycle state."""
    state = get_state(ctx)
    with handle_errors():
        updated = features.transition(
            state.store, feature, target, module=module, project=project
        )
    emit(
        state,
        updated.to_dict(),
        f"feature {escape(updated.name)} is now {updated.state.value}",
    )


@feature_app.command()
def remove(
    ctx: typer.Context,
    feature: str = FEATURE_OPTION,
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
    cascade: bool = typer.Option(False, "--cascade", help="Also delete its tasks"),
):
    """Delete a feature. Linked research is kept; only the links go."""
    state = get_state(ctx)
    with handle_errors():
        summary = features.remove(
            state.store, feature, module=module, project=project, cascade=cascade
        )
    emit(state, summary.to_dict(), describe_removal(summary))
