"""CLI task commands.

Usage:
    lopen-memory task add --feature login-flow implement-jwt "Implement JWT issuance"
    lopen-memory task set-details --task implement-jwt "HS256 with 1h expiry"
    lopen-memory task transition --task implement-jwt --feature login-flow Planning
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
from lopen_memory.core import tasks

task_app = typer.Typer(
    name="task",
    help="Task management commands",
    no_args_is_help=True,
)

TASK_OPTION = typer.Option(..., "--task", help="Task name or numeric ID")
FEATURE_HINT = typer.Option(
    None, "--feature", help="Feature name or ID, to disambiguate the task name"
)
MODULE_HINT = typer.Option(None, "--module", help="Module name or ID, to narrow the search")
PROJECT_HINT = typer.Option(None, "--project", help="Project name or ID, to narrow the search")


@task_app.command()
def add(
    ctx: typer.Context,
    feature: str = typer.Option(..., "--feature", help="Parent feature name or numeric ID"),
    name: str = typer.Argument(..., help="Task name, unique within the feature"),
    description: str = typer.Argument("", help="One-sentence description of the step"),
    module: Optional[str] = typer.Option(
        None, "--module", help="Module name or ID, to disambiguate the feature name"
    ),
    project: Optional[str] = PROJECT_HINT,
):
    """Create a task in a feature (starts in Draft)."""
    state = get_state(ctx)
    with handle_errors():
        task = tasks.create(
            state.store, feature, name, description, module=module, project=project
        )
    emit(state, task.to_dict(), f"created task: {escape(task.name)} (id {task.id})")


@task_app.command("list")
def list_tasks(
    ctx: typer.Context,
    feature: str = typer.Option(..., "--feature", help="Parent feature name or numeric ID"),
    module: Optional[str] = typer.Option(
        None, "--module", help="Module name or ID, to disambiguate the feature name"
    ),
    project: Optional[str] = PROJECT_HINT,
    state_filter: Optional[str] = typer.Option(
        None, "--state", help="Only tasks in this state (Draft, Planning, Building, Complete, Amending)"
    ),
):
    """List the tasks of a feature."""
    state = get_state(ctx)
    with handle_errors():
        rows = tasks.list_tasks(
            state.store, feature, state=state_filter, module=module, project=project
        )

    if state.json_output:
        emit_json([t.to_dict() for t in rows])
    elif not rows:
        print_empty("tasks")
    else:
        console.print(work_item_table("Tasks", rows))


@task_app.command()
def show(
    ctx: typer.Context,
    task: str = TASK_OPTION,
    feature: Optional[str] = FEATURE_HINT,
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Show a task with its linked research."""
    state = get_state(ctx)
    with handle_errors():
        detail = tasks.show(state.store, task, feature=feature, module=module, project=project)

    if state.json_output:
        emit_json(detail.to_dict())
        return

    print_work_item(
        detail.task,
        [
            ("project", detail.project.name),
            ("module", detail.module.name),
            ("feature", detail.feature.name),
        ],
    )
    print_research_section(detail.research)


@task_app.command()
def rename(
    ctx: typer.Context,
    task: str = TASK_OPTION,
    new_name: str = typer.Argument(..., help="New task name"),
    feature: Optional[str] = FEATURE_HINT,
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Rename a task."""
    state = get_state(ctx)
    with handle_errors():
        updated = tasks.rename(
            state.store, task, new_name, feature=feature, module=module, project=project
        )
    emit(state, updated.to_dict(), f"renamed task {updated.id} to {escape(updated.name)}")


@task_app.command("set-description")
def set_description(
    ctx: typer.Context,
    task: str = TASK_OPTION,
    description: str = typer.Argument(..., help="New description (replaces the old one)"),
    feature: Optional[str] = FEATURE_HINT,
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Replace a task's description."""
    state = get_state(ctx)
    with handle_errors():
        updated = tasks.set_description(
            state.store, task, description, feature=feature, module=module, project=project
        )
    emit(state, updated.to_dict(), f"updated description for task: {escape(updated.name)}")


@task_app.command("set-details")
def set_details(
    ctx: typer.Context,
    task: str = TASK_OPTION,
    details: str = typer.Argument(..., help="Working notes (replace the old ones entirely)"),
    feature: Optional[str] = FEATURE_HINT,
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Replace a task's working notes."""
    state = get_state(ctx)
    with handle_errors():
        updated = tasks.set_details(
            state.store, task, details, feature=feature, module=module, project=project
        )
    emit(state, updated.to_dict(), f"updated details for task: {escape(updated.name)}")


@task_app.command()
def transition(
    ctx: typer.Context,
    task: str = TASK_OPTION,
    target: str = typer.Argument(..., help="Draft, Planning, Building, Complete or Amending"),
    feature: Optional[str] = FEATURE_HINT,
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Move a task to a new lifecycle state."""
    state = get_state(ctx)
    with handle_errors():
        updated = tasks.transition(
            state.store, task, target, feature=feature, module=module, project=project
        )
    emit(state, updated.to_dict(), f"task {escape(updated.name)} is now {updated.state.value}")


@task_app.command()
def remove(
    ctx: typer.Context,
    task: str = TASK_OPTION,
    feature: Optional[str] = FEATURE_HINT,
    module: Optional[str] = MODULE_HINT,
    project: Optional[str] = PROJECT_HINT,
):
    """Delete a task. Linked research is kept; only the links go."""
    state = get_state(ctx)
    with handle_errors():
        summary = tasks.remove(state.store, task, feature=feature, module=module, project=project)
    emit(state, summary.to_dict(), describe_removal(summary))
