"""Task management for lopen-memory.

Tasks are the leaf of the work hierarchy: single concrete
implementation steps within a feature. Task names are unique within
their feature.

This module is headless - no CLI dependencies.
"""

from typing import Optional

from lopen_memory.core import deletion, hierarchy
from lopen_memory.core.models import (
    EntityKind,
    Feature,
    Module,
    Project,
    RemovalSummary,
    Task,
    TaskDetail,
)
from lopen_memory.core.resolve import Token, resolve_task
from lopen_memory.core.state_machine import LifecycleState
from lopen_memory.core.store import Store

KIND = EntityKind.TASK


def create(
    store: Store,
    feature: Token,
    name: str,
    description: str = "",
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Task:
    """Create a task in ``feature``, starting in Draft.

    Args:
        store: Open store
        feature: Parent feature (name or ID)
        name: Task name, unique within the feature
        description: One-sentence description
        module: Hint for resolving the feature by name
        project: Hint for resolving the feature (or module) by name

    Returns:
        Created Task
    """
    return Task.from_row(
        hierarchy.create_item(
            store, KIND, name, feature, description, project=project, module=module
        )
    )


def get(
    store: Store,
    task: Token,
    feature: Optional[Token] = None,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Task:
    return Task.from_row(
        hierarchy.get_item(store, KIND, task, feature=feature, module=module, project=project)
    )


def list_tasks(
    store: Store,
    feature: Token,
    state: Optional[LifecycleState | str] = None,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> list[Task]:
    """List tasks in a feature.

    Args:
        store: Open store
        feature: Parent feature
        state: Optional lifecycle filter
        module: Hint for resolving the feature
        project: Hint for resolving the feature

    Returns:
        List of Tasks (empty if none match)
    """
    rows = hierarchy.list_items(
        store, KIND, feature, state=state, module=module, project=project
    )
    return [Task.from_row(row) for row in rows]


def show(
    store: Store,
    task: Token,
    feature: Optional[Token] = None,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> TaskDetail:
    with store.transaction(write=False) as conn:
        row = resolve_task(conn, task, feature=feature, module=module, project=project)
        parents = hierarchy.ancestor_rows(conn, KIND, row)
        research = hierarchy.research_for(conn, KIND, row["id"])
    return TaskDetail(
        task=Task.from_row(row),
        feature=Feature.from_row(parents[EntityKind.FEATURE]),
        module=Module.from_row(parents[EntityKind.MODULE]),
        project=Project.from_row(parents[EntityKind.PROJECT]),
        research=research,
    )


def rename(
    store: Store,
    task: Token,
    new_name: str,
    feature: Optional[Token] = None,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Task:
    return Task.from_row(
        hierarchy.rename_entity(
            store, KIND, task, new_name, feature=feature, module=module, project=project
        )
    )


def set_description(
    store: Store,
    task: Token,
    description: str,
    feature: Optional[Token] = None,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Task:
    return Task.from_row(
        hierarchy.set_text_field(
            store, KIND, task, "description", description,
            feature=feature, module=module, project=project,
        )
    )


def set_details(
    store: Store,
    task: Token,
    details: str,
    feature: Optional[Token] = None,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Task:
    return Task.from_row(
        hierarchy.set_text_field(
            store, KIND, task, "details", details,
            feature=feature, module=module, project=project,
        )
    )


def transition(
    store: Store,
    task: Token,
    state: LifecycleState | str,
    feature: Optional[Token] = None,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Task:
    """Move a task to a new lifecycle state.

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    return Task.from_row(
        hierarchy.transition_item(
            store, KIND, task, state, feature=feature, module=module, project=project
        )
    )


def remove(
    store: Store,
    task: Token,
    feature: Optional[Token] = None,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> RemovalSummary:
    """Delete a task and its research links. Tasks have no children."""
    return deletion.remove_work_entity(
        store, KIND, task, feature=feature, module=module, project=project
    )
