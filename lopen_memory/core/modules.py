"""Module management for lopen-memory.

A module is a major bounded area of concern within a project (auth,
payments, reporting). Module names are unique within their project.

This module is headless - no CLI dependencies.
"""

from typing import Optional

from lopen_memory.core import deletion, hierarchy
from lopen_memory.core.models import EntityKind, Feature, Module, ModuleDetail, Project, RemovalSummary
from lopen_memory.core.resolve import Token, resolve_module
from lopen_memory.core.state_machine import LifecycleState
from lopen_memory.core.store import Store

KIND = EntityKind.MODULE


def create(store: Store, project: Token, name: str, description: str = "") -> Module:
    """Create a module in ``project``, starting in Draft.

    Raises:
        MissingParentError: If the project does not resolve
        DuplicateNameError: If the project already has a module with this name
    """
    return Module.from_row(hierarchy.create_item(store, KIND, name, project, description))


def get(store: Store, module: Token, project: Optional[Token] = None) -> Module:
    return Module.from_row(hierarchy.get_item(store, KIND, module, project=project))


def list_modules(
    store: Store, project: Token, state: Optional[LifecycleState | str] = None
) -> list[Module]:
    rows = hierarchy.list_items(store, KIND, project, state=state)
    return [Module.from_row(row) for row in rows]


def show(store: Store, module: Token, project: Optional[Token] = None) -> ModuleDetail:
    """Module plus its project, features and linked research."""
    with store.transaction(write=False) as conn:
        row = resolve_module(conn, module, project=project)
        parents = hierarchy.ancestor_rows(conn, KIND, row)
        features = hierarchy.children_of(conn, KIND, row["id"])
        research = hierarchy.research_for(conn, KIND, row["id"])
    return ModuleDetail(
        module=Module.from_row(row),
        project=Project.from_row(parents[EntityKind.PROJECT]),
        features=[Feature.from_row(f) for f in features],
        research=research,
    )


def rename(store: Store, module: Token, new_name: str, project: Optional[Token] = None) -> Module:
    return Module.from_row(hierarchy.rename_entity(store, KIND, module, new_name, project=project))


def set_description(
    store: Store, module: Token, description: str, project: Optional[Token] = None
) -> Module:
    return Module.from_row(
        hierarchy.set_text_field(store, KIND, module, "description", description, project=project)
    )


def set_details(store: Store, module: Token, details: str, project: Optional[Token] = None) -> Module:
    return Module.from_row(
        hierarchy.set_text_field(store, KIND, module, "details", details, project=project)
    )


def transition(
    store: Store, module: Token, state: LifecycleState | str, project: Optional[Token] = None
) -> Module:
    return Module.from_row(hierarchy.transition_item(store, KIND, module, state, project=project))


def remove(
    store: Store, module: Token, project: Optional[Token] = None, cascade: bool = False
) -> RemovalSummary:
    return deletion.remove_work_entity(store, KIND, module, cascade=cascade, project=project)
