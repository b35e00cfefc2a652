"""Feature management for lopen-memory.

A feature is a single discrete deliverable within a module. Feature
names are unique within their module. Lookups by name accept a module
hint, and the module hint itself accepts a project hint.

This module is headless - no CLI dependencies.
"""

from typing import Optional

from lopen_memory.core import deletion, hierarchy
from lopen_memory.core.models import (
    EntityKind,
    Feature,
    FeatureDetail,
    Module,
    Project,
    RemovalSummary,
    Task,
)
from lopen_memory.core.resolve import Token, resolve_feature
from lopen_memory.core.state_machine import LifecycleState
from lopen_memory.core.store import Store

KIND = EntityKind.FEATURE


def create(
    store: Store,
    module: Token,
    name: str,
    description: str = "",
    project: Optional[Token] = None,
) -> Feature:
    return Feature.from_row(
        hierarchy.create_item(store, KIND, name, module, description, project=project)
    )


def get(
    store: Store, feature: Token, module: Optional[Token] = None, project: Optional[Token] = None
) -> Feature:
    return Feature.from_row(
        hierarchy.get_item(store, KIND, feature, module=module, project=project)
    )


def list_features(
    store: Store,
    module: Token,
    state: Optional[LifecycleState | str] = None,
    project: Optional[Token] = None,
) -> list[Feature]:
    rows = hierarchy.list_items(store, KIND, module, state=state, project=project)
    return [Feature.from_row(row) for row in rows]


def show(
    store: Store, feature: Token, module: Optional[Token] = None, project: Optional[Token] = None
) -> FeatureDetail:
    with store.transaction(write=False) as conn:
        row = resolve_feature(conn, feature, module=module, project=project)
        parents = hierarchy.ancestor_rows(conn, KIND, row)
        tasks = hierarchy.children_of(conn, KIND, row["id"])
        research = hierarchy.research_for(conn, KIND, row["id"])
    return FeatureDetail(
        feature=Feature.from_row(row),
        module=Module.from_row(parents[EntityKind.MODULE]),
        project=Project.from_row(parents[EntityKind.PROJECT]),
        tasks=[Task.from_row(t) for t in tasks],
        research=research,
    )


def rename(
    store: Store,
    feature: Token,
    new_name: str,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Feature:
    return Feature.from_row(
        hierarchy.rename_entity(store, KIND, feature, new_name, module=module, project=project)
    )


def set_description(
    store: Store,
    feature: Token,
    description: str,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Feature:
    return Feature.from_row(
        hierarchy.set_text_field(
            store, KIND, feature, "description", description, module=module, project=project
        )
    )


def set_details(
    store: Store,
    feature: Token,
    details: str,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Feature:
    return Feature.from_row(
        hierarchy.set_text_field(
            store, KIND, feature, "details", details, module=module, project=project
        )
    )


def transition(
    store: Store,
    feature: Token,
    state: LifecycleState | str,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> Feature:
    return Feature.from_row(
        hierarchy.transition_item(store, KIND, feature, state, module=module, project=project)
    )


def remove(
    store: Store,
    feature: Token,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
    cascade: bool = False,
) -> RemovalSummary:
    return deletion.remove_work_entity(
        store, KIND, feature, cascade=cascade, module=module, project=project
    )
