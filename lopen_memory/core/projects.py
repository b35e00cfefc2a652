"""Project management for lopen-memory.

A project maps to one codebase or repository. Project names are
globally unique. Projects have no lifecycle state; they carry a
completed flag that can be set and cleared freely.

This module is headless - no CLI dependencies.
"""

import logging
from typing import Optional

from lopen_memory.core import deletion, hierarchy
from lopen_memory.core.models import EntityKind, Module, Project, ProjectDetail, RemovalSummary
from lopen_memory.core.resolve import Token, resolve_project
from lopen_memory.core.store import Store

logger = logging.getLogger(__name__)


def create(store: Store, name: str, path: str = "", description: str = "") -> Project:
    """Register a new project.

    Args:
        store: Open store
        name: Unique project name
        path: Filesystem path of the codebase (free-form)
        description: One-sentence purpose statement

    Returns:
        Created Project

    Raises:
        InvalidArgumentError: If the name is empty or numeric
        DuplicateNameError: If a project with this name exists
    """
    name = hierarchy.clean_name(name)
    now = store.now()

    with store.transaction() as conn:
        hierarchy.ensure_unique(conn, EntityKind.PROJECT, name)
        cursor = conn.execute(
            """
            INSERT INTO projects (name, path, description, completed, created_at, updated_at)
            VALUES (?, ?, ?, 0, ?, ?)
            """,
            (name, path or "", description or "", now, now),
        )
        row = hierarchy.fetch(conn, EntityKind.PROJECT, cursor.lastrowid)

    logger.info(f"Created project {row['id']} '{name}'")
    return Project.from_row(row)


def get(store: Store, project: Token) -> Project:
    with store.transaction(write=False) as conn:
        return Project.from_row(resolve_project(conn, project))


def list_projects(store: Store, completed: Optional[bool] = None) -> list[Project]:
    """List projects in insertion order.

    Args:
        store: Open store
        completed: True for completed only, False for active only, None for all
    """
    sql = "SELECT * FROM projects"
    params: tuple = ()
    if completed is not None:
        sql += " WHERE completed = ?"
        params = (1 if completed else 0,)
    sql += " ORDER BY id"

    with store.transaction(write=False) as conn:
        rows = conn.execute(sql, params).fetchall()
    return [Project.from_row(row) for row in rows]


def show(store: Store, project: Token) -> ProjectDetail:
    """Project plus its modules and linked research."""
    with store.transaction(write=False) as conn:
        row = resolve_project(conn, project)
        modules = hierarchy.children_of(conn, EntityKind.PROJECT, row["id"])
        research = hierarchy.research_for(conn, EntityKind.PROJECT, row["id"])
    return ProjectDetail(
        project=Project.from_row(row),
        modules=[Module.from_row(m) for m in modules],
        research=research,
    )


def rename(store: Store, project: Token, new_name: str) -> Project:
    return Project.from_row(
        hierarchy.rename_entity(store, EntityKind.PROJECT, project, new_name)
    )


def set_description(store: Store, project: Token, description: str) -> Project:
    return Project.from_row(
        hierarchy.set_text_field(store, EntityKind.PROJECT, project, "description", description)
    )


def set_path(store: Store, project: Token, path: str) -> Project:
    return Project.from_row(
        hierarchy.set_text_field(store, EntityKind.PROJECT, project, "path", path)
    )


def complete(store: Store, project: Token) -> Project:
    """Mark a project as complete. Idempotent."""
    return _set_completed(store, project, True)


def reopen(store: Store, project: Token) -> Project:
    """Clear a project's completed flag. Idempotent."""
    return _set_completed(store, project, False)


def remove(store: Store, project: Token, cascade: bool = False) -> RemovalSummary:
    """Delete a project; see ``deletion.remove_work_entity``."""
    return deletion.remove_work_entity(store, EntityKind.PROJECT, project, cascade=cascade)


def _set_completed(store: Store, project: Token, completed: bool) -> Project:
    with store.transaction() as conn:
        row = resolve_project(conn, project)
        if bool(row["completed"]) == completed:
            return Project.from_row(row)
        conn.execute(
            "UPDATE projects SET completed = ?, updated_at = ? WHERE id = ?",
            (1 if completed else 0, store.now(), row["id"]),
        )
        row = hierarchy.fetch(conn, EntityKind.PROJECT, row["id"])

    logger.info(f"Project {row['id']} {'completed' if completed else 'reopened'}")
    return Project.from_row(row)
