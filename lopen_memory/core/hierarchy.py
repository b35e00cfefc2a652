"""Shared operations for the lifecycle-bearing work entities.

Modules, features and tasks differ only in which table they live in
and which parent they hang off. The per-kind modules (``modules``,
``features``, ``tasks``) wrap these functions with typed signatures.

Every mutating function opens one write transaction, resolves its
target inside it, validates, and writes.

This module is headless - no CLI dependencies.
"""

import logging
import sqlite3
from typing import Optional

from lopen_memory.core.errors import (
    DuplicateNameError,
    InvalidArgumentError,
    MissingParentError,
    NotFoundError,
)
from lopen_memory.core.models import EntityKind, Research
from lopen_memory.core.resolve import Token, is_id, lineage, resolve
from lopen_memory.core.state_machine import LifecycleState, parse_state, validate_transition
from lopen_memory.core.store import Store

logger = logging.getLogger(__name__)

# Whitelist of free-text columns that can be replaced (prevents SQL injection)
TEXT_FIELDS = {
    EntityKind.PROJECT: {"description", "path"},
    EntityKind.MODULE: {"description", "details"},
    EntityKind.FEATURE: {"description", "details"},
    EntityKind.TASK: {"description", "details"},
}


def clean_name(name: str) -> str:
    """Trim a new name and reject ones that could never be resolved.

    Raises:
        InvalidArgumentError: If the name is empty or purely numeric
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidArgumentError("name must not be empty")
    if is_id(cleaned):
        raise InvalidArgumentError(
            f"name '{cleaned}' is purely numeric and would be read as an ID"
        )
    return cleaned


def scope_label(conn: sqlite3.Connection, kind: EntityKind, parent_id: Optional[int]) -> Optional[str]:
    """Human label for the uniqueness scope of ``kind`` under ``parent_id``."""
    if kind.parent is None or parent_id is None:
        return None
    parent_row = conn.execute(
        f"SELECT * FROM {kind.parent.table} WHERE id = ?", (parent_id,)
    ).fetchone()
    path = lineage(conn, kind.parent, parent_row) + [parent_row["name"]]
    return f"{kind.parent.value} {' > '.join(path)}"


def ensure_unique(
    conn: sqlite3.Connection,
    kind: EntityKind,
    name: str,
    parent_id: Optional[int] = None,
    exclude_id: Optional[int] = None,
) -> None:
    """Raise DuplicateNameError if ``name`` is taken within its scope.

    Args:
        conn: Open connection
        kind: Entity kind being named
        name: Candidate name
        parent_id: Owning parent for scoped kinds, None for projects
        exclude_id: Row to ignore (the entity being renamed)
    """
    sql = f"SELECT id FROM {kind.table} WHERE name = ?"
    params: list = [name]
    if kind.parent_column is not None:
        sql += f" AND {kind.parent_column} = ?"
        params.append(parent_id)
    if exclude_id is not None:
        sql += " AND id != ?"
        params.append(exclude_id)
    if conn.execute(sql, params).fetchone() is not None:
        raise DuplicateNameError(kind.value, name, scope_label(conn, kind, parent_id))


def fetch(conn: sqlite3.Connection, kind: EntityKind, entity_id: int) -> sqlite3.Row:
    return conn.execute(f"SELECT * FROM {kind.table} WHERE id = ?", (entity_id,)).fetchone()


def create_item(
    store: Store,
    kind: EntityKind,
    name: str,
    parent: Token,
    description: str = "",
    project: Optional[Token] = None,
    module: Optional[Token] = None,
) -> sqlite3.Row:
    """Create a module, feature or task under ``parent``.

    Args:
        store: Open store
        kind: MODULE, FEATURE or TASK
        name: New entity name (unique within the parent)
        parent: Parent reference (name or ID)
        description: Initial description
        project: Hint used to resolve the parent
        module: Hint used to resolve the parent

    Returns:
        The created row

    Raises:
        MissingParentError: If the parent does not resolve
        DuplicateNameError: If the name is taken under the parent
    """
    name = clean_name(name)
    parent_kind = kind.parent
    now = store.now()

    with store.transaction() as conn:
        try:
            parent_row = resolve(conn, parent_kind, parent, project=project, module=module)
        except NotFoundError:
            raise MissingParentError(kind.value, parent_kind.value, str(parent))

        ensure_unique(conn, kind, name, parent_id=parent_row["id"])

        cursor = conn.execute(
            f"""
            INSERT INTO {kind.table} ({kind.parent_column}, name, description, details, state, created_at, updated_at)
            VALUES (?, ?, ?, '', ?, ?, ?)
            """,
            (parent_row["id"], name, description or "", LifecycleState.DRAFT.value, now, now),
        )
        row = fetch(conn, kind, cursor.lastrowid)

    logger.info(
        f"Created {kind.value} {row['id']} '{name}' under {parent_kind.value} {parent_row['id']}"
    )
    return row


def get_item(store: Store, kind: EntityKind, token: Token, **hints) -> sqlite3.Row:
    with store.transaction(write=False) as conn:
        return resolve(conn, kind, token, **hints)


def list_items(
    store: Store,
    kind: EntityKind,
    parent: Token,
    state: Optional[LifecycleState | str] = None,
    **hints,
) -> list[sqlite3.Row]:
    """List the children of ``parent`` in insertion order.

    Args:
        store: Open store
        kind: Kind of the children to list
        parent: Parent reference
        state: Optional lifecycle filter
        **hints: Hints used to resolve the parent

    Returns:
        Possibly empty list of rows
    """
    state_filter = parse_state(state) if state is not None else None
    with store.transaction(write=False) as conn:
        parent_row = resolve(conn, kind.parent, parent, **hints)
        sql = f"SELECT * FROM {kind.table} WHERE {kind.parent_column} = ?"
        params: list = [parent_row["id"]]
        if state_filter is not None:
            sql += " AND state = ?"
            params.append(state_filter.value)
        sql += " ORDER BY id"
        return conn.execute(sql, params).fetchall()


def rename_entity(store: Store, kind: EntityKind, token: Token, new_name: str, **hints) -> sqlite3.Row:
    """Rename a work entity, keeping its name unique within the same scope."""
    new_name = clean_name(new_name)
    with store.transaction() as conn:
        row = resolve(conn, kind, token, **hints)
        if row["name"] == new_name:
            return row
        parent_id = row[kind.parent_column] if kind.parent_column else None
        ensure_unique(conn, kind, new_name, parent_id=parent_id, exclude_id=row["id"])
        conn.execute(
            f"UPDATE {kind.table} SET name = ?, updated_at = ? WHERE id = ?",
            (new_name, store.now(), row["id"]),
        )
        updated = fetch(conn, kind, row["id"])

    logger.info(f"Renamed {kind.value} {row['id']}: '{row['name']}' -> '{new_name}'")
    return updated


def set_text_field(
    store: Store, kind: EntityKind, token: Token, field_name: str, value: str, **hints
) -> sqlite3.Row:
    """Replace a free-text column entirely (no merge or append)."""
    if field_name not in TEXT_FIELDS[kind]:
        raise ValueError(f"{field_name} is not a settable field of {kind.value}")
    with store.transaction() as conn:
        row = resolve(conn, kind, token, **hints)
        conn.execute(
            f"UPDATE {kind.table} SET {field_name} = ?, updated_at = ? WHERE id = ?",
            (value or "", store.now(), row["id"]),
        )
        updated = fetch(conn, kind, row["id"])

    logger.info(f"Updated {field_name} of {kind.value} {row['id']}")
    return updated


def transition_item(
    store: Store, kind: EntityKind, token: Token, target: LifecycleState | str, **hints
) -> sqlite3.Row:
    """Move a module, feature or task to a new lifecycle state.

    Requesting the current state is a no-op and writes nothing.

    Raises:
        InvalidArgumentError: If the state name is unknown
        InvalidTransitionError: If the transition is not allowed
    """
    target_state = parse_state(target)
    with store.transaction() as conn:
        row = resolve(conn, kind, token, **hints)
        current = LifecycleState(row["state"])
        if current == target_state:
            logger.debug(f"{kind.value} {row['id']} already {current.value}")
            return row
        validate_transition(current, target_state)
        conn.execute(
            f"UPDATE {kind.table} SET state = ?, updated_at = ? WHERE id = ?",
            (target_state.value, store.now(), row["id"]),
        )
        updated = fetch(conn, kind, row["id"])

    logger.info(
        f"Transitioned {kind.value} {row['id']}: {current.value} -> {target_state.value}"
    )
    return updated


def children_of(conn: sqlite3.Connection, kind: EntityKind, entity_id: int) -> list[sqlite3.Row]:
    """Immediate children of an entity, in insertion order."""
    child = kind.child
    if child is None:
        return []
    return conn.execute(
        f"SELECT * FROM {child.table} WHERE {child.parent_column} = ? ORDER BY id",
        (entity_id,),
    ).fetchall()


def research_for(conn: sqlite3.Connection, kind: EntityKind, entity_id: int) -> list[Research]:
    """Research records linked to an entity, in insertion order."""
    rows = conn.execute(
        """
        SELECT r.* FROM research r
        JOIN research_links l ON l.research_id = r.id
        WHERE l.entity_kind = ? AND l.entity_id = ?
        ORDER BY r.id
        """,
        (kind.value, entity_id),
    ).fetchall()
    return [Research.from_row(row) for row in rows]


def ancestor_rows(conn: sqlite3.Connection, kind: EntityKind, row: sqlite3.Row) -> dict[EntityKind, sqlite3.Row]:
    """Rows of every ancestor of ``row``, keyed by kind."""
    result: dict[EntityKind, sqlite3.Row] = {}
    current_kind = kind
    current = row
    while current_kind.parent is not None:
        parent_kind = current_kind.parent
        current = fetch(conn, parent_kind, current[current_kind.parent_column])
        result[parent_kind] = current
        current_kind = parent_kind
    return result
