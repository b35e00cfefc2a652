"""Cascade and bridge deletion for lopen-memory.

Two policies:

- Work entities (project/module/feature/task) refuse removal while
  they own children unless ``cascade`` is set; a cascade removes the
  subtree depth-first, and every removed entity takes its research
  bridge rows with it. Research rows are never touched.
- Research removal always deletes the research row plus its bridge
  rows, and never touches a work entity.

Each request runs in one write transaction, so a failure anywhere in
the subtree leaves the database as it was.

This module is headless - no CLI dependencies.
"""

import logging
import sqlite3

from lopen_memory.core.errors import HasChildrenError
from lopen_memory.core.models import EntityKind, RemovalSummary
from lopen_memory.core.resolve import Token, resolve, resolve_research
from lopen_memory.core.store import Store

logger = logging.getLogger(__name__)


def remove_work_entity(
    store: Store, kind: EntityKind, token: Token, cascade: bool = False, **hints
) -> RemovalSummary:
    """Delete a work entity, optionally with everything beneath it.

    Args:
        store: Open store
        kind: Kind of the entity to remove
        token: Name or ID
        cascade: Also delete descendants
        **hints: Parent hints for name resolution

    Returns:
        RemovalSummary with per-kind row counts and bridge rows removed

    Raises:
        HasChildrenError: If the entity has children and cascade is False
        StorageError: If any delete fails (nothing is removed)
    """
    with store.transaction() as conn:
        row = resolve(conn, kind, token, **hints)

        child = kind.child
        if child is not None and not cascade:
            count = conn.execute(
                f"SELECT COUNT(*) FROM {child.table} WHERE {child.parent_column} = ?",
                (row["id"],),
            ).fetchone()[0]
            if count:
                raise HasChildrenError(kind.value, row["name"], child.value, count)

        summary = RemovalSummary(kind=kind.value, id=row["id"], name=row["name"])
        _delete_one(conn, kind, row["id"], summary)

    logger.info(
        f"Removed {kind.value} {summary.id} '{summary.name}': "
        f"{summary.removed} ({summary.links_removed} research links)"
    )
    return summary


def remove_research(store: Store, token: Token) -> RemovalSummary:
    """Delete a research record and all of its bridge rows.

    Linked work entities are left untouched.
    """
    with store.transaction() as conn:
        row = resolve_research(conn, token)
        cursor = conn.execute("DELETE FROM research_links WHERE research_id = ?", (row["id"],))
        links_removed = cursor.rowcount
        conn.execute("DELETE FROM research WHERE id = ?", (row["id"],))

    logger.info(f"Removed research {row['id']} '{row['name']}' ({links_removed} links)")
    return RemovalSummary(
        kind="research",
        id=row["id"],
        name=row["name"],
        removed={"research": 1},
        links_removed=links_removed,
    )


def _delete_one(
    conn: sqlite3.Connection, kind: EntityKind, entity_id: int, summary: RemovalSummary
) -> None:
    """Depth-first delete of one entity and its subtree."""
    child = kind.child
    if child is not None:
        child_ids = [
            r["id"]
            for r in conn.execute(
                f"SELECT id FROM {child.table} WHERE {child.parent_column} = ? ORDER BY id",
                (entity_id,),
            )
        ]
        for child_id in child_ids:
            _delete_one(conn, child, child_id, summary)

    cursor = conn.execute(
        "DELETE FROM research_links WHERE entity_kind = ? AND entity_id = ?",
        (kind.value, entity_id),
    )
    summary.links_removed += cursor.rowcount
    conn.execute(f"DELETE FROM {kind.table} WHERE id = ?", (entity_id,))
    summary.removed[kind.value] = summary.removed.get(kind.value, 0) + 1
