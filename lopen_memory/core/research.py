"""Research records for lopen-memory.

Research is reference material (an RFC summary, a library evaluation,
a design investigation) that lives outside the work hierarchy. Names
are globally unique. A research record can be linked to any number of
projects, modules, features and tasks through ``research_links``
bridge rows; linking the same pair twice keeps one row.

This module is headless - no CLI dependencies.
"""

import logging
import sqlite3
from datetime import date, datetime, timedelta
from typing import Optional, Union

from lopen_memory.core import deletion, hierarchy
from lopen_memory.core.clock import format_timestamp, parse_date_input
from lopen_memory.core.errors import DuplicateNameError, InvalidArgumentError
from lopen_memory.core.models import (
    EntityKind,
    LinkChange,
    LinkedEntity,
    RemovalSummary,
    Research,
    ResearchDetail,
)
from lopen_memory.core.resolve import Token, lineage, resolve, resolve_research
from lopen_memory.core.store import Store

logger = logging.getLogger(__name__)

# Display order of linked entities
_KIND_ORDER = {
    EntityKind.PROJECT: 0,
    EntityKind.MODULE: 1,
    EntityKind.FEATURE: 2,
    EntityKind.TASK: 3,
}

_SEARCH_COLUMNS = ("name", "description", "content", "source")


def create(store: Store, name: str, description: str = "") -> Research:
    """Create a research record; ``researched_at`` starts at now.

    Raises:
        InvalidArgumentError: If the name is empty or numeric
        DuplicateNameError: If a research record with this name exists
    """
    name = hierarchy.clean_name(name)
    now = store.now()

    with store.transaction() as conn:
        _ensure_unique(conn, name)
        cursor = conn.execute(
            """
            INSERT INTO research (name, description, content, source, researched_at, created_at, updated_at)
            VALUES (?, ?, '', '', ?, ?, ?)
            """,
            (name, description or "", now, now, now),
        )
        row = _fetch(conn, cursor.lastrowid)

    logger.info(f"Created research {row['id']} '{name}'")
    return Research.from_row(row)


def get(store: Store, research: Token) -> Research:
    with store.transaction(write=False) as conn:
        return Research.from_row(resolve_research(conn, research))


def list_research(store: Store, stale_days: Optional[int] = None) -> list[Research]:
    """List research in insertion order.

    Args:
        store: Open store
        stale_days: If set, only records whose researched_at is more
            than this many days in the past
    """
    sql = "SELECT * FROM research"
    params: list = []
    if stale_days is not None:
        sql += " WHERE researched_at < ?"
        params.append(_stale_cutoff(store, stale_days))
    sql += " ORDER BY id"

    with store.transaction(write=False) as conn:
        rows = conn.execute(sql, params).fetchall()
    return [Research.from_row(row) for row in rows]


def search(store: Store, term: str, stale_days: Optional[int] = None) -> list[Research]:
    """Case-insensitive substring search over name, description, content and source.

    Args:
        store: Open store
        term: Substring to look for; matched literally (``%`` and ``_`` are not wildcards)
        stale_days: Optional staleness filter, as in ``list_research``

    Returns:
        Matching records in insertion order (possibly empty)
    """
    pattern = "%" + _escape_like(term.lower()) + "%"
    clauses = " OR ".join(f"LOWER({column}) LIKE ? ESCAPE '\\'" for column in _SEARCH_COLUMNS)
    sql = f"SELECT * FROM research WHERE ({clauses})"
    params: list = [pattern] * len(_SEARCH_COLUMNS)
    if stale_days is not None:
        sql += " AND researched_at < ?"
        params.append(_stale_cutoff(store, stale_days))
    sql += " ORDER BY id"

    with store.transaction(write=False) as conn:
        rows = conn.execute(sql, params).fetchall()
    logger.debug(f"Search '{term}' matched {len(rows)} research records")
    return [Research.from_row(row) for row in rows]


def show(store: Store, research: Token) -> ResearchDetail:
    """Research record plus every work entity it is linked to."""
    with store.transaction(write=False) as conn:
        row = resolve_research(conn, research)
        linked = _linked_entities(conn, row["id"])
    return ResearchDetail(research=Research.from_row(row), links=linked)


def links(store: Store, research: Token) -> list[LinkedEntity]:
    with store.transaction(write=False) as conn:
        row = resolve_research(conn, research)
        return _linked_entities(conn, row["id"])


def rename(store: Store, research: Token, new_name: str) -> Research:
    new_name = hierarchy.clean_name(new_name)
    with store.transaction() as conn:
        row = resolve_research(conn, research)
        if row["name"] == new_name:
            return Research.from_row(row)
        _ensure_unique(conn, new_name, exclude_id=row["id"])
        conn.execute(
            "UPDATE research SET name = ?, updated_at = ? WHERE id = ?",
            (new_name, store.now(), row["id"]),
        )
        updated = _fetch(conn, row["id"])

    logger.info(f"Renamed research {row['id']}: '{row['name']}' -> '{new_name}'")
    return Research.from_row(updated)


def set_description(store: Store, research: Token, description: str) -> Research:
    return _update(store, research, description=description or "")


def set_source(store: Store, research: Token, source: str) -> Research:
    return _update(store, research, source=source or "")


def set_content(
    store: Store, research: Token, content: str, update_date: bool = True
) -> Research:
    """Replace the findings text.

    Args:
        store: Open store
        research: Name or ID
        content: New content (replaces the old entirely)
        update_date: Also stamp researched_at with the current time
    """
    if update_date:
        return _update(store, research, content=content or "", researched_at=store.now())
    return _update(store, research, content=content or "")


def set_researched_at(
    store: Store, research: Token, value: Union[str, date, datetime]
) -> Research:
    """Override researched_at, e.g. when importing research done earlier.

    Raises:
        InvalidArgumentError: If the date cannot be parsed
    """
    moment = parse_date_input(value)
    return _update(store, research, researched_at=format_timestamp(moment))


def link(store: Store, research: Token, kind: EntityKind, target: Token, **hints) -> LinkChange:
    """Link a research record to one work entity.

    Linking an already-linked pair is a no-op reported with ``changed=False``.

    Args:
        store: Open store
        research: Research name or ID
        kind: Kind of the target entity
        target: Target name or ID
        **hints: Parent hints for resolving the target
    """
    with store.transaction() as conn:
        research_row = resolve_research(conn, research)
        target_row = resolve(conn, kind, target, **hints)
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO research_links (research_id, entity_kind, entity_id, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (research_row["id"], kind.value, target_row["id"], store.now()),
        )
        changed = cursor.rowcount > 0
        linked = _as_linked(conn, kind, target_row)

    if changed:
        logger.info(f"Linked research {research_row['id']} to {kind.value} {target_row['id']}")
    return LinkChange(Research.from_row(research_row), linked, changed)


def unlink(store: Store, research: Token, kind: EntityKind, target: Token, **hints) -> LinkChange:
    """Remove the bridge row between a research record and one work entity.

    Unlinking a pair that is not linked succeeds with ``changed=False``.
    """
    with store.transaction() as conn:
        research_row = resolve_research(conn, research)
        target_row = resolve(conn, kind, target, **hints)
        cursor = conn.execute(
            "DELETE FROM research_links WHERE research_id = ? AND entity_kind = ? AND entity_id = ?",
            (research_row["id"], kind.value, target_row["id"]),
        )
        changed = cursor.rowcount > 0
        linked = _as_linked(conn, kind, target_row)

    if changed:
        logger.info(f"Unlinked research {research_row['id']} from {kind.value} {target_row['id']}")
    return LinkChange(Research.from_row(research_row), linked, changed)


def remove(store: Store, research: Token) -> RemovalSummary:
    return deletion.remove_research(store, research)


def _fetch(conn: sqlite3.Connection, research_id: int) -> sqlite3.Row:
    return conn.execute("SELECT * FROM research WHERE id = ?", (research_id,)).fetchone()


def _ensure_unique(conn: sqlite3.Connection, name: str, exclude_id: Optional[int] = None) -> None:
    sql = "SELECT id FROM research WHERE name = ?"
    params: list = [name]
    if exclude_id is not None:
        sql += " AND id != ?"
        params.append(exclude_id)
    if conn.execute(sql, params).fetchone() is not None:
        raise DuplicateNameError("research", name)


def _update(store: Store, research: Token, **fields: str) -> Research:
    assignments = ", ".join(f"{column} = ?" for column in fields)
    with store.transaction() as conn:
        row = resolve_research(conn, research)
        conn.execute(
            f"UPDATE research SET {assignments}, updated_at = ? WHERE id = ?",
            (*fields.values(), store.now(), row["id"]),
        )
        updated = _fetch(conn, row["id"])

    logger.info(f"Updated {', '.join(fields)} of research {row['id']}")
    return Research.from_row(updated)


def _stale_cutoff(store: Store, stale_days: int) -> str:
    if stale_days < 0:
        raise InvalidArgumentError(f"stale days must be zero or positive, got {stale_days}")
    try:
        cutoff = store.clock.now() - timedelta(days=stale_days)
    except OverflowError:
        # Before the earliest representable date: nothing can be that old
        cutoff = datetime.min
    return format_timestamp(cutoff)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _as_linked(conn: sqlite3.Connection, kind: EntityKind, row: sqlite3.Row) -> LinkedEntity:
    return LinkedEntity(
        kind=kind,
        id=row["id"],
        name=row["name"],
        context=" > ".join(lineage(conn, kind, row)),
    )


def _linked_entities(conn: sqlite3.Connection, research_id: int) -> list[LinkedEntity]:
    """Every work entity linked to ``research_id``, project first, then by id."""
    bridge_rows = conn.execute(
        "SELECT entity_kind, entity_id FROM research_links WHERE research_id = ?",
        (research_id,),
    ).fetchall()

    result = []
    for bridge in bridge_rows:
        kind = EntityKind(bridge["entity_kind"])
        row = hierarchy.fetch(conn, kind, bridge["entity_id"])
        if row is None:
            logger.warning(
                f"research {research_id} links to missing {kind.value} {bridge['entity_id']}"
            )
            continue
        result.append(_as_linked(conn, kind, row))

    result.sort(key=lambda linked: (_KIND_ORDER[linked.kind], linked.id))
    return result
