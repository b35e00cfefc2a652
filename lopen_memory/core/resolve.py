"""Identifier resolution for lopen-memory.

Turns a user-supplied reference (numeric ID or name) plus optional
parent hints into exactly one row, or raises NotFoundError /
AmbiguousError. Resolution never writes; callers run it inside their
own transaction so the resolved row cannot change before the write.

Rules:
- A token made only of ASCII digits is an ID; hints are ignored.
- Otherwise the token is a name. The nearest supplied ancestor hint
  (feature, then module, then project) scopes the search; broader
  hints are used to resolve that ancestor.
- Without a hint, a name found under several parents is ambiguous.
- Research and project names are global.

This module is headless - no CLI dependencies.
"""

import logging
import re
import sqlite3
from typing import Optional, Union

from lopen_memory.core.errors import AmbiguousError, NotFoundError
from lopen_memory.core.models import EntityKind

logger = logging.getLogger(__name__)

Token = Union[str, int]

_ID_PATTERN = re.compile(r"[0-9]+")

# Largest value SQLite can store in an INTEGER column
MAX_ID = 2**63 - 1

# Table aliases used when joining up the hierarchy
_ALIASES = {
    EntityKind.PROJECT: "p",
    EntityKind.MODULE: "m",
    EntityKind.FEATURE: "f",
    EntityKind.TASK: "t",
}


def is_id(token: Token) -> bool:
    """True if the token is a non-negative integer reference."""
    if isinstance(token, int):
        return token >= 0
    return bool(_ID_PATTERN.fullmatch(token.strip()))


def resolve(
    conn: sqlite3.Connection,
    kind: EntityKind,
    token: Token,
    project: Optional[Token] = None,
    module: Optional[Token] = None,
    feature: Optional[Token] = None,
) -> sqlite3.Row:
    """Resolve a work-entity reference to its row.

    Args:
        conn: Open connection (inside the caller's transaction)
        kind: Which kind of entity to look up
        token: Numeric ID or name
        project: Optional project hint (name or ID)
        module: Optional module hint (name or ID)
        feature: Optional feature hint (name or ID)

    Returns:
        The matching row

    Raises:
        NotFoundError: If nothing matches (or a hint does not resolve)
        AmbiguousError: If the name matches under several parents
    """
    if is_id(token):
        return _by_id(conn, kind, int(token))

    hints = {
        EntityKind.PROJECT: project,
        EntityKind.MODULE: module,
        EntityKind.FEATURE: feature,
    }
    scope = _scope_from_hints(conn, kind, hints)
    return _by_name(conn, kind, str(token).strip(), scope)


def resolve_project(conn: sqlite3.Connection, token: Token) -> sqlite3.Row:
    return resolve(conn, EntityKind.PROJECT, token)


def resolve_module(
    conn: sqlite3.Connection, token: Token, project: Optional[Token] = None
) -> sqlite3.Row:
    return resolve(conn, EntityKind.MODULE, token, project=project)


def resolve_feature(
    conn: sqlite3.Connection,
    token: Token,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> sqlite3.Row:
    return resolve(conn, EntityKind.FEATURE, token, project=project, module=module)


def resolve_task(
    conn: sqlite3.Connection,
    token: Token,
    feature: Optional[Token] = None,
    module: Optional[Token] = None,
    project: Optional[Token] = None,
) -> sqlite3.Row:
    return resolve(conn, EntityKind.TASK, token, project=project, module=module, feature=feature)


def resolve_research(conn: sqlite3.Connection, token: Token) -> sqlite3.Row:
    """Resolve a research reference; research names are globally unique."""
    if is_id(token):
        research_id = int(token)
        row = None
        if research_id <= MAX_ID:
            row = conn.execute("SELECT * FROM research WHERE id = ?", (research_id,)).fetchone()
    else:
        row = conn.execute(
            "SELECT * FROM research WHERE name = ?", (str(token).strip(),)
        ).fetchone()
    if row is None:
        raise NotFoundError("research", str(token))
    return row


def lineage(conn: sqlite3.Connection, kind: EntityKind, row: sqlite3.Row) -> list[str]:
    """Names of the ancestors of ``row``, from the project down."""
    names: list[str] = []
    current_kind = kind
    current = row
    while current_kind.parent is not None:
        parent_kind = current_kind.parent
        current = conn.execute(
            f"SELECT * FROM {parent_kind.table} WHERE id = ?",
            (current[current_kind.parent_column],),
        ).fetchone()
        names.append(current["name"])
        current_kind = parent_kind
    names.reverse()
    return names


def _by_id(conn: sqlite3.Connection, kind: EntityKind, entity_id: int) -> sqlite3.Row:
    if entity_id > MAX_ID:
        raise NotFoundError(kind.value, str(entity_id))
    row = conn.execute(f"SELECT * FROM {kind.table} WHERE id = ?", (entity_id,)).fetchone()
    if row is None:
        raise NotFoundError(kind.value, str(entity_id))
    logger.debug(f"Resolved {kind.value} id {entity_id}")
    return row


def _scope_from_hints(
    conn: sqlite3.Connection,
    kind: EntityKind,
    hints: dict[EntityKind, Optional[Token]],
) -> Optional[tuple[EntityKind, sqlite3.Row]]:
    """Resolve the nearest supplied ancestor hint into a scope row."""
    ancestors = kind.ancestors()
    for index, ancestor in enumerate(ancestors):
        token = hints.get(ancestor)
        if token is None:
            continue
        broader = {a: hints.get(a) for a in ancestors[index + 1:]}
        row = resolve(
            conn,
            ancestor,
            token,
            project=broader.get(EntityKind.PROJECT),
            module=broader.get(EntityKind.MODULE),
        )
        return ancestor, row
    return None


def _by_name(
    conn: sqlite3.Connection,
    kind: EntityKind,
    name: str,
    scope: Optional[tuple[EntityKind, sqlite3.Row]],
) -> sqlite3.Row:
    alias = _ALIASES[kind]
    sql = f"SELECT {alias}.* FROM {kind.table} {alias}"
    params: list = []
    if scope is not None:
        scope_kind, scope_row = scope
        joins, column = _join_up_to(kind, scope_kind)
        sql += f" {joins} WHERE {alias}.name = ? AND {column} = ?"
        params = [name, scope_row["id"]]
    else:
        sql += f" WHERE {alias}.name = ?"
        params = [name]
    sql += f" ORDER BY {alias}.id"

    rows = conn.execute(sql, params).fetchall()

    if not rows:
        scope_label = None
        if scope is not None:
            scope_kind, scope_row = scope
            path = lineage(conn, scope_kind, scope_row) + [scope_row["name"]]
            scope_label = f"{scope_kind.value} {' > '.join(path)}"
        raise NotFoundError(kind.value, name, scope_label)

    if len(rows) > 1:
        scopes = [" > ".join(lineage(conn, kind, row)) for row in rows]
        raise AmbiguousError(kind.value, name, scopes, kind.parent.flag)

    logger.debug(f"Resolved {kind.value} '{name}' to id {rows[0]['id']}")
    return rows[0]


def _join_up_to(kind: EntityKind, ancestor: EntityKind) -> tuple[str, str]:
    """Build JOINs from ``kind`` up to just below ``ancestor``.

    Returns:
        (join clause, column holding the ancestor id)
    """
    joins = []
    current = kind
    while current.parent is not ancestor:
        parent = current.parent
        if parent is None:
            raise ValueError(f"{ancestor.value} is not an ancestor of {kind.value}")
        joins.append(
            f"JOIN {parent.table} {_ALIASES[parent]} "
            f"ON {_ALIASES[parent]}.id = {_ALIASES[current]}.{current.parent_column}"
        )
        current = parent
    return " ".join(joins), f"{_ALIASES[current]}.{current.parent_column}"
