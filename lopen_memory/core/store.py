"""Persistent store for lopen-memory.

A ``Store`` is the explicit handle every core operation receives. It
owns one SQLite connection for the lifetime of the process, creates
the schema on first open, and provides the transaction boundary that
makes resolve-validate-write sequences atomic.

This module is headless - no CLI dependencies.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from lopen_memory.core.clock import Clock, SystemClock, format_timestamp
from lopen_memory.core.errors import StorageError

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"
DEFAULT_BUSY_TIMEOUT = 5.0

_LIFECYCLE_CHECK = "CHECK (state IN ('Draft', 'Planning', 'Building', 'Complete', 'Amending'))"

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS projects (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL UNIQUE,
    path        TEXT    NOT NULL DEFAULT '',
    description TEXT    NOT NULL DEFAULT '',
    completed   INTEGER NOT NULL DEFAULT 0 CHECK (completed IN (0, 1)),
    created_at  TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS modules (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id  INTEGER NOT NULL REFERENCES projects(id),
    name        TEXT    NOT NULL,
    description TEXT    NOT NULL DEFAULT '',
    details     TEXT    NOT NULL DEFAULT '',
    state       TEXT    NOT NULL DEFAULT 'Draft' {_LIFECYCLE_CHECK},
    created_at  TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL,
    UNIQUE (project_id, name)
);

CREATE TABLE IF NOT EXISTS features (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    module_id   INTEGER NOT NULL REFERENCES modules(id),
    name        TEXT    NOT NULL,
    description TEXT    NOT NULL DEFAULT '',
    details     TEXT    NOT NULL DEFAULT '',
    state       TEXT    NOT NULL DEFAULT 'Draft' {_LIFECYCLE_CHECK},
    created_at  TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL,
    UNIQUE (module_id, name)
);

CREATE TABLE IF NOT EXISTS tasks (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    feature_id  INTEGER NOT NULL REFERENCES features(id),
    name        TEXT    NOT NULL,
    description TEXT    NOT NULL DEFAULT '',
    details     TEXT    NOT NULL DEFAULT '',
    state       TEXT    NOT NULL DEFAULT 'Draft' {_LIFECYCLE_CHECK},
    created_at  TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL,
    UNIQUE (feature_id, name)
);

CREATE TABLE IF NOT EXISTS research (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    name          TEXT    NOT NULL UNIQUE,
    description   TEXT    NOT NULL DEFAULT '',
    content       TEXT    NOT NULL DEFAULT '',
    source        TEXT    NOT NULL DEFAULT '',
    researched_at TEXT    NOT NULL,
    created_at    TEXT    NOT NULL,
    updated_at    TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS research_links (
    research_id INTEGER NOT NULL REFERENCES research(id),
    entity_kind TEXT    NOT NULL CHECK (entity_kind IN ('project', 'module', 'feature', 'task')),
    entity_id   INTEGER NOT NULL,
    created_at  TEXT    NOT NULL,
    PRIMARY KEY (research_id, entity_kind, entity_id)
);

CREATE INDEX IF NOT EXISTS idx_modules_project ON modules(project_id);
CREATE INDEX IF NOT EXISTS idx_features_module ON features(module_id);
CREATE INDEX IF NOT EXISTS idx_tasks_feature ON tasks(feature_id);
CREATE INDEX IF NOT EXISTS idx_research_links_entity ON research_links(entity_kind, entity_id);
"""


class Store:
    """Handle on an open lopen-memory database.

    Construct with ``Store.open(path)``; the handle is valid until
    ``close()`` is called. Use as a context manager to close
    automatically.

    Example:
        with Store.open(Path("~/.lopen-memory/lopen-memory.db")) as store:
            projects.create(store, "my-app", "/src/my-app")
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        db_path: Union[Path, str],
        clock: Optional[Clock] = None,
    ):
        self.conn = conn
        self.db_path = db_path
        self.clock: Clock = clock or SystemClock()
        self._in_transaction = False

    @classmethod
    def open(
        cls,
        db_path: Union[Path, str],
        clock: Optional[Clock] = None,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
    ) -> "Store":
        """Open (and if necessary initialize) the database at ``db_path``.

        Args:
            db_path: Database file path, or ":memory:"
            clock: Time source for timestamps (defaults to the system clock)
            busy_timeout: Seconds to wait for a lock held by another process

        Raises:
            StorageError: If the file cannot be opened or the schema created
        """
        if str(db_path) != MEMORY_DB:
            db_path = Path(db_path)
            try:
                db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"cannot create database directory {db_path.parent}: {e}") from e

        try:
            # Autocommit mode; transactions are opened explicitly in transaction()
            conn = sqlite3.connect(str(db_path), timeout=busy_timeout, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            if str(db_path) != MEMORY_DB:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            logger.error(f"Failed to open database {db_path}: {e}")
            raise StorageError(f"failed to open database {db_path}: {e}") from e

        logger.debug(f"Opened database {db_path}")
        return cls(conn, db_path, clock=clock)

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def now(self) -> str:
        """Current time from the injected clock, in storage format."""
        return format_timestamp(self.clock.now())

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[sqlite3.Connection]:
        """Run a block inside a single SQLite transaction.

        Write transactions take the database write lock up front
        (``BEGIN IMMEDIATE``) so resolution, validation and the write
        itself see one consistent state. Any exception rolls the whole
        block back; ``sqlite3`` errors are re-raised as StorageError.

        Args:
            write: False for read-only blocks (deferred lock)

        Yields:
            The underlying connection
        """
        if self.conn is None:
            raise StorageError("store is closed")
        if self._in_transaction:
            raise RuntimeError("nested transactions are not supported")

        try:
            self.conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
        except sqlite3.Error as e:
            logger.error(f"Could not begin transaction on {self.db_path}: {e}")
            raise StorageError(f"could not begin transaction: {e}") from e

        self._in_transaction = True
        try:
            yield self.conn
            self.conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback()
            logger.error(f"Storage failure, transaction rolled back: {e}")
            raise StorageError(str(e)) from e
        except BaseException:
            self._rollback()
            raise
        finally:
            self._in_transaction = False

    def _rollback(self) -> None:
        if self.conn is not None and self.conn.in_transaction:
            self.conn.execute("ROLLBACK")

