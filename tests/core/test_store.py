"""Tests for the store handle, schema and clock."""

import sqlite3
from datetime import datetime, timezone

import pytest

from lopen_memory.core import projects
from lopen_memory.core.clock import FixedClock, format_timestamp, parse_date_input, parse_timestamp
from lopen_memory.core.errors import InvalidArgumentError, StorageError
from lopen_memory.core.store import Store


class TestOpen:
    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "memory.db"
        with Store.open(path) as store:
            assert path.exists()
            assert store.db_path == path

    def test_schema_has_all_tables(self, store):
        with store.transaction(write=False) as conn:
            names = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        assert {"projects", "modules", "features", "tasks", "research", "research_links"} <= names

    def test_reopen_keeps_data(self, db_path, clock):
        with Store.open(db_path, clock=clock) as store:
            projects.create(store, "my-app", "/src")
        with Store.open(db_path, clock=clock) as store:
            assert projects.get(store, "my-app").path == "/src"

    def test_in_memory(self, clock):
        with Store.open(":memory:", clock=clock) as store:
            assert projects.create(store, "p", "/").id == 1

    def test_foreign_keys_enforced(self, store):
        with pytest.raises(StorageError):
            with store.transaction() as conn:
                conn.execute(
                    "INSERT INTO modules (project_id, name, created_at, updated_at) "
                    "VALUES (99, 'orphan', 'x', 'x')"
                )

    def test_unopenable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError):
            Store.open(blocker / "memory.db")


class TestTransaction:
    def test_rollback_on_error(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction() as conn:
                conn.execute(
                    "INSERT INTO projects (name, created_at, updated_at) VALUES ('p', 'x', 'x')"
                )
                raise RuntimeError("boom")
        assert projects.list_projects(store) == []

    def test_sqlite_errors_become_storage_errors(self, store):
        with pytest.raises(StorageError) as exc_info:
            with store.transaction() as conn:
                conn.execute("SELECT * FROM no_such_table")
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)

    def test_nested_transactions_rejected(self, store):
        with store.transaction():
            with pytest.raises(RuntimeError):
                with store.transaction():
                    pass

    def test_closed_store(self, db_path):
        store = Store.open(db_path)
        store.close()
        with pytest.raises(StorageError):
            with store.transaction():
                pass

    def test_lock_held_by_other_connection(self, db_path):
        """A write lock that cannot be acquired surfaces as StorageError."""
        with Store.open(db_path, busy_timeout=0.1) as store:
            other = sqlite3.connect(str(db_path), isolation_level=None)
            try:
                other.execute("BEGIN IMMEDIATE")
                with pytest.raises(StorageError):
                    projects.create(store, "blocked", "/")
            finally:
                other.execute("ROLLBACK")
                other.close()


class TestClock:
    def test_fixed_clock_advance(self):
        clock = FixedClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert clock.advance(days=2) == datetime(2024, 1, 3, tzinfo=timezone.utc)
        assert clock.now() == datetime(2024, 1, 3, tzinfo=timezone.utc)

    def test_store_uses_injected_clock(self, store, clock):
        assert store.now() == "2024-06-01T12:00:00Z"
        clock.advance(hours=1)
        assert store.now() == "2024-06-01T13:00:00Z"

    def test_timestamp_round_trip(self):
        moment = datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc)
        assert parse_timestamp(format_timestamp(moment)) == moment

    def test_parse_date_only(self):
        assert parse_date_input("2024-06-01") == datetime(2024, 6, 1, tzinfo=timezone.utc)

    def test_parse_with_offset(self):
        parsed = parse_date_input("2024-06-01T14:00:00+02:00")
        assert format_timestamp(parsed) == "2024-06-01T12:00:00Z"

    @pytest.mark.parametrize("bad", ["06/01/2024", "2024-13-01", "yesterday", ""])
    def test_parse_rejects_garbage(self, bad):
        with pytest.raises(InvalidArgumentError):
            parse_date_input(bad)

    @pytest.mark.parametrize(
        "early", ["0999-01-01", "0001-01-01", "0999-12-31T23:00:00Z", "0001-01-01T00:00:00+01:00"]
    )
    def test_parse_rejects_years_before_1000(self, early):
        with pytest.raises(InvalidArgumentError, match="out of range"):
            parse_date_input(early)

    def test_format_pads_short_years(self):
        moment = datetime(999, 1, 1, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "0999-01-01T00:00:00Z"
        assert parse_timestamp(format_timestamp(moment)) == moment
