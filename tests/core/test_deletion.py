"""Tests for cascade and bridge deletion."""

import pytest

from lopen_memory.core import features, modules, projects, research, tasks
from lopen_memory.core.errors import HasChildrenError, NotFoundError, StorageError
from lopen_memory.core.models import EntityKind


def count_rows(store, table):
    with store.transaction(write=False) as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


class TestRefuseWithoutCascade:
    def test_project_with_modules(self, store, populated):
        with pytest.raises(HasChildrenError) as exc_info:
            projects.remove(store, "my-app")

        err = exc_info.value
        assert err.child_kind == "module"
        assert err.count == 2
        assert "--cascade" in str(err)
        assert projects.get(store, "my-app").id == populated.project.id

    def test_module_with_features(self, store, populated):
        with pytest.raises(HasChildrenError):
            modules.remove(store, "auth")
        assert count_rows(store, "features") == 2

    def test_feature_with_tasks(self, store, populated):
        with pytest.raises(HasChildrenError):
            features.remove(store, "login-flow")

    def test_childless_entities_remove_directly(self, store, populated):
        summary = modules.remove(store, "payments", project="my-app")
        assert summary.removed == {"module": 1}

        summary = projects.remove(store, "other-app")
        assert summary.kind == "project"
        assert summary.links_removed == 0


class TestCascade:
    def test_project_cascade_removes_subtree(self, store, populated):
        summary = projects.remove(store, "my-app", cascade=True)

        assert summary.removed == {"project": 1, "module": 2, "feature": 2, "task": 2}
        assert summary.links_removed == 4
        assert count_rows(store, "modules") == 0
        assert count_rows(store, "features") == 0
        assert count_rows(store, "tasks") == 0
        assert count_rows(store, "research_links") == 0

    def test_research_survives_cascade(self, store, populated):
        projects.remove(store, "my-app", cascade=True)

        detail = research.show(store, "jwt-rfc")
        assert detail.research.id == populated.rfc.id
        assert detail.links == []

    def test_other_project_untouched(self, store, populated):
        modules.create(store, "other-app", "auth")
        projects.remove(store, "my-app", cascade=True)
        assert [m.name for m in modules.list_modules(store, "other-app")] == ["auth"]

    def test_module_cascade(self, store, populated):
        summary = modules.remove(store, "auth", cascade=True)

        assert summary.count(EntityKind.FEATURE) == 2
        assert summary.removed["task"] == 2
        assert summary.links_removed == 3
        assert [m.name for m in projects.show(store, "my-app").modules] == ["payments"]
        assert [e.kind.value for e in research.links(store, "jwt-rfc")] == ["project"]

    def test_feature_cascade(self, store, populated):
        features.remove(store, "login-flow", cascade=True)
        assert count_rows(store, "tasks") == 0
        assert [f.name for f in features.list_features(store, "auth")] == ["token-refresh"]

    def test_cascade_flag_on_childless_entity(self, store, populated):
        summary = features.remove(store, "token-refresh", cascade=True)
        assert summary.removed == {"feature": 1}

    def test_removed_entities_no_longer_resolve(self, store, populated):
        modules.remove(store, "auth", cascade=True)
        with pytest.raises(NotFoundError):
            tasks.get(store, str(populated.jwt_task.id))


class TestTaskRemoval:
    def test_task_removal_drops_only_its_link(self, store, populated):
        before = len(research.links(store, "jwt-rfc"))
        summary = tasks.remove(store, "implement-jwt")

        assert summary.removed == {"task": 1}
        assert summary.links_removed == 1
        assert len(research.links(store, "jwt-rfc")) == before - 1
        assert research.get(store, "jwt-rfc").content == populated.rfc.content


class TestResearchRemoval:
    def test_removes_record_and_links(self, store, populated):
        summary = research.remove(store, "jwt-rfc")

        assert summary.kind == "research"
        assert summary.links_removed == 4
        assert count_rows(store, "research_links") == 0
        with pytest.raises(NotFoundError):
            research.get(store, "jwt-rfc")

    def test_linked_entities_unchanged(self, store, populated):
        before = tasks.get(store, "implement-jwt")
        module_before = modules.get(store, "auth")

        research.remove(store, "jwt-rfc")

        assert tasks.get(store, "implement-jwt") == before
        assert modules.get(store, "auth") == module_before
        assert projects.show(store, "my-app").research == []

    def test_other_research_links_kept(self, store, populated):
        research.link(store, "oauth2-flows", EntityKind.MODULE, "auth")
        research.remove(store, "jwt-rfc")
        assert [e.name for e in research.links(store, "oauth2-flows")] == ["auth"]


class TestAtomicity:
    def test_failure_mid_cascade_rolls_back(self, store, populated):
        """A delete that fails deep in the subtree leaves every row in place."""
        store.conn.execute(
            """
            CREATE TRIGGER block_task_delete BEFORE DELETE ON tasks
            WHEN OLD.name = 'write-tests'
            BEGIN
                SELECT RAISE(ABORT, 'task delete blocked');
            END
            """
        )
        tables = ("projects", "modules", "features", "tasks", "research_links")
        counts = {t: count_rows(store, t) for t in tables}

        with pytest.raises(StorageError):
            projects.remove(store, "my-app", cascade=True)

        assert {t: count_rows(store, t) for t in counts} == counts
        assert len(research.links(store, "jwt-rfc")) == 4

    def test_store_usable_after_rollback(self, store, populated):
        store.conn.execute(
            """
            CREATE TRIGGER block_feature_delete BEFORE DELETE ON features
            BEGIN
                SELECT RAISE(ABORT, 'feature delete blocked');
            END
            """
        )
        with pytest.raises(StorageError):
            modules.remove(store, "auth", cascade=True)

        store.conn.execute("DROP TRIGGER block_feature_delete")
        summary = modules.remove(store, "auth", cascade=True)
        assert summary.removed["feature"] == 2
