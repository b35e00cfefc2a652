"""Tests for module, feature and task operations."""

import itertools

import pytest

from lopen_memory.core import features, modules, projects, tasks
from lopen_memory.core.errors import (
    AmbiguousError,
    DuplicateNameError,
    InvalidArgumentError,
    MissingParentError,
    NotFoundError,
)
from lopen_memory.core.state_machine import (
    ALLOWED_TRANSITIONS,
    InvalidTransitionError,
    LifecycleState,
)

# Shortest path from Draft to each state
PATH_TO = {
    LifecycleState.DRAFT: [],
    LifecycleState.PLANNING: [LifecycleState.PLANNING],
    LifecycleState.BUILDING: [LifecycleState.PLANNING, LifecycleState.BUILDING],
    LifecycleState.COMPLETE: [
        LifecycleState.PLANNING,
        LifecycleState.BUILDING,
        LifecycleState.COMPLETE,
    ],
    LifecycleState.AMENDING: [
        LifecycleState.PLANNING,
        LifecycleState.BUILDING,
        LifecycleState.COMPLETE,
        LifecycleState.AMENDING,
    ],
}


class TestCreate:
    def test_module_starts_in_draft(self, store):
        projects.create(store, "my-app", "/")
        module = modules.create(store, "my-app", "auth", "Authentication")

        assert module.state == LifecycleState.DRAFT
        assert module.project_id == 1
        assert module.description == "Authentication"
        assert module.details == ""

    def test_feature_and_task(self, store, populated):
        assert populated.login.module_id == populated.auth.id
        assert populated.jwt_task.feature_id == populated.login.id
        assert populated.jwt_task.state == LifecycleState.DRAFT

    def test_missing_parent(self, store):
        with pytest.raises(MissingParentError) as exc_info:
            modules.create(store, "ghost", "auth")
        assert exc_info.value.parent_kind == "project"

    def test_missing_parent_by_id(self, store, populated):
        with pytest.raises(MissingParentError):
            tasks.create(store, "9999", "orphan")

    def test_duplicate_within_parent(self, store, populated):
        with pytest.raises(DuplicateNameError) as exc_info:
            modules.create(store, "my-app", "auth")
        assert "my-app" in str(exc_info.value)

    def test_same_name_in_other_parent(self, store, populated):
        other = modules.create(store, "other-app", "auth")
        assert other.id != populated.auth.id

    def test_numeric_name_rejected(self, store, populated):
        with pytest.raises(InvalidArgumentError):
            features.create(store, "auth", "2024", project="my-app")

    def test_ambiguous_parent_propagates(self, store, populated):
        modules.create(store, "other-app", "auth")
        with pytest.raises(AmbiguousError):
            features.create(store, "auth", "signup")


class TestScopedNames:
    """Same name under two scopes: both succeed, unhinted lookup is ambiguous."""

    @pytest.fixture
    def twins(self, store, populated):
        other_auth = modules.create(store, "other-app", "auth")
        other_login = features.create(store, other_auth.id, "login-flow")
        other_jwt = tasks.create(store, other_login.id, "implement-jwt")
        return other_auth, other_login, other_jwt

    def test_module_twins(self, store, populated, twins):
        with pytest.raises(AmbiguousError):
            modules.get(store, "auth")
        assert modules.get(store, "auth", project="my-app").id == populated.auth.id
        assert modules.get(store, "auth", project="other-app").id == twins[0].id

    def test_feature_twins(self, store, populated, twins):
        with pytest.raises(AmbiguousError):
            features.get(store, "login-flow")
        assert features.get(store, "login-flow", project="my-app").id == populated.login.id

    def test_task_twins(self, store, populated, twins):
        with pytest.raises(AmbiguousError):
            tasks.get(store, "implement-jwt")
        found = tasks.get(store, "implement-jwt", module="auth", project="other-app")
        assert found.id == twins[2].id


class TestList:
    def test_list_modules(self, store, populated):
        assert [m.name for m in modules.list_modules(store, "my-app")] == ["auth", "payments"]

    def test_list_empty(self, store, populated):
        assert modules.list_modules(store, "other-app") == []

    def test_state_filter(self, store, populated):
        modules.transition(store, "payments", "Planning")
        planning = modules.list_modules(store, "my-app", state="planning")
        assert [m.name for m in planning] == ["payments"]

    def test_bad_state_filter(self, store, populated):
        with pytest.raises(InvalidArgumentError):
            modules.list_modules(store, "my-app", state="Done")

    def test_list_features_with_hint(self, store, populated):
        names = [f.name for f in features.list_features(store, "auth", project="my-app")]
        assert names == ["login-flow", "token-refresh"]

    def test_list_tasks(self, store, populated):
        names = [t.name for t in tasks.list_tasks(store, "login-flow")]
        assert names == ["implement-jwt", "write-tests"]

    def test_list_unknown_parent(self, store):
        with pytest.raises(NotFoundError):
            tasks.list_tasks(store, "nothing")


class TestUpdate:
    def test_rename_within_scope(self, store, populated):
        renamed = features.rename(store, "login-flow", "sign-in")
        assert renamed.name == "sign-in"
        with pytest.raises(NotFoundError):
            features.get(store, "login-flow")

    def test_rename_clash_in_scope(self, store, populated):
        with pytest.raises(DuplicateNameError):
            features.rename(store, "login-flow", "token-refresh")

    def test_rename_to_name_used_elsewhere(self, store, populated):
        """Uniqueness is per parent, so another project's name is fine."""
        modules.create(store, "other-app", "billing")
        assert modules.rename(store, "payments", "billing").name == "billing"

    def test_set_details_replaces(self, store, populated, clock):
        tasks.set_details(store, "implement-jwt", "first draft")
        clock.advance(seconds=30)
        task = tasks.set_details(store, "implement-jwt", "HS256, 1h expiry")
        assert task.details == "HS256, 1h expiry"
        assert task.updated_at == clock.now()

    def test_set_description(self, store, populated):
        module = modules.set_description(store, "auth", "Auth and sessions", project="my-app")
        assert module.description == "Auth and sessions"


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target", list(itertools.product(LifecycleState, LifecycleState))
    )
    def test_every_pair(self, store, populated, current, target):
        for step in PATH_TO[current]:
            tasks.transition(store, "implement-jwt", step)
        assert tasks.get(store, "implement-jwt").state == current

        allowed = current == target or target in ALLOWED_TRANSITIONS[current]
        if allowed:
            assert tasks.transition(store, "implement-jwt", target).state == target
        else:
            with pytest.raises(InvalidTransitionError) as exc_info:
                tasks.transition(store, "implement-jwt", target)
            assert exc_info.value.current == current
            assert exc_info.value.target == target
            assert tasks.get(store, "implement-jwt").state == current

    def test_same_state_writes_nothing(self, store, populated, clock):
        before = features.transition(store, "login-flow", "Planning")
        clock.advance(hours=2)
        after = features.transition(store, "login-flow", "Planning")
        assert after.state == LifecycleState.PLANNING
        assert after.updated_at == before.updated_at

    def test_transition_stamps_updated_at(self, store, populated, clock):
        clock.advance(days=1)
        module = modules.transition(store, "auth", "Planning", project="my-app")
        assert module.updated_at == clock.now()

    def test_unknown_state(self, store, populated):
        with pytest.raises(InvalidArgumentError):
            modules.transition(store, "auth", "Shipped")


class TestShow:
    def test_module_show(self, store, populated):
        detail = modules.show(store, "auth", project="my-app")
        assert detail.project.name == "my-app"
        assert [f.name for f in detail.features] == ["login-flow", "token-refresh"]
        assert [r.name for r in detail.research] == ["jwt-rfc"]

    def test_feature_show(self, store, populated):
        detail = features.show(store, "login-flow")
        assert detail.module.name == "auth"
        assert detail.project.name == "my-app"
        assert [t.name for t in detail.tasks] == ["implement-jwt", "write-tests"]

    def test_task_show(self, store, populated):
        detail = tasks.show(store, "write-tests")
        assert detail.feature.name == "login-flow"
        assert detail.research == []

        data = detail.to_dict()
        assert data["feature_id"] == populated.login.id
        assert data["state"] == "Draft"
        assert data["project"] == "my-app"
