"""Tests for the project, module, feature and task command groups."""

import json

import pytest
from typer.testing import CliRunner

from lopen_memory.cli.app import app


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli(runner, db_path):
    """Invoke the app against the temporary database."""

    def invoke(*args, json_output=False):
        argv = ["--db", str(db_path)]
        if json_output:
            argv.append("--json")
        return runner.invoke(app, argv + list(args))

    return invoke


def as_json(result):
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestProjectAdd:
    def test_add_project(self, cli):
        result = cli("project", "add", "my-app", "/src/my-app", "Core application")

        assert result.exit_code == 0
        assert "created project: my-app" in result.output

    def test_add_json(self, cli):
        data = as_json(cli("project", "add", "my-app", "/src/my-app", json_output=True))
        assert data["id"] == 1
        assert data["path"] == "/src/my-app"
        assert data["completed"] is False

    def test_duplicate_name_exits_1(self, cli):
        cli("project", "add", "my-app", "/a")
        result = cli("project", "add", "my-app", "/b")

        assert result.exit_code == 1
        assert "already exists" in result.output


class TestProjectList:
    def test_empty(self, cli):
        result = cli("project", "list")
        assert result.exit_code == 0
        assert "no projects found" in result.output

    def test_empty_json(self, cli):
        assert as_json(cli("project", "list", json_output=True)) == []

    def test_completed_filters(self, cli):
        cli("project", "add", "done", "/done")
        cli("project", "add", "active", "/active")
        cli("project", "complete", "--project", "done")

        done = as_json(cli("project", "list", "--completed", json_output=True))
        active = as_json(cli("project", "list", "--incomplete", json_output=True))
        assert [p["name"] for p in done] == ["done"]
        assert [p["name"] for p in active] == ["active"]

    def test_conflicting_filters(self, cli):
        result = cli("project", "list", "--completed", "--incomplete")
        assert result.exit_code == 1
        assert "mutually exclusive" in result.output


class TestProjectUpdate:
    def test_update_fields(self, cli, populated):
        cli("project", "rename", "--project", "my-app", "my-service")
        cli("project", "set-path", "--project", "my-service", "/srv/app")
        cli("project", "set-description", "--project", "1", "Service rewrite")

        data = as_json(cli("project", "show", "--project", "1", json_output=True))
        assert data["name"] == "my-service"
        assert data["path"] == "/srv/app"
        assert data["description"] == "Service rewrite"

    def test_reopen(self, cli, populated):
        cli("project", "complete", "--project", "my-app")
        data = as_json(cli("project", "reopen", "--project", "my-app", json_output=True))
        assert data["completed"] is False

    def test_show_unknown(self, cli):
        result = cli("project", "show", "--project", "ghost")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_show_lists_modules_and_research(self, cli, populated):
        data = as_json(cli("project", "show", "--project", "my-app", json_output=True))
        assert [m["name"] for m in data["modules"]] == ["auth", "payments"]
        assert [r["name"] for r in data["research"]] == ["jwt-rfc"]


class TestHierarchyCommands:
    def test_build_tree(self, cli):
        cli("project", "add", "my-app", "/src")
        assert cli("module", "add", "--project", "my-app", "auth", "Authentication").exit_code == 0
        assert cli("feature", "add", "--module", "auth", "login-flow").exit_code == 0
        result = cli("task", "add", "--feature", "login-flow", "implement-jwt", "Issue tokens")
        assert result.exit_code == 0
        assert "created task: implement-jwt" in result.output

        data = as_json(cli("task", "show", "--task", "implement-jwt", json_output=True))
        assert data["state"] == "Draft"
        assert data["feature"] == "login-flow"
        assert data["module"] == "auth"
        assert data["project"] == "my-app"

    def test_missing_parent(self, cli):
        result = cli("module", "add", "--project", "ghost", "auth")
        assert result.exit_code == 1
        assert "project" in result.output

    def test_list_modules_with_state(self, cli, populated):
        cli("module", "transition", "--module", "payments", "Planning")

        rows = as_json(cli("module", "list", "--project", "my-app", "--state", "Planning", json_output=True))
        assert [m["name"] for m in rows] == ["payments"]

    def test_list_features_and_tasks(self, cli, populated):
        features = as_json(cli("feature", "list", "--module", "auth", json_output=True))
        tasks = as_json(cli("task", "list", "--feature", "login-flow", json_output=True))
        assert [f["name"] for f in features] == ["login-flow", "token-refresh"]
        assert [t["name"] for t in tasks] == ["implement-jwt", "write-tests"]

    def test_empty_task_list(self, cli, populated):
        result = cli("task", "list", "--feature", "token-refresh")
        assert result.exit_code == 0
        assert "no tasks found" in result.output

    def test_set_details(self, cli, populated):
        cli("feature", "set-details", "--feature", "login-flow", "Email + password, then MFA")
        data = as_json(cli("feature", "show", "--feature", "login-flow", json_output=True))
        assert data["details"] == "Email + password, then MFA"
        assert [t["name"] for t in data["tasks"]] == ["implement-jwt", "write-tests"]

    def test_ambiguous_name_needs_hint(self, cli, populated):
        cli("module", "add", "--project", "other-app", "auth")

        result = cli("module", "show", "--module", "auth")
        assert result.exit_code == 1
        assert "ambiguous" in result.output

        data = as_json(cli("module", "show", "--module", "auth", "--project", "other-app", json_output=True))
        assert data["project"] == "other-app"


class TestTransitions:
    def test_valid_path(self, cli, populated):
        for target in ("Planning", "Building", "Complete", "Amending", "Building"):
            result = cli("task", "transition", "--task", "implement-jwt", target)
            assert result.exit_code == 0, result.output

        data = as_json(cli("task", "show", "--task", "implement-jwt", json_output=True))
        assert data["state"] == "Building"

    def test_invalid_transition_exits_1(self, cli, populated):
        result = cli("task", "transition", "--task", "implement-jwt", "Complete")

        assert result.exit_code == 1
        assert "Invalid transition" in result.output

        data = as_json(cli("task", "show", "--task", "implement-jwt", json_output=True))
        assert data["state"] == "Draft"

    def test_unknown_state_exits_1(self, cli, populated):
        result = cli("feature", "transition", "--feature", "login-flow", "Shipped")
        assert result.exit_code == 1


class TestRemove:
    def test_refuses_without_cascade(self, cli, populated):
        result = cli("module", "remove", "--module", "auth")

        assert result.exit_code == 1
        assert "--cascade" in result.output

    def test_cascade(self, cli, populated):
        data = as_json(cli("project", "remove", "--project", "my-app", "--cascade", json_output=True))

        assert data["deleted"] is True
        assert data["removed"] == {"project": 1, "module": 2, "feature": 2, "task": 2}
        assert data["links_removed"] == 4

    def test_text_summary(self, cli, populated):
        result = cli("feature", "remove", "--feature", "login-flow", "--cascade")
        assert result.exit_code == 0
        assert "removed feature: login-flow" in result.output
