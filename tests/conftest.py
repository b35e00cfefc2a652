"""Shared pytest fixtures for lopen-memory tests."""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import pytest

from lopen_memory.core import features, modules, projects, research, tasks
from lopen_memory.core.clock import FixedClock
from lopen_memory.core.models import EntityKind, Feature, Module, Project, Research, Task
from lopen_memory.core.store import Store

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FixedClock:
    """A clock pinned to 2024-06-01T12:00:00Z."""
    return FixedClock(FIXED_NOW)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "lopen-memory.db"


@pytest.fixture
def store(db_path: Path, clock: FixedClock) -> Generator[Store, None, None]:
    """File-backed store in a temporary directory."""
    s = Store.open(db_path, clock=clock)
    yield s
    s.close()


@dataclass
class Populated:
    """Handles on a small, fully linked hierarchy."""

    project: Project
    other_project: Project
    auth: Module
    payments: Module
    login: Feature
    refresh: Feature
    jwt_task: Task
    tests_task: Task
    rfc: Research
    oauth: Research


@pytest.fixture
def populated(store: Store) -> Populated:
    """my-app > auth > login-flow > {implement-jwt, write-tests}, plus extras.

    jwt-rfc is linked to my-app, auth, login-flow and implement-jwt.
    """
    project = projects.create(store, "my-app", "/src/my-app", "Core application")
    other = projects.create(store, "other-app", "/src/other")
    auth = modules.create(store, "my-app", "auth", "Authentication")
    payments = modules.create(store, "my-app", "payments", "Payments")
    login = features.create(store, "auth", "login-flow", "The ability to log in", project="my-app")
    refresh = features.create(store, "auth", "token-refresh", project="my-app")
    jwt_task = tasks.create(store, "login-flow", "implement-jwt", "Issue JWTs")
    tests_task = tasks.create(store, "login-flow", "write-tests")

    rfc = research.create(store, "jwt-rfc", "JSON Web Token specification")
    oauth = research.create(store, "oauth2-flows", "OAuth2 grant comparison")
    research.link(store, "jwt-rfc", EntityKind.PROJECT, "my-app")
    research.link(store, "jwt-rfc", EntityKind.MODULE, "auth")
    research.link(store, "jwt-rfc", EntityKind.FEATURE, "login-flow")
    research.link(store, "jwt-rfc", EntityKind.TASK, "implement-jwt")

    return Populated(
        project=project,
        other_project=other,
        auth=auth,
        payments=payments,
        login=login,
        refresh=refresh,
        jwt_task=jwt_task,
        tests_task=tests_task,
        rfc=rfc,
        oauth=oauth,
    )
