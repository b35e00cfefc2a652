"""Data models for lopen-memory.

Plain dataclasses mirroring the SQLite rows, plus the ``EntityKind``
variant that tags work entities in research links and drives cascade
deletion.
"""

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from lopen_memory.core.clock import format_timestamp, parse_timestamp
from lopen_memory.core.errors import InvalidArgumentError
from lopen_memory.core.state_machine import LifecycleState


class EntityKind(str, Enum):
    """The four kinds of work entity, from root to leaf."""

    PROJECT = "project"
    MODULE = "module"
    FEATURE = "feature"
    TASK = "task"

    @property
    def table(self) -> str:
        return _KIND_INFO[self]["table"]

    @property
    def parent(self) -> Optional["EntityKind"]:
        return _KIND_INFO[self]["parent"]

    @property
    def child(self) -> Optional["EntityKind"]:
        return _KIND_INFO[self]["child"]

    @property
    def parent_column(self) -> Optional[str]:
        """Foreign key column pointing at the parent row."""
        return _KIND_INFO[self]["parent_column"]

    @property
    def flag(self) -> str:
        """CLI flag used to reference an entity of this kind."""
        return f"--{self.value}"

    @property
    def has_lifecycle(self) -> bool:
        return self is not EntityKind.PROJECT

    def ancestors(self) -> list["EntityKind"]:
        """Ancestor kinds, nearest first."""
        result = []
        current = self.parent
        while current is not None:
            result.append(current)
            current = current.parent
        return result


_KIND_INFO: dict[EntityKind, dict[str, Any]] = {
    EntityKind.PROJECT: {
        "table": "projects",
        "parent": None,
        "parent_column": None,
        "child": EntityKind.MODULE,
    },
    EntityKind.MODULE: {
        "table": "modules",
        "parent": EntityKind.PROJECT,
        "parent_column": "project_id",
        "child": EntityKind.FEATURE,
    },
    EntityKind.FEATURE: {
        "table": "features",
        "parent": EntityKind.MODULE,
        "parent_column": "module_id",
        "child": EntityKind.TASK,
    },
    EntityKind.TASK: {
        "table": "tasks",
        "parent": EntityKind.FEATURE,
        "parent_column": "feature_id",
        "child": None,
    },
}


def parse_kind(value: str) -> EntityKind:
    try:
        return EntityKind(value.strip().lower())
    except ValueError:
        valid = ", ".join(k.value for k in EntityKind)
        raise InvalidArgumentError(f"Invalid entity kind '{value}'. Valid kinds: {valid}")


@dataclass
class Project:
    """A single codebase or repository under tracking."""

    id: int
    name: str
    path: str
    description: str
    completed: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Project":
        return cls(
            id=row["id"],
            name=row["name"],
            path=row["path"],
            description=row["description"],
            completed=bool(row["completed"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "description": self.description,
            "completed": self.completed,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }


@dataclass
class WorkItem:
    """Fields shared by modules, features and tasks."""

    id: int
    parent_id: int
    name: str
    description: str
    details: str
    state: LifecycleState
    created_at: datetime
    updated_at: datetime

    kind = EntityKind.MODULE

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "WorkItem":
        return cls(
            id=row["id"],
            parent_id=row[cls.kind.parent_column],
            name=row["name"],
            description=row["description"],
            details=row["details"],
            state=LifecycleState(row["state"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            self.kind.parent_column: self.parent_id,
            "name": self.name,
            "description": self.description,
            "details": self.details,
            "state": self.state.value,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }


@dataclass
class Module(WorkItem):
    """A major bounded area of concern within a project."""

    kind = EntityKind.MODULE

    @property
    def project_id(self) -> int:
        return self.parent_id


@dataclass
class Feature(WorkItem):
    """A discrete deliverable within a module."""

    kind = EntityKind.FEATURE

    @property
    def module_id(self) -> int:
        return self.parent_id


@dataclass
class Task(WorkItem):
    """A concrete implementation step within a feature."""

    kind = EntityKind.TASK

    @property
    def feature_id(self) -> int:
        return self.parent_id


@dataclass
class Research:
    """Reference material that can be linked to any work entity."""

    id: int
    name: str
    description: str
    content: str
    source: str
    researched_at: datetime
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Research":
        return cls(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            content=row["content"],
            source=row["source"],
            researched_at=parse_timestamp(row["researched_at"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "content": self.content,
            "source": self.source,
            "researched_at": format_timestamp(self.researched_at),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }


@dataclass
class LinkedEntity:
    """A work entity seen from the research side of a bridge row.

    Attributes:
        kind: Which table the entity lives in
        id: Entity identifier
        name: Entity name
        context: Ancestor names from the project down, joined with " > "
    """

    kind: EntityKind
    id: int
    name: str
    context: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind.value, "id": self.id, "name": self.name, "context": self.context}


@dataclass
class LinkChange:
    """Outcome of a link or unlink call; ``changed`` is False for no-ops."""

    research: Research
    target: LinkedEntity
    changed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "research": self.research.name,
            "target": self.target.to_dict(),
            "changed": self.changed,
        }


@dataclass
class ProjectDetail:
    project: Project
    modules: list[Module] = field(default_factory=list)
    research: list[Research] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = self.project.to_dict()
        data["modules"] = [m.to_dict() for m in self.modules]
        data["research"] = [_research_summary(r) for r in self.research]
        return data


@dataclass
class ModuleDetail:
    module: Module
    project: Project
    features: list[Feature] = field(default_factory=list)
    research: list[Research] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = self.module.to_dict()
        data["project"] = self.project.name
        data["features"] = [f.to_dict() for f in self.features]
        data["research"] = [_research_summary(r) for r in self.research]
        return data


@dataclass
class FeatureDetail:
    feature: Feature
    module: Module
    project: Project
    tasks: list[Task] = field(default_factory=list)
    research: list[Research] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = self.feature.to_dict()
        data["module"] = self.module.name
        data["project"] = self.project.name
        data["tasks"] = [t.to_dict() for t in self.tasks]
        data["research"] = [_research_summary(r) for r in self.research]
        return data


@dataclass
class TaskDetail:
    task: Task
    feature: Feature
    module: Module
    project: Project
    research: list[Research] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = self.task.to_dict()
        data["feature"] = self.feature.name
        data["module"] = self.module.name
        data["project"] = self.project.name
        data["research"] = [_research_summary(r) for r in self.research]
        return data


@dataclass
class ResearchDetail:
    research: Research
    links: list[LinkedEntity] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = self.research.to_dict()
        data["linked_to"] = [link.to_dict() for link in self.links]
        return data


@dataclass
class RemovalSummary:
    """What a single removal request deleted.

    Attributes:
        kind: Kind of the requested target ("research" for research removal)
        id: Identifier of the requested target
        name: Name of the requested target
        removed: Count of deleted rows per entity kind, descendants included
        links_removed: Count of deleted research bridge rows
    """

    kind: str
    id: int
    name: str
    removed: dict[str, int] = field(default_factory=dict)
    links_removed: int = 0

    def count(self, kind: EntityKind) -> int:
        return self.removed.get(kind.value, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "deleted": True,
            "kind": self.kind,
            "id": self.id,
            "name": self.name,
            "removed": dict(self.removed),
            "links_removed": self.links_removed,
        }


def _research_summary(research: Research) -> dict[str, Any]:
    return {"id": research.id, "name": research.name, "description": research.description}
