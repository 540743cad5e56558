"""Data models for workspace manager."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

TASK_STATUSES = ("todo", "in-progress", "review", "done", "blocked")
TASK_PRIORITIES = ("low", "medium", "high", "critical")
VIEW_MODES = ("list", "kanban", "calendar", "gantt")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _list_field(data: dict[str, Any], key: str) -> list[Any]:
    """Return a list-valued document field, rejecting any other shape."""
    value = data.get(key, [])
    if not isinstance(value, list):
        raise TypeError(f"Expected a list for {key}, got {type(value).__name__}")
    return value


def format_timestamp(value: datetime | None) -> str | None:
    """Render a timestamp the way it is stored in documents."""
    if value is None:
        return None
    return value.isoformat()


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, accepting the trailing ``Z`` form.

    Naive values are taken to be UTC so that all stored timestamps compare.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, datetime):
        if not isinstance(value, str):
            raise TypeError(f"Expected an ISO-8601 string, got {type(value).__name__}")
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class Subtask:
    """A checklist item owned by a single task."""

    id: str
    title: str
    completed: bool = False
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Subtask":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            completed=bool(data.get("completed", False)),
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class Task:
    """A unit of trackable work belonging to exactly one project."""

    id: str
    title: str
    project_id: str
    description: str = ""
    status: str = "todo"
    priority: str = "medium"
    start_date: datetime | None = None
    due_date: datetime | None = None
    assignee: str | None = None
    tags: list[str] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    progress: float = 0.0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
        }
        if self.start_date is not None:
            data["startDate"] = format_timestamp(self.start_date)
        if self.due_date is not None:
            data["dueDate"] = format_timestamp(self.due_date)
        if self.assignee is not None:
            data["assignee"] = self.assignee
        data.update(
            {
                "tags": list(self.tags),
                "subtasks": [subtask.to_dict() for subtask in self.subtasks],
                "dependencies": list(self.dependencies),
                "progress": self.progress,
                "projectId": self.project_id,
                "createdAt": format_timestamp(self.created_at),
                "updatedAt": format_timestamp(self.updated_at),
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            project_id=str(data["projectId"]),
            description=data.get("description", ""),
            status=data.get("status", "todo"),
            priority=data.get("priority", "medium"),
            start_date=parse_timestamp(data.get("startDate")),
            due_date=parse_timestamp(data.get("dueDate")),
            assignee=data.get("assignee"),
            tags=[str(tag) for tag in _list_field(data, "tags")],
            subtasks=[Subtask.from_dict(item) for item in _list_field(data, "subtasks")],
            dependencies=[str(dep) for dep in _list_field(data, "dependencies")],
            progress=float(data.get("progress", 0.0)),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class Project:
    """A named grouping of tasks.

    ``tasks`` is the membership index. The store fills it from the tasks'
    ``project_id`` whenever a project is read, it is never edited directly.
    """

    id: str
    title: str
    description: str = ""
    color: str = "#3b82f6"
    tasks: list[str] = field(default_factory=list)
    members: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "color": self.color,
            "tasks": list(self.tasks),
            "members": list(self.members),
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            color=data.get("color", "#3b82f6"),
            tasks=[str(task_id) for task_id in _list_field(data, "tasks")],
            members=[str(member) for member in _list_field(data, "members")],
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class User:
    """The identity held by the session store."""

    id: str
    email: str
    name: str
    avatar: str | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "email": self.email, "name": self.name}
        if self.avatar is not None:
            data["avatar"] = self.avatar
        data["createdAt"] = format_timestamp(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=str(data["id"]),
            email=data.get("email", ""),
            name=data.get("name", ""),
            avatar=data.get("avatar"),
            created_at=parse_timestamp(data.get("createdAt")),
        )
