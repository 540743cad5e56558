"""Document format for persisted workspace and session state.

Both stores write a versioned envelope::

    {"version": 1, "state": {...}}

Documents written before versioning (no ``version`` field, or version 0
from the browser build) hold the same fields and are upgraded on load.
"""

import math
from dataclasses import dataclass, field
from typing import Any

import structlog

from workspace_manager.errors import PersistenceError
from workspace_manager.models import TASK_PRIORITIES, TASK_STATUSES, VIEW_MODES, Project, Task, User

logger = structlog.get_logger()

STORAGE_VERSION = 1
TASK_STORAGE_KEY = "task-storage"
AUTH_STORAGE_KEY = "auth-storage"


@dataclass
class WorkspaceSnapshot:
    """Plain copy of everything the workspace store persists."""

    tasks: list[Task] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    current_project_id: str | None = None
    view_mode: str = "list"


def _unwrap(document: dict[str, Any]) -> dict[str, Any]:
    """Return the state payload of a document, migrating older layouts."""
    version = document.get("version")
    if version is None:
        # Bare state object with no envelope at all.
        state = document.get("state", document)
        version = 0
    else:
        state = document.get("state")

    if not isinstance(version, int):
        raise PersistenceError(f"Invalid document version: {version!r}")
    if version > STORAGE_VERSION:
        raise PersistenceError(f"Document version {version} is newer than supported version {STORAGE_VERSION}")
    if not isinstance(state, dict):
        raise PersistenceError("Document has no state object")

    if version < STORAGE_VERSION:
        logger.info("Migrating stored document", from_version=version, to_version=STORAGE_VERSION)
    return state


def _repair_task(task: Task) -> None:
    """Reset enum and range fields that the store would never have written."""
    if task.status not in TASK_STATUSES:
        logger.warning("Unknown task status in document, using todo", task_id=task.id, status=task.status)
        task.status = "todo"
    if task.priority not in TASK_PRIORITIES:
        logger.warning("Unknown task priority in document, using medium", task_id=task.id, priority=task.priority)
        task.priority = "medium"
    if not 0.0 <= task.progress <= 1.0:
        logger.warning("Task progress out of range in document, clamping", task_id=task.id, progress=task.progress)
        task.progress = 0.0 if math.isnan(task.progress) else min(max(task.progress, 0.0), 1.0)


def encode_workspace(snapshot: WorkspaceSnapshot) -> dict[str, Any]:
    """Build the ``task-storage`` document for a snapshot."""
    return {
        "version": STORAGE_VERSION,
        "state": {
            "tasks": [task.to_dict() for task in snapshot.tasks],
            "projects": [project.to_dict() for project in snapshot.projects],
            "currentProject": snapshot.current_project_id,
            "viewMode": snapshot.view_mode,
        },
    }


def decode_workspace(document: dict[str, Any]) -> WorkspaceSnapshot:
    """Rebuild a snapshot from a ``task-storage`` document.

    Duplicate ids keep their first occurrence and tasks whose project is
    missing are dropped, so the loaded state satisfies the same invariants
    the store maintains after each mutation.
    """
    state = _unwrap(document)
    try:
        projects: list[Project] = []
        seen_projects: set[str] = set()
        for raw in state.get("projects", []):
            project = Project.from_dict(raw)
            if project.id in seen_projects:
                logger.warning("Skipping duplicate project", project_id=project.id)
                continue
            seen_projects.add(project.id)
            projects.append(project)

        tasks: list[Task] = []
        seen_tasks: set[str] = set()
        for raw in state.get("tasks", []):
            task = Task.from_dict(raw)
            if task.id in seen_tasks:
                logger.warning("Skipping duplicate task", task_id=task.id)
                continue
            if task.project_id not in seen_projects:
                logger.warning("Dropping task with missing project", task_id=task.id, project_id=task.project_id)
                continue
            _repair_task(task)
            seen_tasks.add(task.id)
            tasks.append(task)
    except (KeyError, TypeError, ValueError) as e:
        logger.error("Failed to decode workspace document", error=str(e))
        raise PersistenceError(f"Malformed workspace document: {e}") from e

    current = state.get("currentProject")
    if current is not None and not isinstance(current, str):
        logger.error("Invalid current project in document", current_project=repr(current))
        raise PersistenceError(f"Malformed workspace document: currentProject must be a string, got {type(current).__name__}")
    if current is not None and current not in seen_projects:
        logger.warning("Clearing dangling current project", project_id=current)
        current = None

    view_mode = state.get("viewMode", "list")
    if view_mode not in VIEW_MODES:
        logger.warning("Unknown view mode in document, using list", view_mode=view_mode)
        view_mode = "list"

    return WorkspaceSnapshot(tasks=tasks, projects=projects, current_project_id=current, view_mode=view_mode)


def encode_session(user: User | None) -> dict[str, Any]:
    """Build the ``auth-storage`` document; only the user is kept."""
    return {"version": STORAGE_VERSION, "state": {"user": user.to_dict() if user else None}}


def decode_session(document: dict[str, Any]) -> User | None:
    """Return the persisted user from an ``auth-storage`` document."""
    state = _unwrap(document)
    raw = state.get("user")
    if raw is None:
        return None
    try:
        return User.from_dict(raw)
    except (KeyError, TypeError, ValueError) as e:
        logger.error("Failed to decode session document", error=str(e))
        raise PersistenceError(f"Malformed session document: {e}") from e
