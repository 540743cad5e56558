"""Workspace store holding tasks, projects and view selection."""

import copy
import threading
import uuid
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

import structlog

from workspace_manager.backend import StorageBackend
from workspace_manager.errors import (
    InvalidReferenceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    WorkspaceError,
)
from workspace_manager.models import (
    TASK_PRIORITIES,
    TASK_STATUSES,
    VIEW_MODES,
    Project,
    Subtask,
    Task,
    parse_timestamp,
    utc_now,
)
from workspace_manager.persistence import TASK_STORAGE_KEY, WorkspaceSnapshot, decode_workspace, encode_workspace
from workspace_manager.seed import default_workspace

logger = structlog.get_logger()

# Document (camelCase) names accepted as aliases for model attributes.
FIELD_ALIASES = {
    "projectId": "project_id",
    "startDate": "start_date",
    "dueDate": "due_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
SYSTEM_FIELDS = frozenset({"id", "created_at", "updated_at"})
TASK_FIELDS = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "start_date",
        "due_date",
        "assignee",
        "tags",
        "subtasks",
        "dependencies",
        "progress",
        "project_id",
    }
)
PROJECT_FIELDS = frozenset({"title", "description", "color", "members"})


def _merge_fields(data: Mapping[str, Any] | None, fields: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for key, value in {**(data or {}), **fields}.items():
        merged[FIELD_ALIASES.get(key, key)] = value
    return merged


def _check_keys(kind: str, values: dict[str, Any], allowed: frozenset[str]) -> None:
    system = sorted(SYSTEM_FIELDS & values.keys())
    if system:
        raise ValidationError(f"{kind} fields are set by the store: {', '.join(system)}")
    unknown = sorted(values.keys() - allowed)
    if unknown:
        raise ValidationError(f"Unknown {kind.lower()} fields: {', '.join(unknown)}")


def _string_list(name: str, value: Any) -> list[str]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValidationError(f"{name} must be a list of strings")
    if not all(isinstance(item, str) for item in value):
        raise ValidationError(f"{name} must be a list of strings")
    return list(value)


class WorkspaceStore:
    """Owns every task and project and keeps them consistent.

    ``Task.project_id`` is the only stored link between a task and its
    project. ``Project.tasks`` is rebuilt from it whenever a project is
    returned or persisted, so the index can never drift.

    The store has an explicit lifecycle: ``open()`` loads the persisted
    document (or seeds a fresh workspace) and ``close()`` flushes it. All
    operations are serialized behind one lock, and every mutation writes the
    whole state through the storage backend before returning.
    """

    def __init__(
        self,
        backend: StorageBackend,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] | None = None,
        seed: Callable[[datetime], WorkspaceSnapshot] = default_workspace,
    ) -> None:
        """Initialize the workspace store.

        Args:
            backend: Storage backend used for the ``task-storage`` document
            clock: Returns the current time; used for every timestamp
            id_factory: Returns candidate ids for new entities (uuid4 by default)
            seed: Builds the initial state when nothing is persisted yet
        """
        self.backend = backend
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._seed = seed
        self._lock = threading.RLock()
        self._tasks: dict[str, Task] = {}
        self._projects: dict[str, Project] = {}
        self._current_project_id: str | None = None
        self._view_mode = "list"
        self._issued_ids: set[str] = set()
        self._last_stamp: datetime | None = None
        self._is_open = False

    # ---- lifecycle ----

    def open(self) -> "WorkspaceStore":
        """Load the persisted workspace, or seed one if there is none."""
        with self._lock:
            if self._is_open:
                return self
            document = self.backend.load(TASK_STORAGE_KEY)
            if document is None:
                snapshot = self._seed(self._clock())
                logger.info("Seeding new workspace", projects=len(snapshot.projects), tasks=len(snapshot.tasks))
            else:
                snapshot = decode_workspace(document)
                logger.info("Workspace loaded", projects=len(snapshot.projects), tasks=len(snapshot.tasks))

            self._projects = {project.id: replace(project, tasks=[]) for project in snapshot.projects}
            self._tasks = {task.id: task for task in snapshot.tasks}
            self._current_project_id = snapshot.current_project_id
            self._view_mode = snapshot.view_mode
            self._issued_ids = set(self._projects) | set(self._tasks)
            for task in self._tasks.values():
                self._issued_ids.update(subtask.id for subtask in task.subtasks)
            self._is_open = True
            return self

    def close(self) -> None:
        """Flush the workspace and release it."""
        with self._lock:
            if not self._is_open:
                return
            try:
                self._persist()
            finally:
                self._is_open = False
                logger.debug("Workspace closed")

    def __enter__(self) -> "WorkspaceStore":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._is_open

    # ---- internal helpers ----

    def _require_open(self) -> None:
        if not self._is_open:
            raise WorkspaceError("Workspace store is not open")

    def _stamp(self) -> datetime:
        """Current time, nudged forward so stamps strictly increase."""
        now = self._clock()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now

    def _new_id(self) -> str:
        while True:
            candidate = str(self._id_factory())
            if candidate not in self._issued_ids:
                self._issued_ids.add(candidate)
                return candidate

    def _project_view(self, project: Project) -> Project:
        view = copy.deepcopy(project)
        view.tasks = [task.id for task in self._tasks.values() if task.project_id == project.id]
        return view

    def _snapshot(self) -> WorkspaceSnapshot:
        return WorkspaceSnapshot(
            tasks=[copy.deepcopy(task) for task in self._tasks.values()],
            projects=[self._project_view(project) for project in self._projects.values()],
            current_project_id=self._current_project_id,
            view_mode=self._view_mode,
        )

    def _persist(self) -> None:
        document = encode_workspace(self._snapshot())
        try:
            self.backend.save(TASK_STORAGE_KEY, document)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("Failed to persist workspace", error=str(e))
            raise PersistenceError(f"Failed to persist workspace: {e}") from e

    def _coerce_subtasks(self, value: Any, now: datetime, owned: frozenset[str]) -> list[Subtask]:
        """Build subtasks from input; ``owned`` holds ids already on this task."""
        if not isinstance(value, (list, tuple)):
            raise ValidationError("subtasks must be a list")
        subtasks: list[Subtask] = []
        seen: set[str] = set()
        for item in value:
            if isinstance(item, Subtask):
                subtask = copy.deepcopy(item)
            elif isinstance(item, Mapping):
                title = item.get("title")
                if not isinstance(title, str):
                    raise ValidationError("subtask requires a string title")
                try:
                    created_at = parse_timestamp(item.get("createdAt", item.get("created_at")))
                except (TypeError, ValueError) as e:
                    raise ValidationError(f"Invalid subtask createdAt: {e}") from e
                subtask = Subtask(
                    id=str(item["id"]) if item.get("id") else "",
                    title=title,
                    completed=bool(item.get("completed", False)),
                    created_at=created_at,
                )
            else:
                raise ValidationError(f"Invalid subtask: {item!r}")
            if not subtask.id:
                subtask.id = self._new_id()
            elif subtask.id in seen or (subtask.id in self._issued_ids and subtask.id not in owned):
                raise ValidationError(f"Subtask id already in use: {subtask.id}")
            seen.add(subtask.id)
            if subtask.created_at is None:
                subtask.created_at = now
            subtasks.append(subtask)
        self._issued_ids.update(seen)
        return subtasks

    def _normalize_task_fields(
        self, values: dict[str, Any], now: datetime, owned_subtasks: frozenset[str] = frozenset()
    ) -> dict[str, Any]:
        """Validate task fields and convert them to model types."""
        normalized: dict[str, Any] = {}
        for name, value in values.items():
            if name in ("title", "description"):
                if not isinstance(value, str):
                    raise ValidationError(f"{name} must be a string")
            elif name == "status":
                if value not in TASK_STATUSES:
                    raise ValidationError(f"Invalid status: {value!r} (expected one of {', '.join(TASK_STATUSES)})")
            elif name == "priority":
                if value not in TASK_PRIORITIES:
                    raise ValidationError(
                        f"Invalid priority: {value!r} (expected one of {', '.join(TASK_PRIORITIES)})"
                    )
            elif name in ("start_date", "due_date"):
                try:
                    value = parse_timestamp(value)
                except (TypeError, ValueError) as e:
                    raise ValidationError(f"Invalid {name}: {value!r}") from e
            elif name == "assignee":
                if value is not None and not isinstance(value, str):
                    raise ValidationError("assignee must be a string or None")
            elif name in ("tags", "dependencies"):
                value = _string_list(name, value)
            elif name == "subtasks":
                value = self._coerce_subtasks(value, now, owned_subtasks)
            elif name == "progress":
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ValidationError("progress must be a number")
                if not 0 <= value <= 1:
                    raise ValidationError(f"progress must be between 0 and 1, got {value}")
                value = float(value)
            elif name == "project_id":
                if value not in self._projects:
                    raise InvalidReferenceError(value)
            normalized[name] = value
        return normalized

    def _normalize_project_fields(self, values: dict[str, Any]) -> dict[str, Any]:
        for name, value in values.items():
            if name == "members":
                values[name] = _string_list(name, value)
            elif not isinstance(value, str):
                raise ValidationError(f"{name} must be a string")
        return values

    def _get_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    # ---- reads ----

    @property
    def tasks(self) -> list[Task]:
        """All tasks in insertion order."""
        with self._lock:
            self._require_open()
            return [copy.deepcopy(task) for task in self._tasks.values()]

    @property
    def projects(self) -> list[Project]:
        """All projects in insertion order, with their task index filled in."""
        with self._lock:
            self._require_open()
            return [self._project_view(project) for project in self._projects.values()]

    @property
    def current_project_id(self) -> str | None:
        with self._lock:
            return self._current_project_id

    @property
    def view_mode(self) -> str:
        with self._lock:
            return self._view_mode

    def get_task(self, task_id: str) -> Task:
        """Return a copy of a task or raise NotFoundError."""
        with self._lock:
            self._require_open()
            return copy.deepcopy(self._get_task(task_id))

    def get_project(self, project_id: str) -> Project:
        """Return a copy of a project or raise NotFoundError."""
        with self._lock:
            self._require_open()
            project = self._projects.get(project_id)
            if project is None:
                raise NotFoundError("Project", project_id)
            return self._project_view(project)

    def snapshot(self) -> WorkspaceSnapshot:
        """Return a detached copy of the whole workspace state."""
        with self._lock:
            self._require_open()
            return self._snapshot()

    # ---- tasks ----

    def add_task(self, data: Mapping[str, Any] | None = None, **fields: Any) -> Task:
        """Create a task in an existing project.

        Fields may be given as a mapping (model or document names) and/or as
        keyword arguments. ``title`` and ``project_id`` are required.
        """
        with self._lock:
            self._require_open()
            values = _merge_fields(data, fields)
            _check_keys("Task", values, TASK_FIELDS)
            if "project_id" not in values:
                raise ValidationError("project_id is required")
            if "title" not in values:
                raise ValidationError("title is required")

            now = self._stamp()
            normalized = self._normalize_task_fields(values, now)
            task = Task(id=self._new_id(), created_at=now, updated_at=now, **normalized)
            self._tasks[task.id] = task
            logger.info("Task created", task_id=task.id, project_id=task.project_id, title=task.title)

            self._persist()
            return copy.deepcopy(task)

    def update_task(self, task_id: str, data: Mapping[str, Any] | None = None, **fields: Any) -> Task:
        """Merge fields into a task and refresh its ``updated_at``.

        Moving a task to another project only needs a new ``project_id``;
        both project indexes follow from it.
        """
        with self._lock:
            self._require_open()
            task = self._get_task(task_id)
            values = _merge_fields(data, fields)
            _check_keys("Task", values, TASK_FIELDS)

            now = self._stamp()
            normalized = self._normalize_task_fields(values, now, frozenset(subtask.id for subtask in task.subtasks))
            updated = replace(task, updated_at=now, **normalized)
            self._tasks[task_id] = updated
            if updated.project_id != task.project_id:
                logger.info("Task moved", task_id=task_id, from_project=task.project_id, to_project=updated.project_id)
            logger.info("Task updated", task_id=task_id, fields=sorted(normalized))

            self._persist()
            return copy.deepcopy(updated)

    def delete_task(self, task_id: str) -> bool:
        """Remove a task. Returns False when there was nothing to remove."""
        with self._lock:
            self._require_open()
            if self._tasks.pop(task_id, None) is None:
                logger.debug("Task already absent", task_id=task_id)
                return False
            logger.info("Task deleted", task_id=task_id)
            self._persist()
            return True

    # ---- subtasks ----

    def add_subtask(self, task_id: str, title: str) -> Subtask:
        """Append a new, incomplete subtask to a task."""
        with self._lock:
            self._require_open()
            task = self._get_task(task_id)
            if not isinstance(title, str) or not title.strip():
                raise ValidationError("subtask title is required")

            now = self._stamp()
            subtask = Subtask(id=self._new_id(), title=title, completed=False, created_at=now)
            task.subtasks.append(subtask)
            task.updated_at = now
            logger.info("Subtask added", task_id=task_id, subtask_id=subtask.id)

            self._persist()
            return copy.deepcopy(subtask)

    def toggle_subtask(self, task_id: str, subtask_id: str) -> Subtask:
        """Flip the completed flag of a subtask."""
        with self._lock:
            self._require_open()
            task = self._get_task(task_id)
            for subtask in task.subtasks:
                if subtask.id == subtask_id:
                    break
            else:
                raise NotFoundError("Subtask", subtask_id)

            subtask.completed = not subtask.completed
            task.updated_at = self._stamp()
            logger.info("Subtask toggled", task_id=task_id, subtask_id=subtask_id, completed=subtask.completed)

            self._persist()
            return copy.deepcopy(subtask)

    def remove_subtask(self, task_id: str, subtask_id: str) -> bool:
        """Drop a subtask. Returns False when the task has no such subtask."""
        with self._lock:
            self._require_open()
            task = self._get_task(task_id)
            remaining = [subtask for subtask in task.subtasks if subtask.id != subtask_id]
            if len(remaining) == len(task.subtasks):
                return False

            task.subtasks = remaining
            task.updated_at = self._stamp()
            logger.info("Subtask removed", task_id=task_id, subtask_id=subtask_id)

            self._persist()
            return True

    # ---- projects ----

    def add_project(self, data: Mapping[str, Any] | None = None, **fields: Any) -> Project:
        """Create a project. Any ``tasks`` given by the caller are ignored."""
        with self._lock:
            self._require_open()
            values = _merge_fields(data, fields)
            values.pop("tasks", None)
            _check_keys("Project", values, PROJECT_FIELDS)
            if "title" not in values:
                raise ValidationError("title is required")

            normalized = self._normalize_project_fields(values)
            now = self._stamp()
            project = Project(id=self._new_id(), created_at=now, updated_at=now, **normalized)
            self._projects[project.id] = project
            logger.info("Project created", project_id=project.id, title=project.title)

            self._persist()
            return self._project_view(project)

    def update_project(self, project_id: str, data: Mapping[str, Any] | None = None, **fields: Any) -> Project:
        """Merge fields into a project and refresh its ``updated_at``."""
        with self._lock:
            self._require_open()
            project = self._projects.get(project_id)
            if project is None:
                raise NotFoundError("Project", project_id)
            values = _merge_fields(data, fields)
            if "tasks" in values:
                raise ValidationError("Project task index is derived from task project ids")
            _check_keys("Project", values, PROJECT_FIELDS)

            normalized = self._normalize_project_fields(values)
            updated = replace(project, updated_at=self._stamp(), **normalized)
            self._projects[project_id] = updated
            logger.info("Project updated", project_id=project_id, fields=sorted(normalized))

            self._persist()
            return self._project_view(updated)

    def delete_project(self, project_id: str) -> bool:
        """Remove a project together with all of its tasks.

        Clears the current project selection when it pointed here. Returns
        False when the project did not exist.
        """
        with self._lock:
            self._require_open()
            if self._projects.pop(project_id, None) is None:
                logger.debug("Project already absent", project_id=project_id)
                return False

            doomed = [task_id for task_id, task in self._tasks.items() if task.project_id == project_id]
            for task_id in doomed:
                del self._tasks[task_id]
            if self._current_project_id == project_id:
                self._current_project_id = None
            logger.info("Project deleted", project_id=project_id, tasks_removed=len(doomed))

            self._persist()
            return True

    # ---- selection ----

    def set_current_project(self, project_id: str | None) -> None:
        """Select a project, or clear the selection with None."""
        with self._lock:
            self._require_open()
            if project_id is not None and project_id not in self._projects:
                raise InvalidReferenceError(project_id)
            self._current_project_id = project_id
            logger.debug("Current project set", project_id=project_id)
            self._persist()

    def set_view_mode(self, mode: str) -> None:
        """Switch the active view; entities are left untouched."""
        with self._lock:
            self._require_open()
            if mode not in VIEW_MODES:
                raise ValidationError(f"Invalid view mode: {mode!r} (expected one of {', '.join(VIEW_MODES)})")
            self._view_mode = mode
            logger.debug("View mode set", view_mode=mode)
            self._persist()
