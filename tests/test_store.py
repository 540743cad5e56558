"""Tests for the workspace store."""

import random
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from workspace_manager.backends import MemoryBackend
from workspace_manager.errors import (
    InvalidReferenceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    WorkspaceError,
)
from workspace_manager.persistence import TASK_STORAGE_KEY
from workspace_manager.seed import empty_workspace
from workspace_manager.store import WorkspaceStore

from conftest import FakeClock


def new_task(store: WorkspaceStore, title: str = "A", project_id: str = "default", **fields):
    return store.add_task(title=title, project_id=project_id, **fields)


def assert_consistent(store: WorkspaceStore) -> None:
    project_ids = {project.id for project in store.projects}
    tasks = store.tasks
    for task in tasks:
        assert task.project_id in project_ids
    for project in store.projects:
        assert project.tasks == [task.id for task in tasks if task.project_id == project.id]


def test_add_task_scenario(store: WorkspaceStore) -> None:
    """Test adding a task to the default project."""
    task = store.add_task(
        {
            "title": "A",
            "projectId": "default",
            "status": "todo",
            "priority": "low",
            "tags": [],
            "subtasks": [],
            "dependencies": [],
            "progress": 0,
        }
    )

    assert len(store.tasks) == 1
    assert task.project_id == "default"
    assert store.projects[0].tasks == [task.id]
    assert task.created_at == task.updated_at


def test_delete_project_scenario(store: WorkspaceStore) -> None:
    """Test deleting the only project cascades to its tasks and selection."""
    new_task(store)
    assert store.current_project_id == "default"

    assert store.delete_project("default") is True

    assert store.tasks == []
    assert store.projects == []
    assert store.current_project_id is None


def test_update_task_scenario(store: WorkspaceStore, clock: FakeClock) -> None:
    """Test status and progress updates restamp only updated_at."""
    task = new_task(store, description="details", tags=["x"])
    clock.advance(seconds=5)

    updated = store.update_task(task.id, {"status": "done", "progress": 1})

    assert updated.status == "done"
    assert updated.progress == 1
    assert updated.updated_at > task.updated_at
    assert updated.created_at == task.created_at
    assert updated.title == task.title
    assert updated.description == "details"
    assert updated.tags == ["x"]
    assert updated.project_id == task.project_id


def test_empty_update_only_changes_updated_at(store: WorkspaceStore) -> None:
    """Test an empty update bumps updated_at even when the clock stands still."""
    task = new_task(store, priority="high", assignee="bob")

    updated = store.update_task(task.id, {})

    assert updated.updated_at > task.updated_at
    assert updated.created_at == task.created_at
    task.updated_at = updated.updated_at
    assert updated == task


def test_add_task_rejects_unknown_project(store: WorkspaceStore) -> None:
    """Test a task cannot reference a missing project."""
    with pytest.raises(InvalidReferenceError) as excinfo:
        new_task(store, project_id="nope")
    assert excinfo.value.project_id == "nope"
    assert store.tasks == []


def test_add_task_requires_project_and_title(store: WorkspaceStore) -> None:
    """Test required fields are enforced."""
    with pytest.raises(ValidationError):
        store.add_task(title="No project")
    with pytest.raises(ValidationError):
        store.add_task(project_id="default")


@pytest.mark.parametrize(
    "fields",
    [
        {"id": "mine"},
        {"createdAt": "2024-01-01T00:00:00Z"},
        {"updated_at": datetime.now(timezone.utc)},
        {"colour": "red"},
        {"status": "doing"},
        {"priority": "urgent"},
        {"progress": 1.5},
        {"progress": -0.1},
        {"progress": True},
        {"tags": "a,b"},
        {"dependencies": [1, 2]},
        {"dueDate": "tomorrow"},
        {"subtasks": [{"completed": True}]},
        {"subtasks": [{"title": 5}]},
        {"subtasks": [{"title": "s", "createdAt": "someday"}]},
        {"subtasks": [{"title": "s", "createdAt": 12}]},
        {"subtasks": [{"id": "s", "title": "a"}, {"id": "s", "title": "b"}]},
    ],
)
def test_add_task_validation(store: WorkspaceStore, fields: dict) -> None:
    """Test invalid task fields are rejected without changing state."""
    with pytest.raises(ValidationError):
        new_task(store, **fields)
    assert store.tasks == []


def test_add_task_accepts_dates_and_fills_subtasks(store: WorkspaceStore, clock: FakeClock) -> None:
    """Test date strings are parsed and bare subtasks get ids and timestamps."""
    task = new_task(
        store,
        start_date="2024-05-02T08:00:00Z",
        dueDate="2024-05-03",
        subtasks=[{"title": "first"}, {"id": "keep", "title": "second", "completed": True}],
    )

    assert task.start_date == datetime(2024, 5, 2, 8, tzinfo=timezone.utc)
    assert task.due_date == datetime(2024, 5, 3, tzinfo=timezone.utc)
    assert task.subtasks[0].id
    assert task.subtasks[0].created_at is not None
    assert task.subtasks[1].id == "keep"
    assert task.subtasks[1].completed is True


def test_subtask_ids_belong_to_one_task(store: WorkspaceStore) -> None:
    """Test a supplied subtask id cannot collide with an id issued elsewhere."""
    first = new_task(store, subtasks=[{"id": "keep", "title": "s"}])

    with pytest.raises(ValidationError, match="keep"):
        new_task(store, subtasks=[{"id": "keep", "title": "copy"}])
    with pytest.raises(ValidationError):
        new_task(store, subtasks=[{"id": first.id, "title": "task id"}])

    # Resubmitting the task's own subtasks is an edit, not a collision.
    updated = store.update_task(first.id, subtasks=[{"id": "keep", "title": "renamed", "completed": True}])
    assert updated.subtasks[0].title == "renamed"
    assert [task.id for task in store.tasks] == [first.id]


def test_ids_are_never_reused(backend: MemoryBackend, clock: FakeClock) -> None:
    """Test ids from the factory are skipped once issued, even after deletion."""
    candidates = iter(["a", "a", "b", "a", "b", "c"])
    store = WorkspaceStore(backend, clock=clock, id_factory=lambda: next(candidates), seed=empty_workspace).open()

    first = new_task(store)
    store.delete_task(first.id)
    second = new_task(store)
    third = new_task(store)

    assert [first.id, second.id, third.id] == ["a", "b", "c"]


def test_update_task_not_found(store: WorkspaceStore) -> None:
    """Test updating a missing task raises NotFoundError."""
    with pytest.raises(NotFoundError) as excinfo:
        store.update_task("missing", {"title": "x"})
    assert excinfo.value.entity_id == "missing"
    assert str(excinfo.value) == "Task not found: missing"


def test_update_task_rejects_system_fields(store: WorkspaceStore) -> None:
    """Test ids and timestamps cannot be written by callers."""
    task = new_task(store)
    with pytest.raises(ValidationError):
        store.update_task(task.id, {"id": "other"})
    with pytest.raises(ValidationError):
        store.update_task(task.id, createdAt="2020-01-01T00:00:00Z")
    assert store.get_task(task.id) == task


def test_update_task_moves_between_projects(store: WorkspaceStore) -> None:
    """Test changing project_id moves the task between project indexes."""
    other = store.add_project(title="Work")
    task = new_task(store)

    store.update_task(task.id, projectId=other.id)

    assert store.get_project("default").tasks == []
    assert store.get_project(other.id).tasks == [task.id]
    assert_consistent(store)


def test_update_task_rejects_dangling_project(store: WorkspaceStore) -> None:
    """Test moving a task to a missing project fails and leaves it in place."""
    task = new_task(store)
    with pytest.raises(InvalidReferenceError):
        store.update_task(task.id, project_id="ghost")
    assert store.get_task(task.id).project_id == "default"


def test_delete_task_is_idempotent(store: WorkspaceStore) -> None:
    """Test deleting twice leaves the same state as deleting once."""
    keep = new_task(store, title="keep")
    gone = new_task(store, title="gone")

    assert store.delete_task(gone.id) is True
    once = store.snapshot()
    assert store.delete_task(gone.id) is False

    assert store.snapshot() == once
    assert store.get_project("default").tasks == [keep.id]


def test_add_project_ignores_supplied_tasks(store: WorkspaceStore) -> None:
    """Test a new project always starts with an empty task index."""
    new_task(store)
    project = store.add_project({"title": "Side", "tasks": ["1", "2"], "members": ["ann"]})

    assert project.tasks == []
    assert project.members == ["ann"]
    assert project.color == "#3b82f6"
    assert project.created_at == project.updated_at


def test_update_project(store: WorkspaceStore, clock: FakeClock) -> None:
    """Test project updates merge fields and restamp."""
    before = store.get_project("default")
    clock.advance(minutes=1)

    project = store.update_project("default", color="#ff0000")

    assert project.color == "#ff0000"
    assert project.title == before.title
    assert project.updated_at > before.updated_at
    assert project.created_at == before.created_at


def test_update_project_errors(store: WorkspaceStore) -> None:
    """Test project updates reject missing ids, system fields and the index."""
    with pytest.raises(NotFoundError):
        store.update_project("nope", title="x")
    with pytest.raises(ValidationError):
        store.update_project("default", tasks=[])
    with pytest.raises(ValidationError):
        store.update_project("default", id="x")
    with pytest.raises(ValidationError):
        store.update_project("default", title=3)


def test_delete_project_keeps_other_projects(store: WorkspaceStore) -> None:
    """Test cascade only removes tasks of the deleted project."""
    other = store.add_project(title="Work")
    kept = new_task(store, project_id=other.id)
    new_task(store)
    store.set_current_project(other.id)

    store.delete_project("default")

    assert [task.id for task in store.tasks] == [kept.id]
    assert store.current_project_id == other.id
    assert store.delete_project("default") is False


def test_set_current_project(store: WorkspaceStore) -> None:
    """Test selection accepts existing ids and None only."""
    other = store.add_project(title="Work")
    store.set_current_project(other.id)
    assert store.current_project_id == other.id

    with pytest.raises(InvalidReferenceError):
        store.set_current_project("ghost")
    assert store.current_project_id == other.id

    store.set_current_project(None)
    assert store.current_project_id is None


def test_set_view_mode(store: WorkspaceStore) -> None:
    """Test the view mode switch leaves entities alone."""
    new_task(store)
    before = store.snapshot()

    store.set_view_mode("kanban")

    after = store.snapshot()
    assert store.view_mode == "kanban"
    assert after.tasks == before.tasks
    assert after.projects == before.projects
    with pytest.raises(ValidationError):
        store.set_view_mode("timeline")


def test_subtasks(store: WorkspaceStore, clock: FakeClock) -> None:
    """Test subtask helpers update the parent task."""
    task = new_task(store)
    clock.advance(seconds=1)

    subtask = store.add_subtask(task.id, "Draft")
    assert store.get_task(task.id).subtasks == [subtask]
    assert store.get_task(task.id).updated_at > task.updated_at

    toggled = store.toggle_subtask(task.id, subtask.id)
    assert toggled.completed is True
    assert store.get_task(task.id).subtasks[0].completed is True

    with pytest.raises(NotFoundError):
        store.toggle_subtask(task.id, "nope")
    with pytest.raises(ValidationError):
        store.add_subtask(task.id, "  ")

    assert store.remove_subtask(task.id, subtask.id) is True
    assert store.remove_subtask(task.id, subtask.id) is False
    assert store.get_task(task.id).subtasks == []


def test_returned_entities_are_copies(store: WorkspaceStore) -> None:
    """Test mutating a returned task does not touch the store."""
    task = new_task(store, tags=["a"])
    task.tags.append("b")
    task.project_id = "elsewhere"

    stored = store.get_task(task.id)
    assert stored.tags == ["a"]
    assert stored.project_id == "default"


def test_every_mutation_persists(store: WorkspaceStore, backend: MemoryBackend) -> None:
    """Test the document is rewritten after each mutation."""
    task = new_task(store)
    assert backend.load(TASK_STORAGE_KEY)["state"]["projects"][0]["tasks"] == [task.id]

    store.set_view_mode("gantt")
    assert backend.load(TASK_STORAGE_KEY)["state"]["viewMode"] == "gantt"

    store.delete_task(task.id)
    assert backend.load(TASK_STORAGE_KEY)["state"]["tasks"] == []


def test_persistence_failure_is_raised(clock: FakeClock) -> None:
    """Test a failing backend write surfaces as PersistenceError."""
    failing = MagicMock(spec=MemoryBackend)
    failing.load.return_value = None
    failing.save.side_effect = OSError("disk full")
    store = WorkspaceStore(failing, clock=clock, seed=empty_workspace).open()

    with pytest.raises(PersistenceError, match="disk full"):
        new_task(store)


def test_round_trip_through_backend(store: WorkspaceStore, backend: MemoryBackend, clock: FakeClock) -> None:
    """Test reloading reproduces tasks, projects and selection in order."""
    other = store.add_project(title="Work", members=["ann"])
    new_task(store, title="one", due_date="2024-06-01T00:00:00Z", subtasks=[{"title": "s"}])
    new_task(store, title="two", project_id=other.id, dependencies=["x"])
    new_task(store, title="three", assignee="ann", tags=["t", "t"])
    store.set_current_project(other.id)
    store.set_view_mode("calendar")
    before = store.snapshot()
    store.close()

    reloaded = WorkspaceStore(backend, clock=clock).open()

    assert reloaded.snapshot() == before


def test_open_seeds_default_workspace(backend: MemoryBackend, clock: FakeClock) -> None:
    """Test a fresh workspace has the default project and sample tasks."""
    store = WorkspaceStore(backend, clock=clock).open()

    projects = store.projects
    assert [project.id for project in projects] == ["default"]
    assert projects[0].title == "Personal Tasks"
    assert projects[0].tasks == ["1", "2", "3"]
    assert store.get_task("3").dependencies == ["2"]
    assert store.current_project_id == "default"
    assert store.view_mode == "list"


def test_operations_require_open_store(backend: MemoryBackend) -> None:
    """Test a closed store refuses to work."""
    store = WorkspaceStore(backend, seed=empty_workspace)
    with pytest.raises(WorkspaceError):
        store.add_project(title="x")

    with store:
        store.add_project(title="x")
    assert not store.is_open
    with pytest.raises(WorkspaceError):
        _ = store.tasks


def test_random_operations_keep_invariants(store: WorkspaceStore) -> None:
    """Test project references stay consistent under random mutations."""
    rng = random.Random(7)
    for _ in range(200):
        projects = [project.id for project in store.projects]
        tasks = [task.id for task in store.tasks]
        action = rng.choice(["add_task", "add_task", "delete_task", "add_project", "delete_project", "move"])
        if action == "add_project" or not projects:
            store.add_project(title="p")
        elif action == "add_task":
            new_task(store, project_id=rng.choice(projects))
        elif action == "delete_task":
            store.delete_task(rng.choice(tasks) if tasks else "none")
        elif action == "delete_project":
            store.delete_project(rng.choice(projects))
        elif tasks:
            store.update_task(rng.choice(tasks), project_id=rng.choice(projects))
        assert_consistent(store)
