"""Task commands for workspace manager CLI."""

from typing import Any

from cyclopts import App

from workspace_manager.models import Task

task_app = App(name="task", help="Manage tasks")


def split_list(value: str) -> list[str]:
    """Split a comma separated option into its non-empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


def format_task(task: Task) -> str:
    done = sum(1 for subtask in task.subtasks if subtask.completed)
    line = f"{task.id}: {task.title} [{task.status}, {task.priority}] {task.progress:.0%}"
    if task.subtasks:
        line += f" ({done}/{len(task.subtasks)} subtasks)"
    if task.tags:
        line += " #" + " #".join(task.tags)
    return line


@task_app.command
def add(
    title: str,
    project: str | None = None,
    description: str = "",
    status: str = "todo",
    priority: str = "medium",
    start: str | None = None,
    due: str | None = None,
    assignee: str | None = None,
    tags: str = "",
    depends: str = "",
    progress: float = 0.0,
) -> None:
    """Create a task, in the current project unless --project is given."""
    from workspace_manager.cli import get_store

    with get_store() as store:
        project_id = project or store.current_project_id
        task = store.add_task(
            title=title,
            project_id=project_id,
            description=description,
            status=status,
            priority=priority,
            start_date=start,
            due_date=due,
            assignee=assignee,
            tags=split_list(tags),
            dependencies=split_list(depends),
            progress=progress,
        )
    print(f"Created task {task.id}: {task.title}")


@task_app.command(name="list")
def list_tasks(
    project: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
    tag: str | None = None,
    all_projects: bool = False,
) -> None:
    """List tasks of the current project, optionally filtered."""
    from workspace_manager.cli import get_store
    from workspace_manager.queries import filter_tasks

    with get_store() as store:
        project_id = None if all_projects else project or store.current_project_id
        tasks = filter_tasks(
            store.tasks, project_id=project_id, status=status, priority=priority, assignee=assignee, tag=tag
        )

    print(f"Found {len(tasks)} task(s):\n")
    for task in tasks:
        marker = "○" if task.status == "done" else "●"
        print(f"{marker} {format_task(task)}")


@task_app.command
def show(task_id: str) -> None:
    """Show every field of a task."""
    from workspace_manager.cli import get_store

    with get_store() as store:
        task = store.get_task(task_id)

    print(f"Task: {task.id}")
    print(f"Title: {task.title}")
    print(f"Description: {task.description}")
    print(f"Project: {task.project_id}")
    print(f"Status: {task.status}")
    print(f"Priority: {task.priority}")
    print(f"Progress: {task.progress:.0%}")
    if task.assignee:
        print(f"Assignee: {task.assignee}")
    if task.start_date:
        print(f"Start: {task.start_date.isoformat()}")
    if task.due_date:
        print(f"Due: {task.due_date.isoformat()}")
    if task.tags:
        print(f"Tags: {', '.join(task.tags)}")
    if task.dependencies:
        print(f"Depends on: {', '.join(task.dependencies)}")
    for subtask in task.subtasks:
        print(f"  [{'x' if subtask.completed else ' '}] {subtask.id}: {subtask.title}")


@task_app.command
def update(
    task_id: str,
    title: str | None = None,
    description: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    start: str | None = None,
    due: str | None = None,
    assignee: str | None = None,
    tags: str | None = None,
    depends: str | None = None,
    progress: float | None = None,
    project: str | None = None,
) -> None:
    """Update the given fields of a task."""
    from workspace_manager.cli import get_store

    changes: dict[str, Any] = {
        "title": title,
        "description": description,
        "status": status,
        "priority": priority,
        "start_date": start,
        "due_date": due,
        "assignee": assignee,
        "progress": progress,
        "project_id": project,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if tags is not None:
        changes["tags"] = split_list(tags)
    if depends is not None:
        changes["dependencies"] = split_list(depends)

    with get_store() as store:
        task = store.update_task(task_id, changes)
    print(f"Updated task {task.id}: {task.title}")


@task_app.command
def delete(*task_ids: str) -> None:
    """Delete one or more tasks."""
    from workspace_manager.cli import get_store

    with get_store() as store:
        removed = sum(1 for task_id in task_ids if store.delete_task(task_id))
    print(f"Deleted {removed} task(s)")


@task_app.command(name="subtask-add")
def subtask_add(task_id: str, title: str) -> None:
    """Add a subtask to a task."""
    from workspace_manager.cli import get_store

    with get_store() as store:
        subtask = store.add_subtask(task_id, title)
    print(f"Added subtask {subtask.id} to task {task_id}")


@task_app.command(name="subtask-toggle")
def subtask_toggle(task_id: str, subtask_id: str) -> None:
    """Mark a subtask done, or not done again."""
    from workspace_manager.cli import get_store

    with get_store() as store:
        subtask = store.toggle_subtask(task_id, subtask_id)
    state = "completed" if subtask.completed else "reopened"
    print(f"Subtask {subtask.id} {state}")


@task_app.command(name="subtask-remove")
def subtask_remove(task_id: str, subtask_id: str) -> None:
    """Remove a subtask from a task."""
    from workspace_manager.cli import get_store

    with get_store() as store:
        removed = store.remove_subtask(task_id, subtask_id)
    print(f"Removed subtask {subtask_id}" if removed else f"No subtask {subtask_id} on task {task_id}")
