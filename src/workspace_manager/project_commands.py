"""Project commands for workspace manager CLI."""

from cyclopts import App

project_app = App(name="project", help="Manage projects")


@project_app.command
def add(title: str, description: str = "", color: str = "#3b82f6", members: str = "") -> None:
    """Create a project."""
    from workspace_manager.cli import get_store
    from workspace_manager.task_commands import split_list

    with get_store() as store:
        project = store.add_project(title=title, description=description, color=color, members=split_list(members))
    print(f"Created project {project.id}: {project.title}")


@project_app.command(name="list")
def list_projects() -> None:
    """List projects; the current one is marked with an asterisk."""
    from workspace_manager.cli import get_store

    with get_store() as store:
        projects = store.projects
        current = store.current_project_id

    if not projects:
        print("No projects")
        return

    for project in projects:
        marker = "*" if project.id == current else " "
        print(f"{marker} {project.id}: {project.title} ({len(project.tasks)} task(s))")


@project_app.command
def update(
    project_id: str,
    title: str | None = None,
    description: str | None = None,
    color: str | None = None,
    members: str | None = None,
) -> None:
    """Update the given fields of a project."""
    from workspace_manager.cli import get_store
    from workspace_manager.task_commands import split_list

    changes = {
        key: value
        for key, value in {"title": title, "description": description, "color": color}.items()
        if value is not None
    }
    if members is not None:
        changes["members"] = split_list(members)

    with get_store() as store:
        project = store.update_project(project_id, changes)
    print(f"Updated project {project.id}: {project.title}")


@project_app.command
def delete(project_id: str) -> None:
    """Delete a project and every task in it."""
    from workspace_manager.cli import get_store
    from workspace_manager.errors import NotFoundError

    with get_store() as store:
        try:
            doomed = len(store.get_project(project_id).tasks)
        except NotFoundError:
            doomed = 0
        removed = store.delete_project(project_id)

    if removed:
        print(f"Deleted project {project_id} and {doomed} task(s)")
    else:
        print(f"No project {project_id}")


@project_app.command
def use(project_id: str | None = None) -> None:
    """Select the current project; without an id, clear the selection."""
    from workspace_manager.cli import get_store

    with get_store() as store:
        store.set_current_project(project_id)
    print(f"Current project: {project_id}" if project_id else "Current project cleared")
