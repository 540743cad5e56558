"""CLI for workspace manager.

The CLI is the composition root: it reads the configuration, builds the
storage backend and hands it to the stores, which each command opens and
closes around its own work.
"""

import asyncio
import sys
from datetime import datetime, timezone
from typing import Annotated, Literal

import structlog
from cyclopts import App, Parameter

from workspace_manager import queries
from workspace_manager.backend import StorageBackend
from workspace_manager.backends import JsonFileBackend
from workspace_manager.config import get_config
from workspace_manager.config_commands import config_app
from workspace_manager.errors import WorkspaceError
from workspace_manager.models import TASK_STATUSES
from workspace_manager.project_commands import project_app
from workspace_manager.session import AuthOutcome, SessionStore
from workspace_manager.store import WorkspaceStore
from workspace_manager.task_commands import format_task, task_app

logger = structlog.get_logger()

app = App(
    help="Workspace Manager - tasks and projects from the terminal",
)

app.command(task_app)
app.command(project_app)
app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_backend() -> StorageBackend:
    """Get the configured storage backend."""
    config = get_config()
    backend_type = config.storage_backend
    logger.debug("Using storage backend", backend=backend_type, path=str(config.storage_path))
    return JsonFileBackend(config.storage_path)


def get_store() -> WorkspaceStore:
    """Build a workspace store on the configured backend; open it with ``with``."""
    return WorkspaceStore(get_backend())


def get_session() -> SessionStore:
    """Build and open the session store on the configured backend."""
    config = get_config()
    return SessionStore(get_backend(), latency=config.auth_latency).open()


@app.command
def view(mode: Literal["list", "kanban", "calendar", "gantt"] | None = None) -> None:
    """Show or switch the active view mode."""
    with get_store() as store:
        if mode is not None:
            store.set_view_mode(mode)
        current = store.view_mode
    print(f"View mode: {current}")


@app.command
def board(project: str | None = None) -> None:
    """Show the current project's tasks grouped by status."""
    with get_store() as store:
        tasks = queries.filter_tasks(store.tasks, project_id=project or store.current_project_id)

    columns = queries.group_by_status(tasks)
    for status in TASK_STATUSES:
        print(f"{status.upper()} ({len(columns[status])})")
        for task in columns[status]:
            print(f"  {format_task(task)}")
        print()


@app.command
def calendar(project: str | None = None, by_start: bool = False) -> None:
    """List tasks by due date (or start date)."""
    with get_store() as store:
        tasks = queries.filter_tasks(store.tasks, project_id=project or store.current_project_id)

    buckets = queries.calendar_buckets(tasks, field="start_date" if by_start else "due_date")
    if not buckets:
        print("No dated tasks")
        return
    for day, day_tasks in buckets.items():
        print(day.isoformat())
        for task in day_tasks:
            print(f"  {task.id}: {task.title} [{task.status}]")


@app.command
def gantt(project: str | None = None) -> None:
    """List task spans in start order."""
    with get_store() as store:
        tasks = queries.filter_tasks(store.tasks, project_id=project or store.current_project_id)

    rows = queries.gantt_rows(tasks)
    if not rows:
        print("No scheduled tasks")
        return
    for row in rows:
        after = f" after {', '.join(row.dependencies)}" if row.dependencies else ""
        print(f"{row.start.date()} -> {row.end.date()}  {row.task_id}: {row.title} {row.progress:.0%}{after}")


@app.command
def stats(project: str | None = None) -> None:
    """Show task counts and progress for a project."""
    with get_store() as store:
        project_id = project or store.current_project_id
        if project_id is None:
            print("No project selected")
            return
        title = store.get_project(project_id).title
        summary = queries.project_stats(store.tasks, project_id)
        late = queries.overdue_tasks(
            queries.filter_tasks(store.tasks, project_id=project_id), datetime.now(timezone.utc)
        )

    print(f"{title}: {summary.total} task(s), {summary.completion_rate:.0%} done")
    print(f"Average progress: {summary.average_progress:.0%}")
    for status, count in summary.by_status.items():
        print(f"  {status}: {count}")
    if late:
        print(f"Overdue: {', '.join(task.id for task in late)}")


@app.command
def cycles() -> None:
    """Find and display dependency cycles between tasks."""
    with get_store() as store:
        found = queries.find_dependency_cycles(store.tasks)

    if not found:
        print("No cycles found")
        return

    print(f"Found {len(found)} cycle(s):\n")
    for i, cycle in enumerate(found, 1):
        print(f"{i}. {' -> '.join(cycle)} -> {cycle[0]}")


def _report(outcome: AuthOutcome) -> None:
    if outcome.success and outcome.user is not None:
        print(f"Signed in as {outcome.user.name} <{outcome.user.email}>")
    else:
        print(outcome.error or "Request cancelled", file=sys.stderr)
        sys.exit(1)


@app.command
def login(email: str, password: str) -> None:
    """Sign in (mock credentials, nothing is verified)."""
    session = get_session()
    _report(asyncio.run(session.login(email, password)))


@app.command
def signup(name: str, email: str, password: str) -> None:
    """Create a mock account and sign in as it."""
    session = get_session()
    _report(asyncio.run(session.signup(name, email, password)))


@app.command
def logout() -> None:
    """Sign out."""
    get_session().logout()
    print("Signed out")


@app.command
def whoami() -> None:
    """Show the signed-in user."""
    user = get_session().user
    if user is None:
        print("Not signed in")
        return
    print(f"{user.name} <{user.email}>")
    if user.avatar:
        print(f"Avatar: {user.avatar}")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    try:
        app(tokens)
    except WorkspaceError as e:
        logger.debug("Command failed", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    app.meta()
