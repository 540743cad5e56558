"""Initial workspace content used when nothing has been persisted yet."""

from datetime import datetime, timedelta

from workspace_manager.models import Project, Subtask, Task
from workspace_manager.persistence import WorkspaceSnapshot

DEFAULT_PROJECT_ID = "default"


def default_project(now: datetime) -> Project:
    """The "Personal Tasks" project every fresh workspace starts with."""
    return Project(
        id=DEFAULT_PROJECT_ID,
        title="Personal Tasks",
        description="Your personal task workspace",
        color="#3b82f6",
        created_at=now,
        updated_at=now,
    )


def sample_tasks(now: datetime) -> list[Task]:
    """A few tasks in the default project so a new workspace is not empty."""
    day = timedelta(days=1)
    return [
        Task(
            id="1",
            title="Design landing page mockups",
            description="Create high-fidelity mockups for the new landing page with focus on conversion optimization.",
            status="in-progress",
            priority="high",
            start_date=now,
            due_date=now + 7 * day,
            assignee="current-user",
            tags=["design", "ui/ux", "landing"],
            subtasks=[
                Subtask(id="sub-1", title="Research competitor landing pages", completed=True, created_at=now),
                Subtask(id="sub-2", title="Create wireframes", completed=True, created_at=now),
                Subtask(id="sub-3", title="Design hero section", completed=False, created_at=now),
            ],
            progress=0.6,
            project_id=DEFAULT_PROJECT_ID,
            created_at=now,
            updated_at=now,
        ),
        Task(
            id="2",
            title="Implement authentication system",
            description="Set up secure user authentication with email/password and social login options.",
            status="todo",
            priority="critical",
            start_date=now + day,
            due_date=now + 10 * day,
            assignee="current-user",
            tags=["backend", "security", "auth"],
            progress=0.0,
            project_id=DEFAULT_PROJECT_ID,
            created_at=now,
            updated_at=now,
        ),
        Task(
            id="3",
            title="Write API documentation",
            description="Document all API endpoints with examples and response schemas.",
            status="review",
            priority="medium",
            start_date=now - 3 * day,
            due_date=now + 2 * day,
            assignee="current-user",
            tags=["documentation", "api"],
            subtasks=[
                Subtask(id="sub-4", title="Document authentication endpoints", completed=True, created_at=now),
                Subtask(id="sub-5", title="Document task management endpoints", completed=True, created_at=now),
                Subtask(id="sub-6", title="Add code examples", completed=False, created_at=now),
            ],
            dependencies=["2"],
            progress=0.8,
            project_id=DEFAULT_PROJECT_ID,
            created_at=now,
            updated_at=now,
        ),
    ]


def default_workspace(now: datetime) -> WorkspaceSnapshot:
    """Seeded state: the default project, its sample tasks, list view."""
    return WorkspaceSnapshot(
        tasks=sample_tasks(now),
        projects=[default_project(now)],
        current_project_id=DEFAULT_PROJECT_ID,
        view_mode="list",
    )


def empty_workspace(now: datetime) -> WorkspaceSnapshot:
    """Only the default project, no tasks."""
    return WorkspaceSnapshot(projects=[default_project(now)], current_project_id=DEFAULT_PROJECT_ID)
