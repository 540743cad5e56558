"""Exceptions raised by the workspace and session stores."""


class WorkspaceError(Exception):
    """Base class for all workspace manager errors."""


class NotFoundError(WorkspaceError, KeyError):
    """Raised when a task, subtask or project id does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidReferenceError(WorkspaceError):
    """Raised when an entity points at a project that does not exist."""

    def __init__(self, project_id: str | None) -> None:
        self.project_id = project_id
        super().__init__(f"Project does not exist: {project_id}")


class ValidationError(WorkspaceError, ValueError):
    """Raised when supplied field values are not acceptable."""


class PersistenceError(WorkspaceError):
    """Raised when a document cannot be read, decoded or written."""


class AuthError(WorkspaceError):
    """Raised when a login or signup request is rejected."""
