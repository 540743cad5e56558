"""Workspace manager - tasks and projects with consistent local persistence."""

from workspace_manager.errors import (
    AuthError,
    InvalidReferenceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    WorkspaceError,
)
from workspace_manager.session import AuthOutcome, SessionStore
from workspace_manager.store import WorkspaceStore

__all__ = [
    "AuthError",
    "AuthOutcome",
    "InvalidReferenceError",
    "NotFoundError",
    "PersistenceError",
    "SessionStore",
    "ValidationError",
    "WorkspaceError",
    "WorkspaceStore",
]
