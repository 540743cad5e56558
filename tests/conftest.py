"""Shared fixtures for workspace manager tests."""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
import structlog

from workspace_manager.backends import MemoryBackend
from workspace_manager.seed import empty_workspace
from workspace_manager.store import WorkspaceStore


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep log lines out of captured command output."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger("critical"))
    yield
    structlog.reset_defaults()


START = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def ids() -> "count[int]":
    return count(1)


@pytest.fixture
def store(backend: MemoryBackend, clock: FakeClock, ids: "count[int]") -> WorkspaceStore:
    """Open store holding only the default project."""
    workspace = WorkspaceStore(backend, clock=clock, id_factory=lambda: f"id-{next(ids)}", seed=empty_workspace)
    workspace.open()
    yield workspace
    if workspace.is_open:
        workspace.close()
