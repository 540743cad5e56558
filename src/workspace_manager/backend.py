"""Storage backend interface for workspace persistence."""

from abc import ABC, abstractmethod
from typing import Any


class StorageBackend(ABC):
    """Abstract base class for document storage backends.

    A backend stores whole JSON-compatible documents under logical keys such
    as ``"task-storage"``. Every ``save`` replaces the previous document.
    """

    @abstractmethod
    def load(self, key: str) -> dict[str, Any] | None:
        """Load the document stored under a key, or None if there is none."""
        pass

    @abstractmethod
    def save(self, key: str, document: dict[str, Any]) -> None:
        """Replace the document stored under a key."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove the document stored under a key, if any."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List the keys that currently hold a document."""
        pass
