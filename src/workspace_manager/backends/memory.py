"""In-memory backend for tests and embedding; nothing survives the process."""

import json
from typing import Any

import structlog

from workspace_manager.backend import StorageBackend
from workspace_manager.errors import PersistenceError

logger = structlog.get_logger()


class MemoryBackend(StorageBackend):
    """Keeps documents in a dict, encoded the same way the file backend does."""

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self._documents: dict[str, str] = {}
        for key, document in (documents or {}).items():
            self.save(key, document)

    def load(self, key: str) -> dict[str, Any] | None:
        raw = self._documents.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, document: dict[str, Any]) -> None:
        # Encode eagerly so non-serializable state fails here too.
        try:
            self._documents[key] = json.dumps(document)
        except (TypeError, ValueError) as e:
            logger.error("Failed to encode document", key=key, error=str(e))
            raise PersistenceError(f"Failed to encode document for {key}: {e}") from e

    def remove(self, key: str) -> None:
        self._documents.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._documents)
