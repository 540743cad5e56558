"""JSON file backend storing one document per key."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import structlog

from workspace_manager.backend import StorageBackend
from workspace_manager.errors import PersistenceError

logger = structlog.get_logger()


class JsonFileBackend(StorageBackend):
    """File-based backend writing ``<key>.json`` documents into a directory."""

    def __init__(self, directory: str | Path) -> None:
        """Initialize JSON file backend.

        Args:
            directory: Directory holding the documents (created if missing)
        """
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Failed to create storage directory", directory=str(self.directory), error=str(e))
            raise PersistenceError(f"Cannot create storage directory {self.directory}: {e}") from e
        logger.debug("JSON file backend initialized", directory=str(self.directory))

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise PersistenceError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def load(self, key: str) -> dict[str, Any] | None:
        """Read and decode the document for a key."""
        path = self._path_for(key)
        if not path.exists():
            logger.debug("No stored document", key=key)
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read document", key=key, path=str(path), error=str(e))
            raise PersistenceError(f"Failed to read {path}: {e}") from e

        if not isinstance(document, dict):
            raise PersistenceError(f"Document {path} is not a JSON object")
        logger.debug("Document loaded", key=key)
        return document

    def save(self, key: str, document: dict[str, Any]) -> None:
        """Write the document to a temporary file and swap it into place."""
        path = self._path_for(key)
        try:
            payload = json.dumps(document, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error("Failed to encode document", key=key, error=str(e))
            raise PersistenceError(f"Failed to encode document for {key}: {e}") from e

        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error("Failed to write document", key=key, path=str(path), error=str(e))
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Failed to write {path}: {e}") from e
        logger.debug("Document saved", key=key, size=len(payload))

    def remove(self, key: str) -> None:
        """Delete the document file for a key."""
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to remove document", key=key, error=str(e))
            raise PersistenceError(f"Failed to remove {path}: {e}") from e
        logger.debug("Document removed", key=key)

    def keys(self) -> list[str]:
        """List stored keys in name order."""
        return sorted(path.stem for path in self.directory.glob("*.json"))
