"""Backend implementations."""

from workspace_manager.backends.json_file import JsonFileBackend
from workspace_manager.backends.memory import MemoryBackend

__all__ = ["JsonFileBackend", "MemoryBackend"]
