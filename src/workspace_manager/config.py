"""Configuration management for workspace-manager using YAML files."""

from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".workspace-manager"

DEFAULTS: dict[str, Any] = {
    "storage.backend": "json",
    "auth.latency": 1.0,
}


class Config:
    """YAML configuration with a local file falling back to a global one.

    Local config lives in ``.workspace-manager/config.yaml`` under the working
    directory, global config in ``~/.workspace-manager/config.yaml``. Lookups
    try local, then global, then the built-in defaults.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, read and write the global config only.
            config_dir: Custom directory for the config file (overrides use_global)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        elif use_global:
            self.config_dir = Path.home() / CONFIG_DIR_NAME
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
        self.is_global = use_global
        self.config_file = self.config_dir / "config.yaml"

        self._config: dict[str, Any] = self._read(self.config_file, strict=True)
        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            self._global_config = self._read(Path.home() / CONFIG_DIR_NAME / "config.yaml", strict=False)

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    @staticmethod
    def _read(path: Path, strict: bool) -> dict[str, Any]:
        """Load a YAML mapping; a broken global file only logs a warning."""
        if not path.exists():
            return {}
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            if not strict:
                logger.warning("Failed to load global config", path=str(path), error=str(e))
                return {}
            logger.error("Failed to load config", path=str(path), error=str(e))
            raise ValueError(f"Failed to load config from {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        logger.debug("Config loaded", path=str(path), keys=list(data.keys()))
        return data

    def _save(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e
        logger.debug("Config saved")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value, falling back to global then defaults."""
        if key in self._config:
            return self._config[key]
        if not self.is_global and key in self._global_config:
            return self._global_config[key]
        if default is None:
            return DEFAULTS.get(key)
        return default

    def set(self, key: str, value: str) -> None:
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, Any]:
        """All explicitly set values; local ones override global ones."""
        if self.is_global:
            return self._config.copy()
        merged = self._global_config.copy()
        merged.update(self._config)
        return merged

    # ---- typed accessors ----

    @property
    def storage_backend(self) -> str:
        """Only ``json`` survives between commands; the memory backend is for tests."""
        backend = str(self.get("storage.backend"))
        if backend != "json":
            raise ValueError(f"Unknown storage backend: {backend} (only json is supported)")
        return backend

    @property
    def storage_path(self) -> Path:
        """Directory for JSON documents, ``<config dir>/data`` unless set."""
        path = self.get("storage.path")
        return Path(path).expanduser() if path else self.config_dir / "data"

    @property
    def auth_latency(self) -> float:
        value = self.get("auth.latency")
        try:
            latency = float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"auth.latency must be a number, got {value!r}") from e
        if latency < 0:
            raise ValueError("auth.latency must not be negative")
        return latency


def get_config(use_global: bool = False) -> Config:
    """Get a configuration instance."""
    return Config(use_global=use_global)
