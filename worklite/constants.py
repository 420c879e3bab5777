"""
Constants for the Worklite application.

Note: These constants serve as default fallback values.
Actual values are loaded from <data_dir>/config.json at runtime via ConfigManager.
"""
import json
import os
from pathlib import Path
from typing import Any, Optional

from worklite.exceptions import ConfigurationError

# =============================================================================
# Default Fallback Values
# These are used if config.json doesn't exist or doesn't specify a value.
# =============================================================================

# Storage defaults
DEFAULT_DATA_DIR_NAME = ".worklite"
DEFAULT_DB_FILENAME = "worklite.db"
DEFAULT_LEGACY_FILENAME = "legacy_storage.json"
DEFAULT_CONFIG_FILENAME = "config.json"
DEFAULT_BUSY_TIMEOUT_MS = 5000

# Metadata defaults
DEFAULT_COMPLETED_STATUS = "done"
SCHEMA_VERSION = "1.0.0"

# Legacy single-project storage keys
LEGACY_DATA_KEY = "project-lite-data"
LEGACY_FILENAME_KEY = "project-lite-filename"
LEGACY_DEFAULT_FILENAME = "Migrated Project"

# Settings keys
FILTER_SETTING_PREFIX = "filters:"

# Environment variables
ENV_HOME = "WORKLITE_HOME"
ENV_LOG_LEVEL = "WORKLITE_LOG_LEVEL"
ENV_DEBUG = "WORKLITE_DEBUG"

# Work item defaults (new items)
DEFAULT_ITEM_TYPE = "task"
DEFAULT_ITEM_STATUS = "backlog"
DEFAULT_ITEM_PRIORITY = "medium"

# Parent candidate ordering: epics first, then features, stories, the rest
TYPE_HIERARCHY_ORDER = {
    "epic": 1,
    "feature": 2,
    "story": 3,
    "task": 4,
    "bug": 4,
    "spike": 4,
    "research": 4,
}


def get_default_data_dir() -> Path:
    """Get the data directory from $WORKLITE_HOME or ./.worklite."""
    env_home = os.getenv(ENV_HOME)
    if env_home:
        return Path(env_home)
    return Path(DEFAULT_DATA_DIR_NAME)


# =============================================================================
# Config Loader
# Load values from <data_dir>/config.json at runtime.
# =============================================================================

_config_manager_instance: Optional['ConfigManager'] = None


class ConfigManager:
    """
    Manages loading configuration from a config.json file with fallback to defaults.

    Usage:
        config = ConfigManager(data_dir=Path(".worklite"))
        completed = config.get_str('completed_status', DEFAULT_COMPLETED_STATUS)
    """

    def __init__(self, config_path: Optional[Path] = None, data_dir: Optional[Path] = None) -> None:
        """
        Initialize ConfigManager.

        Args:
            config_path: Direct path to config.json file. Takes precedence over data_dir.
            data_dir: Data directory. Config path will be data_dir/config.json.
        """
        self._config: Optional[dict] = None

        if config_path is not None:
            self._config_path = config_path
        elif data_dir is not None:
            self._config_path = data_dir / DEFAULT_CONFIG_FILENAME
        else:
            self._config_path = get_default_data_dir() / DEFAULT_CONFIG_FILENAME

    def _load_config(self) -> dict:
        """Load config from config.json file."""
        if self._config is not None:
            return self._config

        if self._config_path.exists():
            try:
                with open(self._config_path, "r") as f:
                    loaded = json.load(f)
                self._config = loaded if isinstance(loaded, dict) else {}
            except (json.JSONDecodeError, IOError):
                self._config = {}
        else:
            self._config = {}

        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a config value with fallback to default.

        Args:
            key: Configuration key name.
            default: Default value if key not found.

        Returns:
            Config value or default.
        """
        config = self._load_config()
        return config.get(key, default)

    def get_int(self, key: str, default: int) -> int:
        """Get an integer config value with fallback."""
        value = self.get(key, default)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Config value '{key}' in {self._config_path} must be an integer, got {value!r}"
            ) from e

    def get_str(self, key: str, default: str) -> str:
        """Get a string config value with fallback."""
        value = self.get(key, default)
        return str(value) if value is not None else default

    def reload(self) -> dict:
        """Force reload of config from disk."""
        self._config = None
        return self._load_config()

    @property
    def config_path(self) -> Path:
        """Get the config file path."""
        return self._config_path


def get_config_manager(reset: bool = False) -> ConfigManager:
    """
    Get the singleton ConfigManager instance with default path.

    Args:
        reset: If True, reset the singleton and create a new instance.
    """
    global _config_manager_instance
    if _config_manager_instance is None or reset:
        _config_manager_instance = ConfigManager()
    return _config_manager_instance


def reset_config_manager() -> None:
    """Reset the singleton ConfigManager instance (useful for testing)."""
    global _config_manager_instance
    _config_manager_instance = None