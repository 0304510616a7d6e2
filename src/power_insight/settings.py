"""Application settings loader.

The config directory defaults to the working directory and can be moved with
the ``POWER_INSIGHT_CONFIG_DIR`` environment variable.
"""

from __future__ import annotations

import os
from pathlib import Path

from power_insight.config.manager import ConfigManager
from power_insight.config.schema import AppConfig

CONFIG_DIR_ENV = "POWER_INSIGHT_CONFIG_DIR"
DEFAULTS_FILENAME = "config.defaults.yaml"
USER_FILENAME = "config.yaml"

_config_manager: ConfigManager | None = None


def config_dir() -> Path:
    """Directory holding the defaults and user config files."""
    return Path(os.environ.get(CONFIG_DIR_ENV, "."))


def load_settings(
    defaults_path: Path | None = None,
    user_path: Path | None = None,
) -> AppConfig:
    """Load and return the application configuration."""
    global _config_manager
    base = config_dir()
    _config_manager = ConfigManager(
        defaults_path=defaults_path or base / DEFAULTS_FILENAME,
        user_path=user_path or base / USER_FILENAME,
    )
    return _config_manager.load()


def get_config_manager() -> ConfigManager:
    """Get the active config manager instance."""
    if _config_manager is None:
        raise RuntimeError("Settings not loaded. Call load_settings() first.")
    return _config_manager
