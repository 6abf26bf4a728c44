"""Configuration management for the familycal server."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return result

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


# Environment variable -> (config key, is_int)
_ENV_KEYS: dict[str, tuple[str, bool]] = {
    "FAMILYCAL_LEAD_TIME_MINUTES": ("lead_time_minutes", True),
    "FAMILYCAL_EVALUATION_INTERVAL": ("evaluation_interval_seconds", True),
    "FAMILYCAL_CLEANUP_INTERVAL": ("cleanup_interval_seconds", True),
    "FAMILYCAL_REFRESH_INTERVAL": ("refresh_interval_seconds", True),
    "FAMILYCAL_MAX_OCCURRENCES": ("max_occurrences", True),
    "FAMILYCAL_HORIZON_YEARS": ("horizon_years", True),
    "FAMILYCAL_SURFACE_ALL_DUE": ("surface_all_due", False),
    "FAMILYCAL_SERVER_BIND": ("server_bind", False),
    "FAMILYCAL_SERVER_PORT": ("server_port", True),
    "FAMILYCAL_LOG_LEVEL": ("log_level", False),
}


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from FAMILYCAL_* environment variables.

        Returns:
            Configuration dictionary suitable for Config.from_dict()
        """
        cfg: dict[str, Any] = {}

        for env_name, (key, is_int) in _ENV_KEYS.items():
            raw = os.environ.get(env_name)
            if not raw:
                continue
            if is_int:
                try:
                    cfg[key] = int(raw)
                except ValueError:
                    logger.warning("Invalid %s=%r; ignoring", env_name, raw)
                continue
            cfg[key] = raw

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment.

        Returns:
            Configuration dictionary
        """
        self.load_env_file()
        return self.build_config_from_env()
