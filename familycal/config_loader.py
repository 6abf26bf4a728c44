"""familycal.config_loader

Config loader for familycal.

- Reads YAML (PyYAML); JSON files parse as YAML too.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# Hard upper bounds for recurrence expansion; configuration may only lower them
MAX_OCCURRENCES = 500
MAX_HORIZON_YEARS = 2


@dataclass
class Config:
    """Typed configuration for familycal.

    Fields:
        lead_time_minutes: how long before an event starts its notification is due
        evaluation_interval_seconds: cadence of the notification evaluation tick
        cleanup_interval_seconds: cadence of the fired-id cleanup tick
        refresh_interval_seconds: how often the live event window is reloaded
        max_occurrences: safety cap on occurrences per recurring series
        horizon_years: safety cap on how far past the seed a series may run
        surface_all_due: emit every newly due event per tick (False: first only)
        max_pending_notifications: due-signals buffered for API polling
        server_bind: host to bind the HTTP server to
        server_port: port for the HTTP server
        log_level: logging level name
    """

    lead_time_minutes: int = 10
    evaluation_interval_seconds: int = 30
    cleanup_interval_seconds: int = 300
    refresh_interval_seconds: int = 60
    max_occurrences: int = 500
    horizon_years: int = 2
    surface_all_due: bool = True
    max_pending_notifications: int = 50
    server_bind: str = "127.0.0.1"
    server_port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int and clamped into sane ranges,
        logging a warning whenever a coercion happens.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int, minimum: int, maximum: int) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < minimum:
                logger.warning("%s %d below minimum; coercing to %d", key, value, minimum)
                return minimum
            if value > maximum:
                logger.warning("%s %d above maximum; coercing to %d", key, value, maximum)
                return maximum
            return value

        def _coerce_bool(key: str, default: bool) -> bool:
            raw = data.get(key, default)
            if isinstance(raw, bool):
                return raw
            if isinstance(raw, str):
                return raw.strip().lower() in ("1", "true", "yes", "on")
            return bool(raw)

        server_bind = data.get("server_bind", "127.0.0.1")
        server_bind = str(server_bind) if server_bind is not None else "127.0.0.1"

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            lead_time_minutes=_coerce_int("lead_time_minutes", 10, 1, 24 * 60),
            evaluation_interval_seconds=_coerce_int("evaluation_interval_seconds", 30, 1, 600),
            cleanup_interval_seconds=_coerce_int("cleanup_interval_seconds", 300, 10, 24 * 3600),
            refresh_interval_seconds=_coerce_int("refresh_interval_seconds", 60, 5, 3600),
            max_occurrences=_coerce_int("max_occurrences", 500, 1, MAX_OCCURRENCES),
            horizon_years=_coerce_int("horizon_years", 2, 1, MAX_HORIZON_YEARS),
            surface_all_due=_coerce_bool("surface_all_due", True),
            max_pending_notifications=_coerce_int("max_pending_notifications", 50, 1, 1000),
            server_bind=server_bind,
            server_port=_coerce_int("server_port", 8080, 1, 65535),
            log_level=log_level,
        )


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to ./familycal.yaml
              relative to the current working directory.

    Behavior:
    - If file is missing: returns Config() with defaults.
    - If file exists but top-level is not a mapping: raises ValueError.
    """
    p = Path(path) if path else Path.cwd() / "familycal.yaml"
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Config file {p} is not valid YAML: {e}") from e
    # safe_load returns None for empty files
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
