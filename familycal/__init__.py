"""familycal - family calendar backend with recurring events and upcoming-event alerts.

Imports are kept light here so the package can be inspected without pulling
in aiohttp; the server is imported when run_server() is called.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors the FAMILYCAL_DEBUG environment variable (truthy values: "1",
    "true", "yes", "on"), which forces DEBUG verbosity.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("FAMILYCAL_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none are present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message, only the level colorized
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Start the familycal server and block until shutdown.

    Configuration is layered: defaults, then the YAML file (``--config`` or
    ./familycal.yaml), then FAMILYCAL_* environment variables (including a
    .env file), then command line overrides.

    Raises:
        ConfigurationError: If the config file cannot be used
    """
    import logging
    import os

    _init_logging(os.environ.get("FAMILYCAL_LOG_LEVEL"))

    from .api.server import start_server
    from .config_loader import Config, load_config
    from .core.config_manager import ConfigManager
    from .exceptions import ConfigurationError
    from .logging_config import configure_logging, get_logging_status

    logger = logging.getLogger(__name__)

    config_path = getattr(args, "config", None)
    try:
        file_config = load_config(config_path)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"cannot load config {config_path or 'familycal.yaml'}: {e}") from e

    cfg = dict(vars(file_config))
    cfg.update(ConfigManager().load_full_config())

    port = getattr(args, "port", None)
    if port is not None:
        cfg["server_port"] = int(port)
        logger.debug("Applied command line port override: %d", cfg["server_port"])

    config = Config.from_dict(cfg)

    debug = bool(getattr(args, "debug", False)) or config.log_level == "DEBUG"
    configure_logging(debug_mode=debug)
    logger.debug("Logger levels: %s", get_logging_status())
    logger.debug(
        "Resolved configuration (diagnostic): %s",
        {k: getattr(config, k) for k in ("log_level", "server_bind", "server_port")},
    )

    logger.info("Starting familycal on %s:%d", config.server_bind, config.server_port)
    start_server(config)
