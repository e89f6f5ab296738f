"""Logging setup for codex-bridge entry points."""

from __future__ import annotations

import logging
import sys

from .config import Config

__all__ = ["setup_logging", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config, default_level: int = logging.INFO) -> None:
    """Configure logging for the codex_bridge namespace.

    In debug mode all records go to ``config.log_file`` at DEBUG level;
    otherwise they go to stderr at ``default_level``. Third-party loggers
    stay at WARNING.

    Args:
        config: Loaded configuration
        default_level: Level for the stderr handler when not in debug mode
    """
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = default_level

    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("codex_bridge").setLevel(log_level)
