"""Logging setup for the registry CLI and for hosts that embed the registry."""

import logging
import logging.handlers
import os
import threading

logger = logging.getLogger("scan_depot")

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_ROTATE_BYTES = 10 * 1024 * 1024
_ROTATE_KEEP = 3
_lock = threading.Lock()


def resolve_level(name) -> int:
    """Map a level name to its numeric value; unknown names fall back to INFO."""
    level = logging.getLevelName(str(name).upper())
    if isinstance(level, int):
        return level
    logger.warning("Unknown log level %r, using INFO", name)
    return logging.INFO


def _rotating_handler(path: str) -> logging.Handler:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_KEEP, encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(config, force: bool = False) -> None:
    """Apply ``config.log_level`` and ``config.log_file`` to the registry loggers.

    A process with no root handlers yet (the CLI) gets a stderr handler on
    the root logger; ``force`` replaces existing root handlers. Otherwise a
    host application's logging is left alone and only the ``scan_depot``
    hierarchy is configured. The log file, when set, rotates at 10 MB and is
    attached to ``scan_depot`` at most once per path.
    """
    level = resolve_level(config.log_level)
    with _lock:
        if force or not logging.getLogger().handlers:
            logging.basicConfig(level=level, format=LOG_FORMAT, force=force)
        depot = logging.getLogger("scan_depot")
        depot.setLevel(level)
        if not config.log_file:
            return
        path = os.path.abspath(config.log_file)
        if any(getattr(h, "baseFilename", None) == path for h in depot.handlers):
            return
        depot.addHandler(_rotating_handler(path))
    logger.debug("Writing registry log to %s", path)
