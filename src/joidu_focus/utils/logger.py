"""Rotating session log in the platformdirs user log directory.

Engine modules log through ``logging.getLogger(__name__)``; everything under
``joidu_focus`` ends up in ``focus.log`` once the CLI has called
``get_logger()``.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from platformdirs import user_log_dir

_APP_NAME = "joidu_focus"
_LOG_FILE = "focus.log"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3
_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

_logger: logging.Logger | None = None


def log_file_path() -> Path:
    """Where session transitions and recoveries are recorded."""
    return Path(user_log_dir(_APP_NAME)) / _LOG_FILE


def _session_log_handler(path: Path) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    return handler


def get_logger() -> logging.Logger:
    """Return the ``joidu_focus`` logger with the session log attached.

    Other handlers on the logger (test capture, embedding applications)
    are left alone; only a second rotating file handler is avoided.
    """
    global _logger
    if _logger is not None:
        return _logger

    logger = logging.getLogger(_APP_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        logger.addHandler(_session_log_handler(log_file_path()))

    _logger = logger
    return _logger
