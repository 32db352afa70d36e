"""Tests for the rotating session log."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

import pytest

from joidu_focus.models.focus.controller import FocusSessionController
from joidu_focus.models.focus.store import MemoryKeyValueStore, SessionStore


def _file_handlers(logger: logging.Logger) -> list[RotatingFileHandler]:
    return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]


@pytest.fixture()
def log_dir(tmp_path):
    """Fresh logger singleton writing under *tmp_path*; foreign handlers kept."""
    import joidu_focus.utils.logger as logger_mod

    app_logger = logging.getLogger("joidu_focus")
    original = logger_mod._logger
    logger_mod._logger = None
    for handler in _file_handlers(app_logger):
        app_logger.removeHandler(handler)

    with patch("joidu_focus.utils.logger.user_log_dir", return_value=str(tmp_path / "logs")):
        yield tmp_path / "logs"

    for handler in _file_handlers(app_logger):
        handler.close()
        app_logger.removeHandler(handler)
    logger_mod._logger = original


def test_log_file_path(log_dir):
    from joidu_focus.utils.logger import log_file_path

    assert log_file_path() == log_dir / "focus.log"


def test_attaches_one_rotating_handler(log_dir):
    from joidu_focus.utils.logger import get_logger

    first = get_logger()
    second = get_logger()

    assert first is second
    assert first.propagate is False
    handlers = _file_handlers(first)
    assert len(handlers) == 1
    assert handlers[0].maxBytes == 5 * 1024 * 1024
    assert handlers[0].backupCount == 3
    assert (log_dir / "focus.log").exists()


def test_other_handlers_do_not_block_the_session_log(log_dir):
    """A capture handler already on the logger must not stop file logging."""
    from joidu_focus.utils.logger import get_logger

    app_logger = logging.getLogger("joidu_focus")
    foreign = logging.NullHandler()
    app_logger.addHandler(foreign)
    try:
        logger = get_logger()
        assert foreign in logger.handlers
        assert len(_file_handlers(logger)) == 1
    finally:
        app_logger.removeHandler(foreign)


def test_existing_file_handler_is_reused(log_dir):
    import joidu_focus.utils.logger as logger_mod

    logger_mod.get_logger()
    logger_mod._logger = None
    logger = logger_mod.get_logger()

    assert len(_file_handlers(logger)) == 1


def test_session_transitions_reach_the_log(log_dir, clock, scheduler):
    from joidu_focus.utils.logger import get_logger

    logger = get_logger()
    controller = FocusSessionController(
        SessionStore(MemoryKeyValueStore()), clock=clock, scheduler=scheduler
    )
    controller.create_session("Write report", 25)
    controller.restore()
    controller.request_pause()
    for handler in logger.handlers:
        handler.flush()

    content = (log_dir / "focus.log").read_text()
    assert "Created session" in content
    assert "Paused session" in content
    assert "[joidu_focus.models.focus.controller]" in content


def test_malformed_state_is_logged_as_warning(log_dir):
    from joidu_focus.models.focus.store import CURRENT_SESSION_KEY
    from joidu_focus.utils.logger import get_logger

    logger = get_logger()
    store = SessionStore(MemoryKeyValueStore({CURRENT_SESSION_KEY: "{broken"}))
    assert store.load() is None
    for handler in logger.handlers:
        handler.flush()

    content = (log_dir / "focus.log").read_text()
    assert "WARNING" in content
    assert "Ignoring malformed current session" in content
