"""Shared test fixtures and configuration.

Provides a controllable clock and tick scheduler so countdown behaviour
can be tested without waiting, plus isolation from real platform dirs.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

import pytest

from joidu_focus.models.focus.controller import FocusSessionController
from joidu_focus.models.focus.store import MemoryKeyValueStore, SessionStore

T0 = datetime(2024, 3, 4, 9, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class _Handle:
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose callbacks fire as the fake clock is advanced."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.pending: list[tuple[datetime, int, object, _Handle]] = []
        self._seq = 0

    def call_later(self, delay, callback):
        self._seq += 1
        handle = _Handle()
        due = self.clock.now() + timedelta(seconds=delay)
        self.pending.append((due, self._seq, callback, handle))
        return handle

    @property
    def live_handles(self) -> int:
        return sum(1 for p in self.pending if not p[3].cancelled)

    def advance(self, seconds: float) -> None:
        """Move time forward, firing every callback that falls due."""
        target = self.clock.now() + timedelta(seconds=seconds)
        while True:
            due = sorted(
                (p for p in self.pending if not p[3].cancelled and p[0] <= target),
                key=lambda p: (p[0], p[1]),
            )
            if not due:
                break
            entry = due[0]
            self.pending.remove(entry)
            self.clock.current = max(self.clock.current, entry[0])
            entry[2]()
        self.pending = [p for p in self.pending if not p[3].cancelled]
        self.clock.current = target

    def suspend(self, seconds: float) -> None:
        """Move time forward without firing anything (process was asleep)."""
        self.clock.advance(seconds)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def scheduler(clock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture()
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def store(kv) -> SessionStore:
    return SessionStore(kv)


@pytest.fixture()
def make_controller(store, clock, scheduler):
    """Factory for controllers sharing one store, like separate screens."""

    def _make() -> FocusSessionController:
        return FocusSessionController(store, clock=clock, scheduler=scheduler)

    return _make


@pytest.fixture()
def controller(make_controller) -> FocusSessionController:
    return make_controller()


# ---------------------------------------------------------------------------
# Config / filesystem isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def isolate_log_dir(tmp_path):
    """Keep the application log file inside the test's tmp dir."""
    import joidu_focus.utils.logger as logger_mod

    original = logger_mod._logger
    logger_mod._logger = None
    with patch("joidu_focus.utils.logger.user_log_dir", return_value=str(tmp_path / "logs")):
        yield
    app_logger = logging.getLogger("joidu_focus")
    for handler in list(app_logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            handler.close()
            app_logger.removeHandler(handler)
    logger_mod._logger = original


@pytest.fixture()
def tmp_config(tmp_path):
    """Provide a real ConfigService backed by a temporary directory.

    Patches platform dirs so config/state files land in *tmp_path* only.
    Also clears the lru_cache so each test gets a fresh service instance.
    """
    from joidu_focus.services.config_service import get_config_service

    get_config_service.cache_clear()
    with patch(
        "joidu_focus.services.config_service.user_config_dir",
        return_value=str(tmp_path / "config"),
    ):
        with patch(
            "joidu_focus.services.config_service.user_data_dir",
            return_value=str(tmp_path / "data"),
        ):
            yield get_config_service()
    get_config_service.cache_clear()
