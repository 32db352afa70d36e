"""Unit tests for models/focus/ui.py.

Rendering is checked through a Console writing to a StringIO buffer; the
live loop is driven with a scripted keyboard and the manual scheduler.
"""

from __future__ import annotations

from datetime import datetime, timezone
from io import StringIO
from unittest.mock import AsyncMock

import pytest
from rich.console import Console
from rich.layout import Layout
from rich.panel import Panel

from joidu_focus.models.focus.controller import FocusState
from joidu_focus.models.focus.record import (
    CompletedSessionRecord,
    FocusOptions,
    SessionRecord,
    mark_paused,
)
from joidu_focus.models.focus.ui import (
    PREPARATION_TIPS,
    TimerDisplay,
    format_time,
    show_completion_message,
    show_stopped_message,
    win_message,
)

T0 = datetime(2024, 3, 4, 9, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _string_console() -> tuple[Console, StringIO]:
    """Return a Console that writes to a StringIO buffer."""
    buf = StringIO()
    con = Console(file=buf, force_terminal=False, no_color=True, width=100, height=30)
    return con, buf


def _render(renderable) -> str:
    con, buf = _string_console()
    con.print(renderable)
    return buf.getvalue()


def _record(title: str = "Write report", minutes: int = 25, **kwargs) -> SessionRecord:
    return SessionRecord.create(title, minutes, T0, session_id="s-1", **kwargs)


def _finished(remaining: int, completed: bool) -> CompletedSessionRecord:
    return CompletedSessionRecord.from_record(
        _record(), end_time=T0, is_completed=completed, time_remaining_seconds=remaining
    )


class ScriptedKeyboard:
    """Keyboard stand-in returning one scripted intent per poll."""

    def __init__(self, *intents, on_poll=None):
        self.intents = list(intents)
        self.on_poll = on_poll
        self.stopped = False

    def get_intent(self):
        if self.on_poll:
            self.on_poll()
        return self.intents.pop(0) if self.intents else None

    def stop(self):
        self.stopped = True


@pytest.fixture()
def fast_poll(monkeypatch):
    monkeypatch.setattr("joidu_focus.models.focus.ui.POLL_INTERVAL", 0)


# ---------------------------------------------------------------------------
# Helpers: format_time / win_message
# ---------------------------------------------------------------------------


class TestFormatTime:
    @pytest.mark.parametrize(
        "seconds,expected",
        [(1500, "25:00"), (61, "01:01"), (0, "00:00"), (-5, "00:00"), (3600, "60:00")],
    )
    def test_format(self, seconds, expected):
        assert format_time(seconds) == expected


class TestWinMessage:
    def test_long_session(self):
        assert "mastering deep work" in win_message(50)

    def test_pomodoro_mentions_minutes(self):
        assert "30 minutes" in win_message(30)

    def test_short_session(self):
        assert "Great start" in win_message(5)


# ---------------------------------------------------------------------------
# TimerDisplay rendering
# ---------------------------------------------------------------------------


class TestCreateLayout:
    def setup_method(self):
        con, _ = _string_console()
        self.td = TimerDisplay(console=con)

    def test_returns_layout_with_sections(self):
        layout = self.td.create_layout(_record(), FocusState.ACTIVE, 1500)
        assert isinstance(layout, Layout)
        for name in ("header", "body", "footer"):
            assert layout[name] is not None

    def test_active_shows_title_and_time(self):
        out = _render(self.td.create_layout(_record(), FocusState.ACTIVE, 1500))
        assert "Focus Mode" in out
        assert "Write report" in out
        assert "25:00" in out
        assert "pause" in out

    def test_break_header(self):
        out = _render(self.td.create_layout(_record(), FocusState.BREAK, 480))
        assert "ON A BREAK" in out
        assert "08:00" in out
        assert "resume" in out

    def test_break_session_header(self):
        record = _record("Break Time", 5, is_break=True)
        out = _render(self.td.create_layout(record, FocusState.ACTIVE, 300))
        assert "Break Time" in out

    @pytest.mark.parametrize(
        "state,label", [(FocusState.COMPLETE, "COMPLETE"), (FocusState.CANCELLED, "STOPPED")]
    )
    def test_terminal_headers(self, state, label):
        assert label in _render(self.td.create_layout(_record(), state, 0))

    def test_progress_percentage(self):
        out = _render(self.td.create_layout(_record(), FocusState.ACTIVE, 750))
        assert "50%" in out

    def test_break_count_and_muted_notifications(self):
        record = mark_paused(_record(options=FocusOptions(block_distractions=True)), T0, 900)
        out = _render(self.td.create_layout(record, FocusState.BREAK, 900))
        assert "Breaks taken: 1" in out
        assert "Notifications muted" in out

    def test_without_record(self):
        out = _render(self.td.create_layout(None, FocusState.ACTIVE, 0))
        assert "00:00" in out


class TestPreparing:
    def test_panel_lists_tips_and_countdown(self):
        td = TimerDisplay(console=_string_console()[0])
        panel = td.render_preparing(_record(), 3)
        assert isinstance(panel, Panel)
        out = _render(panel)
        assert "Starting in 3" in out
        assert PREPARATION_TIPS[0] in out

    @pytest.mark.asyncio
    async def test_zero_countdown_returns_immediately(self, mocker):
        sleep = mocker.patch("joidu_focus.models.focus.ui.asyncio.sleep", new=AsyncMock())
        await TimerDisplay(console=_string_console()[0]).prepare(_record(), 0)
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_counts_down_once_per_second(self, mocker):
        sleep = mocker.patch("joidu_focus.models.focus.ui.asyncio.sleep", new=AsyncMock())
        await TimerDisplay(console=_string_console()[0]).prepare(_record(), 3)
        assert sleep.await_count == 3


# ---------------------------------------------------------------------------
# TimerDisplay.run
# ---------------------------------------------------------------------------


def _running(controller):
    controller.create_session("Write report", 25)
    controller.start()
    return controller


class TestRun:
    @pytest.mark.asyncio
    async def test_pause_then_leave_stays_on_break(self, controller, store, fast_poll):
        _running(controller)
        keyboard = ScriptedKeyboard("pause", None, "detach")

        state = await TimerDisplay(console=_string_console()[0]).run(controller, keyboard)

        assert state == FocusState.BREAK
        assert store.load().is_paused is True
        assert keyboard.stopped

    @pytest.mark.asyncio
    async def test_resume_key_continues_after_break(self, controller, store, fast_poll):
        _running(controller)
        keyboard = ScriptedKeyboard("pause", None, "resume", "detach")

        state = await TimerDisplay(console=_string_console()[0]).run(controller, keyboard)

        assert state == FocusState.ACTIVE
        record = store.load()
        assert record.is_paused is False
        assert record.break_count == 1

    @pytest.mark.asyncio
    async def test_stop_key_on_break_cancels(self, controller, store, fast_poll):
        _running(controller)

        state = await TimerDisplay(console=_string_console()[0]).run(
            controller, ScriptedKeyboard("pause", "stop")
        )

        assert state == FocusState.CANCELLED
        assert store.load_completed().is_completed is False

    @pytest.mark.asyncio
    async def test_break_without_keyboard_returns(self, controller, fast_poll):
        _running(controller)
        controller.request_pause()

        state = await TimerDisplay(console=_string_console()[0]).run(controller)

        assert state == FocusState.BREAK

    @pytest.mark.asyncio
    async def test_stop_key_cancels(self, controller, store, fast_poll):
        _running(controller)

        state = await TimerDisplay(console=_string_console()[0]).run(
            controller, ScriptedKeyboard(None, "stop")
        )

        assert state == FocusState.CANCELLED
        assert store.load_completed().is_completed is False

    @pytest.mark.asyncio
    async def test_detach_leaves_session_running(self, controller, store, fast_poll):
        _running(controller)

        state = await TimerDisplay(console=_string_console()[0]).run(
            controller, ScriptedKeyboard("detach")
        )

        assert state == FocusState.ACTIVE
        assert not controller.engine.running
        assert store.load() is not None

    @pytest.mark.asyncio
    async def test_returns_when_session_completes(self, controller, scheduler, fast_poll):
        _running(controller)
        keyboard = ScriptedKeyboard(on_poll=lambda: scheduler.advance(1500))

        state = await TimerDisplay(console=_string_console()[0]).run(controller, keyboard)

        assert state == FocusState.COMPLETE

    @pytest.mark.asyncio
    async def test_interrupt_stops_engine(self, controller, fast_poll):
        _running(controller)

        def interrupt():
            raise KeyboardInterrupt

        keyboard = ScriptedKeyboard(on_poll=interrupt)
        state = await TimerDisplay(console=_string_console()[0]).run(controller, keyboard)

        assert state == FocusState.ACTIVE
        assert not controller.engine.running
        assert keyboard.stopped

    @pytest.mark.asyncio
    async def test_not_active_returns_at_once(self, controller, fast_poll):
        state = await TimerDisplay(console=_string_console()[0]).run(controller)
        assert state == FocusState.SETUP


# ---------------------------------------------------------------------------
# Completion / stopped messages
# ---------------------------------------------------------------------------


class TestMessages:
    def test_completion_message(self):
        con, buf = _string_console()
        show_completion_message(_finished(0, True), console=con)
        out = buf.getvalue()
        assert "Focus Session Complete" in out
        assert "Write report" in out
        assert "Focus score: 100" in out

    def test_stopped_message(self):
        con, buf = _string_console()
        show_stopped_message(_finished(1200, False), console=con)
        out = buf.getvalue()
        assert "Session Stopped" in out
        assert "Time focused: 5 minutes" in out
        assert "Remaining: 20:00" in out
