"""Focus session lifecycle: the state machine behind every focus screen.

Setup -> Preparing -> Active <-> Break -> Complete | Cancelled

The session store is the only state that survives between screens or CLI
invocations. A controller is rebuilt from it with ``restore()``; whatever
it holds in memory is a private copy.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import timedelta
from enum import Enum

from .clock import Clock, SystemClock
from .history import build_history_entry
from .record import CompletedSessionRecord, FocusOptions, SessionRecord, mark_paused
from .store import SessionStore
from .timer import AsyncioScheduler, Scheduler, TimerEngine, compute_remaining

logger = logging.getLogger(__name__)


class FocusState(str, Enum):
    SETUP = "setup"
    PREPARING = "preparing"
    ACTIVE = "active"
    BREAK = "break"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({FocusState.COMPLETE, FocusState.CANCELLED})

BREAK_SESSION_TITLE = "Break Time"


class FocusSessionController:
    """Coordinates the session store and the timer engine."""

    def __init__(
        self,
        store: SessionStore,
        clock: Clock | None = None,
        scheduler: Scheduler | None = None,
        break_duration: int = 5,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.break_duration = break_duration
        self.engine = TimerEngine(
            self.clock,
            scheduler or AsyncioScheduler(),
            on_tick=self._handle_tick,
            on_complete=self._handle_engine_complete,
        )

        self._state = FocusState.SETUP
        self._record: SessionRecord | None = None
        self._completed: CompletedSessionRecord | None = None

        self._tick_listeners: list[Callable[[int], None]] = []
        self._complete_listeners: list[Callable[[], None]] = []
        self._state_listeners: list[Callable[[FocusState], None]] = []

    # Observation

    @property
    def state(self) -> FocusState:
        return self._state

    @property
    def record(self) -> SessionRecord | None:
        """The session this controller owns (the finished one once terminal)."""
        return self._completed if self._state in TERMINAL_STATES else self._record

    @property
    def seconds_remaining(self) -> int:
        if self._state == FocusState.ACTIVE:
            return self.engine.seconds_remaining
        if self._state in (FocusState.BREAK, FocusState.PREPARING) and self._record:
            return compute_remaining(self._record, self.clock.now())
        if self._state in TERMINAL_STATES and self._completed:
            return self._completed.time_remaining_seconds or 0
        return 0

    @property
    def progress_percent(self) -> int:
        record = self.record
        if record is None or record.duration_seconds <= 0:
            return 0
        elapsed = record.duration_seconds - self.seconds_remaining
        return min(100, int(elapsed / record.duration_seconds * 100))

    def subscribe(
        self,
        on_tick: Callable[[int], None] | None = None,
        on_complete: Callable[[], None] | None = None,
        on_state_changed: Callable[[FocusState], None] | None = None,
    ) -> None:
        if on_tick:
            self._tick_listeners.append(on_tick)
        if on_complete:
            self._complete_listeners.append(on_complete)
        if on_state_changed:
            self._state_listeners.append(on_state_changed)

    # Transitions

    def create_session(
        self,
        task_title: str,
        duration_minutes: int,
        options: FocusOptions | None = None,
        is_break: bool = False,
    ) -> SessionRecord:
        """Write a fresh session to the current slot, replacing any other."""
        record = SessionRecord.create(
            task_title,
            duration_minutes,
            self.clock.now(),
            options=options,
            is_break=is_break,
        )
        self.engine.stop()
        self.store.save(record)
        self._record = record
        self._completed = None
        logger.info(
            "Created session %s (%r, %d min)", record.id, record.task_title, duration_minutes
        )
        self._set_state(FocusState.PREPARING)
        return record

    def start_break_session(self) -> SessionRecord:
        """Create a short recovery break once a session has ended."""
        minutes = self.break_duration
        if self._completed is not None:
            minutes = self._completed.options.break_duration or minutes
        return self.create_session(BREAK_SESSION_TITLE, minutes, is_break=True)

    def start(self) -> FocusState:
        """Begin (or re-attach to) the countdown of the stored session.

        A paused session is resumed; a session whose time already ran out
        completes immediately.
        """
        record = self._load_expected()
        if record is None:
            return self._state
        if record.is_paused:
            self._resume(record)
        else:
            self._begin_countdown(record)
        return self._state

    def restore(self) -> FocusState:
        """Rebuild state from the store after navigation or a restart."""
        record = self._load_expected()
        if record is None:
            return self._state
        if record.is_paused:
            self.engine.stop()
            self._record = record
            self._set_state(FocusState.BREAK)
        else:
            self._begin_countdown(record)
        return self._state

    def request_pause(self) -> bool:
        """Park the running session on a break."""
        if self._state != FocusState.ACTIVE:
            logger.info("Ignoring pause in state %s", self._state.value)
            return False
        record = self._load_owned()
        if record is None:
            return False

        remaining = self.engine.seconds_remaining
        self.engine.stop()
        paused = mark_paused(record, self.clock.now(), remaining)
        self.store.save(paused)
        self._record = paused
        logger.info("Paused session %s with %ds remaining", paused.id, remaining)
        self._set_state(FocusState.BREAK)
        return True

    def request_resume(self) -> bool:
        """Return from a break with exactly the time that was left."""
        if self._state != FocusState.BREAK:
            logger.info("Ignoring resume in state %s", self._state.value)
            return False
        record = self._load_owned()
        if record is None:
            return False

        if record.is_paused:
            self._resume(record)
        else:
            self._begin_countdown(record)
        return True

    def request_cancel(self) -> bool:
        """Stop the session early; it is recorded as not completed."""
        if self._state not in (FocusState.ACTIVE, FocusState.BREAK):
            logger.info("Ignoring cancel in state %s", self._state.value)
            return False
        record = self._load_owned()
        if record is None:
            return False

        remaining = self.seconds_remaining
        self.engine.stop()
        self._finish(record, remaining, is_completed=False)
        self._set_state(FocusState.CANCELLED)
        return True

    def request_complete(self) -> bool:
        """Finish the running session now (the engine calls this at zero)."""
        if self._state != FocusState.ACTIVE:
            logger.info("Ignoring complete in state %s", self._state.value)
            return False
        record = self._load_owned()
        if record is None:
            return False

        remaining = self.engine.seconds_remaining
        self.engine.stop()
        completed = self._finish(record, remaining, is_completed=True)
        if not completed.is_break:
            self.store.append_history(build_history_entry(completed, self.clock.now()))
        self._set_state(FocusState.COMPLETE)
        for listener in list(self._complete_listeners):
            listener()
        return True

    # Internals

    def _resume(self, record: SessionRecord) -> None:
        now = self.clock.now()
        remaining = compute_remaining(record, now)
        break_seconds = 0
        if record.paused_datetime is not None:
            break_seconds = max(0, int((now - record.paused_datetime).total_seconds()))

        # Place start_time so the wall-clock formula yields `remaining` right now.
        start = now - timedelta(seconds=record.duration_seconds - remaining)
        resumed = replace(
            record,
            start_time=start.isoformat(),
            is_paused=False,
            paused_at=None,
            time_remaining_seconds=None,
            break_seconds=record.break_seconds + break_seconds,
        )
        self.store.save(resumed)
        logger.info("Resumed session %s with %ds remaining", resumed.id, remaining)
        self._begin_countdown(resumed)

    def _begin_countdown(self, record: SessionRecord) -> None:
        self._record = record
        self._completed = None
        self._set_state(FocusState.ACTIVE)
        # May complete synchronously when no time is left.
        self.engine.start(record)

    def _finish(
        self, record: SessionRecord, remaining: int, is_completed: bool
    ) -> CompletedSessionRecord:
        completed = CompletedSessionRecord.from_record(
            record,
            end_time=self.clock.now(),
            is_completed=is_completed,
            time_remaining_seconds=remaining,
        )
        self.store.save_completed(completed)
        self.store.clear_current()
        self._completed = completed
        self._record = None
        logger.info(
            "Session %s ended (%s, %ds remaining)",
            record.id,
            "completed" if is_completed else "cancelled",
            remaining,
        )
        return completed

    def _load_expected(self) -> SessionRecord | None:
        """Load the current session, dropping to setup when it is gone."""
        record = self.store.load()
        if record is None:
            logger.warning("No usable session in the store, returning to setup")
            self.engine.stop()
            self._record = None
            self._set_state(FocusState.SETUP)
        return record

    def _load_owned(self) -> SessionRecord | None:
        """Load the current session and check it is still ours.

        If another screen replaced it, adopt the stored one and report
        the request as not handled.
        """
        record = self._load_expected()
        if record is None:
            return None
        if self._record is not None and record.id != self._record.id:
            logger.warning(
                "Stored session %s replaced %s, restoring from store",
                record.id,
                self._record.id,
            )
            self.restore()
            return None
        return record

    def _handle_tick(self, remaining: int) -> None:
        for listener in list(self._tick_listeners):
            listener(remaining)

    def _handle_engine_complete(self) -> None:
        self.request_complete()

    def _set_state(self, state: FocusState) -> None:
        if state == self._state:
            return
        logger.debug("State %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._state_listeners):
            listener(state)
