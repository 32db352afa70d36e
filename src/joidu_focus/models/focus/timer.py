"""Countdown engine for focus sessions.

The authoritative remaining time is always re-derived from the wall clock
when the engine starts. Between starts it decrements a local counter once
per tick, so a suspended or throttled process loses nothing: the next
start recomputes from ``start_time``.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from .clock import Clock
from .record import SessionRecord

logger = logging.getLogger(__name__)

TICK_INTERVAL = 1.0


class TickHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Source of delayed callbacks driving the countdown."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TickHandle: ...


class AsyncioScheduler:
    """Schedule ticks on an asyncio event loop (the running one by default)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TickHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


def compute_remaining(record: SessionRecord, now: datetime) -> int:
    """Seconds left in *record* at *now*, clamped to ``[0, duration]``.

    A paused record answers with its snapshot. A running record is measured
    from ``start_time``; a clock that moved backwards never yields more than
    the planned duration.
    """
    total = record.duration_seconds
    if record.is_paused:
        return max(0, min(total, record.time_remaining_seconds or 0))

    elapsed = math.floor((now - record.start_datetime).total_seconds())
    return max(0, min(total, total - elapsed))


class TimerEngine:
    """Single-owner countdown.

    At most one tick source is live: ``start`` always stops the previous
    one first. ``on_complete`` fires at most once per ``start``.
    """

    def __init__(
        self,
        clock: Clock,
        scheduler: Scheduler,
        on_tick: Callable[[int], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ):
        self.clock = clock
        self.scheduler = scheduler
        self.on_tick = on_tick
        self.on_complete = on_complete

        self._handle: TickHandle | None = None
        self._remaining = 0
        self._running = False
        self._generation = 0
        self._completed = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def seconds_remaining(self) -> int:
        return self._remaining

    def start(self, record: SessionRecord) -> int:
        """Begin counting down *record*; returns the starting remaining time."""
        self.stop()
        self._generation += 1
        self._completed = False
        self._remaining = compute_remaining(record, self.clock.now())

        if self._remaining <= 0:
            logger.debug("Session %s already elapsed at start", record.id)
            self._fire_complete()
            return 0

        self._running = True
        self._schedule()
        return self._remaining

    def stop(self) -> None:
        """Cancel the tick source. Safe to call when not running."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._running = False

    def _schedule(self) -> None:
        generation = self._generation
        self._handle = self.scheduler.call_later(
            TICK_INTERVAL, lambda: self._tick(generation)
        )

    def _tick(self, generation: int) -> None:
        # A callback from a stopped or superseded run must not touch the counter.
        if generation != self._generation or not self._running:
            return

        self._handle = None
        self._remaining = max(0, self._remaining - 1)
        if self.on_tick:
            self.on_tick(self._remaining)

        if self._remaining <= 0:
            self._running = False
            self._fire_complete()
        elif self._running and generation == self._generation:
            self._schedule()

    def _fire_complete(self) -> None:
        if self._completed:
            return
        self._completed = True
        if self.on_complete:
            self.on_complete()
