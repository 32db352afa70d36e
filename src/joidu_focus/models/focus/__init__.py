"""Focus session engine: records, persistence, countdown and lifecycle."""

from .clock import Clock, SystemClock
from .controller import TERMINAL_STATES, FocusSessionController, FocusState
from .record import (
    CompletedSessionRecord,
    FocusOptions,
    HistoryEntry,
    MalformedRecordError,
    SessionRecord,
    SessionStats,
)
from .store import JsonFileKeyValueStore, MemoryKeyValueStore, SessionStore
from .timer import AsyncioScheduler, TimerEngine, compute_remaining

__all__ = [
    "AsyncioScheduler",
    "Clock",
    "CompletedSessionRecord",
    "FocusOptions",
    "FocusSessionController",
    "FocusState",
    "HistoryEntry",
    "JsonFileKeyValueStore",
    "MalformedRecordError",
    "MemoryKeyValueStore",
    "SessionRecord",
    "SessionStats",
    "SessionStore",
    "SystemClock",
    "TERMINAL_STATES",
    "TimerEngine",
    "compute_remaining",
]
