"""Session records: the unit of truth persisted in the session store.

Records are frozen. Every transition builds a new record with
``dataclasses.replace`` so a page (or command) only ever holds its own copy.
"""

import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime
from typing import Any

from .clock import parse_timestamp


class MalformedRecordError(ValueError):
    """A stored value does not describe a valid session record."""


@dataclass(frozen=True)
class FocusOptions:
    """Preferences chosen on the setup screen."""

    auto_break: bool = False
    break_duration: int = 5  # minutes
    block_distractions: bool = False
    end_sound: bool = True

    @classmethod
    def from_dict(cls, data: Any) -> "FocusOptions":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise MalformedRecordError("options must be an object")
        values = {k: v for k, v in data.items() if k in _OPTION_TYPES}
        _check_types(values, _OPTION_TYPES, "options")
        if values.get("break_duration", 1) <= 0:
            raise MalformedRecordError("options.break_duration must be positive")
        return cls(**values)


@dataclass(frozen=True)
class SessionRecord:
    """One focus attempt.

    While ``is_paused`` is false the remaining time is derived from
    ``start_time`` and the clock; ``time_remaining_seconds`` is only
    meaningful while paused.
    """

    id: str
    task_title: str
    duration_minutes: int
    start_time: str  # ISO 8601, start of the current run
    is_paused: bool = False
    paused_at: str | None = None
    time_remaining_seconds: int | None = None
    break_count: int = 0
    break_seconds: int = 0
    is_break: bool = False
    options: FocusOptions = field(default_factory=FocusOptions)

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    @property
    def start_datetime(self) -> datetime:
        """Parse start time as datetime."""
        return parse_timestamp(self.start_time)

    @property
    def paused_datetime(self) -> datetime | None:
        """Parse pause time as datetime."""
        if self.paused_at:
            return parse_timestamp(self.paused_at)
        return None

    @classmethod
    def create(
        cls,
        task_title: str,
        duration_minutes: int,
        now: datetime,
        options: FocusOptions | None = None,
        is_break: bool = False,
        session_id: str | None = None,
    ) -> "SessionRecord":
        """Build a fresh, running record starting at *now*."""
        title = task_title.strip()
        if not title:
            raise ValueError("Task title cannot be empty")
        if duration_minutes <= 0:
            raise ValueError("Duration must be a positive number of minutes")

        return cls(
            id=session_id or str(uuid.uuid4()),
            task_title=title,
            duration_minutes=duration_minutes,
            start_time=now.isoformat(),
            is_break=is_break,
            options=options or FocusOptions(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "SessionRecord":
        """Create from dictionary, validating shape and types."""
        return cls(**_validated_fields(cls, data))


@dataclass(frozen=True)
class CompletedSessionRecord(SessionRecord):
    """Terminal, write-once variant of a session.

    ``time_remaining_seconds`` holds what was left when the session ended
    (zero for a natural completion).
    """

    end_time: str = ""
    is_completed: bool = False

    @property
    def end_datetime(self) -> datetime:
        return parse_timestamp(self.end_time)

    @property
    def focused_seconds(self) -> int:
        """Seconds of the planned duration actually worked through."""
        remaining = self.time_remaining_seconds or 0
        return max(0, min(self.duration_seconds, self.duration_seconds - remaining))

    @classmethod
    def from_record(
        cls,
        record: SessionRecord,
        end_time: datetime,
        is_completed: bool,
        time_remaining_seconds: int,
    ) -> "CompletedSessionRecord":
        base = {f.name: getattr(record, f.name) for f in fields(SessionRecord)}
        base.update(
            is_paused=False,
            paused_at=None,
            time_remaining_seconds=max(0, time_remaining_seconds),
        )
        return cls(**base, end_time=end_time.isoformat(), is_completed=is_completed)


@dataclass(frozen=True)
class SessionStats:
    """Per-session analytics stored alongside history entries."""

    total_time_spent: int  # minutes focused
    breaks_used: int
    completion_percentage: int
    was_completed: bool
    productivity_score: int

    @classmethod
    def from_dict(cls, data: Any) -> "SessionStats":
        if not isinstance(data, dict):
            raise MalformedRecordError("stats must be an object")
        missing = _STATS_TYPES.keys() - data.keys()
        if missing:
            raise MalformedRecordError(f"missing stats: {', '.join(sorted(missing))}")
        values = {k: data[k] for k in _STATS_TYPES}
        _check_types(values, _STATS_TYPES, "stats")
        if any(values[k] < 0 for k in _STATS_TYPES if _STATS_TYPES[k] is int):
            raise MalformedRecordError("stats cannot be negative")
        return cls(**values)


@dataclass(frozen=True)
class HistoryEntry:
    """A finished session plus its stats, as kept in the history list."""

    session: CompletedSessionRecord
    stats: SessionStats
    completed_at: str  # ISO 8601

    @property
    def completed_datetime(self) -> datetime:
        return parse_timestamp(self.completed_at)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "HistoryEntry":
        if not isinstance(data, dict):
            raise MalformedRecordError("history entry must be an object")
        try:
            completed_at = data["completed_at"]
            parse_timestamp(completed_at)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedRecordError(f"invalid history entry: {e}") from e
        return cls(
            session=CompletedSessionRecord.from_dict(data.get("session")),
            stats=SessionStats.from_dict(data.get("stats")),
            completed_at=completed_at,
        )


def mark_paused(record: SessionRecord, now: datetime, remaining: int) -> SessionRecord:
    """Park *record* on a break with *remaining* seconds snapshotted."""
    return replace(
        record,
        is_paused=True,
        paused_at=now.isoformat(),
        time_remaining_seconds=max(0, min(record.duration_seconds, remaining)),
        break_count=record.break_count + 1,
    )


_REQUIRED = {
    "id": str,
    "task_title": str,
    "duration_minutes": int,
    "start_time": str,
}

_OPTIONAL = {
    "is_paused": bool,
    "paused_at": (str, type(None)),
    "time_remaining_seconds": (int, type(None)),
    "break_count": int,
    "break_seconds": int,
    "is_break": bool,
    "end_time": str,
    "is_completed": bool,
}

_OPTION_TYPES = {
    "auto_break": bool,
    "break_duration": int,
    "block_distractions": bool,
    "end_sound": bool,
}

_STATS_TYPES = {
    "total_time_spent": int,
    "breaks_used": int,
    "completion_percentage": int,
    "was_completed": bool,
    "productivity_score": int,
}


def _check_types(values: dict[str, Any], table: dict[str, Any], what: str) -> None:
    for name, value in values.items():
        expected = table[name]
        # bool is an int subclass; never accept it where a number is expected
        if isinstance(value, bool) and expected is not bool:
            raise MalformedRecordError(f"invalid type for {what}.{name}")
        if not isinstance(value, expected):
            raise MalformedRecordError(f"invalid type for {what}.{name}")


def _validated_fields(cls: type, data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedRecordError("record must be an object")

    known = {f.name for f in fields(cls)}
    values: dict[str, Any] = {}

    for name in _REQUIRED:
        if name not in data:
            raise MalformedRecordError(f"missing field: {name}")
        values[name] = data[name]

    for name in _OPTIONAL:
        if name in data and name in known:
            values[name] = data[name]

    _check_types(values, {**_REQUIRED, **_OPTIONAL}, "record")

    if values["duration_minutes"] <= 0:
        raise MalformedRecordError("duration_minutes must be positive")
    if not values["task_title"].strip():
        raise MalformedRecordError("task_title cannot be empty")

    for stamp in ("start_time", "paused_at", "end_time"):
        if values.get(stamp):
            try:
                parse_timestamp(values[stamp])
            except ValueError as e:
                raise MalformedRecordError(f"invalid timestamp for {stamp}") from e

    if values.get("is_paused"):
        snapshot = values.get("time_remaining_seconds")
        if snapshot is None or snapshot < 0:
            raise MalformedRecordError("paused record needs a remaining-time snapshot")

    values["options"] = FocusOptions.from_dict(data.get("options"))
    return values
