"""Session state persistence on top of a string-keyed key-value store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from .record import (
    CompletedSessionRecord,
    HistoryEntry,
    MalformedRecordError,
    SessionRecord,
)

logger = logging.getLogger(__name__)

CURRENT_SESSION_KEY = "currentFocusSession"
COMPLETED_SESSION_KEY = "completedFocusSession"
HISTORY_KEY = "focus-session-history"


class KeyValueStore(Protocol):
    """Opaque persistent storage keyed by string."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store; state lives as long as the object."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileKeyValueStore:
    """All keys kept in one JSON document on disk.

    The file is re-read on every access so separate CLI invocations see
    each other's writes. Writes go through a temp file and a rename.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("State file %s is unreadable, starting empty: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("State file %s does not hold an object, starting empty", self.path)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        if data.get(key) == value:
            return
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


def _dumps(payload) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class SessionStore:
    """Current slot, completed slot and history list for focus sessions.

    Missing or malformed values read back as ``None`` (or an empty
    history); callers treat that as "start over from setup".
    """

    def __init__(self, backend: KeyValueStore, history_limit: int | None = None):
        if history_limit is not None and history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self.backend = backend
        self.history_limit = history_limit

    # Current slot

    def load(self) -> SessionRecord | None:
        """Load the in-progress session, or None if there is none usable."""
        raw = self.backend.get(CURRENT_SESSION_KEY)
        if raw is None:
            return None

        try:
            data = json.loads(raw)
            if isinstance(data, dict) and "end_time" in data:
                # A terminal record must never be resumed.
                logger.warning("Discarding finished session left in the current slot")
                self.clear_current()
                return None
            return SessionRecord.from_dict(data)
        except (json.JSONDecodeError, MalformedRecordError) as e:
            logger.warning("Ignoring malformed current session: %s", e)
            return None

    def save(self, record: SessionRecord) -> None:
        """Write *record* to the current slot, replacing whatever was there."""
        if isinstance(record, CompletedSessionRecord):
            raise TypeError("Finished sessions go to the completed slot, not the current one")
        self.backend.set(CURRENT_SESSION_KEY, _dumps(record.to_dict()))

    def clear_current(self) -> None:
        self.backend.remove(CURRENT_SESSION_KEY)

    def has_active_session(self) -> bool:
        """Check if an in-progress session exists."""
        return self.load() is not None

    # Completed slot

    def save_completed(self, record: CompletedSessionRecord) -> None:
        self.backend.set(COMPLETED_SESSION_KEY, _dumps(record.to_dict()))

    def load_completed(self) -> CompletedSessionRecord | None:
        raw = self.backend.get(COMPLETED_SESSION_KEY)
        if raw is None:
            return None
        try:
            return CompletedSessionRecord.from_dict(json.loads(raw))
        except (json.JSONDecodeError, MalformedRecordError) as e:
            logger.warning("Ignoring malformed completed session: %s", e)
            return None

    def clear_completed(self) -> None:
        self.backend.remove(COMPLETED_SESSION_KEY)

    def take_completed(self) -> CompletedSessionRecord | None:
        """Read and clear the completed slot."""
        record = self.load_completed()
        self.clear_completed()
        return record

    # History

    def load_history(self) -> list[HistoryEntry]:
        """Load history, oldest first, skipping entries that fail to parse."""
        raw = self.backend.get(HISTORY_KEY)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring malformed session history: %s", e)
            return []
        if not isinstance(items, list):
            logger.warning("Ignoring session history that is not a list")
            return []

        entries = []
        for item in items:
            try:
                entries.append(HistoryEntry.from_dict(item))
            except MalformedRecordError as e:
                logger.warning("Skipping malformed history entry: %s", e)
        return entries

    def append_history(self, entry: HistoryEntry) -> bool:
        """Append *entry* to history.

        Best effort: a write failure is logged and reported as False.
        Appending an entry whose session is already recorded is a no-op.
        """
        entries = self.load_history()
        if any(e.session.id == entry.session.id for e in entries):
            return True

        entries.append(entry)
        if self.history_limit is not None:
            entries = entries[-self.history_limit :]

        try:
            self.backend.set(HISTORY_KEY, _dumps([e.to_dict() for e in entries]))
        except OSError as e:
            logger.warning("Could not append session %s to history: %s", entry.session.id, e)
            return False
        return True

    def clear_history(self) -> None:
        self.backend.remove(HISTORY_KEY)
