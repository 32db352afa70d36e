"""Focus session history: per-session stats, weekly summaries and export."""

import csv
import io
import json
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Literal

from .record import CompletedSessionRecord, HistoryEntry, SessionStats

Period = Literal["week", "month", "all"]

CSV_HEADER = [
    "Task",
    "Date",
    "Duration (min)",
    "Completed",
    "Focus Time (min)",
    "Breaks",
    "Completion %",
    "Focus Score",
]


def productivity_score(
    completion_percentage: int, was_completed: bool, breaks_used: int
) -> int:
    """Score a session 0-100.

    Completion carries 80 points, finishing adds 20, and every break past
    the second costs 5.
    """
    score = round(0.8 * completion_percentage)
    if was_completed:
        score += 20
    score -= 5 * max(0, breaks_used - 2)
    return max(0, min(100, score))


def build_stats(record: CompletedSessionRecord) -> SessionStats:
    """Compute the stats stored with a finished session."""
    focused = record.focused_seconds
    total = record.duration_seconds
    completion = round(focused / total * 100) if total > 0 else 0

    return SessionStats(
        total_time_spent=focused // 60,
        breaks_used=record.break_count,
        completion_percentage=completion,
        was_completed=record.is_completed,
        productivity_score=productivity_score(
            completion, record.is_completed, record.break_count
        ),
    )


def build_history_entry(record: CompletedSessionRecord, now: datetime) -> HistoryEntry:
    return HistoryEntry(session=record, stats=build_stats(record), completed_at=now.isoformat())


def filter_entries(
    entries: list[HistoryEntry], period: Period, now: datetime
) -> list[HistoryEntry]:
    """Keep entries completed within *period* of *now*."""
    if period == "all":
        return list(entries)

    if period == "week":
        cutoff = now - timedelta(days=7)
    elif period == "month":
        # Same day last month, clamped to that month's length.
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = now.day
        while True:
            try:
                cutoff = now.replace(year=year, month=month, day=day)
                break
            except ValueError:
                day -= 1
    else:
        raise ValueError(f"Unknown period: {period}")

    return [e for e in entries if e.completed_datetime >= cutoff]


def weekly_stats(entries: list[HistoryEntry], now: datetime) -> dict[str, Any]:
    """
    Summarise the last seven days of history.

    Args:
        entries: History entries, any order
        now: Reference time

    Returns:
        Dictionary with totals, averages and the most productive weekday
    """
    week = filter_entries(entries, "week", now)
    if not week:
        return {
            "total_sessions": 0,
            "total_focus_time": 0,
            "average_session_length": 0,
            "average_completion_rate": 0,
            "most_productive_day": "No data",
            "total_breaks_taken": 0,
        }

    total_focus = sum(e.stats.total_time_spent for e in week)

    day_minutes: dict[str, int] = defaultdict(int)
    for e in week:
        day_minutes[e.completed_datetime.strftime("%A")] += e.stats.total_time_spent
    # First day seen wins ties.
    most_productive = max(day_minutes, key=lambda d: day_minutes[d])

    return {
        "total_sessions": len(week),
        "total_focus_time": total_focus,
        "average_session_length": round(total_focus / len(week)),
        "average_completion_rate": round(
            sum(e.stats.completion_percentage for e in week) / len(week)
        ),
        "most_productive_day": most_productive,
        "total_breaks_taken": sum(e.stats.breaks_used for e in week),
    }


def session_badge(entry: HistoryEntry) -> str:
    """Emoji summarising how a session went."""
    if entry.stats.was_completed:
        return "🏆"
    if entry.stats.completion_percentage > 75:
        return "💪"
    if entry.stats.completion_percentage > 50:
        return "👍"
    return "🌱"


def export_json(entries: list[HistoryEntry]) -> str:
    return json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False)


def export_csv(entries: list[HistoryEntry]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for e in entries:
        writer.writerow(
            [
                e.session.task_title.replace(",", ";"),
                e.completed_datetime.date().isoformat(),
                e.session.duration_minutes,
                "Yes" if e.stats.was_completed else "No",
                e.stats.total_time_spent,
                e.stats.breaks_used,
                e.stats.completion_percentage,
                e.stats.productivity_score,
            ]
        )
    return buf.getvalue()
