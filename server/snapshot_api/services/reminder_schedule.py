"""Reminder due-window computation.

Due state is evaluated on every request from the wall clock; nothing is
scheduled in the background. A reminder is due when the current
minute-of-day lies within ``DUE_WINDOW_MINUTES`` of its scheduled
minute-of-day, measured as circular distance so windows that straddle
midnight behave the same as any other.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

MINUTES_PER_DAY = 24 * 60
DUE_WINDOW_MINUTES = 5


@dataclass(frozen=True)
class ReminderDefinition:
    """Seeded reminder definition."""

    id: int
    type: str
    time: str  # HH:MM
    enabled_by_default: bool = True
    description: Optional[str] = None


def minute_of_day(hhmm: str) -> int:
    """Convert ``HH:MM`` into minutes since midnight."""
    hours, minutes = hhmm.split(":")
    return (int(hours) * 60 + int(minutes)) % MINUTES_PER_DAY


def circular_distance(a: int, b: int) -> int:
    """Shortest distance between two minutes-of-day on a 24h clock."""
    diff = abs(a - b) % MINUTES_PER_DAY
    return min(diff, MINUTES_PER_DAY - diff)


def is_due(reminder_time: str, now: datetime, window: int = DUE_WINDOW_MINUTES) -> bool:
    """Whether a reminder scheduled at ``reminder_time`` is actionable at ``now``."""
    current = now.hour * 60 + now.minute
    return circular_distance(minute_of_day(reminder_time), current) <= window


def completion_for_date(snapshot: Optional[Mapping[str, Any]], date: str) -> dict:
    """
    Extract the reminder completion map from a stored snapshot.

    Completion belongs to a single day, so a snapshot whose ``today``
    record is for another date contributes nothing.
    """
    if not isinstance(snapshot, Mapping):
        return {}
    today = snapshot.get("today")
    if not isinstance(today, Mapping):
        return {}
    if today.get("date") and today.get("date") != date:
        return {}
    completion = today.get("reminderCompletion")
    return dict(completion) if isinstance(completion, Mapping) else {}


def compute_reminder_status(
    reminders: list[ReminderDefinition],
    now: datetime,
    completion: Mapping[str, Any],
) -> list[dict]:
    """
    Annotate each reminder with ``due`` and ``completed`` flags.

    Args:
        reminders: Seeded reminder definitions, already in display order
        now: Current local wall-clock time
        completion: Reminder id (as string) -> completed flag

    Returns:
        One dict per reminder, in the input order
    """
    return [
        {
            "id": reminder.id,
            "type": reminder.type,
            "time": reminder.time,
            "description": reminder.description,
            "due": is_due(reminder.time, now),
            "completed": bool(completion.get(str(reminder.id), False)),
        }
        for reminder in reminders
    ]
