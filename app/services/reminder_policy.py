"""
Reminder offset table and schedule planner.

Pure functions: no timers, no I/O. All datetimes are handled as naive UTC;
aware values are converted first.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class ReminderOffset:
    before: timedelta
    subject: str


@dataclass(frozen=True)
class PlannedReminder:
    offset_index: int
    fire_at: datetime
    subject: str


_OFFSETS: Tuple[ReminderOffset, ...] = (
    ReminderOffset(timedelta(hours=24), "Your application is due tomorrow!"),
    ReminderOffset(timedelta(hours=2), "2 hours left to submit!"),
    ReminderOffset(timedelta(0), "Did you finish your application?"),
)


def offsets() -> Tuple[ReminderOffset, ...]:
    """Fixed reminder offsets, farthest from the deadline first."""
    return _OFFSETS


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def plan(deadline: Optional[datetime], now: datetime) -> List[PlannedReminder]:
    """
    Compute the reminders still ahead of `now` for a deadline.

    Each offset fires at deadline - before and is kept only if that moment is
    strictly after `now`. Output follows offset table order, not time order.
    """
    if deadline is None:
        return []
    deadline = to_naive_utc(deadline)
    now = to_naive_utc(now)

    planned = []
    for index, offset in enumerate(_OFFSETS):
        fire_at = deadline - offset.before
        if fire_at > now:
            planned.append(PlannedReminder(index, fire_at, offset.subject))
    return planned


def render_body(title: str, deadline: datetime) -> str:
    return f"Reminder for: {title}\nDeadline: {deadline.isoformat()}"
