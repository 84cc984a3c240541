"""Medication schedules and the pure due-time rules evaluated by the clock."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import FrozenSet, Iterable, Optional
from uuid import uuid4

from core.errors import ValidationError

logger = logging.getLogger(__name__)

SCHEDULES = "medications"

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


@dataclass
class MedicationSchedule:
    """A medication and its weekly recurrence rule."""

    name: str
    dosage: str
    reminder_time: time
    reminder_days: FrozenSet[int]
    id: str = field(default_factory=lambda: str(uuid4()))
    color: str = "#6C5CE7"
    icon: str = "pill"
    notes: Optional[str] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        self.reminder_days = normalize_days(self.reminder_days)
        self.reminder_time = self.reminder_time.replace(second=0, microsecond=0, tzinfo=None)
        if self.has_no_days:
            logger.warning("Medication %s (%s) is active but has no reminder days", self.id, self.name)

    @property
    def has_no_days(self) -> bool:
        """Active schedules without days are allowed but can never fire."""

        return self.is_active and not self.reminder_days


def normalize_days(days: Iterable[int]) -> FrozenSet[int]:
    result = frozenset(int(day) for day in days)
    invalid = sorted(day for day in result if day < 0 or day > 6)
    if invalid:
        raise ValidationError(f"Reminder days must be between 0 and 6, got {invalid}")
    return result


def parse_reminder_time(value: str) -> time:
    """Parse a 24 hour ``HH:MM`` string."""

    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Reminder time must be HH:MM, got {value!r}")
    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def format_reminder_time(value: time) -> str:
    """Render a reminder time for display, e.g. ``2:30 PM``."""

    suffix = "PM" if value.hour >= 12 else "AM"
    return f"{value.hour % 12 or 12}:{value.minute:02d} {suffix}"


def weekday_number(instant: datetime) -> int:
    """Day of week with Sunday as 0."""

    return (instant.weekday() + 1) % 7


def is_due_at(schedule: MedicationSchedule, instant: datetime) -> bool:
    """Return whether ``schedule`` fires in the minute containing ``instant``.

    Matching is minute-exact: a minute the clock never observed is missed for
    that day.
    """

    return (
        schedule.is_active
        and weekday_number(instant) in schedule.reminder_days
        and instant.hour == schedule.reminder_time.hour
        and instant.minute == schedule.reminder_time.minute
    )


def next_due_after(schedule: MedicationSchedule, instant: datetime) -> Optional[datetime]:
    """Return the next firing instant strictly after ``instant``."""

    if not schedule.is_active or not schedule.reminder_days:
        return None
    base = instant.replace(
        hour=schedule.reminder_time.hour,
        minute=schedule.reminder_time.minute,
        second=0,
        microsecond=0,
    )
    for offset in range(8):
        candidate = base + timedelta(days=offset)
        if candidate > instant and weekday_number(candidate) in schedule.reminder_days:
            return candidate
    return None  # pragma: no cover - a non-empty day set always matches within a week
