"""Adherence statistics computed from medication logs."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable

from scheduler.state import MedicationLog, ReminderStatus


@dataclass
class MedicationStats:
    total_records: int = 0
    taken_count: int = 0
    skipped_count: int = 0
    compliance_rate: int = 0
    current_streak: int = 0
    time_distribution: Dict[int, int] = field(default_factory=dict)


def compute_stats(logs: Iterable[MedicationLog]) -> MedicationStats:
    """Summarise taken/skipped history.

    The streak counts taken doses from the most recent backwards and stops at
    the first skip. The time distribution buckets taken doses by hour.
    """

    logs = list(logs)
    taken = [log for log in logs if log.status == ReminderStatus.TAKEN]
    skipped_count = sum(1 for log in logs if log.status == ReminderStatus.SKIPPED)
    total = len(logs)

    streak = 0
    for log in sorted(logs, key=lambda item: item.scheduled_time, reverse=True):
        if log.status == ReminderStatus.SKIPPED:
            break
        streak += 1

    hours = Counter(log.actual_time.hour for log in taken)
    return MedicationStats(
        total_records=total,
        taken_count=len(taken),
        skipped_count=skipped_count,
        compliance_rate=int(len(taken) * 100 / total + 0.5) if total else 0,
        current_streak=streak,
        time_distribution=dict(sorted(hours.items())),
    )
