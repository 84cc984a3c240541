from __future__ import annotations

from datetime import datetime, timedelta

from history.stats import compute_stats
from scheduler.state import MedicationLog, ReminderStatus

START = datetime(2024, 1, 10, 8, 0)


def _log(day: int, status: ReminderStatus, hour: int = 8) -> MedicationLog:
    scheduled = START + timedelta(days=day)
    return MedicationLog(
        medication_id="med-1",
        instance_id=f"instance-{day}",
        scheduled_time=scheduled,
        actual_time=scheduled.replace(hour=hour),
        status=status,
    )


def test_empty_history() -> None:
    stats = compute_stats([])
    assert stats.total_records == 0
    assert stats.compliance_rate == 0
    assert stats.current_streak == 0


def test_streak_counts_back_to_latest_skip() -> None:
    logs = [
        _log(0, ReminderStatus.TAKEN),
        _log(1, ReminderStatus.SKIPPED),
        _log(2, ReminderStatus.TAKEN, hour=9),
        _log(3, ReminderStatus.TAKEN),
    ]
    stats = compute_stats(logs)
    assert stats.total_records == 4
    assert stats.taken_count == 3
    assert stats.skipped_count == 1
    assert stats.compliance_rate == 75
    assert stats.current_streak == 2
    assert stats.time_distribution == {8: 2, 9: 1}


def test_compliance_rate_rounds_half_up() -> None:
    logs = [_log(0, ReminderStatus.TAKEN)] + [_log(day, ReminderStatus.SKIPPED) for day in range(1, 8)]
    assert compute_stats(logs).compliance_rate == 13
