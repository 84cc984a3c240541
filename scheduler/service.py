"""Reminder engine facade used by the HTTP routes and the app lifespan."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from api.services.record_store import RecordStore, record_store
from core.settings import Settings, get_settings
from history.stats import MedicationStats, compute_stats
from scheduler.clock import ReminderClock
from scheduler.schedule import SCHEDULES, MedicationSchedule, next_due_after
from scheduler.state import LOGS, MedicationLog, ReminderStateMachine

logger = logging.getLogger(__name__)


def local_clock(settings: Settings) -> Callable[[], datetime]:
    """Return a ``now`` function in the configured reminder timezone.

    Reminder times are wall-clock values, so the returned datetimes are naive.
    """

    if not settings.reminder_timezone:
        return datetime.now
    zone = ZoneInfo(settings.reminder_timezone)
    return lambda: datetime.now(zone).replace(tzinfo=None)


class ReminderService:
    """Own the medication schedules, the state machine and the clock."""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        settings: Optional[Settings] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store if store is not None else RecordStore()
        self.now = now or local_clock(self.settings)
        self.machine = ReminderStateMachine(self.store, now=self.now)
        self.clock = ReminderClock(
            self.store,
            self.machine,
            now=self.now,
            interval_seconds=self.settings.reminder_tick_seconds,
        )

    # ------------------------------------------------------------------
    # Medications
    # ------------------------------------------------------------------
    def add_medication(self, schedule: MedicationSchedule) -> MedicationSchedule:
        self.store.create(SCHEDULES, schedule)
        logger.info("Medication %s (%s) added", schedule.id, schedule.name)
        return schedule

    def get_medication(self, medication_id: str) -> MedicationSchedule:
        return self.store.require(SCHEDULES, medication_id)

    def list_medications(self) -> List[MedicationSchedule]:
        return sorted(self.store.list(SCHEDULES), key=lambda schedule: schedule.created_at)

    def update_medication(self, medication_id: str, **changes) -> MedicationSchedule:
        self.get_medication(medication_id)
        with self.machine.medication_lock(medication_id):
            current = self.get_medication(medication_id)
            updated = replace(current, **changes, updated_at=datetime.now(timezone.utc))
            return self.store.update(SCHEDULES, updated)

    def delete_medication(self, medication_id: str) -> None:
        """Delete a schedule together with its unresolved reminder."""

        self.get_medication(medication_id)
        with self.machine.medication_lock(medication_id):
            self.get_medication(medication_id)
            self.store.delete(SCHEDULES, medication_id)
            self.machine.cancel_for_medication(medication_id)
        logger.info("Medication %s deleted", medication_id)

    def next_dose(self, medication_id: str, after: Optional[datetime] = None) -> Optional[datetime]:
        return next_due_after(self.get_medication(medication_id), after or self.now())

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def history(self, medication_id: Optional[str] = None) -> List[MedicationLog]:
        logs = self.store.list(
            LOGS,
            where=(lambda log: log.medication_id == medication_id) if medication_id else None,
        )
        return sorted(logs, key=lambda log: log.actual_time, reverse=True)

    def stats(self, medication_id: str) -> MedicationStats:
        self.get_medication(medication_id)
        return compute_stats(self.history(medication_id))


reminder_service = ReminderService(store=record_store)
"""Module level instance shared by the routes and the clock task."""
