"""Lifecycle of reminder instances.

Each due occurrence of a schedule becomes a :class:`ReminderInstance`. The
state machine holds the single unresolved instance allowed per medication;
resolved instances live on as medication logs. All transitions for one
medication run under that medication's lock so a clock tick and a user action
cannot race.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from api.services.record_store import RecordStore
from core.errors import InvalidTransitionError, NotFoundError, ValidationError
from scheduler.schedule import SCHEDULES, is_due_at

logger = logging.getLogger(__name__)

LOGS = "medication_logs"


class ReminderStatus(str, Enum):
    PENDING = "pending"
    SHOWN = "shown"
    SNOOZED = "snoozed"
    TAKEN = "taken"
    SKIPPED = "skipped"


UNRESOLVED = frozenset({ReminderStatus.PENDING, ReminderStatus.SHOWN, ReminderStatus.SNOOZED})


@dataclass
class ReminderInstance:
    medication_id: str
    due_at: datetime
    id: str = field(default_factory=lambda: str(uuid4()))
    status: ReminderStatus = ReminderStatus.PENDING
    snoozed_until: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.status not in UNRESOLVED


@dataclass
class MedicationLog:
    """Permanent record of a taken or skipped dose."""

    medication_id: str
    instance_id: str
    scheduled_time: datetime
    actual_time: datetime
    status: ReminderStatus
    id: str = field(default_factory=lambda: str(uuid4()))
    photo_uri: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def skipped(self) -> bool:
        return self.status == ReminderStatus.SKIPPED


@dataclass
class TransitionResult:
    instance: ReminderInstance
    log: Optional[MedicationLog] = None
    already_resolved: bool = False


class ReminderStateMachine:
    """Create, re-surface and resolve reminder instances.

    Only unresolved instances are held in memory. Once an instance is taken or
    skipped its :class:`MedicationLog` is the record, and lookups of that id
    are answered from the log.
    """

    def __init__(self, store: RecordStore, now: Optional[Callable[[], datetime]] = None) -> None:
        self._store = store
        self._now = now or datetime.now
        self._instances: Dict[str, ReminderInstance] = {}
        self._active: Dict[str, str] = {}
        self._last_occurrence: Dict[str, datetime] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    # ------------------------------------------------------------------
    # Locking and lookup
    # ------------------------------------------------------------------
    def medication_lock(self, medication_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(medication_id)
            if lock is None:
                lock = self._locks[medication_id] = threading.RLock()
            return lock

    def get(self, instance_id: str) -> ReminderInstance:
        with self._guard:
            instance = self._instances.get(instance_id)
        if instance is None:
            instance = self._resolved_from_log(instance_id)
        if instance is None:
            raise NotFoundError(f"Reminder instance {instance_id} not found")
        return instance

    def active_for(self, medication_id: str) -> Optional[ReminderInstance]:
        with self._guard:
            instance_id = self._active.get(medication_id)
            return self._instances.get(instance_id) if instance_id else None

    def instances(self) -> List[ReminderInstance]:
        """Unresolved instances currently held."""

        with self._guard:
            return list(self._instances.values())

    def active(self) -> List[ReminderInstance]:
        with self._guard:
            return [self._instances[instance_id] for instance_id in self._active.values()]

    # ------------------------------------------------------------------
    # Clock driven transitions
    # ------------------------------------------------------------------
    def raise_due(self, medication_id: str, now: datetime) -> Optional[ReminderInstance]:
        """Open and show an instance for a schedule that is due at ``now``.

        Nothing is raised while the medication has an unresolved instance, when
        this minute was already raised, or when the schedule was deleted or
        changed after the caller decided it was due.
        """

        occurrence = now.replace(second=0, microsecond=0)
        with self.medication_lock(medication_id):
            schedule = self._store.get(SCHEDULES, medication_id)
            if schedule is None:
                self._forget(medication_id)
                return None
            if not is_due_at(schedule, now):
                return None
            if self.active_for(medication_id) is not None:
                return None
            if self._last_occurrence.get(medication_id) == occurrence:
                return None
            instance = ReminderInstance(medication_id=medication_id, due_at=now)
            with self._guard:
                self._instances[instance.id] = instance
                self._active[medication_id] = instance.id
            self._last_occurrence[medication_id] = occurrence
            instance.status = ReminderStatus.SHOWN
            logger.info("Reminder %s shown for medication %s", instance.id, medication_id)
            return instance

    def resurface(self, instance_id: str, now: datetime) -> Optional[ReminderInstance]:
        """Move a snoozed instance back to shown once its snooze has expired."""

        instance = self.get(instance_id)
        with self.medication_lock(instance.medication_id):
            with self._guard:
                instance = self._instances.get(instance_id)
            if instance is None or instance.status != ReminderStatus.SNOOZED:
                return None
            if instance.snoozed_until is not None and instance.snoozed_until > now:
                return None
            instance.status = ReminderStatus.SHOWN
            instance.snoozed_until = None
            logger.info("Snoozed reminder %s shown again", instance.id)
            return instance

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    def mark_taken(
        self,
        instance_id: str,
        photo_uri: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        return self._resolve(instance_id, ReminderStatus.TAKEN, photo_uri, notes, now)

    def mark_skipped(
        self,
        instance_id: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        return self._resolve(instance_id, ReminderStatus.SKIPPED, None, notes, now)

    def snooze(self, instance_id: str, minutes: int, now: Optional[datetime] = None) -> ReminderInstance:
        """Defer a shown instance; snoozing again replaces the deadline."""

        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise ValidationError(f"Snooze minutes must be a positive integer, got {minutes!r}")
        instance = self.get(instance_id)
        with self.medication_lock(instance.medication_id):
            instance = self.get(instance_id)
            if instance.status not in (ReminderStatus.SHOWN, ReminderStatus.SNOOZED):
                raise InvalidTransitionError(
                    f"Reminder {instance_id} cannot be snoozed while {instance.status.value}"
                )
            instance.status = ReminderStatus.SNOOZED
            instance.snoozed_until = (now or self._now()) + timedelta(minutes=minutes)
            logger.info("Reminder %s snoozed until %s", instance.id, instance.snoozed_until.isoformat())
            return instance

    def cancel_for_medication(self, medication_id: str) -> Optional[ReminderInstance]:
        """Drop the unresolved instance and all state kept for a medication."""

        with self.medication_lock(medication_id):
            with self._guard:
                instance_id = self._active.pop(medication_id, None)
                instance = self._instances.pop(instance_id, None) if instance_id else None
            self._forget(medication_id)
            if instance is not None:
                logger.info("Reminder %s cancelled for medication %s", instance.id, medication_id)
            return instance

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _forget(self, medication_id: str) -> None:
        # Callers hold the medication lock; threads already waiting on it
        # re-check the store or the instance index once they get it.
        with self._guard:
            self._last_occurrence.pop(medication_id, None)
            self._locks.pop(medication_id, None)

    def _resolved_from_log(self, instance_id: str) -> Optional[ReminderInstance]:
        logs = self._store.list(LOGS, where=lambda log: log.instance_id == instance_id)
        if not logs:
            return None
        log = logs[0]
        return ReminderInstance(
            medication_id=log.medication_id,
            due_at=log.scheduled_time,
            id=log.instance_id,
            status=log.status,
            resolved_at=log.actual_time,
        )

    def _resolve(
        self,
        instance_id: str,
        status: ReminderStatus,
        photo_uri: Optional[str],
        notes: Optional[str],
        now: Optional[datetime],
    ) -> TransitionResult:
        instance = self.get(instance_id)
        with self.medication_lock(instance.medication_id):
            instance = self.get(instance_id)
            if instance.is_resolved:
                logger.info("Reminder %s already resolved as %s", instance.id, instance.status.value)
                return TransitionResult(instance=instance, already_resolved=True)
            resolved_at = now or self._now()
            log = MedicationLog(
                medication_id=instance.medication_id,
                instance_id=instance.id,
                scheduled_time=instance.due_at,
                actual_time=resolved_at,
                status=status,
                photo_uri=photo_uri,
                notes=notes,
            )
            self._store.create(LOGS, log)
            instance.status = status
            instance.snoozed_until = None
            instance.resolved_at = resolved_at
            with self._guard:
                self._instances.pop(instance.id, None)
                if self._active.get(instance.medication_id) == instance.id:
                    del self._active[instance.medication_id]
            logger.info("Reminder %s marked %s", instance.id, status.value)
            return TransitionResult(instance=instance, log=log)
