"""Pydantic data models used by the FastAPI layer.

The engine works with plain dataclasses; these schemas validate request
bodies and shape responses for the mobile and web clients.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from history.stats import MedicationStats
from scheduler.schedule import (
    MedicationSchedule,
    format_reminder_time,
    normalize_days,
    parse_reminder_time,
)
from scheduler.state import MedicationLog, ReminderInstance


# ---------- Medications ----------
class MedicationIn(BaseModel):
    name: str = Field(..., min_length=1, description="Medicine name")
    dosage: str = Field(..., description="Dosage label e.g. 1 tablet, 2ml")
    reminder_time: str = Field(..., description="24h time e.g. 08:30")
    reminder_days: List[int] = Field(default_factory=lambda: list(range(7)), description="0-6, Sunday is 0")
    color: str = "#6C5CE7"
    icon: str = "pill"
    notes: Optional[str] = None
    is_active: bool = True

    @field_validator("reminder_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        parse_reminder_time(value)
        return value

    @field_validator("reminder_days")
    @classmethod
    def _check_days(cls, value: List[int]) -> List[int]:
        return sorted(normalize_days(value))

    def to_schedule(self) -> MedicationSchedule:
        return MedicationSchedule(
            name=self.name,
            dosage=self.dosage,
            reminder_time=parse_reminder_time(self.reminder_time),
            reminder_days=frozenset(self.reminder_days),
            color=self.color,
            icon=self.icon,
            notes=self.notes,
            is_active=self.is_active,
        )

    def changes(self) -> Dict[str, object]:
        schedule = self.to_schedule()
        return {
            "name": schedule.name,
            "dosage": schedule.dosage,
            "reminder_time": schedule.reminder_time,
            "reminder_days": schedule.reminder_days,
            "color": schedule.color,
            "icon": schedule.icon,
            "notes": schedule.notes,
            "is_active": schedule.is_active,
        }


class MedicationOut(BaseModel):
    id: str
    name: str
    dosage: str
    reminder_time: str
    reminder_time_display: str
    reminder_days: List[int]
    color: str
    icon: str
    notes: Optional[str] = None
    is_active: bool
    has_no_days: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_schedule(cls, schedule: MedicationSchedule) -> "MedicationOut":
        return cls(
            id=schedule.id,
            name=schedule.name,
            dosage=schedule.dosage,
            reminder_time=schedule.reminder_time.strftime("%H:%M"),
            reminder_time_display=format_reminder_time(schedule.reminder_time),
            reminder_days=sorted(schedule.reminder_days),
            color=schedule.color,
            icon=schedule.icon,
            notes=schedule.notes,
            is_active=schedule.is_active,
            has_no_days=schedule.has_no_days,
            created_at=schedule.created_at,
            updated_at=schedule.updated_at,
        )


class NextDoseOut(BaseModel):
    medication_id: str
    next_dose: Optional[datetime] = None


# ---------- Reminder instances ----------
class ReminderOut(BaseModel):
    id: str
    medication_id: str
    due_at: datetime
    status: str
    snoozed_until: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_instance(cls, instance: ReminderInstance) -> "ReminderOut":
        return cls(
            id=instance.id,
            medication_id=instance.medication_id,
            due_at=instance.due_at,
            status=instance.status.value,
            snoozed_until=instance.snoozed_until,
            resolved_at=instance.resolved_at,
        )


class TakenIn(BaseModel):
    photo_uri: Optional[str] = None
    notes: Optional[str] = None


class SkippedIn(BaseModel):
    notes: Optional[str] = None


class SnoozeIn(BaseModel):
    minutes: int = Field(..., gt=0, description="Snooze length; clients offer 5, 10 or 30")


class TransitionOut(BaseModel):
    reminder: ReminderOut
    log_id: Optional[str] = None
    already_resolved: bool = False


class TickOut(BaseModel):
    medication_ids: List[str]
    reminders: List[ReminderOut]


# ---------- History ----------
class MedicationLogOut(BaseModel):
    id: str
    medication_id: str
    instance_id: str
    scheduled_time: datetime
    actual_time: datetime
    status: str
    skipped: bool
    photo_uri: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_log(cls, log: MedicationLog) -> "MedicationLogOut":
        return cls(
            id=log.id,
            medication_id=log.medication_id,
            instance_id=log.instance_id,
            scheduled_time=log.scheduled_time,
            actual_time=log.actual_time,
            status=log.status.value,
            skipped=log.skipped,
            photo_uri=log.photo_uri,
            notes=log.notes,
        )


class MedicationStatsOut(BaseModel):
    total_records: int
    taken_count: int
    skipped_count: int
    compliance_rate: int
    current_streak: int
    time_distribution: Dict[int, int] = Field(default_factory=dict)

    @classmethod
    def from_stats(cls, stats: MedicationStats) -> "MedicationStatsOut":
        return cls(**stats.__dict__)


# ---------- Friend reminders ----------
class SendReminderRequest(BaseModel):
    from_user_id: str = Field(..., min_length=1)
    to_user_id: str = Field(..., min_length=1)
    medication_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    medication_name: Optional[str] = None


class SendReminderResponse(BaseModel):
    success: bool = True
    reminder_id: str
    message: str = "Reminder sent successfully"
    delivery: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
