"""HTTP routes for the device-local reminder engine.

Medications are the schedules the clock evaluates; reminders are the
instances it raises. Each handler delegates to ``ReminderService`` and
translates engine errors into HTTP status codes.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from api.models.schemas import (
    MedicationIn,
    MedicationLogOut,
    MedicationOut,
    MedicationStatsOut,
    NextDoseOut,
    ReminderOut,
    SkippedIn,
    SnoozeIn,
    TakenIn,
    TickOut,
    TransitionOut,
)
from core.errors import InvalidTransitionError, NotFoundError, ReminderError, StoreError, ValidationError
from scheduler.service import ReminderService, reminder_service
from scheduler.state import TransitionResult

router = APIRouter(prefix="/api", tags=["reminders"])


def get_reminder_service() -> ReminderService:
    return reminder_service


# ---- Medications ----
@router.get("/medications", response_model=List[MedicationOut])
def list_medications(service: ReminderService = Depends(get_reminder_service)) -> List[MedicationOut]:
    return [MedicationOut.from_schedule(schedule) for schedule in service.list_medications()]


@router.post("/medications", response_model=MedicationOut)
def create_medication(
    payload: MedicationIn, service: ReminderService = Depends(get_reminder_service)
) -> MedicationOut:
    try:
        return MedicationOut.from_schedule(service.add_medication(payload.to_schedule()))
    except ReminderError as exc:
        raise _http_error(exc) from exc


@router.get("/medications/{medication_id}", response_model=MedicationOut)
def get_medication(medication_id: str, service: ReminderService = Depends(get_reminder_service)) -> MedicationOut:
    try:
        return MedicationOut.from_schedule(service.get_medication(medication_id))
    except ReminderError as exc:
        raise _http_error(exc) from exc


@router.put("/medications/{medication_id}", response_model=MedicationOut)
def update_medication(
    medication_id: str,
    payload: MedicationIn,
    service: ReminderService = Depends(get_reminder_service),
) -> MedicationOut:
    try:
        return MedicationOut.from_schedule(service.update_medication(medication_id, **payload.changes()))
    except ReminderError as exc:
        raise _http_error(exc) from exc


@router.delete("/medications/{medication_id}")
def delete_medication(medication_id: str, service: ReminderService = Depends(get_reminder_service)) -> dict:
    try:
        service.delete_medication(medication_id)
    except ReminderError as exc:
        raise _http_error(exc) from exc
    return {"ok": True}


@router.get("/medications/{medication_id}/next-dose", response_model=NextDoseOut)
def next_dose(medication_id: str, service: ReminderService = Depends(get_reminder_service)) -> NextDoseOut:
    try:
        return NextDoseOut(medication_id=medication_id, next_dose=service.next_dose(medication_id))
    except ReminderError as exc:
        raise _http_error(exc) from exc


@router.get("/medications/{medication_id}/stats", response_model=MedicationStatsOut)
def medication_stats(
    medication_id: str, service: ReminderService = Depends(get_reminder_service)
) -> MedicationStatsOut:
    try:
        return MedicationStatsOut.from_stats(service.stats(medication_id))
    except ReminderError as exc:
        raise _http_error(exc) from exc


# ---- Reminders ----
@router.get("/reminders/active", response_model=List[ReminderOut])
def active_reminders(service: ReminderService = Depends(get_reminder_service)) -> List[ReminderOut]:
    return [ReminderOut.from_instance(instance) for instance in service.machine.active()]


@router.post("/reminders/tick", response_model=TickOut)
def run_tick(service: ReminderService = Depends(get_reminder_service)) -> TickOut:
    """Evaluate schedules immediately instead of waiting for the clock."""

    surfaced = service.clock.evaluate()
    return TickOut(
        medication_ids=[instance.medication_id for instance in surfaced],
        reminders=[ReminderOut.from_instance(instance) for instance in surfaced],
    )


@router.post("/reminders/{instance_id}/taken", response_model=TransitionOut)
def mark_taken(
    instance_id: str,
    payload: Optional[TakenIn] = None,
    service: ReminderService = Depends(get_reminder_service),
) -> TransitionOut:
    payload = payload or TakenIn()
    try:
        result = service.machine.mark_taken(instance_id, photo_uri=payload.photo_uri, notes=payload.notes)
    except ReminderError as exc:
        raise _http_error(exc) from exc
    return _transition_out(result)


@router.post("/reminders/{instance_id}/skipped", response_model=TransitionOut)
def mark_skipped(
    instance_id: str,
    payload: Optional[SkippedIn] = None,
    service: ReminderService = Depends(get_reminder_service),
) -> TransitionOut:
    payload = payload or SkippedIn()
    try:
        result = service.machine.mark_skipped(instance_id, notes=payload.notes)
    except ReminderError as exc:
        raise _http_error(exc) from exc
    return _transition_out(result)


@router.post("/reminders/{instance_id}/snooze", response_model=ReminderOut)
def snooze(
    instance_id: str,
    payload: SnoozeIn,
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderOut:
    try:
        return ReminderOut.from_instance(service.machine.snooze(instance_id, payload.minutes))
    except ReminderError as exc:
        raise _http_error(exc) from exc


# ---- History ----
@router.get("/history", response_model=List[MedicationLogOut])
def history(
    medication_id: Optional[str] = None, service: ReminderService = Depends(get_reminder_service)
) -> List[MedicationLogOut]:
    return [MedicationLogOut.from_log(log) for log in service.history(medication_id)]


def _transition_out(result: TransitionResult) -> TransitionOut:
    return TransitionOut(
        reminder=ReminderOut.from_instance(result.instance),
        log_id=result.log.id if result.log else None,
        already_resolved=result.already_resolved,
    )


def _http_error(exc: ReminderError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, StoreError):
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
