"""Periodic evaluation of medication schedules.

``tick`` is the pure decision of which medications need a prompt right now.
:class:`ReminderClock` applies that decision against the record store and the
state machine, and can run itself as an asyncio task on a fixed interval.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set

from api.services.record_store import RecordStore
from scheduler.schedule import SCHEDULES, MedicationSchedule, is_due_at
from scheduler.state import UNRESOLVED, ReminderInstance, ReminderStateMachine, ReminderStatus

logger = logging.getLogger(__name__)


def tick(
    now: datetime,
    schedules: Iterable[MedicationSchedule],
    instances: Iterable[ReminderInstance],
) -> List[str]:
    """Return medication ids that should be surfaced at ``now``.

    A due schedule is skipped while its medication has an unresolved instance.
    Snoozed instances whose deadline has passed are surfaced again.
    """

    instances = list(instances)
    unresolved = {instance.medication_id for instance in instances if instance.status in UNRESOLVED}
    expired = [
        instance.medication_id
        for instance in instances
        if instance.status == ReminderStatus.SNOOZED
        and instance.snoozed_until is not None
        and instance.snoozed_until <= now
    ]
    result: List[str] = []
    for schedule in schedules:
        if schedule.id in unresolved or schedule.id in result:
            continue
        if is_due_at(schedule, now):
            result.append(schedule.id)
    for medication_id in expired:
        if medication_id not in result:
            result.append(medication_id)
    return result


class ReminderClock:
    """Evaluate schedules on a fixed interval, one evaluation at a time."""

    def __init__(
        self,
        store: RecordStore,
        machine: ReminderStateMachine,
        now: Optional[Callable[[], datetime]] = None,
        interval_seconds: float = 60.0,
    ) -> None:
        self._store = store
        self._machine = machine
        self._now = now or datetime.now
        self.interval_seconds = interval_seconds
        self._busy = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self.skipped_ticks = 0

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def evaluate(self, now: Optional[datetime] = None) -> List[ReminderInstance]:
        """Raise or re-surface instances for ``now`` and return those surfaced."""

        now = now or self._now()
        surfaced: List[ReminderInstance] = []
        for schedule in self._store.list(SCHEDULES):
            try:
                open_instance = self._machine.active_for(schedule.id)
                due = tick(now, [schedule], [open_instance] if open_instance else [])
                if due:
                    instance = self._machine.raise_due(schedule.id, now)
                    if instance is not None:
                        surfaced.append(instance)
            except Exception:
                logger.exception("Failed to evaluate medication %s", schedule.id)
        for instance in self._machine.active():
            if instance.status != ReminderStatus.SNOOZED:
                continue
            try:
                if tick(now, [], [instance]):
                    resurfaced = self._machine.resurface(instance.id, now)
                    if resurfaced is not None:
                        surfaced.append(resurfaced)
            except Exception:
                logger.exception("Failed to re-surface reminder %s", instance.id)
        return surfaced

    async def run_once(self) -> Optional[List[ReminderInstance]]:
        """Evaluate unless a previous evaluation is still running."""

        if self._busy.locked():
            self.skipped_ticks += 1
            logger.debug("Reminder evaluation still running; skipping tick")
            return None
        async with self._busy:
            return await asyncio.to_thread(self.evaluate)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("Reminder clock started (interval %.0fs)", self.interval_seconds)

    async def stop(self) -> None:
        pending = [task for task in (self._task, *self._inflight) if task is not None and not task.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._inflight.clear()
        logger.info("Reminder clock stopped")

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            task = loop.create_task(self._run_logged())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            await asyncio.sleep(self.interval_seconds)

    async def _run_logged(self) -> None:
        try:
            await self.run_once()
        except Exception:
            logger.exception("Reminder evaluation failed")
