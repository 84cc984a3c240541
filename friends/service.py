"""Authorize, persist, then notify: the friend reminder flow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from api.services.record_store import RecordStore, record_store
from core.settings import Settings
from friends.authorizer import FriendReminderAuthorizer
from friends.records import FRIEND_REMINDERS, PROFILES, FriendReminder, FriendReminderRequest, UserProfile
from notifications.dispatcher import DeliveryOutcome, NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    reminder: FriendReminder
    delivery: DeliveryOutcome


class FriendReminderService:
    def __init__(
        self,
        store: Optional[RecordStore] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store if store is not None else RecordStore()
        self.authorizer = FriendReminderAuthorizer(self.store)
        self.dispatcher = dispatcher or NotificationDispatcher(settings)

    def send(self, request: FriendReminderRequest, caller_id: str) -> SendResult:
        """Send a reminder from ``caller_id``.

        Authorization failures raise before anything is written. Once the
        reminder is stored the push outcome is reported but cannot undo it.
        """

        self.authorizer.require(request, caller_id)
        reminder = FriendReminder(
            from_user_id=request.from_user_id,
            to_user_id=request.to_user_id,
            medication_id=request.medication_id,
            message=request.message,
            medication_name=request.medication_name,
        )
        self.store.create(FRIEND_REMINDERS, reminder)
        logger.info(
            "Friend reminder %s stored from %s to %s", reminder.id, reminder.from_user_id, reminder.to_user_id
        )

        sender = self.store.get(PROFILES, request.from_user_id)
        recipient = self.store.get(PROFILES, request.to_user_id) or UserProfile(
            id=request.to_user_id, username=request.to_user_id
        )
        delivery = self.dispatcher.dispatch(reminder, recipient, sender)
        return SendResult(reminder=reminder, delivery=delivery)


friend_reminders = FriendReminderService(store=record_store)
"""Module-level instance used by the dispatch route."""
