"""Best-effort push delivery of friend reminders through the OneSignal REST API."""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from core.errors import ProviderError, ProviderUnavailable
from core.settings import Settings, get_settings
from friends.records import FriendReminder, UserProfile

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    SENT = "sent"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PROVIDER_ERROR = "provider_error"
    DISABLED = "disabled"


@dataclass(frozen=True)
class DeliveryOutcome:
    status: DeliveryStatus
    detail: Optional[str] = None


class NotificationDispatcher:
    """Send one push notification per persisted friend reminder.

    Delivery is at most once: failures are logged and reported through the
    returned outcome, never raised and never retried.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._http_opener = urllib.request.build_opener()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def dispatch(
        self,
        reminder: FriendReminder,
        recipient: UserProfile,
        sender: Optional[UserProfile] = None,
    ) -> DeliveryOutcome:
        if not self.settings.push_enabled:
            logger.info("Push provider not configured; reminder %s stored without push", reminder.id)
            return DeliveryOutcome(DeliveryStatus.DISABLED)
        payload = self.build_payload(reminder, recipient, sender)
        try:
            self._post(payload)
        except ProviderUnavailable as exc:
            logger.warning("Push provider unavailable for reminder %s: %s", reminder.id, exc)
            return DeliveryOutcome(DeliveryStatus.PROVIDER_UNAVAILABLE, str(exc))
        except ProviderError as exc:
            logger.warning("Failed to send push notification for reminder %s: %s", reminder.id, exc)
            return DeliveryOutcome(DeliveryStatus.PROVIDER_ERROR, str(exc))
        logger.info("Push notification sent for reminder %s", reminder.id)
        return DeliveryOutcome(DeliveryStatus.SENT)

    def build_payload(
        self,
        reminder: FriendReminder,
        recipient: UserProfile,
        sender: Optional[UserProfile] = None,
    ) -> Dict[str, Any]:
        sender_name = sender.name_for_display if sender else "A friend"
        return {
            "app_id": self.settings.onesignal_app_id,
            "include_external_user_ids": [recipient.id],
            "contents": {"en": reminder.message},
            "headings": {"en": f"{sender_name} sent you a reminder"},
            "data": {
                "type": "friend_reminder",
                "reminder_id": reminder.id,
                "medication_id": reminder.medication_id,
                "medication_name": reminder.medication_name,
                "from_user_id": reminder.from_user_id,
            },
            "ios_badgeType": "Increase",
            "ios_badgeCount": 1,
        }

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------
    def _post(self, payload: Dict[str, Any]) -> None:
        headers = {
            "Authorization": f"Basic {self.settings.onesignal_api_key}",
            "Content-Type": "application/json",
        }
        request = urllib.request.Request(
            self.settings.onesignal_api_url,
            data=json.dumps(payload).encode("utf-8"),
            headers=headers,
            method="POST",
        )
        try:
            with self._http_opener.open(request, timeout=self.settings.push_timeout_seconds) as response:
                response.read()
        except urllib.error.HTTPError as exc:
            message = exc.read().decode("utf-8", errors="replace") if exc.fp else exc.reason
            raise ProviderError(f"HTTP {exc.code}: {message}") from exc
        except urllib.error.URLError as exc:
            raise ProviderUnavailable(f"Push provider unreachable: {exc.reason}") from exc
        except TimeoutError as exc:
            raise ProviderUnavailable("Push provider timed out") from exc
        except http.client.HTTPException as exc:
            raise ProviderUnavailable(f"Push provider connection broken: {exc!r}") from exc
        except OSError as exc:
            raise ProviderUnavailable(f"Push provider connection failed: {exc}") from exc
