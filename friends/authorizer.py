"""Authorization of cross-user friend reminders."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from api.services.record_store import RecordStore
from core.errors import AuthorizationError
from friends.records import FRIENDSHIPS, FriendReminderRequest, Friendship, FriendshipStatus

logger = logging.getLogger(__name__)

IDENTITY_MISMATCH = "identity mismatch"
NOT_FRIENDS = "not friends"


@dataclass(frozen=True)
class Authorization:
    ok: bool
    reason: Optional[str] = None


class FriendReminderAuthorizer:
    """Decide whether a caller may nudge another user.

    Checks run in order and stop at the first failure: the request must be
    sent as the caller, and the two users must share an accepted friendship.
    Nothing is written to the store.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def friendships_between(self, first: str, second: str) -> List[Friendship]:
        return self._store.list(FRIENDSHIPS, where=lambda row: row.links(first, second))

    def are_friends(self, first: str, second: str) -> bool:
        return any(
            row.status == FriendshipStatus.ACCEPTED for row in self.friendships_between(first, second)
        )

    def authorize(self, request: FriendReminderRequest, caller_id: str) -> Authorization:
        if request.from_user_id != caller_id:
            logger.warning(
                "Denied friend reminder: caller %s sent as %s", caller_id, request.from_user_id
            )
            return Authorization(ok=False, reason=IDENTITY_MISMATCH)
        if not self.are_friends(request.from_user_id, request.to_user_id):
            logger.warning(
                "Denied friend reminder: %s and %s are not friends",
                request.from_user_id,
                request.to_user_id,
            )
            return Authorization(ok=False, reason=NOT_FRIENDS)
        return Authorization(ok=True)

    def require(self, request: FriendReminderRequest, caller_id: str) -> None:
        result = self.authorize(request, caller_id)
        if not result.ok:
            raise AuthorizationError(result.reason)
