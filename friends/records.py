"""Records owned by the social features that the reminder engine reads or writes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

FRIENDSHIPS = "friendships"
PROFILES = "profiles"
FRIEND_REMINDERS = "friend_reminders"


class FriendshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    BLOCKED = "blocked"


@dataclass
class Friendship:
    user_id: str
    friend_id: str
    status: FriendshipStatus = FriendshipStatus.PENDING
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def links(self, first: str, second: str) -> bool:
        """True when the row joins the two users, in either column order."""

        return {self.user_id, self.friend_id} == {first, second}


@dataclass
class UserProfile:
    id: str
    username: str
    display_name: Optional[str] = None

    @property
    def name_for_display(self) -> str:
        return self.display_name or self.username


@dataclass
class FriendReminderRequest:
    from_user_id: str
    to_user_id: str
    medication_id: str
    message: str
    medication_name: Optional[str] = None


@dataclass
class FriendReminder:
    """Persisted friend reminder; its existence is the source of truth."""

    from_user_id: str
    to_user_id: str
    medication_id: str
    message: str
    medication_name: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    scheduled_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
