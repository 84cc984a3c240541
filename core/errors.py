"""Error taxonomy shared by the reminder engine and the HTTP layer."""

from __future__ import annotations


class ReminderError(Exception):
    """Base class for errors raised by the reminder engine."""


class ValidationError(ReminderError, ValueError):
    """A request or argument is malformed or missing required fields."""


class AuthenticationError(ReminderError):
    """The caller credential is missing or cannot be verified."""


class AuthorizationError(ReminderError):
    """The caller is not allowed to perform the operation."""


class NotFoundError(ReminderError):
    """An instance, medication or record does not exist."""


class InvalidTransitionError(ReminderError):
    """A reminder instance cannot move to the requested state."""


class StoreError(ReminderError):
    """The underlying record store failed."""


class ProviderError(ReminderError):
    """The push provider answered with a failure."""


class ProviderUnavailable(ProviderError):
    """The push provider could not be reached in time."""


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "InvalidTransitionError",
    "NotFoundError",
    "ProviderError",
    "ProviderUnavailable",
    "ReminderError",
    "StoreError",
    "ValidationError",
]
