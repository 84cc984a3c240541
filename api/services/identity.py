"""Caller identity verification for bearer tokens."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import jwt

from core.errors import AuthenticationError
from core.settings import Settings, get_settings

JWT_ALGO = "HS256"


@dataclass(frozen=True)
class UserIdentity:
    user_id: str
    email: Optional[str] = None


class IdentityProvider:
    """Verify HS256 access tokens whose ``sub`` claim is the user id."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def verify(self, token: Optional[str]) -> UserIdentity:
        if not token:
            raise AuthenticationError("No authorization token provided")
        options = {"verify_aud": bool(self.settings.auth_jwt_audience)}
        try:
            payload = jwt.decode(
                token,
                self.settings.auth_jwt_secret,
                algorithms=[JWT_ALGO],
                audience=self.settings.auth_jwt_audience,
                options=options,
            )
        except jwt.PyJWTError as exc:
            raise AuthenticationError("Invalid authorization token") from exc
        subject = payload.get("sub")
        if not subject:
            raise AuthenticationError("Invalid authorization token")
        return UserIdentity(user_id=str(subject), email=payload.get("email"))

    def create_token(self, user_id: str, email: Optional[str] = None) -> str:
        """Mint a token the way the hosted auth service does; used by tests and local tooling."""

        payload = {"sub": user_id}
        if email:
            payload["email"] = email
        if self.settings.auth_jwt_audience:
            payload["aud"] = self.settings.auth_jwt_audience
        return jwt.encode(payload, self.settings.auth_jwt_secret, algorithm=JWT_ALGO)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None
