"""Session tokens handed to the polling client and admin token checks."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import jwt

from .config import Settings
from .schemas import UserCenterBasicUserInfo


class SessionIssuer:
    """Mint and verify HS256 session tokens for Slack backed accounts."""

    def __init__(self, secret: str, *, algorithm: str = "HS256", ttl_minutes: int = 60) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(minutes=ttl_minutes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionIssuer":
        return cls(
            settings.session_secret,
            algorithm=settings.session_algorithm,
            ttl_minutes=settings.session_ttl_minutes,
        )

    def issue(self, user: UserCenterBasicUserInfo, roles: list[str] | None = None) -> str:
        now = datetime.now(timezone.utc)
        return jwt.encode(
            {
                "sub": user.external_id,
                "email": user.email,
                "name": user.display_name,
                "roles": roles or ["user"],
                "iat": int(now.timestamp()),
                "exp": int((now + self._ttl).timestamp()),
            },
            self._secret,
            algorithm=self._algorithm,
        )

    def verify(self, token: str) -> dict:
        return jwt.decode(token, self._secret, algorithms=[self._algorithm])


__all__ = ["SessionIssuer"]
