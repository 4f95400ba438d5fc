"""In-memory expiring store shared by the login handshake and the directory sync."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from time import monotonic
from typing import Any, Callable

LOGIN_STATE_PREFIX = "login:state:"
LOGIN_SESSION_PREFIX = "login:session:"
DIRECTORY_USERS_KEY = "directory:slack_users"


def state_key(state: str) -> str:
    return f"{LOGIN_STATE_PREFIX}{state}"


def session_key(external_id: str) -> str:
    return f"{LOGIN_SESSION_PREFIX}{external_id}"


@dataclass(slots=True)
class _CacheEntry:
    value: Any
    expires_at: float | None


class CorrelationCache:
    """TTL key-value store safe for concurrent readers and writers.

    An expired entry is dropped on read and reported exactly like a missing
    one. Expired entries are also swept whenever a write happens so that
    abandoned login attempts do not accumulate.
    """

    def __init__(
        self,
        default_ttl_seconds: float | None = 300.0,
        *,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._values: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self._default_ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self._clock()
        expires_at = None if ttl is None else now + ttl
        with self._lock:
            self._purge(now)
            self._values[key] = _CacheEntry(value=value, expires_at=expires_at)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._values.get(key)
            if entry is None:
                return None
            if entry.expires_at is not None and entry.expires_at <= self._clock():
                self._values.pop(key, None)
                return None
            return entry.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge(self._clock())

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._values)

    def _purge(self, now: float) -> int:
        expired = [
            key
            for key, entry in self._values.items()
            if entry.expires_at is not None and entry.expires_at <= now
        ]
        for key in expired:
            del self._values[key]
        return len(expired)


__all__ = [
    "DIRECTORY_USERS_KEY",
    "CorrelationCache",
    "session_key",
    "state_key",
]
