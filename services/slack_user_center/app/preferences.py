"""Per-user Slack notification preferences."""

from __future__ import annotations

import threading
from typing import Protocol

from .schemas import UserPreference


class PreferenceSource(Protocol):
    def get(self, user_id: str) -> UserPreference | None: ...

    def set(self, user_id: str, preference: UserPreference) -> None: ...

    def new_question_subscribers(self) -> list[str]: ...


class InMemoryPreferenceStore:
    """Preferences keyed by host user id, kept for the lifetime of the process."""

    def __init__(self, initial: dict[str, UserPreference] | None = None) -> None:
        self._preferences: dict[str, UserPreference] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, user_id: str) -> UserPreference | None:
        with self._lock:
            return self._preferences.get(user_id)

    def set(self, user_id: str, preference: UserPreference) -> None:
        with self._lock:
            self._preferences[user_id] = preference

    def new_question_subscribers(self) -> list[str]:
        with self._lock:
            return [
                user_id
                for user_id, preference in self._preferences.items()
                if preference.all_new_questions
            ]
