"""Forward host notifications to Slack direct messages."""

from __future__ import annotations

import logging
from typing import Callable

from libs.observability import record_notification

from .clients import DirectoryBinding
from .errors import SlackAPIError
from .preferences import PreferenceSource
from .rendering import NotificationRenderer
from .schemas import NotificationMessage

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Decide per recipient whether an event is delivered, then deliver it.

    Delivery is fire and forget: a skipped or failed notification is logged
    and never reported back to the host event that produced it.
    """

    def __init__(
        self,
        binding: Callable[[], DirectoryBinding],
        preferences: PreferenceSource,
        renderer: NotificationRenderer | None = None,
    ) -> None:
        self._binding = binding
        self._preferences = preferences
        self._renderer = renderer or NotificationRenderer()

    async def notify(self, message: NotificationMessage) -> bool:
        """Return ``True`` when the message was handed to Slack."""

        logger.debug("try to send notification %s", message.type.value)
        binding = self._binding()
        if not binding.config.notification:
            return self._skip(message, "disabled")

        try:
            preference = self._preferences.get(message.receiver_user_id)
        except Exception:
            logger.exception("get user config failed for %s", message.receiver_user_id)
            return self._skip(message, "preference_error")
        if preference is None:
            logger.debug("user %s has no config", message.receiver_user_id)
            return self._skip(message, "no_preference")
        if not preference.allows(message.type):
            logger.debug(
                "user %s has not enabled %s notifications",
                message.receiver_user_id,
                message.type.value,
            )
            return self._skip(message, "opted_out")
        if not message.receiver_external_id:
            logger.debug("user %s has no Slack identity", message.receiver_user_id)
            return self._skip(message, "no_external_id")

        body = self._renderer.render(message)
        if not body:
            return self._skip(message, "empty")

        try:
            await binding.client.send_message(message.receiver_external_id, body)
        except SlackAPIError as exc:
            logger.error("Failed to send Slack message: %s", exc)
            record_notification(message.type.value, "failed")
            return False
        logger.info("Message sent to Slack user %s successfully", message.receiver_external_id)
        record_notification(message.type.value, "sent")
        return True

    def new_question_subscribers(self) -> list[str]:
        return self._preferences.new_question_subscribers()

    @staticmethod
    def _skip(message: NotificationMessage, reason: str) -> bool:
        record_notification(message.type.value, reason)
        return False
