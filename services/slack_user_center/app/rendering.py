"""Render host notifications into Slack message text."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict

from jinja2 import Environment, TemplateSyntaxError

from .schemas import NotificationMessage, NotificationType

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).resolve().parent / "locales"
DEFAULT_LOCALE = "en_US"

# Both new question flavours share one template.
_TEMPLATE_KEYS: Dict[NotificationType, str] = {
    NotificationType.update_question: "tpl_update_question",
    NotificationType.answer_the_question: "tpl_answer_the_question",
    NotificationType.update_answer: "tpl_update_answer",
    NotificationType.accept_answer: "tpl_accept_answer",
    NotificationType.comment_question: "tpl_comment_question",
    NotificationType.comment_answer: "tpl_comment_answer",
    NotificationType.reply_to_you: "tpl_reply_to_you",
    NotificationType.mention_you: "tpl_mention_you",
    NotificationType.invited_you_to_answer: "tpl_invited_you_to_answer",
    NotificationType.new_question: "tpl_new_question",
    NotificationType.new_question_followed_tag: "tpl_new_question",
}


def normalise_locale(language: str | None) -> str:
    """Map ``zh-CN``/``zh_cn``/``en`` style tags onto catalog names."""

    if not language:
        return DEFAULT_LOCALE
    parts = language.replace("-", "_").split("_")
    if len(parts) == 1:
        return {"en": "en_US", "zh": "zh_CN"}.get(parts[0].lower(), DEFAULT_LOCALE)
    return f"{parts[0].lower()}_{parts[1].upper()}"


@lru_cache(maxsize=8)
def _load_catalog(locale: str) -> Dict[str, str]:
    path = LOCALES_DIR / f"{locale}.json"
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, json.JSONDecodeError):
        logger.exception("Unable to load notification catalog %s", path)
        return {}
    if not isinstance(payload, dict):
        return {}
    return {str(key): str(value) for key, value in payload.items()}


class NotificationRenderer:
    """Pick the locale specific template for an event type and fill it in."""

    def __init__(self) -> None:
        self._environment = Environment(autoescape=False, keep_trailing_newline=False)

    def render(self, message: NotificationMessage) -> str:
        key = _TEMPLATE_KEYS.get(message.type)
        if key is None:
            return ""
        source = self._template_source(normalise_locale(message.receiver_lang), key)
        if not source:
            return ""

        context = message.model_dump(mode="json")
        if message.type in {NotificationType.new_question, NotificationType.new_question_followed_tag}:
            tags = [tag.strip() for tag in message.question_tags.split(",") if tag.strip()]
            context["question_tags"] = ", ".join(tags)
        try:
            template = self._environment.from_string(source)
        except TemplateSyntaxError:
            logger.exception("Invalid notification template %s", key)
            return ""
        return template.render(context).strip()

    @staticmethod
    def _template_source(locale: str, key: str) -> str:
        catalog = _load_catalog(locale)
        if key in catalog:
            return catalog[key]
        return _load_catalog(DEFAULT_LOCALE).get(key, "")
