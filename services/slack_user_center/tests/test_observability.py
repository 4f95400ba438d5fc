from __future__ import annotations

import json
import logging

from libs.observability import bind_login_state, get_login_state
from libs.observability.logging import JsonLogFormatter, LoginContextFilter


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("slack", logging.INFO, __file__, 1, message, None, None)


def test_login_state_is_bound_only_inside_block():
    assert get_login_state() is None
    with bind_login_state("abc123"):
        assert get_login_state() == "abc123"
    assert get_login_state() is None


def test_json_formatter_includes_login_context():
    formatter = JsonLogFormatter("slack-user-center")
    context_filter = LoginContextFilter("slack-user-center")

    with bind_login_state("abc123"):
        record = _record("OAuth callback received")
        context_filter.filter(record)
    payload = json.loads(formatter.format(record))

    assert payload["message"] == "OAuth callback received"
    assert payload["service"] == "slack-user-center"
    assert payload["login_state"] == "abc123"
    assert "correlation_id" not in payload


def test_json_formatter_keeps_extra_fields():
    formatter = JsonLogFormatter("slack-user-center")
    record = _record("User center reconfigured")
    record.auto_sync = True

    payload = json.loads(formatter.format(record))

    assert payload["auto_sync"] is True
    assert payload["level"] == "INFO"
