"""Logging and metrics helpers shared by the user center services."""

from .logging import (
    RequestContextMiddleware,
    bind_login_state,
    configure_logging,
    get_correlation_id,
    get_login_state,
)
from .metrics import record_login, record_notification, record_sync, setup_metrics

__all__ = [
    "RequestContextMiddleware",
    "bind_login_state",
    "configure_logging",
    "get_correlation_id",
    "get_login_state",
    "record_login",
    "record_notification",
    "record_sync",
    "setup_metrics",
]
