"""JSON logging with per-request and per-login context."""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import uuid
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp

_CORRELATION_ID_CTX: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)
_LOGIN_STATE_CTX: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "login_state", default=None
)
_CONFIGURED_SERVICES: set[str] = set()

_RESERVED_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    }
)


class LoginContextFilter(logging.Filter):
    """Attach the service name, correlation id and login state to records."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self._service_name
        record.correlation_id = _CORRELATION_ID_CTX.get()
        record.login_state = _LOGIN_STATE_CTX.get()
        return True


class JsonLogFormatter(logging.Formatter):
    """Render one JSON object per record."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "service": getattr(record, "service", self._service_name),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key in _RESERVED_KEYS or key in payload or value is None:
                continue
            try:
                json.dumps(value)
            except TypeError:
                value = str(value)
            payload[key] = value
        return json.dumps(payload, default=str)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Propagate or mint a correlation id for every request."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        service_name: str,
        correlation_header: str = "X-Correlation-ID",
    ) -> None:
        super().__init__(app)
        self._service_name = service_name
        self._correlation_header = correlation_header

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get(self._correlation_header) or uuid.uuid4().hex
        token = _CORRELATION_ID_CTX.set(correlation_id)
        request.state.correlation_id = correlation_id
        try:
            response = await call_next(request)
            response.headers.setdefault(self._correlation_header, correlation_id)
            return response
        finally:
            _CORRELATION_ID_CTX.reset(token)


def configure_logging(service_name: str, level: str | int = logging.INFO) -> None:
    """Install the JSON handler on the root and uvicorn loggers once per service."""

    if service_name in _CONFIGURED_SERVICES:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter(service_name))
    handler.addFilter(LoginContextFilter(service_name))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(logger_name)
        logger.handlers = [handler]
        logger.setLevel(level)
        logger.propagate = False

    _CONFIGURED_SERVICES.add(service_name)


@contextlib.contextmanager
def bind_login_state(state: str | None) -> Iterator[None]:
    """Tag every record emitted inside the block with ``state``."""

    token = _LOGIN_STATE_CTX.set(state or None)
    try:
        yield
    finally:
        _LOGIN_STATE_CTX.reset(token)


def get_correlation_id() -> Optional[str]:
    return _CORRELATION_ID_CTX.get()


def get_login_state() -> Optional[str]:
    return _LOGIN_STATE_CTX.get()
