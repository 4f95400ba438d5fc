"""Prometheus metrics for the user center."""

from __future__ import annotations

import time

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

_REQUEST_COUNTER = Counter(
    "user_center_http_requests_total",
    "Total number of HTTP requests",
    labelnames=("service", "method", "path", "status"),
)
_REQUEST_LATENCY = Histogram(
    "user_center_http_request_latency_seconds",
    "Latency of HTTP requests in seconds",
    labelnames=("service", "method", "path"),
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
_LOGIN_COUNTER = Counter(
    "user_center_login_callbacks_total",
    "OAuth login callbacks by outcome",
    labelnames=("outcome",),
)
_SYNC_COUNTER = Counter(
    "user_center_directory_syncs_total",
    "Directory synchronisation runs by outcome",
    labelnames=("trigger", "outcome"),
)
_NOTIFICATION_COUNTER = Counter(
    "user_center_notifications_total",
    "Notification dispatch decisions by outcome",
    labelnames=("type", "outcome"),
)


def record_login(outcome: str) -> None:
    _LOGIN_COUNTER.labels(outcome).inc()


def record_sync(trigger: str, outcome: str) -> None:
    _SYNC_COUNTER.labels(trigger, outcome).inc()


def record_notification(notification_type: str, outcome: str) -> None:
    _NOTIFICATION_COUNTER.labels(notification_type, outcome).inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count requests and observe their latency by route template."""

    def __init__(self, app: ASGIApp, *, service_name: str) -> None:
        super().__init__(app)
        self._service_name = service_name

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        method = request.method.upper()
        start = time.perf_counter()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            route = request.scope.get("route")
            path_template: str = getattr(route, "path", request.url.path)
            _REQUEST_COUNTER.labels(self._service_name, method, path_template, status_code).inc()
            _REQUEST_LATENCY.labels(self._service_name, method, path_template).observe(
                time.perf_counter() - start
            )


def setup_metrics(app: FastAPI, *, service_name: str) -> None:
    """Attach the metrics middleware and expose ``/metrics``."""

    if getattr(app.state, "_metrics_configured", False):
        return

    app.add_middleware(MetricsMiddleware, service_name=service_name)

    async def metrics_endpoint() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.add_api_route(
        "/metrics",
        metrics_endpoint,
        methods=["GET"],
        include_in_schema=False,
        name="metrics",
    )
    app.state._metrics_configured = True
