"""FastAPI application exposing the Slack user center."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from libs.observability import RequestContextMiddleware, configure_logging, setup_metrics

from .config import Settings, get_settings
from .routers import admin, login
from .security import SessionIssuer
from .user_center import SlackUserCenter


def create_app(
    settings: Settings | None = None,
    user_center: SlackUserCenter | None = None,
    session_issuer: SessionIssuer | None = None,
    start_background_tasks: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.service_name, settings.log_level)
    user_center = user_center or SlackUserCenter(settings)
    session_issuer = session_issuer or SessionIssuer.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_background_tasks:
            await user_center.start()
        try:
            yield
        finally:
            await user_center.aclose()

    app = FastAPI(title="Slack User Center", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.user_center = user_center
    app.state.session_issuer = session_issuer

    app.add_middleware(RequestContextMiddleware, service_name=settings.service_name)
    setup_metrics(app, service_name=settings.service_name)

    @app.get("/health", tags=["system"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(login.router)
    app.include_router(admin.router)
    return app


app = create_app()
