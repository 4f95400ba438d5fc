"""Configuration for the Slack user center.

Two layers are involved:

* :class:`Settings` holds process level knobs read from the environment
  (``SLACK_USER_CENTER_*``): endpoints, timeouts, TTLs and session signing.
* :class:`UserCenterConfig` is the host supplied plugin configuration. It is
  immutable and replaced wholesale every time the host reconfigures the
  plugin.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SCOPES = [
    "chat:write",
    "commands",
    "groups:write",
    "im:write",
    "incoming-webhook",
    "mpim:write",
    "users:read",
    "users:read.email",
]


class UserCenterConfig(BaseModel):
    """Credentials and feature toggles supplied by the host."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    client_id: str = Field("", description="Slack application client id")
    client_secret: str = Field("", description="Slack application client secret", repr=False)
    redirect_uri: str = Field("", description="OAuth redirect target registered with Slack")
    auto_sync: bool = Field(False, description="Refresh the member directory on a timer")
    notification: bool = Field(False, description="Deliver host notifications through Slack")

    @classmethod
    def parse(cls, raw: bytes | str | Mapping[str, Any]) -> "UserCenterConfig":
        """Build a config from the JSON document or mapping sent by the host."""

        if isinstance(raw, (bytes, str)):
            raw = json.loads(raw or "{}")
        return cls.model_validate(raw)

    def is_complete(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


class UserCenterConfigUpdate(UserCenterConfig):
    """Reconfiguration payload; the credential fields are mandatory."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1, repr=False)
    redirect_uri: str = Field(..., min_length=1)

    def to_config(self) -> UserCenterConfig:
        return UserCenterConfig.model_validate(self.model_dump())


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="SLACK_USER_CENTER_", case_sensitive=False)

    service_name: str = Field("slack-user-center", description="Service identifier")
    log_level: str = Field("INFO", description="Root log level")
    api_base_url: str = Field("https://slack.com/api", description="Slack Web API base URL")
    authorize_url: str = Field(
        "https://slack.com/oauth/v2/authorize",
        description="Slack hosted consent page",
    )
    oauth_scopes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCOPES),
        description="Scopes requested on the authorize URL",
    )
    http_timeout: float = Field(10.0, description="Timeout for calls to the Slack API")
    client_grace_seconds: float = Field(
        30.0,
        description="How long a client replaced by reconfiguration stays open for in-flight calls",
    )
    bot_token: str = Field(
        "",
        description="Token used for directory calls before the first OAuth exchange",
        repr=False,
    )
    login_ttl_seconds: float = Field(300.0, description="Lifetime of login correlation entries")
    sync_interval_seconds: float = Field(3600.0, description="Interval between directory syncs")
    directory_ttl_seconds: float | None = Field(
        None,
        description="Lifetime of the cached directory; defaults to the sync interval plus the login TTL",
    )
    auth_failed_path: str = Field(
        "/user-center/auth-failed",
        description="Where the browser is sent when the Slack account has no email",
    )
    session_secret: str = Field(
        "dev-secret-change-me",
        description="HMAC secret used to sign session and admin tokens",
        repr=False,
    )
    session_algorithm: str = Field("HS256", description="JWT signing algorithm")
    session_ttl_minutes: int = Field(60, description="Lifetime of minted session tokens")
    workspace_name: str = Field("", description="Workspace name reported by the data endpoint")
    workspace_id: str = Field("", description="Workspace id reported by the data endpoint")
    workspace_domain: str = Field("", description="Workspace domain reported by the data endpoint")
    client_id: str = Field("", description="Initial Slack client id")
    client_secret: str = Field("", description="Initial Slack client secret", repr=False)
    redirect_uri: str = Field("", description="Initial OAuth redirect URI")
    auto_sync: bool = Field(False, description="Initial auto-sync toggle")
    notification: bool = Field(False, description="Initial notification toggle")

    def initial_config(self) -> UserCenterConfig:
        """Config in effect until the host pushes its own."""

        return UserCenterConfig(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            auto_sync=self.auto_sync,
            notification=self.notification,
        )

    def directory_ttl(self) -> float:
        if self.directory_ttl_seconds is None:
            return self.sync_interval_seconds + self.login_ttl_seconds
        return self.directory_ttl_seconds

    def workspace(self) -> dict[str, str]:
        return {
            "name": self.workspace_name,
            "id": self.workspace_id,
            "domain": self.workspace_domain,
        }


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
