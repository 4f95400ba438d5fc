"""HTTP client for the Slack Web API endpoints used by the user center."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from .config import UserCenterConfig
from .errors import ProviderRejected, TransportError
from .schemas import DirectoryUser, ExternalIdentity

logger = logging.getLogger(__name__)


class SlackDirectoryClient:
    """Thin wrapper over ``oauth.v2.access``, ``users.*`` and ``chat.postMessage``.

    The client keeps a single access token shared by every directory and
    messaging call. It is seeded from the configured bot token and replaced by
    the token returned from each successful code exchange. Calls are never
    retried here; callers decide what to do with a failure.
    """

    def __init__(
        self,
        config: UserCenterConfig,
        *,
        base_url: str = "https://slack.com/api",
        timeout: float = 10.0,
        access_token: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._access_token = access_token
        self._own_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @property
    def config(self) -> UserCenterConfig:
        return self._config

    @property
    def access_token(self) -> str:
        return self._access_token

    async def exchange_code(self, code: str) -> ExternalIdentity:
        """Trade an authorization code for the identity of the consenting user."""

        payload = await self._call(
            "POST",
            "oauth.v2.access",
            data={
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "code": code,
                "redirect_uri": self._config.redirect_uri,
            },
            authenticated=False,
        )
        try:
            identity = ExternalIdentity.model_validate(payload.get("authed_user") or {})
        except ValidationError as exc:
            raise TransportError(f"Malformed authed_user in oauth.v2.access response: {exc}") from exc

        access_token = payload.get("access_token")
        if access_token:
            self._access_token = access_token
        return identity

    async def get_user_detail(self, user_id: str) -> DirectoryUser:
        payload = await self._call("GET", "users.info", params={"user": user_id})
        try:
            return DirectoryUser.model_validate(payload.get("user") or {})
        except ValidationError as exc:
            raise TransportError(f"Malformed user in users.info response: {exc}") from exc

    async def list_users(self) -> list[DirectoryUser]:
        """Return the first page of workspace members.

        Cursor pagination is not followed, so very large workspaces are
        truncated to whatever Slack returns in one page.
        """

        payload = await self._call("GET", "users.list")
        members = payload.get("members") or []
        try:
            return [DirectoryUser.model_validate(member) for member in members]
        except ValidationError as exc:
            raise TransportError(f"Malformed member in users.list response: {exc}") from exc

    async def send_message(self, external_id: str, body: str) -> None:
        await self._call(
            "POST",
            "chat.postMessage",
            json={"channel": external_id, "text": body},
        )

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def _call(
        self,
        http_method: str,
        api_method: str,
        *,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> dict[str, Any]:
        headers = {}
        if authenticated:
            headers["Authorization"] = f"Bearer {self._access_token}"
        try:
            response = await self._client.request(
                http_method, f"/{api_method}", headers=headers, **kwargs
            )
        except httpx.HTTPError as exc:
            logger.error("Slack %s request failed: %s", api_method, exc)
            raise TransportError(f"Failed to call {api_method}: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                f"Failed to parse {api_method} response (status {response.status_code})"
            ) from exc
        if not isinstance(payload, dict):
            raise TransportError(f"{api_method} response must be a JSON object")
        if not payload.get("ok"):
            raise ProviderRejected(api_method, str(payload.get("error") or f"http_{response.status_code}"))
        return payload


@dataclass(frozen=True, slots=True)
class DirectoryBinding:
    """The configuration in force and the client built from it."""

    config: UserCenterConfig
    client: SlackDirectoryClient
