"""OAuth login handshake between the browser, Slack and the polling client.

A login attempt moves through three steps which share state only through the
:class:`~.cache.CorrelationCache`:

1. ``initiate`` mints a nonce and builds the Slack authorize URL. Nothing is
   cached yet; the nonce travels to Slack as the ``state`` parameter.
2. ``complete`` handles the redirect back from Slack. The code is exchanged
   for an identity and ``state -> external id`` is cached. The host then
   mints its session token and reports it through ``after_login`` which
   caches ``external id -> token``.
3. ``poll`` resolves ``state`` to a token through the external id. A missing
   hop at any point simply means "not logged in yet".
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable, Sequence
from urllib.parse import urlencode

from libs.observability import bind_login_state, record_login

from .cache import CorrelationCache, session_key, state_key
from .clients import DirectoryBinding
from .errors import (
    EmailRequired,
    ExchangeFailed,
    MissingParameter,
    NotConfigured,
    SlackAPIError,
    UserUnavailable,
)
from .schemas import AuthorizeRedirect, ExternalIdentity, LoginStatus, UserCenterBasicUserInfo

logger = logging.getLogger(__name__)

NONCE_BYTES = 10


def generate_nonce() -> str:
    """Return a fresh hex encoded nonce from the system CSPRNG."""

    return secrets.token_hex(NONCE_BYTES)


class LoginHandshake:
    """Issue authorize URLs, consume OAuth callbacks and answer polls."""

    def __init__(
        self,
        cache: CorrelationCache,
        binding: Callable[[], DirectoryBinding],
        *,
        authorize_url: str,
        scopes: Sequence[str],
        ttl_seconds: float,
        auth_failed_path: str,
    ) -> None:
        self._cache = cache
        self._binding = binding
        self._authorize_url = authorize_url
        self._scopes = list(scopes)
        self._ttl_seconds = ttl_seconds
        self._auth_failed_path = auth_failed_path

    def initiate(self) -> AuthorizeRedirect:
        config = self._binding().config
        if not config.is_complete():
            raise NotConfigured()
        state = generate_nonce()
        params = {
            "client_id": config.client_id,
            "scope": ",".join(self._scopes),
            "redirect_uri": config.redirect_uri,
            "state": state,
        }
        return AuthorizeRedirect(redirect_url=f"{self._authorize_url}?{urlencode(params)}", key=state)

    async def complete(self, code: str | None, state: str | None) -> UserCenterBasicUserInfo:
        """Exchange ``code`` and correlate the resulting identity with ``state``."""

        if not code:
            record_login("missing_parameter")
            raise MissingParameter("code")
        if not state:
            record_login("missing_parameter")
            raise MissingParameter("state")

        with bind_login_state(state):
            logger.debug("OAuth callback received")
            binding = self._binding()
            if not binding.config.is_complete():
                record_login("not_configured")
                raise NotConfigured()
            client = binding.client
            try:
                identity = await client.exchange_code(code)
            except SlackAPIError as exc:
                logger.warning("Code exchange failed: %s", exc)
                record_login("exchange_failed")
                raise ExchangeFailed(f"auth user failed: {exc}") from exc

            self._check_identity(identity)

            self._cache.set(state_key(state), identity.id, self._ttl_seconds)
            logger.info("Slack user %s authenticated", identity.id)
            record_login("success")
            return UserCenterBasicUserInfo.from_identity(identity)

    def after_login(self, external_id: str, session_token: str) -> None:
        """Record the session token the host minted for ``external_id``."""

        logger.debug("user %s is login", external_id)
        self._cache.set(session_key(external_id), session_token, self._ttl_seconds)

    def poll(self, state: str | None) -> LoginStatus:
        if not state:
            return LoginStatus(is_login=False, token="")
        external_id = self._cache.get(state_key(state))
        if not external_id:
            return LoginStatus(is_login=False, token="")
        token = self._cache.get(session_key(external_id)) or ""
        return LoginStatus(is_login=bool(token), token=token)

    def _check_identity(self, identity: ExternalIdentity) -> None:
        if not identity.is_available:
            record_login("user_unavailable")
            raise UserUnavailable(identity.id)
        if not identity.email:
            record_login("email_required")
            raise EmailRequired(identity.id, self._auth_failed_path)
