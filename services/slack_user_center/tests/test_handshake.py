from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlparse

import pytest

from services.slack_user_center.app.cache import session_key, state_key
from services.slack_user_center.app.errors import (
    EmailRequired,
    ExchangeFailed,
    MissingParameter,
    NotConfigured,
    ProviderRejected,
    UserUnavailable,
)
from services.slack_user_center.app.handshake import NONCE_BYTES, generate_nonce
from services.slack_user_center.app.schemas import ExternalIdentity, UserStatus
from services.slack_user_center.app.user_center import SlackUserCenter


def test_nonce_is_hex_of_expected_length_and_unique():
    nonces = {generate_nonce() for _ in range(1000)}

    assert len(nonces) == 1000
    for nonce in nonces:
        assert len(nonce) == NONCE_BYTES * 2
        int(nonce, 16)


def test_initiate_builds_authorize_url(user_center, settings):
    redirect = user_center.handshake.initiate()

    parsed = urlparse(redirect.redirect_url)
    params = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == settings.authorize_url
    assert params["client_id"] == ["client-1"]
    assert params["redirect_uri"] == [settings.redirect_uri]
    assert params["state"] == [redirect.key]
    assert params["scope"][0].split(",") == settings.oauth_scopes


def test_initiate_does_not_cache_anything(user_center):
    user_center.handshake.initiate()

    assert len(user_center.cache) == 0


def test_each_initiate_mints_a_new_key(user_center):
    first = user_center.handshake.initiate()
    second = user_center.handshake.initiate()

    assert first.key != second.key


@pytest.mark.asyncio
async def test_complete_caches_state_and_returns_identity(user_center, factory):
    user = await user_center.handshake.complete("code-1", "teststate")

    assert user.external_id == "U12345"
    assert user.email == "alice@example.com"
    assert user.status == UserStatus.available
    assert user_center.cache.get(state_key("teststate")) == "U12345"
    assert factory.latest.exchange_calls == ["code-1"]


@pytest.mark.asyncio
@pytest.mark.parametrize("code, state, missing", [("", "s", "code"), (None, "s", "code"), ("c", "", "state")])
async def test_complete_rejects_missing_parameters_without_calling_slack(
    user_center, factory, code, state, missing
):
    with pytest.raises(MissingParameter) as excinfo:
        await user_center.handshake.complete(code, state)

    assert excinfo.value.name == missing
    assert str(excinfo.value) == f"{missing} is empty"
    assert factory.latest.exchange_calls == []


@pytest.mark.asyncio
async def test_complete_wraps_exchange_failures(user_center, factory):
    factory.latest.exchange_error = ProviderRejected("oauth.v2.access", "invalid_code")

    with pytest.raises(ExchangeFailed) as excinfo:
        await user_center.handshake.complete("bad", "state-1")

    assert "invalid_code" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, ProviderRejected)
    assert user_center.cache.get(state_key("state-1")) is None


@pytest.mark.asyncio
async def test_complete_rejects_unavailable_user(user_center, factory):
    factory.latest.identity = ExternalIdentity(
        id="U2", name="bob", email="bob@example.com", is_available=False
    )

    with pytest.raises(UserUnavailable):
        await user_center.handshake.complete("code", "state-2")

    assert user_center.cache.get(state_key("state-2")) is None


@pytest.mark.asyncio
async def test_complete_requires_email(user_center, factory, settings):
    factory.latest.identity = ExternalIdentity(id="U3", name="carol", email="")

    with pytest.raises(EmailRequired) as excinfo:
        await user_center.handshake.complete("code", "state-3")

    assert excinfo.value.redirect_url == settings.auth_failed_path
    assert user_center.cache.get(state_key("state-3")) is None


def test_poll_resolves_state_through_external_id(user_center):
    user_center.cache.set(state_key("teststate"), "U12345")
    user_center.cache.set(session_key("U12345"), "testtoken")

    status = user_center.handshake.poll("teststate")

    assert status.is_login is True
    assert status.token == "testtoken"


@pytest.mark.parametrize("state", ["", None, "unknown"])
def test_poll_without_correlation_is_not_logged_in(user_center, state):
    status = user_center.handshake.poll(state)

    assert status.is_login is False
    assert status.token == ""


def test_poll_before_session_token_is_recorded(user_center):
    user_center.cache.set(state_key("pending"), "U12345")

    status = user_center.handshake.poll("pending")

    assert status.is_login is False
    assert status.token == ""


def test_poll_after_entries_expire(user_center, clock):
    user_center.cache.set(state_key("old"), "U12345")
    user_center.after_login("U12345", "token")
    clock.advance(user_center.settings.login_ttl_seconds + 1)

    assert user_center.handshake.poll("old").is_login is False


def test_full_round_trip_through_the_handshake(user_center):
    async def _run():
        redirect = user_center.handshake.initiate()
        assert user_center.handshake.poll(redirect.key).is_login is False
        user = await user_center.handshake.complete("code", redirect.key)
        assert user_center.handshake.poll(redirect.key).is_login is False
        user_center.after_login(user.external_id, "session-token")
        return redirect.key

    key = asyncio.run(_run())

    status = user_center.handshake.poll(key)
    assert status.is_login is True
    assert status.token == "session-token"


def _unconfigured(settings, factory) -> SlackUserCenter:
    return SlackUserCenter(settings.model_copy(update={"client_secret": ""}), client_factory=factory)


def test_initiate_requires_complete_config(settings, factory):
    center = _unconfigured(settings, factory)

    with pytest.raises(NotConfigured):
        center.handshake.initiate()


@pytest.mark.asyncio
async def test_complete_requires_complete_config(settings, factory):
    center = _unconfigured(settings, factory)

    with pytest.raises(NotConfigured):
        await center.handshake.complete("code", "state")

    assert factory.latest.exchange_calls == []
