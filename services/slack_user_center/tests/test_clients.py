from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest
import respx

from services.slack_user_center.app.clients import SlackDirectoryClient
from services.slack_user_center.app.config import UserCenterConfig
from services.slack_user_center.app.errors import ProviderRejected, TransportError

API = "https://slack.com/api"


def _config() -> UserCenterConfig:
    return UserCenterConfig(
        client_id="client-1",
        client_secret="secret-1",
        redirect_uri="https://answers.example.com/callback",
    )


@pytest.mark.asyncio
@respx.mock
async def test_exchange_code_returns_identity_and_stores_token():
    route = respx.post(f"{API}/oauth.v2.access").mock(
        return_value=httpx.Response(
            200,
            json={
                "ok": True,
                "access_token": "xoxp-new",
                "authed_user": {
                    "id": "U12345",
                    "name": "alice",
                    "email": "alice@example.com",
                    "image_192": "https://avatars.example.com/alice.png",
                },
            },
        )
    )
    client = SlackDirectoryClient(_config(), base_url=API, access_token="xoxb-bot")

    identity = await client.exchange_code("the-code")
    await client.aclose()

    assert identity.id == "U12345"
    assert identity.avatar == "https://avatars.example.com/alice.png"
    assert identity.is_available is True
    assert client.access_token == "xoxp-new"
    form = parse_qs(route.calls.last.request.content.decode())
    assert form["code"] == ["the-code"]
    assert form["client_id"] == ["client-1"]
    assert form["redirect_uri"] == ["https://answers.example.com/callback"]
    assert "authorization" not in route.calls.last.request.headers


@pytest.mark.asyncio
@respx.mock
async def test_exchange_code_rejected_by_slack():
    respx.post(f"{API}/oauth.v2.access").mock(
        return_value=httpx.Response(200, json={"ok": False, "error": "invalid_code"})
    )
    client = SlackDirectoryClient(_config(), base_url=API, access_token="xoxb-bot")

    with pytest.raises(ProviderRejected) as excinfo:
        await client.exchange_code("bad")
    await client.aclose()

    assert excinfo.value.error == "invalid_code"
    assert client.access_token == "xoxb-bot"


@pytest.mark.asyncio
@respx.mock
async def test_list_users_uses_bearer_token_and_lifts_profile_email():
    route = respx.get(f"{API}/users.list").mock(
        return_value=httpx.Response(
            200,
            json={
                "ok": True,
                "members": [
                    {"id": "U1", "name": "alice", "profile": {"email": "alice@example.com"}},
                    {"id": "U2", "name": "bob", "deleted": True, "profile": {}},
                ],
            },
        )
    )
    client = SlackDirectoryClient(_config(), base_url=API, access_token="xoxb-bot")

    users = await client.list_users()
    await client.aclose()

    assert [user.id for user in users] == ["U1", "U2"]
    assert users[0].email == "alice@example.com"
    assert users[1].deleted is True
    assert route.calls.last.request.headers["authorization"] == "Bearer xoxb-bot"


@pytest.mark.asyncio
@respx.mock
async def test_get_user_detail_passes_user_id():
    route = respx.get(f"{API}/users.info").mock(
        return_value=httpx.Response(200, json={"ok": True, "user": {"id": "U9", "name": "zed"}})
    )
    client = SlackDirectoryClient(_config(), base_url=API)

    user = await client.get_user_detail("U9")
    await client.aclose()

    assert user.name == "zed"
    assert route.calls.last.request.url.params["user"] == "U9"


@pytest.mark.asyncio
@respx.mock
async def test_send_message_posts_channel_and_text():
    route = respx.post(f"{API}/chat.postMessage").mock(
        return_value=httpx.Response(200, json={"ok": True})
    )
    client = SlackDirectoryClient(_config(), base_url=API, access_token="xoxb-bot")

    await client.send_message("U1", "hello")
    await client.aclose()

    assert json.loads(route.calls.last.request.content) == {"channel": "U1", "text": "hello"}


@pytest.mark.asyncio
@respx.mock
async def test_network_failure_is_a_transport_error():
    respx.get(f"{API}/users.list").mock(side_effect=httpx.ConnectError("unreachable"))
    client = SlackDirectoryClient(_config(), base_url=API)

    with pytest.raises(TransportError):
        await client.list_users()
    await client.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_non_json_body_is_a_transport_error():
    respx.get(f"{API}/users.list").mock(return_value=httpx.Response(502, text="Bad gateway"))
    client = SlackDirectoryClient(_config(), base_url=API)

    with pytest.raises(TransportError):
        await client.list_users()
    await client.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_error_status_without_error_field():
    respx.get(f"{API}/users.info").mock(return_value=httpx.Response(429, json={"ok": False}))
    client = SlackDirectoryClient(_config(), base_url=API)

    with pytest.raises(ProviderRejected) as excinfo:
        await client.get_user_detail("U1")
    await client.aclose()

    assert excinfo.value.error == "http_429"
