"""End-to-end session scenarios: browser -> app -> stubbed Spotify.

All provider calls go through ``httpx.MockTransport`` so these run in CI.
"""

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from fakes import FakeSpotify, cookie_header, parse_set_cookies
from songify_auth.oauth.cookies import (
    ACCESS_TOKEN_COOKIE,
    AUTH_STATE_COOKIE,
    REFRESH_TOKEN_COOKIE,
)

pytestmark = [pytest.mark.integration, pytest.mark.ci_safe, pytest.mark.anyio]


async def _login(client: httpx.AsyncClient) -> str:
    """Start a login and return the state, checking URL and cookie agree."""
    resp = await client.get("/auth/login")
    assert resp.status_code == 302
    url_state = parse_qs(urlparse(resp.headers["location"]).query)["state"][0]
    cookie_state = parse_set_cookies(resp)[AUTH_STATE_COOKIE]["value"]
    assert url_state == cookie_state
    return cookie_state


async def _callback(client: httpx.AsyncClient, code: str, state: str, cookie_state: str):
    return await client.post(
        "/auth/callback",
        json={"code": code, "state": state},
        headers=cookie_header(**{AUTH_STATE_COOKIE: cookie_state}),
    )


# --------------------------------------------------------------------------- #
# scenarios                                                                   #
# --------------------------------------------------------------------------- #
async def test_login_callback_then_replay(
    client: httpx.AsyncClient, fake_spotify: FakeSpotify
) -> None:
    state = await _login(client)

    # scenario 1: happy path
    resp = await _callback(client, "ABC123", state, state)
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "message": "Authentication successful",
        "expires_in": 3600,
    }
    access = parse_set_cookies(resp)[ACCESS_TOKEN_COOKIE]
    assert access["max-age"] == str(3_600_000 // 1000)
    assert access["httponly"] is True

    # scenario 2: the same code again
    resp = await _callback(client, "ABC123", state, state)
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Authorization code already used"}
    assert len(fake_spotify.token_requests) == 1


async def test_wrong_state_never_exchanges(
    client: httpx.AsyncClient, fake_spotify: FakeSpotify
) -> None:
    state = await _login(client)

    resp = await _callback(client, "ABC123", "WRONG", state)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "State mismatch"}
    assert fake_spotify.token_requests == []


async def test_refresh_with_invalid_token_keeps_cookies(
    client: httpx.AsyncClient, fake_spotify: FakeSpotify
) -> None:
    fake_spotify.token_status = 400
    fake_spotify.token_body = {"error": "invalid_grant", "error_description": "Refresh token revoked"}

    resp = await client.post(
        "/auth/refresh",
        headers=cookie_header(
            **{ACCESS_TOKEN_COOKIE: "acc_old", REFRESH_TOKEN_COOKIE: "ref_revoked"}
        ),
    )

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Failed to refresh token"}
    assert "set-cookie" not in resp.headers


async def test_concurrent_callbacks_exchange_once(
    client: httpx.AsyncClient, fake_spotify: FakeSpotify
) -> None:
    fake_spotify.token_delay = 0.05
    state = await _login(client)

    first, second = await asyncio.gather(
        _callback(client, "RACE123", state, state),
        _callback(client, "RACE123", state, state),
    )

    assert sorted([first.status_code, second.status_code]) == [200, 400]
    loser = first if first.status_code == 400 else second
    assert loser.json()["error"] == "Authorization code already used"
    assert len(fake_spotify.token_requests) == 1


async def test_failed_exchange_can_be_retried(
    client: httpx.AsyncClient, fake_spotify: FakeSpotify
) -> None:
    fake_spotify.token_responses.append(
        httpx.Response(500, json={"error": "server_error"})
    )
    state = await _login(client)

    resp = await _callback(client, "RETRY123", state, state)
    assert resp.status_code == 500
    assert resp.json()["error"] == "Authentication failed"

    resp = await _callback(client, "RETRY123", state, state)
    assert resp.status_code == 200
    assert len(fake_spotify.token_requests) == 2


async def test_out_of_range_expiry_sets_no_cookie(
    client: httpx.AsyncClient, fake_spotify: FakeSpotify
) -> None:
    fake_spotify.token_body = {"access_token": "acc_1", "expires_in": 31_536_001}
    state = await _login(client)

    resp = await _callback(client, "ABC123", state, state)

    assert resp.status_code == 500
    assert ACCESS_TOKEN_COOKIE not in parse_set_cookies(resp)


async def test_me_and_refresh_without_cookies_skip_provider(
    client: httpx.AsyncClient, fake_spotify: FakeSpotify
) -> None:
    assert (await client.get("/auth/me")).status_code == 401
    assert (await client.post("/auth/refresh")).status_code == 401
    assert fake_spotify.profile_auth_headers == []
    assert fake_spotify.token_requests == []


async def test_full_session_lifecycle(
    client: httpx.AsyncClient, fake_spotify: FakeSpotify
) -> None:
    state = await _login(client)
    resp = await _callback(client, "LIFE123", state, state)
    cookies = parse_set_cookies(resp)
    access = cookies[ACCESS_TOKEN_COOKIE]["value"]
    refresh = cookies[REFRESH_TOKEN_COOKIE]["value"]

    me = await client.get("/auth/me", headers=cookie_header(**{ACCESS_TOKEN_COOKIE: access}))
    assert me.json()["user"]["id"] == "user-1"

    fake_spotify.profile_status = 401
    me = await client.get("/auth/me", headers=cookie_header(**{ACCESS_TOKEN_COOKIE: access}))
    assert me.status_code == 401
    assert me.json()["refresh_needed"] is True

    fake_spotify.profile_status = 200
    fake_spotify.token_body = {"access_token": "acc_rotated", "expires_in": 3600}
    refreshed = await client.post(
        "/auth/refresh", headers=cookie_header(**{REFRESH_TOKEN_COOKIE: refresh})
    )
    assert parse_set_cookies(refreshed)[ACCESS_TOKEN_COOKIE]["value"] == "acc_rotated"

    out = await client.post("/auth/logout")
    cleared = parse_set_cookies(out)
    assert cleared[ACCESS_TOKEN_COOKIE]["value"] == ""
    assert cleared[REFRESH_TOKEN_COOKIE]["value"] == ""
