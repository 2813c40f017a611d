"""Unit tests for the Spotify token/profile client (``httpx.MockTransport``)."""

from __future__ import annotations

import base64

import httpx
import pytest

from fakes import ACCESS_TOKEN, PROFILE, REFRESH_TOKEN, FakeSpotify
from songify_auth.oauth.errors import (
    ProfileFetchError,
    ProviderErrorKind,
    TokenExchangeError,
    TokenPayloadError,
)
from songify_auth.oauth.provider import SpotifyOAuthClient

REDIRECT_URI = "http://localhost:5173/callback"


def _basic(client_id: str, secret: str) -> str:
    return "Basic " + base64.b64encode(f"{client_id}:{secret}".encode()).decode()


# --------------------------------------------------------------------------- #
# token endpoint                                                              #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_exchange_code_posts_form_with_basic_auth(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify
) -> None:
    tokens = await oauth_client.exchange_code("code_123", REDIRECT_URI)

    assert tokens.access_token == ACCESS_TOKEN
    assert tokens.refresh_token == REFRESH_TOKEN
    assert tokens.expires_in == 3600
    assert fake_spotify.token_requests == [
        {"grant_type": "authorization_code", "code": "code_123", "redirect_uri": REDIRECT_URI}
    ]
    assert fake_spotify.token_auth_headers == [
        _basic("test-client-id", "test-client-secret")
    ]


@pytest.mark.anyio
async def test_refresh_uses_refresh_grant(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify
) -> None:
    fake_spotify.token_body = {"access_token": "new_access", "expires_in": 1800}

    tokens = await oauth_client.refresh("old_refresh")

    assert tokens.access_token == "new_access"
    assert tokens.refresh_token is None
    assert fake_spotify.token_requests == [
        {"grant_type": "refresh_token", "refresh_token": "old_refresh"}
    ]


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("status", "body", "kind"),
    [
        (400, {"error": "invalid_grant", "error_description": "Invalid authorization code"},
         ProviderErrorKind.INVALID_GRANT),
        (401, {"error": "invalid_client", "error_description": "Invalid client"},
         ProviderErrorKind.INVALID_CLIENT),
        (400, {"error": "unsupported_grant_type"}, ProviderErrorKind.OTHER),
        (503, "Service Unavailable", ProviderErrorKind.OTHER),
    ],
)
async def test_error_bodies_are_classified(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify, status, body, kind
) -> None:
    fake_spotify.token_status = status
    fake_spotify.token_body = body

    with pytest.raises(TokenExchangeError) as excinfo:
        await oauth_client.exchange_code("code_123", REDIRECT_URI)

    assert excinfo.value.kind is kind
    assert excinfo.value.description


@pytest.mark.anyio
async def test_error_description_is_sanitized(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify
) -> None:
    fake_spotify.token_status = 400
    fake_spotify.token_body = {"error": "invalid_grant", "error_description": "<img src=x>"}

    with pytest.raises(TokenExchangeError) as excinfo:
        await oauth_client.exchange_code("code_123", REDIRECT_URI)

    assert "<" not in excinfo.value.description


@pytest.mark.anyio
@pytest.mark.parametrize(
    "error",
    [
        httpx.ReadTimeout("timed out"),
        httpx.ConnectError("connection refused"),
    ],
)
async def test_transport_failures(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify, error: Exception
) -> None:
    fake_spotify.token_error = error

    with pytest.raises(TokenExchangeError) as excinfo:
        await oauth_client.refresh("old_refresh")

    assert excinfo.value.kind is ProviderErrorKind.TRANSPORT


@pytest.mark.anyio
async def test_non_json_success_is_other(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify
) -> None:
    fake_spotify.token_responses.append(httpx.Response(200, text="<html>ok</html>"))

    with pytest.raises(TokenExchangeError) as excinfo:
        await oauth_client.exchange_code("code_123", REDIRECT_URI)

    assert excinfo.value.kind is ProviderErrorKind.OTHER


@pytest.mark.anyio
async def test_malformed_token_payload_rejected(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify
) -> None:
    fake_spotify.token_body = {"access_token": "ok", "expires_in": 10 ** 9}

    with pytest.raises(TokenPayloadError):
        await oauth_client.exchange_code("code_123", REDIRECT_URI)


@pytest.mark.anyio
async def test_secrets_are_not_logged(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify, caplog
) -> None:
    caplog.set_level("DEBUG", logger="songify-auth")
    fake_spotify.token_responses = [httpx.Response(400, json={"error": "invalid_grant"})]

    with pytest.raises(TokenExchangeError):
        await oauth_client.exchange_code("code_secret_123", REDIRECT_URI)
    tokens = await oauth_client.refresh("refresh_secret_456")

    assert tokens.access_token == ACCESS_TOKEN
    assert ACCESS_TOKEN not in caplog.text
    assert "code_secret_123" not in caplog.text
    assert "refresh_secret_456" not in caplog.text
    assert "test-client-secret" not in caplog.text


# --------------------------------------------------------------------------- #
# profile                                                                     #
# --------------------------------------------------------------------------- #
@pytest.mark.anyio
async def test_fetch_profile_sends_bearer(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify
) -> None:
    profile = await oauth_client.fetch_profile("acc_1")

    assert profile == PROFILE
    assert fake_spotify.profile_auth_headers == ["Bearer acc_1"]


@pytest.mark.anyio
async def test_fetch_profile_status_error(
    oauth_client: SpotifyOAuthClient, fake_spotify: FakeSpotify
) -> None:
    fake_spotify.profile_status = 401
    fake_spotify.profile_body = {"error": {"status": 401, "message": "The access token expired"}}

    with pytest.raises(ProfileFetchError) as excinfo:
        await oauth_client.fetch_profile("acc_1")

    assert excinfo.value.status_code == 401


@pytest.mark.anyio
async def test_aclose_resets_client(oauth_client: SpotifyOAuthClient) -> None:
    first = oauth_client.http
    await oauth_client.aclose()
    assert first.is_closed
    assert oauth_client.http is not first
    await oauth_client.aclose()


def test_default_timeout_is_ten_seconds(settings) -> None:
    client = SpotifyOAuthClient(settings)
    assert client.http.timeout.read == 10.0
