"""Shared fixtures: settings, a fake Spotify transport and an ASGI test client."""

from __future__ import annotations

import httpx
import pytest

from fakes import FakeSpotify
from songify_auth.oauth.provider import SpotifyOAuthClient
from songify_auth.oauth.replay_guard import MemoryReplayGuard
from songify_auth.servers.main import create_app
from songify_auth.utils.environment import AuthSettings

FRONTEND_URL = "http://localhost:5173"


# --------------------------------------------------------------------------- #
# integration selection                                                       #
# --------------------------------------------------------------------------- #
def pytest_addoption(parser):
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that are not marked ci_safe",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless requested; ``ci_safe`` ones always run."""
    if config.getoption("--integration", default=False):
        return
    skip_integration = pytest.mark.skip(reason="Need --integration option to run")
    for item in items:
        if "integration" in item.keywords and "ci_safe" not in item.keywords:
            item.add_marker(skip_integration)


# --------------------------------------------------------------------------- #
# fixtures                                                                    #
# --------------------------------------------------------------------------- #
@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings() -> AuthSettings:
    return AuthSettings(
        client_id="test-client-id",
        client_secret="test-client-secret",
        frontend_url=FRONTEND_URL,
    )


@pytest.fixture
def fake_spotify() -> FakeSpotify:
    return FakeSpotify()


@pytest.fixture
def guard() -> MemoryReplayGuard:
    return MemoryReplayGuard()


@pytest.fixture
def oauth_client(settings: AuthSettings, fake_spotify: FakeSpotify) -> SpotifyOAuthClient:
    return SpotifyOAuthClient(settings, transport=fake_spotify.transport)


@pytest.fixture
def app(settings, guard, oauth_client):
    return create_app(settings, guard=guard, client=oauth_client)


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the Starlette app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
