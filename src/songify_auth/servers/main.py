"""Starlette application factory for the Songify auth backend."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from songify_auth.oauth.provider import SpotifyOAuthClient
from songify_auth.oauth.replay_guard import ReplayGuard
from songify_auth.oauth.service import SessionAuthService
from songify_auth.utils.environment import AuthSettings

from .auth import register_auth_routes
from .correlation import CorrelationIdMiddleware
from .health import register_health_routes
from .security import SecurityHeadersMiddleware

logger = logging.getLogger("songify-auth.server.main")

AUTH_BASE_PATH = "/auth"

ENDPOINTS = {
    "health": "/health",
    "auth": {
        "login": "GET /auth/login",
        "callback": "POST /auth/callback",
        "me": "GET /auth/me",
        "token": "GET /auth/token",
        "refresh": "POST /auth/refresh",
        "logout": "POST /auth/logout",
    },
}


async def _root(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "success": True,
            "message": "Songify Backend API",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "endpoints": ENDPOINTS,
        }
    )


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(
            {
                "success": False,
                "error": "Endpoint not found",
                "path": request.url.path,
                "method": request.method,
            },
            status_code=404,
        )
    return JSONResponse(
        {"success": False, "error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def create_app(
    settings: AuthSettings | None = None,
    *,
    guard: ReplayGuard | None = None,
    client: SpotifyOAuthClient | None = None,
) -> Starlette:
    """Build the ASGI application.

    Parameters
    ----------
    settings:
        Defaults to :meth:`AuthSettings.from_env`.  Validated before any route
        is registered, so a production deployment without credentials fails
        here rather than on the first login.
    guard:
        Replay guard shared by all callbacks; the process-wide default when
        omitted.
    client:
        Provider client; tests inject one built on ``httpx.MockTransport``.
    """
    settings = settings or AuthSettings.from_env()
    settings.validate()

    service = SessionAuthService(
        settings,
        client=client or SpotifyOAuthClient(settings),
        guard=guard,
    )

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info(
            "Songify auth backend starting env=%s frontend=%s provider_configured=%s",
            settings.environment,
            settings.frontend_url,
            settings.is_provider_configured,
        )
        try:
            yield
        finally:
            await service.client.aclose()
            logger.info("Songify auth backend shutdown complete.")

    middleware = [
        Middleware(SecurityHeadersMiddleware, hsts=settings.is_production),
        Middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
            expose_headers=["X-Correlation-ID"],
        ),
        Middleware(CorrelationIdMiddleware),
    ]

    app = Starlette(
        middleware=middleware,
        exception_handlers={HTTPException: _http_error},
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.auth_service = service

    app.add_route("/", _root, methods=["GET"])
    register_health_routes(app, settings=settings)
    register_auth_routes(app, service=service, base_path=AUTH_BASE_PATH)
    if settings.mount_at_root:
        register_auth_routes(app, service=service, base_path="")
        logger.info("Auth routes also mounted at /")
    return app
