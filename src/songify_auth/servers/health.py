"""Health, liveness and readiness endpoints.

Responses never include versions, memory figures or configuration values;
``uptime`` is rounded down to whole seconds.
"""

from __future__ import annotations

from datetime import datetime, timezone

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse

from songify_auth.oauth.clock import Clock, monotonic_clock
from songify_auth.utils.environment import AuthSettings


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def register_health_routes(
    app: Starlette,
    *,
    settings: AuthSettings,
    clock: Clock = monotonic_clock,
    base_path: str = "/health",
) -> None:
    """Attach ``/health``, ``/health/live`` and ``/health/ready`` to *app*."""
    started_at = clock()

    async def _health(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "OK",
                "timestamp": _timestamp(),
                "uptime": int(clock() - started_at),
            }
        )

    async def _live(request: Request) -> JSONResponse:
        return JSONResponse({"status": "alive", "timestamp": _timestamp()})

    async def _ready(request: Request) -> JSONResponse:
        if settings.is_provider_configured:
            return JSONResponse({"status": "ready", "timestamp": _timestamp()})
        return JSONResponse(
            {
                "status": "not_ready",
                "timestamp": _timestamp(),
                "reason": "Missing required configuration",
            },
            status_code=503,
        )

    app.add_route(base_path, _health, methods=["GET"])
    app.add_route(f"{base_path}/live", _live, methods=["GET"])
    app.add_route(f"{base_path}/ready", _ready, methods=["GET"])


__all__ = ["register_health_routes"]
