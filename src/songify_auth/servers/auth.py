"""Browser-facing session endpoints (login, callback, me, token, refresh, logout).

Handlers are intentionally thin:

1. Read query/body parameters and cookies.
2. Delegate the state machine to ``SessionAuthService``.
3. Apply cookies and return a JSON ``Response`` (or the login redirect).

Every handler is wrapped by :func:`_guarded`, which turns an
:class:`AuthFlowError` into its ``{success: false, ...}`` envelope and any
other exception into a generic 500.

SECURITY NOTE
-------------
• Token values only ever leave the server as httpOnly cookies, except for the
  explicit ``GET /token`` endpoint used by the browser playback SDK.
• Audit records carry the request's correlation id and client address; codes,
  states and tokens are masked by ``log_utils``.
"""

from __future__ import annotations

import functools
import json
import logging
from typing import Any, Awaitable, Callable

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from songify_auth.oauth.cookies import (
    ACCESS_TOKEN_COOKIE,
    AUTH_STATE_COOKIE,
    REFRESH_TOKEN_COOKIE,
    build_cookie_options,
    clear_cookie,
    set_cookie,
)
from songify_auth.oauth.errors import AuthFlowError
from songify_auth.oauth.log_utils import get_auth_logger
from songify_auth.oauth.models import TokenPair
from songify_auth.oauth.service import Messages, SessionAuthService

_LOG = logging.getLogger("songify-auth.auth.routes")

# code and state together are well under 1 KiB
CALLBACK_BODY_MAX_BYTES = 16 * 1024

Handler = Callable[[Request], Awaitable[Response]]


def _error_response(exc: AuthFlowError) -> JSONResponse:
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


def _guarded(handler: Handler) -> Handler:
    """Map handler failures onto the JSON error envelope."""

    @functools.wraps(handler)
    async def _wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except AuthFlowError as exc:
            return _error_response(exc)
        except Exception:  # broad: mapped to a generic 500
            _LOG.error(
                "Unhandled error on %s %s correlation_id=%s",
                request.method,
                request.url.path,
                getattr(request.state, "correlation_id", "-"),
                exc_info=True,
            )
            return JSONResponse(
                {"success": False, "error": Messages.INTERNAL_ERROR}, status_code=500
            )

    return _wrapper


def _request_logger(request: Request) -> logging.LoggerAdapter:
    return get_auth_logger(
        correlation_id=getattr(request.state, "correlation_id", None),
        client_ip=request.client.host if request.client else None,
    )


def _declared_too_large(content_length: str) -> bool:
    if not (content_length.isascii() and content_length.isdigit()):
        return False
    if len(content_length) > len(str(CALLBACK_BODY_MAX_BYTES)):
        return True
    return int(content_length) > CALLBACK_BODY_MAX_BYTES


async def _json_body(request: Request) -> dict[str, Any]:
    """Return the decoded JSON object body, or ``{}`` for anything else.

    Bodies over :data:`CALLBACK_BODY_MAX_BYTES` are refused with 413 without
    being buffered in full.
    """
    if _declared_too_large(request.headers.get("content-length", "")):
        raise AuthFlowError(413, Messages.BODY_TOO_LARGE)

    raw = bytearray()
    async for chunk in request.stream():
        raw.extend(chunk)
        if len(raw) > CALLBACK_BODY_MAX_BYTES:
            raise AuthFlowError(413, Messages.BODY_TOO_LARGE)
    try:
        body = json.loads(raw)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def register_auth_routes(
    app: Starlette, *, service: SessionAuthService, base_path: str = "/auth"
) -> None:
    """Attach the session endpoints to *app* under *base_path*.

    Passing ``base_path=""`` mounts the same handlers at the root.
    """
    settings = service.settings
    base_path = base_path.rstrip("/")

    def _cookie_opts(max_age_ms: int | None = None):
        return build_cookie_options(settings.is_production, max_age_ms)

    def _apply_tokens(response: Response, tokens: TokenPair) -> None:
        set_cookie(
            response,
            ACCESS_TOKEN_COOKIE,
            tokens.access_token,
            _cookie_opts(tokens.access_max_age_ms),
        )
        # Spotify does not always rotate the refresh token; keep the old cookie then
        if tokens.refresh_token:
            set_cookie(
                response,
                REFRESH_TOKEN_COOKIE,
                tokens.refresh_token,
                _cookie_opts(settings.refresh_cookie_ttl_ms),
            )

    # ----- GET /auth/login ------------------------------------------------ #
    @_guarded
    async def _login(request: Request) -> Response:
        login = service.build_login(log=_request_logger(request))
        response = RedirectResponse(login.url, status_code=302)
        set_cookie(
            response,
            AUTH_STATE_COOKIE,
            login.state,
            _cookie_opts(settings.state_cookie_ttl_ms),
        )
        return response

    # ----- POST /auth/callback -------------------------------------------- #
    @_guarded
    async def _callback(request: Request) -> Response:
        log = _request_logger(request)
        body = await _json_body(request)
        code = service.verify_callback(
            body.get("code"),
            body.get("state"),
            request.cookies.get(AUTH_STATE_COOKIE),
            log=log,
        )

        # the state has served its purpose once it matched
        try:
            tokens = await service.complete_callback(code, log=log)
        except AuthFlowError as exc:
            response = _error_response(exc)
            clear_cookie(response, AUTH_STATE_COOKIE, _cookie_opts())
            return response

        response = JSONResponse(
            {
                "success": True,
                "message": Messages.AUTH_SUCCESS,
                "expires_in": tokens.expires_in,
            }
        )
        clear_cookie(response, AUTH_STATE_COOKIE, _cookie_opts())
        _apply_tokens(response, tokens)
        return response

    # ----- GET /auth/me --------------------------------------------------- #
    @_guarded
    async def _me(request: Request) -> Response:
        user = await service.fetch_current_user(
            request.cookies.get(ACCESS_TOKEN_COOKIE), log=_request_logger(request)
        )
        return JSONResponse({"success": True, "user": user})

    # ----- GET /auth/token ------------------------------------------------ #
    @_guarded
    async def _token(request: Request) -> Response:
        token = service.resolve_access_token(
            request.cookies.get(ACCESS_TOKEN_COOKIE), log=_request_logger(request)
        )
        return JSONResponse({"success": True, "access_token": token})

    # ----- POST /auth/refresh --------------------------------------------- #
    @_guarded
    async def _refresh(request: Request) -> Response:
        tokens = await service.refresh_session(
            request.cookies.get(REFRESH_TOKEN_COOKIE), log=_request_logger(request)
        )
        response = JSONResponse({"success": True, "message": Messages.TOKEN_REFRESHED})
        _apply_tokens(response, tokens)
        return response

    # ----- POST /auth/logout ---------------------------------------------- #
    @_guarded
    async def _logout(request: Request) -> Response:
        service.logout(log=_request_logger(request))
        response = JSONResponse({"success": True, "message": Messages.LOGOUT_SUCCESS})
        clear_cookie(response, ACCESS_TOKEN_COOKIE, _cookie_opts())
        clear_cookie(response, REFRESH_TOKEN_COOKIE, _cookie_opts())
        return response

    app.add_route(f"{base_path}/login", _login, methods=["GET"])
    app.add_route(f"{base_path}/callback", _callback, methods=["POST"])
    app.add_route(f"{base_path}/me", _me, methods=["GET"])
    app.add_route(f"{base_path}/token", _token, methods=["GET"])
    app.add_route(f"{base_path}/refresh", _refresh, methods=["POST"])
    app.add_route(f"{base_path}/logout", _logout, methods=["POST"])
    _LOG.debug("Registered auth routes under %r", base_path or "/")
