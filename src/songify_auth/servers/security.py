"""Response hardening headers.

A plain ASGI middleware that rewrites the ``http.response.start`` message of
every response, including CORS preflights and error pages.
"""

from __future__ import annotations

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

SERVER_HEADER = "Songify-API"
HSTS_VALUE = "max-age=31536000; includeSubDomains; preload"

_BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "connect-src 'self' https://api.spotify.com https://accounts.spotify.com"
    ),
}


class SecurityHeadersMiddleware:
    """Set defensive headers and replace the ``Server`` header.

    ``Strict-Transport-Security`` is only sent when *hsts* is true, i.e. in
    production behind TLS.
    """

    def __init__(self, app: ASGIApp, *, hsts: bool = False) -> None:
        self.app = app
        self.hsts = hsts

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in _BASE_HEADERS.items():
                    headers[name] = value
                headers["Server"] = SERVER_HEADER
                if "x-powered-by" in headers:
                    del headers["X-Powered-By"]
                if self.hsts:
                    headers["Strict-Transport-Security"] = HSTS_VALUE
            await send(message)

        await self.app(scope, receive, send_with_headers)
