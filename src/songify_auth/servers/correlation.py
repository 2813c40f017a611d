"""Correlation ID middleware for request tracing.

Reuses an incoming ``X-Correlation-ID`` header when it is a short token,
otherwise generates a random UUID4 hex string.  The id is exposed as
``request.state.correlation_id`` (picked up by the audit logger) and echoed
in the response headers.
"""

from __future__ import annotations

import logging
import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_HEADER_NAME = "X-Correlation-ID"
_VALID_ID = re.compile(r"[A-Za-z0-9-]{1,64}")
_logger = logging.getLogger("songify-auth.correlation")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that attaches a per-request correlation ID."""

    def __init__(self, app, header_name: str = _HEADER_NAME) -> None:  # type: ignore[override]  # noqa: ANN001
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]  # noqa: ANN001
        incoming = request.headers.get(self.header_name) or ""
        # client-supplied ids end up in logs, so only accept plain tokens
        correlation_id = incoming if _VALID_ID.fullmatch(incoming) else uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        _logger.debug(
            "%s %s", request.method, request.url.path, extra={"correlation_id": correlation_id}
        )
        response = await call_next(request)
        response.headers[self.header_name] = correlation_id
        return response
