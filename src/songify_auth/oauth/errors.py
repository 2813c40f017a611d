"""Exception types raised by the OAuth session core.

Only lightweight, **data-carrying** exceptions live here so that the HTTP
layer can turn them into the JSON envelope ``{success: false, error,
details?}`` without inspecting provider payloads itself.
"""

from __future__ import annotations

import enum
from typing import Any, Mapping


class ProviderErrorKind(str, enum.Enum):
    """Classification of a failed call to the Spotify token endpoint."""

    INVALID_GRANT = "invalid_grant"
    INVALID_CLIENT = "invalid_client"
    TRANSPORT = "transport"
    OTHER = "other"


def classify_provider_error(payload: Any) -> ProviderErrorKind:
    """Map a decoded token-endpoint error body to a :class:`ProviderErrorKind`.

    This is the only place that looks at the provider's ``error`` field.
    """
    if not isinstance(payload, Mapping):
        return ProviderErrorKind.OTHER
    code = payload.get("error")
    if code == "invalid_grant":
        return ProviderErrorKind.INVALID_GRANT
    if code == "invalid_client":
        return ProviderErrorKind.INVALID_CLIENT
    return ProviderErrorKind.OTHER


class ConfigurationError(RuntimeError):
    """Raised when the server is configured in a way that must never serve traffic."""


class TokenPayloadError(ValueError):
    """Raised when a token response does not have the expected shape."""


class TokenExchangeError(RuntimeError):
    """Raised when the token endpoint rejects a grant or cannot be reached."""

    def __init__(self, kind: ProviderErrorKind, description: str | None = None) -> None:
        super().__init__(description or f"token request failed ({kind.value})")
        self.kind: ProviderErrorKind = kind
        self.description: str | None = description


class ProfileFetchError(RuntimeError):
    """Raised when ``GET /me`` fails; ``status_code`` is ``None`` for transport errors."""

    def __init__(self, status_code: int | None = None) -> None:
        super().__init__(f"profile request failed (status={status_code})")
        self.status_code: int | None = status_code


class AuthFlowError(Exception):
    """A failed session transition, already mapped to an HTTP status.

    ``error`` and ``details`` are user-visible and must only contain
    sanitized, bounded strings.
    """

    def __init__(
        self,
        status_code: int,
        error: str,
        *,
        details: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(error)
        self.status_code: int = status_code
        self.error: str = error
        self.details: str | None = details
        self.extra: dict[str, Any] = dict(extra or {})

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable payload **without secrets**."""
        payload: dict[str, Any] = {"success": False, "error": self.error}
        if self.details:
            payload["details"] = self.details
        payload.update(self.extra)
        return payload
