"""Typed, immutable records used by the OAuth session core."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Validated token material returned by the Spotify token endpoint.

    The server never stores a ``TokenPair``; it only lives long enough to be
    written into response cookies.
    """

    access_token: str = field(repr=False)
    expires_in: int
    refresh_token: str | None = field(default=None, repr=False)

    @property
    def access_max_age_ms(self) -> int:
        """Cookie lifetime for the access token, in milliseconds."""
        return self.expires_in * 1000


@dataclass(frozen=True, slots=True)
class LoginRedirect:
    """Result of starting a login: where to send the browser and the state to pin."""

    url: str
    state: str
