"""Cookie attributes for token material and the login ``state``.

Every cookie this service sets is ``HttpOnly`` and ``SameSite=Lax``; in
production it is also ``Secure``.  Lifetimes are expressed in milliseconds
here and converted to the seconds-based ``Max-Age`` attribute when applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

from starlette.responses import Response

ACCESS_TOKEN_COOKIE: Final[str] = "spotify_access_token"
REFRESH_TOKEN_COOKIE: Final[str] = "spotify_refresh_token"
AUTH_STATE_COOKIE: Final[str] = "spotify_auth_state"

COOKIE_PATH: Final[str] = "/"


@dataclass(frozen=True, slots=True)
class CookieOptions:
    """Attribute set applied to one ``Set-Cookie`` header."""

    secure: bool
    httponly: bool = True
    samesite: Literal["lax", "strict", "none"] = "lax"
    max_age_ms: int | None = None

    @property
    def max_age_seconds(self) -> int | None:
        if self.max_age_ms is None:
            return None
        return self.max_age_ms // 1000


def build_cookie_options(is_production: bool, max_age_ms: int | None = None) -> CookieOptions:
    """Return the cookie attributes for the current environment.

    Parameters
    ----------
    is_production:
        Sets the ``secure`` flag.
    max_age_ms:
        Cookie lifetime in milliseconds; ``None`` yields a session cookie.
    """
    return CookieOptions(secure=bool(is_production), max_age_ms=max_age_ms)


def set_cookie(response: Response, name: str, value: str, options: CookieOptions) -> None:
    response.set_cookie(
        name,
        value,
        max_age=options.max_age_seconds,
        path=COOKIE_PATH,
        secure=options.secure,
        httponly=options.httponly,
        samesite=options.samesite,
    )


def clear_cookie(response: Response, name: str, options: CookieOptions) -> None:
    # attributes must match the ones used when the cookie was set
    response.delete_cookie(
        name,
        path=COOKIE_PATH,
        secure=options.secure,
        httponly=options.httponly,
        samesite=options.samesite,
    )
