"""Whitelist validation for every externally supplied OAuth value.

Request parameters (``code``, ``state``), cookie values and the fields of
token-endpoint responses all pass through this module before they reach a
cookie, a log line or a response body.

Each validator coerces to ``str``, enforces a maximum length and a
restrictive character class.  Values that fail are **rejected**
(``None`` / :class:`TokenPayloadError`), never truncated.
"""

from __future__ import annotations

import re
from re import Pattern
from typing import Any, Final, Mapping

from songify_auth.oauth.errors import TokenPayloadError
from songify_auth.oauth.models import TokenPair

AUTH_CODE_MAX_LEN: Final[int] = 512
STATE_MAX_LEN: Final[int] = 128
TOKEN_MAX_LEN: Final[int] = 2048
ERROR_MESSAGE_MAX_LEN: Final[int] = 200
EXPIRES_IN_MIN: Final[int] = 1
EXPIRES_IN_MAX: Final[int] = 86_400 * 365
_EXPIRES_IN_MAX_DIGITS: Final[int] = len(str(EXPIRES_IN_MAX))

_URLSAFE_RE: Final[Pattern[str]] = re.compile(r"^[A-Za-z0-9_-]+$")
_ALNUM_RE: Final[Pattern[str]] = re.compile(r"^[A-Za-z0-9]+$")
_DIGITS_RE: Final[Pattern[str]] = re.compile(r"^[0-9]+$")
# control characters plus markup characters that could end up in a browser
_UNSAFE_TEXT_RE: Final[Pattern[str]] = re.compile(r"[\x00-\x1f\x7f-\x9f<>'\"&\u2028\u2029]")


def sanitize_string(raw: Any, *, max_length: int, pattern: Pattern[str]) -> str | None:
    """Return ``raw`` as a string if it is non-empty, short enough and matches *pattern*."""
    if raw is None or isinstance(raw, (bytes, bytearray)):
        return None
    value = str(raw)
    if not value or len(value) > max_length:
        return None
    if not pattern.fullmatch(value):
        return None
    return value


def validate_auth_code(raw: Any) -> str | None:
    """Authorization codes: alphanumeric plus ``-``/``_``, at most 512 chars."""
    return sanitize_string(raw, max_length=AUTH_CODE_MAX_LEN, pattern=_URLSAFE_RE)


def validate_state(raw: Any) -> str | None:
    """State values: alphanumeric only, at most 128 chars."""
    return sanitize_string(raw, max_length=STATE_MAX_LEN, pattern=_ALNUM_RE)


def validate_token(raw: Any) -> str | None:
    """Access / refresh tokens: base64url alphabet, at most 2048 chars."""
    return sanitize_string(raw, max_length=TOKEN_MAX_LEN, pattern=_URLSAFE_RE)


def validate_expires_in(raw: Any) -> int | None:
    """Return ``raw`` as an integer number of seconds in ``[1, 31536000]``.

    Booleans, non-integral floats and anything that is not a plain run of
    digits are rejected.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        if not raw.is_integer():
            return None
        value = int(raw)
    elif isinstance(raw, str):
        if len(raw) > _EXPIRES_IN_MAX_DIGITS or not _DIGITS_RE.fullmatch(raw):
            return None
        value = int(raw)
    else:
        return None
    if not EXPIRES_IN_MIN <= value <= EXPIRES_IN_MAX:
        return None
    return value


def validate_token_payload(raw: Any) -> TokenPair:
    """Validate a decoded token-endpoint response and return a :class:`TokenPair`.

    Raises
    ------
    TokenPayloadError
        If the payload is not a mapping, the access token is missing or
        malformed, a refresh token is present but malformed, or
        ``expires_in`` is out of range.
    """
    if not isinstance(raw, Mapping):
        raise TokenPayloadError("Invalid token data received")

    access_token = validate_token(raw.get("access_token"))
    if access_token is None:
        raise TokenPayloadError("Invalid access token received")

    refresh_token: str | None = None
    if raw.get("refresh_token"):
        refresh_token = validate_token(raw.get("refresh_token"))
        if refresh_token is None:
            raise TokenPayloadError("Invalid refresh token received")

    expires_in = validate_expires_in(raw.get("expires_in"))
    if expires_in is None:
        raise TokenPayloadError("Invalid expiration time received")

    return TokenPair(
        access_token=access_token,
        expires_in=expires_in,
        refresh_token=refresh_token,
    )


def sanitize_error_message(raw: Any, *, fallback: str = "An error occurred") -> str:
    """Return a bounded, markup-free version of *raw* for the ``details`` field."""
    if raw is None:
        return fallback
    cleaned = _UNSAFE_TEXT_RE.sub("", str(raw)).strip()
    if len(cleaned) > ERROR_MESSAGE_MAX_LEN:
        cleaned = cleaned[:ERROR_MESSAGE_MAX_LEN]
    return cleaned or fallback
