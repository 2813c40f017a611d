"""Random ``state`` values for the authorization redirect.

The state round-trips through Spotify and is compared against the copy kept
in the ``spotify_auth_state`` cookie.  Values are drawn from a fixed
62-character alphabet with :mod:`secrets`, never from :mod:`random`.

This module performs **no logging** of generated values.
"""

from __future__ import annotations

import secrets
import string
from typing import Final

STATE_LENGTH: Final[int] = 16
ALPHABET: Final[str] = string.ascii_uppercase + string.ascii_lowercase + string.digits


def generate_random_string(length: int = STATE_LENGTH) -> str:
    """Return a cryptographically secure alphanumeric string.

    Parameters
    ----------
    length:
        Number of characters (default 16).

    Returns
    -------
    str
        ``length`` characters drawn uniformly from :data:`ALPHABET`.
    """
    if length < 1:
        raise ValueError("random string length must be positive")
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
