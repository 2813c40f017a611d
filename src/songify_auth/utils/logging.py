"""Logging helpers shared by the HTTP layer and the OAuth core."""

from __future__ import annotations

import logging
import re
import sys
from typing import Any, Final

_LOG_UNSAFE_RE: Final = re.compile(r"[\x00-\x1f\x7f-\x9f\u2028\u2029]")
_LOG_MAX_LEN: Final[int] = 500

DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s %(message)s"


def mask_sensitive(value: str | None, keep_chars: int = 4) -> str:
    """Return *value* with everything after the first *keep_chars* characters masked.

    >>> mask_sensitive("ABCDEFGHIJ")
    'ABCD****'
    """
    if not value:
        return "-"
    if len(value) <= keep_chars:
        return "*" * len(value)
    return f"{value[:keep_chars]}****"


def encode_for_log(value: Any) -> str:
    """Escape control characters so user input cannot forge log lines."""
    text = str(value)[:_LOG_MAX_LEN]
    text = text.replace("\\", "\\\\")
    return _LOG_UNSAFE_RE.sub(lambda m: f"\\x{ord(m.group()):02x}", text)


def setup_logging(level: int | str = logging.INFO, stream: Any = None) -> logging.Logger:
    """Configure the ``songify-auth`` logger hierarchy and return its root."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root_logger.addHandler(handler)

    app_logger = logging.getLogger("songify-auth")
    app_logger.setLevel(level)
    return app_logger
