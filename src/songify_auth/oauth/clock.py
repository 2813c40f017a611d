"""Injectable time source for the OAuth session core.

Anything in :mod:`songify_auth` that depends on "now" (replay-guard expiry,
health uptime) takes a ``Clock`` so tests can freeze or advance time without
sleeping.

Example
-------
>>> from songify_auth.oauth.clock import monotonic_clock
>>> isinstance(monotonic_clock(), float)
True
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable protocol returning a timestamp in *seconds*."""

    def __call__(self) -> float: ...


def monotonic_clock() -> float:
    """Monotonic seconds; used for TTL bookkeeping that must survive wall-clock jumps."""
    return time.monotonic()
