"""Single-use enforcement for authorization codes.

A code is *claimed* before it is sent to the token endpoint so that a slow
provider response cannot be used to replay the same code from a second,
concurrent callback.  Claimed codes expire after a fixed delay (5 minutes by
default) to bound memory; a code whose exchange failed is removed right away
so the user can retry it.

The design follows these goals:

* **Atomicity** – :meth:`ReplayGuard.claim` is an insert-if-absent under a
  lock; of two racing callers exactly one wins.
* **Bounded memory** – entries live in a :class:`cachetools.TLRUCache` with a
  per-entry expiry.  Expired entries are dropped lazily on access, so there is
  no timer per code.
* **Replaceable** – the :class:`ReplayGuard` protocol is the seam for a
  shared store in multi-instance deployments.
"""

from __future__ import annotations

import logging
import threading
from typing import Final, Protocol, runtime_checkable

from cachetools import TLRUCache

from songify_auth.oauth.clock import Clock, monotonic_clock

_LOG = logging.getLogger("songify-auth.oauth.replay_guard")

CODE_REPLAY_TTL_MS: Final[int] = 5 * 60 * 1000
DEFAULT_CAPACITY: Final[int] = 65_536


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class ReplayGuard(Protocol):
    """Minimal contract for tracking consumed authorization codes."""

    def is_used(self, code: str) -> bool: ...
    def mark_used(self, code: str, ttl_ms: int = CODE_REPLAY_TTL_MS) -> None: ...
    def claim(self, code: str, ttl_ms: int = CODE_REPLAY_TTL_MS) -> bool: ...
    def remove(self, code: str) -> None: ...
    def count(self) -> int: ...


# --------------------------------------------------------------------------- #
# in-memory implementation                                                    #
# --------------------------------------------------------------------------- #


def _time_to_use(_code: str, ttl_seconds: float, now: float) -> float:
    return now + ttl_seconds


class MemoryReplayGuard(ReplayGuard):
    """Process-local :class:`ReplayGuard` backed by a TLRU cache.

    Parameters
    ----------
    capacity:
        Upper bound on tracked codes.  When full, the least recently used
        entry is evicted first (after expired ones).
    clock:
        Time source in seconds; must be monotonic in production.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, clock: Clock = monotonic_clock) -> None:
        self._lock = threading.Lock()
        self._codes: TLRUCache[str, float] = TLRUCache(
            maxsize=capacity, ttu=_time_to_use, timer=clock
        )

    def is_used(self, code: str) -> bool:
        with self._lock:
            return code in self._codes

    def mark_used(self, code: str, ttl_ms: int = CODE_REPLAY_TTL_MS) -> None:
        """Insert *code*; calling it again re-schedules the expiry."""
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        with self._lock:
            self._codes[code] = ttl_ms / 1000.0

    def claim(self, code: str, ttl_ms: int = CODE_REPLAY_TTL_MS) -> bool:
        """Atomically mark *code* as used; return ``False`` if it already was."""
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        with self._lock:
            if code in self._codes:
                return False
            self._codes[code] = ttl_ms / 1000.0
            return True

    def remove(self, code: str) -> None:
        with self._lock:
            self._codes.pop(code, None)

    def count(self) -> int:
        """Number of live (unexpired) codes; diagnostics only."""
        with self._lock:
            self._codes.expire()
            return len(self._codes)

    def clear(self) -> None:
        with self._lock:
            self._codes.clear()
        _LOG.debug("Replay guard cleared")


# --------------------------------------------------------------------------- #
# Convenience – default singleton                                             #
# --------------------------------------------------------------------------- #

_default_guard: MemoryReplayGuard | None = None


def default_guard() -> MemoryReplayGuard:
    """Return the process-wide :class:`MemoryReplayGuard`."""
    global _default_guard  # noqa: PLW0603
    if _default_guard is None:
        _default_guard = MemoryReplayGuard()
    return _default_guard
