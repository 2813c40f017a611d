"""OAuth session core package.

This namespace hosts the **HTTP-agnostic** building blocks of the Spotify
Authorization Code flow used by the browser SPA.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
nonce
    CSPRNG ``state`` generation.
replay_guard
    Single-use tracking of authorization codes.
validation
    Whitelisting and bounds checks for every external input.
provider
    Async client for the Spotify token and profile endpoints.
cookies
    Cookie names and attribute sets.
service
    The session state machine (login, callback, refresh, logout).
errors
    Exception types used by the OAuth core.
log_utils
    Audit logging helpers (thin wrapper around :pymod:`logging`).

The leaf modules are re-exported here for convenience; ``provider`` and
``service`` depend on the settings object and are imported directly.
"""

from __future__ import annotations

from .clock import Clock, monotonic_clock  # noqa: F401
from .nonce import generate_random_string  # noqa: F401
from .replay_guard import MemoryReplayGuard, ReplayGuard, default_guard  # noqa: F401
from .models import LoginRedirect, TokenPair  # noqa: F401
from .errors import (  # noqa: F401
    AuthFlowError,
    ConfigurationError,
    ProviderErrorKind,
    TokenExchangeError,
    classify_provider_error,
)
from .log_utils import get_auth_logger  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "monotonic_clock",
    # nonce
    "generate_random_string",
    # replay guard
    "ReplayGuard",
    "MemoryReplayGuard",
    "default_guard",
    # models
    "LoginRedirect",
    "TokenPair",
    # errors
    "AuthFlowError",
    "ConfigurationError",
    "ProviderErrorKind",
    "TokenExchangeError",
    "classify_provider_error",
    # logging helpers
    "get_auth_logger",
]
