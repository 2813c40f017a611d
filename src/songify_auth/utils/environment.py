"""Environment-driven configuration for the auth backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Final, Mapping, Tuple

from songify_auth.oauth.errors import ConfigurationError
from songify_auth.oauth.replay_guard import CODE_REPLAY_TTL_MS

logger = logging.getLogger("songify-auth.utils.environment")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")

SPOTIFY_AUTHORIZE_URL: Final[str] = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL: Final[str] = "https://accounts.spotify.com/api/token"
SPOTIFY_API_BASE_URL: Final[str] = "https://api.spotify.com/v1"
SPOTIFY_SCOPES: Final[str] = (
    "user-read-private user-read-email streaming user-read-playback-state "
    "user-modify-playback-state playlist-read-private playlist-read-collaborative "
    "user-library-read user-top-read playlist-modify-public playlist-modify-private"
)

DEFAULT_FRONTEND_URL: Final[str] = "http://localhost:5173"
DEV_ORIGINS: Final[Tuple[str, ...]] = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)

STATE_COOKIE_TTL_MS: Final[int] = 5 * 60 * 1000
REFRESH_COOKIE_TTL_MS: Final[int] = 30 * 24 * 60 * 60 * 1000
HTTP_TIMEOUT_SECONDS: Final[float] = 10.0


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _int_env(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer") from None


@dataclass(frozen=True)
class AuthSettings:
    """Immutable snapshot of the settings the auth backend runs with.

    ``client_secret`` is excluded from ``repr`` so the settings object can be
    logged safely.
    """

    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    frontend_url: str = DEFAULT_FRONTEND_URL
    environment: str = "development"
    host: str = "127.0.0.1"
    port: int = 3000
    scopes: str = SPOTIFY_SCOPES
    authorize_url: str = SPOTIFY_AUTHORIZE_URL
    token_url: str = SPOTIFY_TOKEN_URL
    api_base_url: str = SPOTIFY_API_BASE_URL
    http_timeout: float = HTTP_TIMEOUT_SECONDS
    state_cookie_ttl_ms: int = STATE_COOKIE_TTL_MS
    code_replay_ttl_ms: int = CODE_REPLAY_TTL_MS
    refresh_cookie_ttl_ms: int = REFRESH_COOKIE_TTL_MS
    mount_at_root: bool = False
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def redirect_uri(self) -> str:
        """Callback URL registered with Spotify; served by the SPA."""
        return f"{self.frontend_url.rstrip('/')}/callback"

    @property
    def is_provider_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def cors_origins(self) -> list[str]:
        """Allowed browser origins; production only trusts ``frontend_url``."""
        origins = [self.frontend_url.rstrip("/")]
        if not self.is_production:
            origins.extend(o for o in DEV_ORIGINS if o not in origins)
        return origins

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "AuthSettings":
        """Build settings from *env* (defaults to :data:`os.environ`)."""
        env = os.environ if env is None else env
        return cls(
            client_id=env.get("SPOTIFY_CLIENT_ID", "").strip(),
            client_secret=env.get("SPOTIFY_CLIENT_SECRET", "").strip(),
            frontend_url=env.get("FRONTEND_URL", DEFAULT_FRONTEND_URL).strip()
            or DEFAULT_FRONTEND_URL,
            environment=env.get("APP_ENV", "development").strip() or "development",
            host=env.get("HOST", "127.0.0.1"),
            port=_int_env(env, "PORT", 3000),
            scopes=env.get("SPOTIFY_SCOPES", SPOTIFY_SCOPES),
            authorize_url=env.get("SPOTIFY_AUTHORIZE_URL", SPOTIFY_AUTHORIZE_URL),
            token_url=env.get("SPOTIFY_TOKEN_URL", SPOTIFY_TOKEN_URL),
            api_base_url=env.get("SPOTIFY_API_BASE_URL", SPOTIFY_API_BASE_URL).rstrip("/"),
            mount_at_root=_truthy(env.get("AUTH_MOUNT_ROOT")),
            log_level=env.get("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """Refuse to start in production without provider credentials.

        Outside production a missing client id/secret only logs a warning so
        the health endpoints remain usable during local development.
        """
        missing = [
            name
            for name, value in (
                ("SPOTIFY_CLIENT_ID", self.client_id),
                ("SPOTIFY_CLIENT_SECRET", self.client_secret),
            )
            if not value
        ]
        if not missing:
            return
        if self.is_production:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        logger.warning(
            "Spotify OAuth is not configured (missing %s); login will fail.",
            ", ".join(missing),
        )
