"""SessionAuthService – the OAuth session state machine.

This service encapsulates the *business logic* of the browser login flow.
Handlers in ``songify_auth.servers.auth`` call the methods below and only
translate results into responses and cookies.

States::

    ANONYMOUS -> LOGIN_INITIATED -> CALLBACK_PENDING -> AUTHENTICATED
    AUTHENTICATED -> REFRESHING -> AUTHENTICATED | ANONYMOUS

The server keeps no session store: tokens live in the browser's httpOnly
cookies and the only shared mutable state is the :class:`ReplayGuard`.

Ordering inside a callback is strict: parameter validation, then the state
comparison, then the replay-guard claim, then the network exchange.  Nothing
is mutated before all pre-conditions pass.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Final
from urllib.parse import urlencode, urlparse

from songify_auth.oauth.errors import (
    AuthFlowError,
    ConfigurationError,
    ProfileFetchError,
    ProviderErrorKind,
    TokenExchangeError,
    TokenPayloadError,
)
from songify_auth.oauth.log_utils import AuditEvent, audit_event, get_auth_logger
from songify_auth.oauth.models import LoginRedirect, TokenPair
from songify_auth.oauth.nonce import STATE_LENGTH, generate_random_string
from songify_auth.oauth.provider import SpotifyOAuthClient
from songify_auth.oauth.replay_guard import ReplayGuard, default_guard
from songify_auth.oauth.validation import (
    sanitize_error_message,
    validate_auth_code,
    validate_state,
    validate_token,
)
from songify_auth.utils.environment import AuthSettings

_LOG = logging.getLogger("songify-auth.oauth.service")

AUTHORIZE_HOST: Final[str] = "accounts.spotify.com"


class Messages:
    """User-visible strings of the JSON envelope."""

    NOT_AUTHENTICATED = "Not authenticated"
    TOKEN_EXPIRED = "Token expired"
    STATE_MISMATCH = "State mismatch"
    MISSING_PARAMETERS = "Missing required parameters"
    BODY_TOO_LARGE = "Request body too large"
    CODE_ALREADY_USED = "Authorization code already used"
    NO_REFRESH_TOKEN = "No refresh token available"
    AUTH_FAILED = "Authentication failed"
    INVALID_GRANT = (
        "Authorization code is invalid or expired. Please try logging in again."
    )
    INVALID_CLIENT = (
        "Invalid client credentials. Please check your Spotify app configuration."
    )
    TOKEN_REFRESH_FAILED = "Failed to refresh token"
    INTERNAL_ERROR = "Internal server error"

    AUTH_SUCCESS = "Authentication successful"
    TOKEN_REFRESHED = "Token refreshed successfully"
    LOGOUT_SUCCESS = "Logged out successfully"


class SessionAuthService:
    """Application service orchestrating login, callback, refresh and logout."""

    def __init__(
        self,
        settings: AuthSettings,
        *,
        client: SpotifyOAuthClient | None = None,
        guard: ReplayGuard | None = None,
    ) -> None:
        self.settings = settings
        self.client = client or SpotifyOAuthClient(settings)
        self.guard = guard or default_guard()

    # ------------------------------------------------------------------ #
    # login                                                              #
    # ------------------------------------------------------------------ #
    def build_login(self, *, log: logging.LoggerAdapter | None = None) -> LoginRedirect:
        """Return the Spotify authorize URL and the state to pin in a cookie.

        Raises
        ------
        ConfigurationError
            If the configured authorize URL does not point at Spotify over
            https.  Such a URL is never handed to the browser.
        """
        log = log or get_auth_logger()
        state = generate_random_string(STATE_LENGTH)
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.settings.client_id,
                "scope": self.settings.scopes,
                "redirect_uri": self.settings.redirect_uri,
                "state": state,
                "show_dialog": "true",
            }
        )
        url = f"{self.settings.authorize_url}?{query}"

        parsed = urlparse(url)
        if parsed.scheme != "https" or parsed.hostname != AUTHORIZE_HOST:
            _LOG.error("Refusing to redirect to non-Spotify authorize host %r", parsed.hostname)
            raise ConfigurationError("authorize URL must target https://accounts.spotify.com")

        audit_event(log, AuditEvent.LOGIN_INITIATED, state=state, success=True)
        return LoginRedirect(url=url, state=state)

    # ------------------------------------------------------------------ #
    # callback                                                           #
    # ------------------------------------------------------------------ #
    def verify_callback(
        self,
        raw_code: Any,
        raw_state: Any,
        cookie_state: str | None,
        *,
        log: logging.LoggerAdapter | None = None,
    ) -> str:
        """Validate callback parameters against the pinned state; return the code.

        Raises
        ------
        AuthFlowError
            400 for missing/malformed parameters or a state mismatch.
        """
        log = log or get_auth_logger()
        code = validate_auth_code(raw_code)
        state = validate_state(raw_state)
        if code is None or state is None:
            audit_event(log, AuditEvent.MISSING_PARAMETERS, success=False)
            raise AuthFlowError(400, Messages.MISSING_PARAMETERS)

        expected = validate_state(cookie_state)
        if expected is None or not hmac.compare_digest(state, expected):
            audit_event(log, AuditEvent.STATE_MISMATCH, state=state, success=False)
            raise AuthFlowError(400, Messages.STATE_MISMATCH)
        return code

    async def complete_callback(
        self, code: str, *, log: logging.LoggerAdapter | None = None
    ) -> TokenPair:
        """Consume *code* exactly once and exchange it for tokens.

        The code is claimed in the replay guard *before* the provider is
        contacted and released again if the exchange fails.
        """
        log = log or get_auth_logger()
        if not self.guard.claim(code, self.settings.code_replay_ttl_ms):
            audit_event(log, AuditEvent.CODE_REUSE, code=code, success=False)
            raise AuthFlowError(400, Messages.CODE_ALREADY_USED)

        try:
            tokens = await self.client.exchange_code(code, self.settings.redirect_uri)
        except TokenExchangeError as exc:
            self.guard.remove(code)
            audit_event(
                log, AuditEvent.EXCHANGE_FAILURE, code=code, success=False, error=exc.kind.value
            )
            raise _exchange_failure(exc) from None
        except TokenPayloadError as exc:
            self.guard.remove(code)
            audit_event(log, AuditEvent.EXCHANGE_FAILURE, code=code, success=False, error=str(exc))
            raise AuthFlowError(
                500, Messages.AUTH_FAILED, details=sanitize_error_message(str(exc))
            ) from None
        except BaseException:
            self.guard.remove(code)
            raise

        audit_event(
            log, AuditEvent.EXCHANGE_SUCCESS, code=code, token=tokens.access_token, success=True
        )
        return tokens

    # ------------------------------------------------------------------ #
    # authenticated reads                                                #
    # ------------------------------------------------------------------ #
    def resolve_access_token(
        self, cookie_value: str | None, *, log: logging.LoggerAdapter | None = None
    ) -> str:
        """Return the access-token cookie value or raise 401."""
        token = validate_token(cookie_value)
        if token is None:
            audit_event(log or get_auth_logger(), AuditEvent.NOT_AUTHENTICATED, success=False)
            raise AuthFlowError(401, Messages.NOT_AUTHENTICATED)
        return token

    async def fetch_current_user(
        self, cookie_value: str | None, *, log: logging.LoggerAdapter | None = None
    ) -> dict[str, Any]:
        """Return the Spotify profile of the cookie's owner.

        A 401 from Spotify means the access token is stale; the caller gets
        ``refresh_needed: true`` so it knows to call ``/refresh``.
        """
        log = log or get_auth_logger()
        token = self.resolve_access_token(cookie_value, log=log)
        try:
            return await self.client.fetch_profile(token)
        except ProfileFetchError as exc:
            if exc.status_code == 401:
                audit_event(log, AuditEvent.TOKEN_EXPIRED, token=token, success=False)
                raise AuthFlowError(
                    401, Messages.TOKEN_EXPIRED, extra={"refresh_needed": True}
                ) from None
            _LOG.warning("Profile lookup failed status=%s", exc.status_code)
            raise AuthFlowError(500, Messages.INTERNAL_ERROR) from None

    # ------------------------------------------------------------------ #
    # refresh / logout                                                   #
    # ------------------------------------------------------------------ #
    async def refresh_session(
        self, cookie_value: str | None, *, log: logging.LoggerAdapter | None = None
    ) -> TokenPair:
        """Rotate tokens using the refresh-token cookie.

        Failure leaves the caller's cookies untouched; the existing access
        token stays usable until its own cookie expires.
        """
        log = log or get_auth_logger()
        refresh_token = validate_token(cookie_value)
        if refresh_token is None:
            audit_event(log, AuditEvent.NOT_AUTHENTICATED, success=False)
            raise AuthFlowError(401, Messages.NO_REFRESH_TOKEN)

        try:
            tokens = await self.client.refresh(refresh_token)
        except (TokenExchangeError, TokenPayloadError) as exc:
            audit_event(
                log,
                AuditEvent.REFRESH_FAILURE,
                token=refresh_token,
                success=False,
                error=exc.kind.value if isinstance(exc, TokenExchangeError) else str(exc),
            )
            raise AuthFlowError(500, Messages.TOKEN_REFRESH_FAILED) from None

        audit_event(log, AuditEvent.REFRESH_SUCCESS, token=tokens.access_token, success=True)
        return tokens

    def logout(self, *, log: logging.LoggerAdapter | None = None) -> None:
        audit_event(log or get_auth_logger(), AuditEvent.LOGOUT, success=True)


def _exchange_failure(exc: TokenExchangeError) -> AuthFlowError:
    """Translate a classified token-endpoint failure into the callback response."""
    details = sanitize_error_message(exc.description) if exc.description else None
    if exc.kind is ProviderErrorKind.INVALID_GRANT:
        return AuthFlowError(400, Messages.INVALID_GRANT, details=details)
    if exc.kind is ProviderErrorKind.INVALID_CLIENT:
        return AuthFlowError(500, Messages.INVALID_CLIENT, details=details)
    return AuthFlowError(500, Messages.AUTH_FAILED, details=details)
