"""HTTP client for Spotify's accounts service and the ``/me`` profile endpoint.

All calls are made with one shared :class:`httpx.AsyncClient` and a bounded
timeout (10 s by default).  Timeouts and connection failures surface as
:class:`TokenExchangeError` with kind ``TRANSPORT``; error bodies from the
token endpoint are classified by
:func:`~songify_auth.oauth.errors.classify_provider_error`.

SECURITY NOTE
-------------
The client secret, authorization codes and tokens are never logged.  Only
the grant type, HTTP status and the provider's ``error`` code are.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from songify_auth.oauth.errors import (
    ProfileFetchError,
    ProviderErrorKind,
    TokenExchangeError,
    classify_provider_error,
)
from songify_auth.oauth.models import TokenPair
from songify_auth.oauth.validation import sanitize_error_message, validate_token_payload
from songify_auth.utils.environment import AuthSettings

_LOG = logging.getLogger("songify-auth.oauth.provider")

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"


class SpotifyOAuthClient:
    """Token-endpoint and profile client bound to one set of credentials."""

    def __init__(
        self,
        settings: AuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------ #
    # lifecycle                                                          #
    # ------------------------------------------------------------------ #
    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.http_timeout),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # token endpoint                                                     #
    # ------------------------------------------------------------------ #
    async def exchange_code(self, code: str, redirect_uri: str) -> TokenPair:
        """Exchange an authorization *code* for a validated :class:`TokenPair`."""
        return await self._token_request(
            {
                "grant_type": GRANT_AUTHORIZATION_CODE,
                "code": code,
                "redirect_uri": redirect_uri,
            }
        )

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Obtain a new access token (and possibly a rotated refresh token)."""
        return await self._token_request(
            {
                "grant_type": GRANT_REFRESH_TOKEN,
                "refresh_token": refresh_token,
            }
        )

    async def _token_request(self, form: dict[str, str]) -> TokenPair:
        grant_type = form["grant_type"]
        try:
            resp = await self.http.post(
                self.settings.token_url,
                data=form,
                auth=httpx.BasicAuth(self.settings.client_id, self.settings.client_secret),
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException:
            _LOG.warning("Token request timed out grant_type=%s", grant_type)
            raise TokenExchangeError(ProviderErrorKind.TRANSPORT, "Token request timed out") from None
        except httpx.HTTPError as exc:
            _LOG.warning(
                "Token request failed grant_type=%s error=%s", grant_type, type(exc).__name__
            )
            raise TokenExchangeError(ProviderErrorKind.TRANSPORT, "Token request failed") from None

        if resp.is_error:
            payload = _json_or_none(resp)
            kind = classify_provider_error(payload)
            description = None
            if isinstance(payload, dict):
                description = payload.get("error_description") or payload.get("error")
            _LOG.warning(
                "Token endpoint returned %s grant_type=%s kind=%s",
                resp.status_code,
                grant_type,
                kind.value,
            )
            raise TokenExchangeError(
                kind,
                sanitize_error_message(description, fallback=f"HTTP {resp.status_code}"),
            )

        payload = _json_or_none(resp)
        if payload is None:
            raise TokenExchangeError(ProviderErrorKind.OTHER, "Token response was not JSON")
        tokens = validate_token_payload(payload)
        _LOG.debug(
            "Token request succeeded grant_type=%s expires_in=%ss refresh_rotated=%s",
            grant_type,
            tokens.expires_in,
            tokens.refresh_token is not None,
        )
        return tokens

    # ------------------------------------------------------------------ #
    # Web API                                                            #
    # ------------------------------------------------------------------ #
    async def fetch_profile(self, access_token: str) -> dict[str, Any]:
        """Return the ``/me`` profile for *access_token*."""
        try:
            resp = await self.http.get(
                f"{self.settings.api_base_url}/me",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            _LOG.warning("Profile request failed error=%s", type(exc).__name__)
            raise ProfileFetchError(None) from None

        if resp.is_error:
            _LOG.info("Profile request returned %s", resp.status_code)
            raise ProfileFetchError(resp.status_code)

        profile = _json_or_none(resp)
        if not isinstance(profile, dict):
            raise ProfileFetchError(resp.status_code)
        return profile


def _json_or_none(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None
