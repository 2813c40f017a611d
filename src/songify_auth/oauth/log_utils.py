"""Structured audit logging for the OAuth session flow.

This module purposefully restricts **which** contextual attributes are
attached to log records in order to avoid leaking secrets.  The adapter only
injects these *non-sensitive* fields:

- ``correlation_id`` – request identifier set by the correlation middleware
- ``client_ip``      – remote address, escaped for log safety

Audit events additionally carry ``code`` / ``state`` / ``token`` values, but
only ever as their first four characters followed by ``****``.

Usage
-----
>>> from songify_auth.oauth.log_utils import AuditEvent, audit_event, get_auth_logger
>>> log = get_auth_logger(correlation_id="5f2c...", client_ip="127.0.0.1")
>>> audit_event(log, AuditEvent.STATE_MISMATCH, state="Zk1e8yP0...", success=False)
WARNING songify-auth.oauth.audit AUDIT event=state_mismatch state=Zk1e**** success=False
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Mapping, MutableMapping

from songify_auth.utils.logging import encode_for_log, mask_sensitive

AUDIT_LOGGER_NAME = "songify-auth.oauth.audit"


class AuditEvent(str, enum.Enum):
    """Security-relevant transitions of the session state machine."""

    LOGIN_INITIATED = "login_initiated"
    MISSING_PARAMETERS = "missing_parameters"
    STATE_MISMATCH = "state_mismatch"
    CODE_REUSE = "code_reuse"
    EXCHANGE_SUCCESS = "exchange_success"
    EXCHANGE_FAILURE = "exchange_failure"
    NOT_AUTHENTICATED = "not_authenticated"
    TOKEN_EXPIRED = "token_expired"
    REFRESH_SUCCESS = "refresh_success"
    REFRESH_FAILURE = "refresh_failure"
    LOGOUT = "logout"


# events that indicate a possible attack or misconfiguration
_WARNING_EVENTS = frozenset(
    {
        AuditEvent.STATE_MISMATCH,
        AuditEvent.CODE_REUSE,
        AuditEvent.EXCHANGE_FAILURE,
        AuditEvent.REFRESH_FAILURE,
    }
)


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted request context into log records."""

    extra_keys = ("correlation_id", "client_ip")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if extra and extra.get(k) is not None:
                extra_clean[k] = encode_for_log(extra[k])
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = AUDIT_LOGGER_NAME,
    correlation_id: str | None = None,
    client_ip: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with request context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {"correlation_id": correlation_id, "client_ip": client_ip},
    )


def build_audit_fields(
    *,
    code: str | None = None,
    state: str | None = None,
    token: str | None = None,
    success: bool = False,
    error: str | None = None,
) -> dict[str, Any]:
    """Return the masked field set attached to every audit record."""
    fields: dict[str, Any] = {"success": bool(success)}
    if code is not None:
        fields["code"] = mask_sensitive(encode_for_log(code), 4)
    if state is not None:
        fields["state"] = mask_sensitive(encode_for_log(state), 4)
    if token is not None:
        fields["token"] = mask_sensitive(encode_for_log(token), 4)
    if error is not None:
        fields["error"] = encode_for_log(error)[:100]
    return fields


def audit_event(
    log: logging.LoggerAdapter | logging.Logger,
    event: AuditEvent,
    **details: Any,
) -> dict[str, Any]:
    """Emit one audit record for *event* and return the (masked) fields logged."""
    fields = build_audit_fields(**details)
    level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
    rendered = " ".join(f"{k}={v}" for k, v in fields.items())
    log.log(
        level,
        "AUDIT event=%s %s",
        event.value,
        rendered,
        extra={"audit_event": event.value, "audit_fields": fields},
    )
    return fields
