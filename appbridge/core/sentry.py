"""Sentry SDK integration.

No-op when SENTRY_DSN is empty. The `before_send` hook redacts anything
that looks like key material: webhook signatures, install state tokens,
the app private key and the secrets themselves.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

_SENSITIVE_KEYS = frozenset(
    {"secret", "password", "token", "dsn", "signature", "private_key", "state"}
)


def _scrub_secrets(event: dict[str, Any], hint: Any) -> dict[str, Any]:
    """Sentry before_send hook: redact sensitive values, headers and query strings."""
    _scrub_dict(event.get("extra", {}))
    request = event.get("request", {})
    for field in ("data", "headers"):
        value = request.get(field)
        if isinstance(value, dict):
            _scrub_dict(value)
    if request.get("query_string"):
        request["query_string"] = "[REDACTED]"
    return event


def _scrub_dict(d: dict[str, Any]) -> None:
    """Recursively redact sensitive values in-place."""
    for key in list(d.keys()):
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
            d[key] = "[REDACTED]"
        elif isinstance(d[key], dict):
            _scrub_dict(d[key])


def init_sentry(dsn: str, environment: str = "development") -> None:
    """Initialise the Sentry SDK, or do nothing when `dsn` is blank."""
    if not dsn or not dsn.strip():
        logger.debug("Sentry DSN not configured, skipping initialisation")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.redis import RedisIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[
            FastApiIntegration(),
            RedisIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=_scrub_secrets,
    )
    logger.info("Sentry initialised (environment=%s)", environment)
