"""GitHub webhook verification and payload decoding.

Signature verification uses HMAC-SHA256 over the raw body as specified by GitHub:
https://docs.github.com/en/webhooks/using-webhooks/validating-webhook-deliveries

GITHUB_WEBHOOK_SECRET is dedicated to this check. It must never be logged,
and it is never the OAuth client secret.
"""

import hashlib
import hmac
import json
import logging
from typing import Optional
from urllib.parse import parse_qs

from appbridge.core.config import get_settings
from appbridge.core.redis import claim_once, release
from appbridge.github.exceptions import (
    GitHubAppNotConfigured,
    UpstreamUnreachable,
    WebhookSignatureMismatch,
)

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_signature(payload_body: bytes, secret: str) -> str:
    """Return the X-Hub-Signature-256 value GitHub would send for this body."""
    digest = hmac.new(secret.encode("utf-8"), payload_body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_webhook_signature(payload_body: bytes, signature_header: str) -> bool:
    """Verify that a webhook payload was signed by GitHub.

    Args:
        payload_body: Raw request body bytes, exactly as received.
        signature_header: Value of the X-Hub-Signature-256 header.

    Returns:
        True if the signature is valid, False otherwise.

    Raises:
        GitHubAppNotConfigured: if GITHUB_WEBHOOK_SECRET is empty.
    """
    settings = get_settings()
    if not settings.github_webhook_secret:
        raise GitHubAppNotConfigured("GITHUB_WEBHOOK_SECRET")

    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return False

    expected = compute_signature(payload_body, settings.github_webhook_secret)

    return hmac.compare_digest(expected, signature_header.strip())


def decode_payload(body: bytes, content_type: str) -> dict:
    """Decode a JSON or form-encoded (`payload=`) webhook body.

    Raises ValueError if the body is not a JSON object.
    """
    if content_type.startswith("application/x-www-form-urlencoded"):
        fields = parse_qs(body.decode("utf-8"))
        raw = (fields.get("payload") or [""])[0]
    else:
        raw = body.decode("utf-8")

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Webhook body is not valid JSON: {exc.msg}") from exc

    if not isinstance(payload, dict):
        raise ValueError("Webhook body must be a JSON object")
    return payload


async def claim_delivery(delivery_id: Optional[str]) -> bool:
    """Record a delivery ID. Returns False if it was already processed.

    Deliveries without an ID, or arriving while Redis is down, are
    processed; GitHub redelivery is rare and handlers tolerate repeats.
    """
    if not delivery_id:
        return True

    ttl = get_settings().webhook_delivery_ttl_seconds
    try:
        return await claim_once(f"webhook_delivery:{delivery_id}", ttl)
    except UpstreamUnreachable:
        logger.warning("Delivery %s not deduplicated: Redis unavailable", delivery_id)
        return True


async def release_delivery(delivery_id: Optional[str]) -> None:
    """Forget a claimed delivery so a redelivery of it is processed."""
    if not delivery_id:
        return
    try:
        await release(f"webhook_delivery:{delivery_id}")
    except UpstreamUnreachable:
        logger.warning("Delivery %s claim not released: Redis unavailable", delivery_id)


def require_signature(payload_body: bytes, signature_header: str) -> None:
    """Raise WebhookSignatureMismatch unless the body carries a valid signature."""
    if not verify_webhook_signature(payload_body, signature_header):
        raise WebhookSignatureMismatch("X-Hub-Signature-256 does not match the payload")
