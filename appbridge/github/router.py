"""GitHub webhook endpoint.

Public (no auth dependency) but every delivery must carry a valid
X-Hub-Signature-256 computed over the raw body. Failures are rejected
synchronously so GitHub's own redelivery logic decides what happens next.
"""

import logging

from fastapi import APIRouter, Header, HTTPException, Request, status

from appbridge.github.events import dispatch_event
from appbridge.github.exceptions import GitHubAppNotConfigured, WebhookSignatureMismatch
from appbridge.github.schemas import WebhookResponse
from appbridge.github.webhooks import (
    claim_delivery,
    decode_payload,
    release_delivery,
    require_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/github", response_model=WebhookResponse)
async def handle_webhook(
    request: Request,
    x_hub_signature_256: str = Header(default=""),
    x_github_event: str = Header(default=""),
    x_github_delivery: str = Header(default=""),
) -> WebhookResponse:
    """Verify, deduplicate and dispatch a GitHub webhook delivery."""
    body = await request.body()

    try:
        require_signature(body, x_hub_signature_256)
    except GitHubAppNotConfigured as exc:
        logger.error("Webhook %s dropped: %s", x_github_delivery or "-", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook verification is not configured",
        )
    except WebhookSignatureMismatch:
        logger.warning(
            "Webhook signature mismatch (event=%s delivery=%s)",
            x_github_event or "-",
            x_github_delivery or "-",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )

    try:
        payload = decode_payload(body, request.headers.get("content-type", ""))
    except (ValueError, UnicodeDecodeError) as exc:
        logger.warning("Webhook %s has undecodable body: %s", x_github_delivery or "-", exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook body must be a JSON object",
        )

    delivery_id = x_github_delivery or None
    if not await claim_delivery(delivery_id):
        logger.info("Duplicate webhook delivery %s (%s), skipping", delivery_id, x_github_event)
        return WebhookResponse(
            received=True,
            event=x_github_event,
            action="duplicate_delivery",
            delivery_id=delivery_id,
        )

    try:
        action = dispatch_event(x_github_event, payload)
    except Exception:
        logger.exception("Webhook %s handler failed: %s", delivery_id or "-", x_github_event)
        await release_delivery(delivery_id)
        raise

    logger.info("Webhook %s handled: %s -> %s", delivery_id or "-", x_github_event, action)

    return WebhookResponse(
        received=True,
        event=x_github_event,
        action=action,
        delivery_id=delivery_id,
    )
