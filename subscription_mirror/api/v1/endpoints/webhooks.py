"""Webhook endpoints."""

from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.responses import JSONResponse

from subscription_mirror.api import deps
from subscription_mirror.api.router import TrailingSlashRouter
from subscription_mirror.core.logging import logger
from subscription_mirror.core.subscription_service import SubscriptionService

router = TrailingSlashRouter()


@router.post("/stripe", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    service: SubscriptionService = Depends(deps.get_subscription_service),
) -> JSONResponse:
    """Handle Stripe webhook events.

    Security:
    - Verifies the webhook signature against the raw body
    - Headers other than the signature are only logged

    Args:
        request: Raw HTTP request
        stripe_signature: Stripe signature header
        service: Subscription service

    Returns:
        200 when the event was applied or ignored, 400 when it was rejected (raised as a
        WebhookVerificationError), 500 when applying it failed so that Stripe redelivers it
    """
    payload = await request.body()

    result = await service.handle_webhook(payload, stripe_signature, headers=request.headers)

    if not result.success:
        logger.error(f"Webhook dispatch failed: {result.error}")
        return JSONResponse(status_code=500, content={"received": False, "error": result.error})

    content = {"received": True}
    if result.ignored:
        content["ignored"] = True
    return JSONResponse(status_code=200, content=content)
