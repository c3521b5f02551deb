"""Subscription endpoints."""

from fastapi import Depends

from subscription_mirror import schemas
from subscription_mirror.api import deps
from subscription_mirror.api.router import TrailingSlashRouter
from subscription_mirror.core.exceptions import SubscriptionNotFound
from subscription_mirror.core.subscription_service import SubscriptionService

router = TrailingSlashRouter()


@router.post("/change-plan", response_model=schemas.PlanChangeResult)
async def change_plan(
    request: schemas.PlanChangeRequest,
    service: SubscriptionService = Depends(deps.get_subscription_service),
) -> schemas.PlanChangeResult:
    """Move a user's active subscription to another price.

    Args:
        request: Email, target price and optional proration override
        service: Subscription service

    Returns:
        PLAN_CHANGED, ALREADY_ON_PLAN, or USE_PAYMENT_LINK with the customer id when the
        user has to go through checkout first
    """
    return await service.change_plan(
        request.email,
        request.new_plan_id,
        proration_behavior=request.proration_behavior,
    )


@router.post("/sync", response_model=schemas.SyncResult)
async def sync_subscription(
    request: schemas.SyncRequest,
    service: SubscriptionService = Depends(deps.get_subscription_service),
) -> schemas.SyncResult:
    """Reconcile a user's mirror record with Stripe."""
    return await service.sync_subscription(request.email)


@router.post("/cancel", response_model=schemas.CancelResult)
async def cancel_subscription(
    request: schemas.CancelRequest,
    service: SubscriptionService = Depends(deps.get_subscription_service),
) -> schemas.CancelResult:
    """Cancel a user's active subscription, immediately or at the end of the period."""
    return await service.cancel_subscription(request.email, at_period_end=request.at_period_end)


@router.get("/{email}", response_model=schemas.BillingSubscription)
async def get_subscription(
    email: str,
    service: SubscriptionService = Depends(deps.get_subscription_service),
) -> schemas.BillingSubscription:
    """Get a user's active subscription as currently known to Stripe."""
    subscription = await service.fetch_subscription(email)
    if subscription is None:
        raise SubscriptionNotFound()
    return subscription
