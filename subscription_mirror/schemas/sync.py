"""Reconciliation and cancellation schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from subscription_mirror.schemas.subscription_record import SubscriptionState


class SyncRequest(BaseModel):
    """Reconciliation request."""

    email: str = Field(..., description="Identity to reconcile")


class SyncResult(BaseModel):
    """Reconciliation result.

    `previous` is only set when drift was found and repaired.
    """

    success: bool = True
    synced: bool
    previous: Optional[SubscriptionState] = None
    current: SubscriptionState


class CancelRequest(BaseModel):
    """Subscription cancellation request."""

    email: str = Field(..., description="Identity whose subscription is canceled")
    at_period_end: bool = Field(
        False, description="Schedule the cancellation for the end of the current period"
    )


class CancelResult(BaseModel):
    """Subscription cancellation result."""

    success: bool = True
    subscription_id: str
    at_period_end: bool
