"""Webhook event schemas."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from subscription_mirror.schemas.billing import BillingSubscription


class BillingEventType(str, Enum):
    """Billing events the dispatcher distinguishes."""

    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_DELETED = "subscription.deleted"
    SUBSCRIPTION_CANCELED = "subscription.canceled"
    IGNORED = "ignored"

    @classmethod
    def from_provider(cls, event_type: str) -> "BillingEventType":
        """Map a Stripe event type, keeping unknown types as IGNORED."""
        return _PROVIDER_EVENT_TYPES.get(event_type, cls.IGNORED)


_PROVIDER_EVENT_TYPES = {
    "customer.subscription.created": BillingEventType.SUBSCRIPTION_CREATED,
    "customer.subscription.updated": BillingEventType.SUBSCRIPTION_UPDATED,
    "customer.subscription.deleted": BillingEventType.SUBSCRIPTION_DELETED,
    "customer.subscription.canceled": BillingEventType.SUBSCRIPTION_CANCELED,
    "customer.subscription.cancelled": BillingEventType.SUBSCRIPTION_CANCELED,
}


class WebhookEvent(BaseModel):
    """A verified inbound billing event."""

    id: Optional[str] = Field(None, description="Provider event ID")
    type: BillingEventType = Field(..., description="Normalized event type")
    raw_type: str = Field(..., description="Event type as sent by the provider")
    subscription: Optional[BillingSubscription] = Field(
        None, description="Subscription snapshot embedded in the event"
    )
    payload: bytes = Field(..., description="Raw request body")
    signature: str = Field(..., description="Signature header value")


class DispatchResult(BaseModel):
    """Outcome of dispatching one event."""

    success: bool
    error: Optional[str] = None
    ignored: bool = False
