"""Mapping from provider subscriptions to mirror record fields.

`map_subscription` and `derive_state` are pure; `resolve_identity` is the only function here
that may call the provider.
"""

from typing import Optional

from subscription_mirror.core.exceptions import IdentityUnresolved
from subscription_mirror.core.sync_config import MirroredField, SyncConfig
from subscription_mirror.integrations._base import BillingProvider
from subscription_mirror.schemas.billing import BillingSubscription
from subscription_mirror.schemas.subscription_record import (
    SubscriptionRecordUpdate,
    SubscriptionState,
    SubscriptionStatus,
)
from subscription_mirror.schemas.webhook_event import BillingEventType

# Provider statuses with no counterpart on the mirror
_INACTIVE_PROVIDER_STATUSES = {"incomplete", "incomplete_expired", "paused"}

# Optional fields copied from the provider snapshot when present
_COPIED_FIELDS = (
    MirroredField.TRIAL_START,
    MirroredField.PAYMENT_METHOD,
    MirroredField.CURRENT_PERIOD_START,
    MirroredField.CURRENT_PERIOD_END,
    MirroredField.CANCELED_AT,
)


def normalize_status(raw_status: Optional[str]) -> SubscriptionStatus:
    """Normalize a raw provider status into the mirror's closed status set."""
    if not raw_status or raw_status in _INACTIVE_PROVIDER_STATUSES:
        return SubscriptionStatus.INACTIVE
    if raw_status == "cancelled":
        return SubscriptionStatus.CANCELED
    try:
        return SubscriptionStatus(raw_status)
    except ValueError:
        return SubscriptionStatus.INACTIVE


def derive_state(subscription: Optional[BillingSubscription]) -> SubscriptionState:
    """Status/plan pair the mirror should hold for a provider subscription.

    A subscription scheduled to cancel at period end reads as canceled; no subscription
    reads as inactive with no plan.
    """
    if subscription is None:
        return SubscriptionState(status=SubscriptionStatus.INACTIVE, plan=None)
    if subscription.cancel_at_period_end:
        status = SubscriptionStatus.CANCELED
    else:
        status = normalize_status(subscription.status)
    return SubscriptionState(status=status, plan=subscription.price_id)


def trial_fields(subscription: Optional[BillingSubscription]) -> dict:
    """Trial flag and window for a subscription, with None for absent boundaries."""
    trial_end = subscription.trial_end if subscription else None
    return {
        "trial": trial_end is not None,
        "trial_start": subscription.trial_start if subscription else None,
        "trial_end": trial_end,
    }


def map_subscription(
    event_type: BillingEventType,
    subscription: BillingSubscription,
    config: SyncConfig,
) -> SubscriptionRecordUpdate:
    """Map a provider subscription and event type into mirror field updates.

    Deleted subscriptions are a hard reset to inactive with no plan, whatever status the
    provider reported. Trial boundaries are only written when present, so an absent
    `trial_end` never clears a stored one.
    """
    if event_type == BillingEventType.SUBSCRIPTION_DELETED:
        return SubscriptionRecordUpdate(status=SubscriptionStatus.INACTIVE, plan=None)

    state = derive_state(subscription)
    changes: dict = {"status": state.status, "plan": state.plan}

    if config.trial_fields_mirrored:
        changes["trial"] = subscription.trial_end is not None
        if subscription.trial_end is not None:
            changes["trial_end"] = subscription.trial_end

    for field in _COPIED_FIELDS:
        if not config.is_mirrored(field):
            continue
        value = getattr(subscription, field.value)
        if value is not None:
            changes[field.value] = value

    if config.is_mirrored(MirroredField.CANCEL_AT_PERIOD_END):
        changes["cancel_at_period_end"] = subscription.cancel_at_period_end

    return SubscriptionRecordUpdate(**changes)


async def resolve_identity(subscription: BillingSubscription, provider: BillingProvider) -> str:
    """Resolve the mirror identity (email) for a subscription.

    The email carried by the event payload wins; otherwise the customer is fetched by its
    provider id.

    Raises:
        IdentityUnresolved: If neither source yields an email.
    """
    if subscription.customer_email:
        return subscription.customer_email

    if subscription.customer_id:
        customer = await provider.get_customer(subscription.customer_id)
        if customer and customer.email:
            return customer.email

    raise IdentityUnresolved()
