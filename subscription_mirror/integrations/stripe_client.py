"""Stripe API client for billing operations.

This module provides a clean interface to Stripe API,
handling all direct Stripe interactions without business logic.
"""

from datetime import datetime
from typing import Any, Dict, Optional

import stripe

from subscription_mirror.core.datetime_utils import utc_now
from subscription_mirror.core.exceptions import ExternalServiceError
from subscription_mirror.integrations._base import BillingProvider
from subscription_mirror.integrations.stripe_translator import (
    customer_from_stripe,
    price_from_stripe,
    subscription_from_stripe,
)
from subscription_mirror.schemas.billing import BillingCustomer, BillingPrice, BillingSubscription

# Statuses that count as a live subscription for plan changes and single-subscription checks
ACTIVE_STATUSES = frozenset({"active", "trialing"})

SECONDS_PER_DAY = 86400


class StripeClient(BillingProvider):
    """Client for Stripe API operations.

    The API key is passed on every request instead of being set on the `stripe` module,
    so several clients with different keys can live in one process.
    """

    def __init__(self, api_key: str, webhook_secret: Optional[str] = None):
        """Initialize Stripe client."""
        if not api_key:
            raise ValueError("Stripe API key is required")
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    # Webhook operations

    def verify_webhook_signature(
        self, payload: bytes, signature: str, secret: Optional[str] = None
    ) -> stripe.Event:
        """Verify and construct webhook event."""
        secret = secret or self.webhook_secret
        if not secret:
            raise ValueError("Invalid webhook signature: no webhook secret configured")
        try:
            return stripe.Webhook.construct_event(payload, signature, secret)
        except ValueError as e:
            raise ValueError(f"Invalid webhook payload: {e}") from e
        except stripe.SignatureVerificationError as e:
            raise ValueError(f"Invalid webhook signature: {e}") from e

    # Customer operations

    async def find_customer_by_email(self, email: str) -> Optional[BillingCustomer]:
        """Find the first Stripe customer with this email."""
        try:
            customers = await stripe.Customer.list_async(
                email=email, limit=1, api_key=self.api_key
            )
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to list customers: {str(e)}",
            ) from e

        if not customers.data:
            return None
        return customer_from_stripe(customers.data[0])

    async def get_customer(self, customer_id: str) -> Optional[BillingCustomer]:
        """Retrieve a Stripe customer."""
        try:
            customer = await stripe.Customer.retrieve_async(customer_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to retrieve customer: {str(e)}",
            ) from e
        return customer_from_stripe(customer)

    # Subscription operations

    async def list_active_subscriptions(self, customer_id: str) -> list[BillingSubscription]:
        """List the customer's active and trialing subscriptions, newest first.

        Stripe's list endpoint filters on a single status, so all subscriptions are
        listed and filtered here. Every page is read.
        """
        active = []
        try:
            subscriptions = await stripe.Subscription.list_async(
                customer=customer_id, status="all", limit=100, api_key=self.api_key
            )
            async for sub in subscriptions.auto_paging_iter():
                snapshot = subscription_from_stripe(sub)
                if snapshot.status in ACTIVE_STATUSES:
                    active.append(snapshot)
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to list subscriptions: {str(e)}",
            ) from e
        return active

    async def get_subscription(self, subscription_id: str) -> BillingSubscription:
        """Retrieve a subscription."""
        try:
            subscription = await stripe.Subscription.retrieve_async(
                subscription_id, api_key=self.api_key
            )
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to retrieve subscription: {str(e)}",
            ) from e
        return subscription_from_stripe(subscription)

    async def update_subscription(
        self,
        subscription_id: str,
        *,
        price_id: Optional[str] = None,
        item_id: Optional[str] = None,
        proration_behavior: Optional[str] = None,
        trial_days: Optional[int] = None,
        cancel_at_period_end: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> BillingSubscription:
        """Update a subscription.

        A price change swaps the price of `item_id`, or of the first subscription item when
        no item is given. Trial days are sent as an absolute `trial_end` counted from `now`
        (the current time when not given), which is what Stripe's update endpoint accepts.
        """
        update_params: Dict[str, Any] = {}

        if proration_behavior:
            update_params["proration_behavior"] = proration_behavior

        if price_id:
            if not item_id:
                current = await self.get_subscription(subscription_id)
                item_id = current.item_id
            if not item_id:
                raise ExternalServiceError(
                    service_name="Stripe",
                    message=f"Subscription {subscription_id} has no items",
                )
            update_params["items"] = [{"id": item_id, "price": price_id}]

        if trial_days:
            anchor = now or utc_now()
            update_params["trial_end"] = int(anchor.timestamp()) + trial_days * SECONDS_PER_DAY

        if cancel_at_period_end is not None:
            update_params["cancel_at_period_end"] = cancel_at_period_end

        try:
            subscription = await stripe.Subscription.modify_async(
                subscription_id, api_key=self.api_key, **update_params
            )
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to update subscription: {str(e)}",
            ) from e
        return subscription_from_stripe(subscription)

    async def cancel_subscription(self, subscription_id: str, *, prorate: bool = True) -> None:
        """Cancel a subscription immediately."""
        try:
            await stripe.Subscription.cancel_async(
                subscription_id, prorate=prorate, api_key=self.api_key
            )
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to cancel subscription: {str(e)}",
            ) from e

    # Price operations

    async def retrieve_price(self, price_id: str) -> BillingPrice:
        """Retrieve a price."""
        try:
            price = await stripe.Price.retrieve_async(price_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to retrieve price: {str(e)}",
            ) from e
        return price_from_stripe(price)
