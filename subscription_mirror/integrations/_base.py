"""Billing provider interface.

The engine only talks to the billing provider through this interface, so the Stripe client
can be swapped for a fake in tests or for another provider.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from subscription_mirror.schemas.billing import BillingCustomer, BillingPrice, BillingSubscription


class BillingProvider(ABC):
    """Capabilities the engine needs from the billing provider."""

    @abstractmethod
    def verify_webhook_signature(
        self, payload: bytes, signature: str, secret: Optional[str] = None
    ) -> Any:
        """Verify a raw webhook body against its signature and return the provider event.

        Raises:
            ValueError: If the signature does not match or the body is not a valid event.
        """

    @abstractmethod
    async def find_customer_by_email(self, email: str) -> Optional[BillingCustomer]:
        """Return the provider customer registered with this email, if any."""

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Optional[BillingCustomer]:
        """Return a customer by provider ID, None if it was deleted."""

    @abstractmethod
    async def list_active_subscriptions(self, customer_id: str) -> list[BillingSubscription]:
        """Return the customer's active subscriptions, newest first."""

    @abstractmethod
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
        """Update a subscription and return the provider's new snapshot.

        `trial_days` count from `now`, the caller's clock, when given.
        """

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str, *, prorate: bool = True) -> None:
        """Cancel a subscription immediately."""

    @abstractmethod
    async def retrieve_price(self, price_id: str) -> BillingPrice:
        """Return a price with its unit amount."""
