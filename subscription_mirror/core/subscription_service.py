"""Subscription service.

This module wires the sync configuration, the Stripe client and the mirror repository into
the verifier, dispatcher, plan change orchestrator and reconciliation engine, and exposes
them as one service for the transport layer and embedding applications.
"""

from typing import Mapping, Optional

from subscription_mirror.core.config import Settings
from subscription_mirror.core.exceptions import (
    CustomerNotFound,
    SubscriptionMirrorException,
    SubscriptionNotFound,
)
from subscription_mirror.core.logging import logger
from subscription_mirror.core.sync_config import ProrationMode, SyncConfig
from subscription_mirror.integrations._base import BillingProvider
from subscription_mirror.integrations.stripe_client import StripeClient
from subscription_mirror.platform.billing.event_verifier import EventVerifier
from subscription_mirror.platform.billing.mirror_repository import (
    MirrorRepository,
    SqlAlchemyMirrorRepository,
)
from subscription_mirror.platform.billing.plan_change import PlanChangeOrchestrator
from subscription_mirror.platform.billing.reconciliation import ReconciliationEngine
from subscription_mirror.platform.billing.webhook_handler import SubscriptionEventDispatcher
from subscription_mirror.schemas.billing import BillingSubscription
from subscription_mirror.schemas.plan_change import PlanChangeResult
from subscription_mirror.schemas.subscription_record import (
    SubscriptionRecord,
    SubscriptionRecordUpdate,
)
from subscription_mirror.schemas.sync import CancelResult, SyncResult
from subscription_mirror.schemas.webhook_event import DispatchResult


class SubscriptionService:
    """Entry point for webhook ingestion, plan changes, reconciliation and cancellation."""

    def __init__(
        self,
        config: SyncConfig,
        provider: BillingProvider,
        mirror: MirrorRepository,
        webhook_secret: Optional[str] = None,
    ):
        """Initialize the service with explicitly constructed adapters."""
        self.config = config
        self.provider = provider
        self.mirror = mirror
        self.verifier = EventVerifier(provider, config, secret=webhook_secret)
        self.dispatcher = SubscriptionEventDispatcher(provider, mirror, config)
        self.orchestrator = PlanChangeOrchestrator(provider, mirror, config)
        self.reconciliation = ReconciliationEngine(provider, mirror, config)

    @classmethod
    def from_settings(cls, settings: Settings, session_factory) -> "SubscriptionService":
        """Build the service from process settings.

        Raises:
            ConfigInvalid: If the mirror settings are invalid.
            ValueError: If no Stripe API key is configured.
        """
        config = settings.sync_config()
        provider = StripeClient(
            api_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        )
        mirror = SqlAlchemyMirrorRepository(session_factory, config)
        return cls(config, provider, mirror, webhook_secret=settings.STRIPE_WEBHOOK_SECRET)

    async def handle_webhook(
        self,
        raw_body: Optional[bytes],
        signature: Optional[str],
        headers: Optional[Mapping[str, str]] = None,
    ) -> DispatchResult:
        """Verify and dispatch one inbound event.

        Raises:
            WebhookVerificationError: If the event is rejected before dispatch.
        """
        event = self.verifier.verify(raw_body, signature, headers=headers)
        return await self.dispatcher.dispatch(event)

    async def change_plan(
        self,
        email: str,
        new_plan_id: str,
        proration_behavior: Optional[ProrationMode] = None,
    ) -> PlanChangeResult:
        """Move the user's active subscription to another price."""
        return await self.orchestrator.change_plan(email, new_plan_id, proration_behavior)

    async def sync_subscription(self, email: str) -> SyncResult:
        """Repair drift between the provider and the mirror for one user."""
        return await self.reconciliation.sync(email)

    async def fetch_subscription(self, email: str) -> Optional[BillingSubscription]:
        """Current active subscription of the user, fetched fresh from the provider."""
        return await self.reconciliation.fetch_subscription(email)

    async def cancel_subscription(self, email: str, at_period_end: bool = False) -> CancelResult:
        """Cancel the user's active subscription, now or at the end of the period.

        The mirror is updated by the webhook the provider sends for the cancellation.

        Raises:
            CustomerNotFound: If the provider has no customer for the email.
            SubscriptionNotFound: If the customer has no active subscription.
        """
        log = logger.with_context(email=email)

        customer = await self.provider.find_customer_by_email(email)
        if customer is None:
            raise CustomerNotFound()

        subscriptions = await self.provider.list_active_subscriptions(customer.id)
        if not subscriptions:
            raise SubscriptionNotFound()
        subscription = subscriptions[0]

        if at_period_end:
            await self.provider.update_subscription(subscription.id, cancel_at_period_end=True)
            log.info(f"Subscription {subscription.id} will cancel at period end")
        else:
            await self.provider.cancel_subscription(subscription.id, prorate=False)
            log.info(f"Subscription {subscription.id} canceled")

        return CancelResult(subscription_id=subscription.id, at_period_end=at_period_end)

    async def fetch_user(self, email: str) -> Optional[SubscriptionRecord]:
        """Mirror record of a user, None if there is none."""
        if not email:
            raise SubscriptionMirrorException("Email is required to fetch user")
        return await self.mirror.find_by_identity(email)

    async def update_user(
        self, email: str, update: SubscriptionRecordUpdate
    ) -> SubscriptionRecord:
        """Write fields to a user's mirror record.

        Raises:
            UserNotFound: If there is no record and auto-create is disabled.
        """
        return await self.mirror.update_by_identity(email, update)
