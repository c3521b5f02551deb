"""Dispatcher for verified billing events.

This module routes verified subscription events to the mirror update or to the
compensating cancellation, and reports the outcome without raising.
"""

from subscription_mirror.core.logging import ContextualLogger, LoggerConfigurator
from subscription_mirror.core.sync_config import SyncConfig
from subscription_mirror.integrations._base import BillingProvider
from subscription_mirror.platform.billing.mirror_repository import MirrorRepository
from subscription_mirror.platform.billing.state_mapper import map_subscription, resolve_identity
from subscription_mirror.schemas.webhook_event import BillingEventType, DispatchResult, WebhookEvent

logger = LoggerConfigurator.configure_logger(__name__, dimensions={"component": "webhooks"})


class SubscriptionEventDispatcher:
    """Apply verified subscription events."""

    def __init__(self, provider: BillingProvider, mirror: MirrorRepository, config: SyncConfig):
        """Initialize the dispatcher."""
        self.provider = provider
        self.mirror = mirror
        self.config = config
        self.log = LoggerConfigurator.for_instance(logger, config.debug)

        # Event handler mapping
        self.handlers = {
            BillingEventType.SUBSCRIPTION_CREATED: self._handle_subscription_created,
            BillingEventType.SUBSCRIPTION_UPDATED: self._handle_subscription_changed,
            BillingEventType.SUBSCRIPTION_DELETED: self._handle_subscription_changed,
            BillingEventType.SUBSCRIPTION_CANCELED: self._handle_subscription_changed,
        }

    def _create_context_logger(self, event: WebhookEvent) -> ContextualLogger:
        """Create contextual logger with event context."""
        context = {
            "auth_method": "stripe_webhook",
            "event_type": event.raw_type,
            "stripe_event_id": event.id,
        }
        if event.subscription:
            context["subscription_id"] = event.subscription.id
        return self.log.with_context(**context)

    async def dispatch(self, event: WebhookEvent) -> DispatchResult:
        """Dispatch one event.

        Never raises: failures are reported as `success=False` with the underlying message.
        """
        log = self._create_context_logger(event)

        handler = self.handlers.get(event.type)
        if handler is None:
            log.info(f"Unhandled webhook event type: {event.raw_type}")
            return DispatchResult(success=True, ignored=True)

        try:
            log.info(f"Processing webhook event: {event.raw_type}")
            await handler(event, log)
        except Exception as e:
            log.error(f"Error handling {event.raw_type}: {e}", exc_info=True)
            return DispatchResult(success=False, error=str(e))

        return DispatchResult(success=True)

    # Event handlers

    async def _handle_subscription_created(
        self,
        event: WebhookEvent,
        log: ContextualLogger,
    ) -> None:
        """Cancel every other active subscription of the customer."""
        subscription = event.subscription
        if subscription is None or not subscription.customer_id:
            raise ValueError(f"No subscription with a customer in {event.raw_type} event")

        active = await self.provider.list_active_subscriptions(subscription.customer_id)
        for other in active:
            if other.id == subscription.id:
                continue
            log.info(
                f"Canceling subscription {other.id} superseded by {subscription.id} "
                f"for customer {subscription.customer_id}"
            )
            await self.provider.cancel_subscription(other.id, prorate=True)

    async def _handle_subscription_changed(
        self,
        event: WebhookEvent,
        log: ContextualLogger,
    ) -> None:
        """Write the mapped subscription state to the mirror."""
        subscription = event.subscription
        if subscription is None:
            raise ValueError(f"No subscription in {event.raw_type} event")

        email = await resolve_identity(subscription, self.provider)
        log = log.with_context(email=email)

        update = map_subscription(event.type, subscription, self.config)
        await self.mirror.update_by_identity(email, update)

        log.info(
            f"Mirror updated for {email}: status={update.status.value if update.status else None}"
            f", plan={update.plan}"
        )
