"""Plan change orchestration.

Moves a customer's active subscription to another price, choosing proration and carrying
the remaining trial over. Decisions come from `plan_logic`; this module only sequences the
mirror and provider calls.
"""

from datetime import datetime
from typing import Callable, Optional

from subscription_mirror.core.datetime_utils import utc_now
from subscription_mirror.core.exceptions import CustomerNotFound, UserNotFound
from subscription_mirror.core.logging import LoggerConfigurator
from subscription_mirror.core.sync_config import ProrationMode, SyncConfig
from subscription_mirror.integrations._base import BillingProvider
from subscription_mirror.platform.billing.mirror_repository import MirrorRepository
from subscription_mirror.platform.billing.plan_logic import (
    PlanChangeContext,
    analyze_plan_change,
    is_same_plan,
)
from subscription_mirror.schemas.plan_change import PlanChangeAction, PlanChangeResult
from subscription_mirror.schemas.subscription_record import SubscriptionRecordUpdate

logger = LoggerConfigurator.configure_logger(__name__, dimensions={"component": "plan_change"})


class PlanChangeOrchestrator:
    """Change the price of a customer's active subscription."""

    def __init__(
        self,
        provider: BillingProvider,
        mirror: MirrorRepository,
        config: SyncConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the orchestrator."""
        self.provider = provider
        self.mirror = mirror
        self.config = config
        self.clock = clock
        self.log = LoggerConfigurator.for_instance(logger, config.debug)

    async def change_plan(
        self,
        email: str,
        new_plan_id: str,
        proration_behavior: Optional[ProrationMode] = None,
    ) -> PlanChangeResult:
        """Move the user's active subscription to `new_plan_id`.

        Returns `USE_PAYMENT_LINK` when the customer has no active subscription and
        `ALREADY_ON_PLAN` without touching the provider when the price is unchanged.

        Raises:
            UserNotFound: If the mirror has no record for the email.
            CustomerNotFound: If the provider has no customer for the email.
        """
        log = self.log.with_context(email=email, target_plan=new_plan_id)

        record = await self.mirror.find_by_identity(email)
        if record is None:
            raise UserNotFound(f"User with email {email} not found in {self.config.table}")

        customer = await self.provider.find_customer_by_email(email)
        if customer is None:
            raise CustomerNotFound()

        subscriptions = await self.provider.list_active_subscriptions(customer.id)
        if not subscriptions:
            log.info(f"No active subscription for customer {customer.id}, checkout required")
            return PlanChangeResult(
                action=PlanChangeAction.USE_PAYMENT_LINK, customer_id=customer.id
            )

        subscription = subscriptions[0]
        log = log.with_context(subscription_id=subscription.id)

        if is_same_plan(subscription.price_id, new_plan_id):
            log.info(f"Subscription {subscription.id} is already on {new_plan_id}")
            return PlanChangeResult(
                action=PlanChangeAction.ALREADY_ON_PLAN, subscription_id=subscription.id
            )

        current_amount = 0
        if subscription.price_id:
            current_amount = (await self.provider.retrieve_price(subscription.price_id)).unit_amount
        target_price = await self.provider.retrieve_price(new_plan_id)
        now = self.clock()

        decision = analyze_plan_change(
            PlanChangeContext(
                current_amount=current_amount,
                target_amount=target_price.unit_amount,
                now=now,
                explicit_proration=proration_behavior,
                default_proration=self.config.proration_behavior_default,
                preserve_trial_periods=self.config.preserve_trial_periods,
                trial_end=subscription.trial_end,
            )
        )
        log.info(
            f"Plan change {subscription.price_id} -> {new_plan_id} is a "
            f"{decision.change_type.value}, proration {decision.proration.value}"
        )

        if decision.trial_days and self.config.trial_fields_mirrored:
            await self.mirror.update_by_identity(
                email, SubscriptionRecordUpdate(trial=True, trial_end=subscription.trial_end)
            )

        updated = await self.provider.update_subscription(
            subscription.id,
            price_id=new_plan_id,
            item_id=subscription.item_id,
            proration_behavior=decision.proration.stripe_value,
            trial_days=decision.trial_days,
            now=now,
        )

        log.info(f"Subscription {subscription.id} moved to {new_plan_id}")
        return PlanChangeResult(
            action=PlanChangeAction.PLAN_CHANGED,
            subscription_id=subscription.id,
            proration=decision.proration,
            effective_date=updated.current_period_end,
            trial_days=decision.trial_days,
        )
