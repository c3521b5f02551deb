"""Reconciliation of the mirror against the billing provider.

Reads the mirror record and the provider's current subscription concurrently, compares the
status/plan pair and repairs the mirror with a single write when they differ. Calling it
again without a provider change is a no-op.
"""

import asyncio
from typing import Optional

from subscription_mirror.core.exceptions import UserNotFound
from subscription_mirror.core.logging import LoggerConfigurator
from subscription_mirror.core.sync_config import SyncConfig
from subscription_mirror.integrations._base import BillingProvider
from subscription_mirror.platform.billing.mirror_repository import MirrorRepository
from subscription_mirror.platform.billing.state_mapper import derive_state, trial_fields
from subscription_mirror.schemas.billing import BillingSubscription
from subscription_mirror.schemas.subscription_record import SubscriptionRecordUpdate
from subscription_mirror.schemas.sync import SyncResult

logger = LoggerConfigurator.configure_logger(__name__, dimensions={"component": "reconciliation"})


class ReconciliationEngine:
    """Detect and repair drift between provider and mirror."""

    def __init__(self, provider: BillingProvider, mirror: MirrorRepository, config: SyncConfig):
        """Initialize the engine."""
        self.provider = provider
        self.mirror = mirror
        self.config = config
        self.log = LoggerConfigurator.for_instance(logger, config.debug)

    async def fetch_subscription(self, email: str) -> Optional[BillingSubscription]:
        """Return the customer's first active subscription, None without customer or one."""
        customer = await self.provider.find_customer_by_email(email)
        if customer is None:
            return None
        subscriptions = await self.provider.list_active_subscriptions(customer.id)
        return subscriptions[0] if subscriptions else None

    async def sync(self, email: str) -> SyncResult:
        """Reconcile the mirror record of one identity.

        Raises:
            UserNotFound: If the mirror has no record; reconciliation never creates one.
        """
        log = self.log.with_context(email=email)

        # A failed read cancels the other one
        try:
            async with asyncio.TaskGroup() as tg:
                record_task = tg.create_task(self.mirror.find_by_identity(email))
                subscription_task = tg.create_task(self.fetch_subscription(email))
        except ExceptionGroup as group:
            raise group.exceptions[0]
        record, subscription = record_task.result(), subscription_task.result()
        if record is None:
            raise UserNotFound(f"User with email {email} not found in {self.config.table}")

        previous = record.state
        current = derive_state(subscription)

        if previous == current:
            log.debug(f"Mirror already in sync: status={_status(current)}, plan={current.plan}")
            return SyncResult(synced=False, current=current)

        changes = {"status": current.status, "plan": current.plan}
        if self.config.trial_fields_mirrored:
            changes.update(trial_fields(subscription))
        await self.mirror.update_by_identity(email, SubscriptionRecordUpdate(**changes))

        log.info(
            f"Repaired drift: status {_status(previous)} -> {_status(current)}, "
            f"plan {previous.plan} -> {current.plan}"
        )
        return SyncResult(synced=True, previous=previous, current=current)


def _status(state) -> Optional[str]:
    return state.status.value if state.status else None
