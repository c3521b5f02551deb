"""Unit tests for the plan change orchestrator."""

from datetime import timedelta

import pytest

from subscription_mirror.core.exceptions import CustomerNotFound, UserNotFound
from subscription_mirror.core.sync_config import ProrationMode, SyncConfig
from subscription_mirror.platform.billing.plan_change import PlanChangeOrchestrator
from subscription_mirror.schemas.plan_change import PlanChangeAction
from tests.fixtures.common import FIXED_NOW, make_subscription


@pytest.fixture
def orchestrator(mock_provider, mirror, sync_config):
    """Orchestrator with a fixed clock."""
    return PlanChangeOrchestrator(mock_provider, mirror, sync_config, clock=lambda: FIXED_NOW)


def _with_subscription(provider, **overrides):
    subscription = make_subscription(**overrides)
    provider.list_active_subscriptions.return_value = [subscription]
    provider.update_subscription.return_value = subscription.model_copy(
        update={"current_period_end": FIXED_NOW + timedelta(days=30)}
    )
    return subscription


class TestPreconditions:
    """Tests for the short-circuit outcomes."""

    @pytest.mark.asyncio
    async def test_unknown_user(self, orchestrator, mock_provider):
        """A user without a mirror record is rejected before any provider call."""
        with pytest.raises(UserNotFound):
            await orchestrator.change_plan("ghost@example.com", "price_pro")

        mock_provider.find_customer_by_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_customer(self, orchestrator, mock_provider):
        mock_provider.find_customer_by_email.return_value = None

        with pytest.raises(CustomerNotFound):
            await orchestrator.change_plan("user@example.com", "price_pro")

    @pytest.mark.asyncio
    async def test_no_subscription_requires_checkout(self, orchestrator, mock_provider):
        """Without an active subscription the caller is pointed to checkout."""
        result = await orchestrator.change_plan("user@example.com", "price_pro")

        assert result.action == PlanChangeAction.USE_PAYMENT_LINK
        assert result.customer_id == "cus_123"
        mock_provider.update_subscription.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_on_plan(self, orchestrator, mock_provider, mirror):
        """Requesting the current price changes nothing anywhere."""
        _with_subscription(mock_provider, price_id="price_pro")

        result = await orchestrator.change_plan("user@example.com", "price_pro")

        assert result.action == PlanChangeAction.ALREADY_ON_PLAN
        assert result.subscription_id == "sub_123"
        mock_provider.update_subscription.assert_not_called()
        mock_provider.retrieve_price.assert_not_called()
        assert mirror.update_calls == []


class TestProration:
    """Tests for the proration sent to the provider."""

    @pytest.mark.asyncio
    async def test_upgrade_invoices_immediately(self, orchestrator, mock_provider):
        _with_subscription(mock_provider, price_id="price_basic")

        result = await orchestrator.change_plan("user@example.com", "price_pro")

        assert result.action == PlanChangeAction.PLAN_CHANGED
        assert result.proration == ProrationMode.IMMEDIATE
        assert result.effective_date == FIXED_NOW + timedelta(days=30)
        mock_provider.update_subscription.assert_awaited_once_with(
            "sub_123",
            price_id="price_pro",
            item_id="si_123",
            proration_behavior="always_invoice",
            trial_days=None,
            now=FIXED_NOW,
        )

    @pytest.mark.asyncio
    async def test_downgrade_defers(self, orchestrator, mock_provider):
        _with_subscription(mock_provider, price_id="price_team")

        result = await orchestrator.change_plan("user@example.com", "price_basic")

        assert result.proration == ProrationMode.DEFERRED
        kwargs = mock_provider.update_subscription.await_args.kwargs
        assert kwargs["proration_behavior"] == "create_prorations"

    @pytest.mark.asyncio
    async def test_explicit_proration_wins(self, orchestrator, mock_provider):
        _with_subscription(mock_provider, price_id="price_team")

        result = await orchestrator.change_plan(
            "user@example.com", "price_basic", proration_behavior=ProrationMode.IMMEDIATE
        )

        assert result.proration == ProrationMode.IMMEDIATE

    @pytest.mark.asyncio
    async def test_config_default(self, mock_provider, mirror):
        config = SyncConfig.from_mapping({"prorationBehaviorDefault": "deferred"})
        orchestrator = PlanChangeOrchestrator(mock_provider, mirror, config)
        _with_subscription(mock_provider, price_id="price_basic")

        result = await orchestrator.change_plan("user@example.com", "price_team")

        assert result.proration == ProrationMode.DEFERRED

    @pytest.mark.asyncio
    async def test_subscription_without_price_is_upgrade(self, orchestrator, mock_provider):
        """A missing current price counts as zero."""
        _with_subscription(mock_provider, price_id=None)

        result = await orchestrator.change_plan("user@example.com", "price_basic")

        assert result.proration == ProrationMode.IMMEDIATE
        mock_provider.retrieve_price.assert_awaited_once_with("price_basic")


class TestTrialPreservation:
    """Tests for carrying a trial across a plan change."""

    @pytest.mark.asyncio
    async def test_trial_carried_and_mirrored_first(self, mock_provider, mirror, trial_config):
        """The mirror trial write happens before the provider update."""
        trial_end = FIXED_NOW + timedelta(days=2) - timedelta(minutes=5)
        orchestrator = PlanChangeOrchestrator(
            mock_provider, mirror, trial_config, clock=lambda: FIXED_NOW
        )
        _with_subscription(mock_provider, status="trialing", trial_end=trial_end)
        order = []

        async def track_update(*args, **kwargs):
            order.append(("provider", mirror.update_calls[:]))
            return make_subscription()

        mock_provider.update_subscription.side_effect = track_update

        result = await orchestrator.change_plan("user@example.com", "price_pro")

        assert result.trial_days == 2
        assert mock_provider.update_subscription.await_args.kwargs["trial_days"] == 2
        assert mock_provider.update_subscription.await_args.kwargs["now"] == FIXED_NOW
        assert order == [
            ("provider", [("user@example.com", {"trial": True, "trial_end": trial_end})])
        ]
        assert mirror.records["user@example.com"].trial is True

    @pytest.mark.asyncio
    async def test_trial_not_carried_when_disabled(self, orchestrator, mock_provider, mirror):
        _with_subscription(
            mock_provider, status="trialing", trial_end=FIXED_NOW + timedelta(days=2)
        )

        result = await orchestrator.change_plan("user@example.com", "price_pro")

        assert result.trial_days is None
        assert mock_provider.update_subscription.await_args.kwargs["trial_days"] is None
        assert mirror.update_calls == []
