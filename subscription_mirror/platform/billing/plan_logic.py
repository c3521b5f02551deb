"""Pure business logic for plan changes.

This module contains the business rules for moving a subscription between prices,
separated from infrastructure concerns like the mirror store and the Stripe API.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from subscription_mirror.core.sync_config import ProrationMode

SECONDS_PER_DAY = 86400


class ChangeType(Enum):
    """Type of plan change."""

    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


@dataclass
class PlanChangeContext:
    """Context for plan change decisions."""

    current_amount: int
    target_amount: int
    now: datetime
    explicit_proration: Optional[ProrationMode] = None
    default_proration: Optional[ProrationMode] = None
    preserve_trial_periods: bool = False
    trial_end: Optional[datetime] = None


@dataclass
class PlanChangeDecision:
    """Result of plan change analysis."""

    change_type: ChangeType
    proration: ProrationMode
    trial_days: Optional[int] = None


def is_same_plan(current_price_id: Optional[str], target_price_id: str) -> bool:
    """Check if the subscription is already on the target price."""
    return current_price_id == target_price_id


def classify_change(current_amount: int, target_amount: int) -> ChangeType:
    """A change is an upgrade only when the target costs strictly more."""
    if target_amount > current_amount:
        return ChangeType.UPGRADE
    return ChangeType.DOWNGRADE


def resolve_proration(
    change_type: ChangeType,
    explicit: Optional[ProrationMode] = None,
    default: Optional[ProrationMode] = None,
) -> ProrationMode:
    """Pick the proration mode for a change.

    Priority rules:
    1. Explicit request option
    2. Configured default
    3. Upgrades invoice immediately, downgrades defer to the next invoice
    """
    if explicit is not None:
        return explicit
    if default is not None:
        return default
    if change_type == ChangeType.UPGRADE:
        return ProrationMode.IMMEDIATE
    return ProrationMode.DEFERRED


def remaining_trial_days(trial_end: Optional[datetime], now: datetime) -> int:
    """Whole trial days left, rounded up; 0 when there is no trial or it has ended."""
    if trial_end is None:
        return 0
    remaining = (trial_end - now).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / SECONDS_PER_DAY)


def analyze_plan_change(context: PlanChangeContext) -> PlanChangeDecision:
    """Analyze a price change and decide proration and trial carry-over."""
    change_type = classify_change(context.current_amount, context.target_amount)
    proration = resolve_proration(
        change_type,
        explicit=context.explicit_proration,
        default=context.default_proration,
    )

    trial_days = None
    if context.preserve_trial_periods:
        days = remaining_trial_days(context.trial_end, context.now)
        if days > 0:
            trial_days = days

    return PlanChangeDecision(change_type=change_type, proration=proration, trial_days=trial_days)
