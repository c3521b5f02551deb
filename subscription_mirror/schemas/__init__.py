# flake8: noqa: F401
"""Schemas for the application."""

from .billing import BillingCustomer, BillingPrice, BillingSubscription
from .plan_change import PlanChangeAction, PlanChangeRequest, PlanChangeResult
from .subscription_record import (
    SubscriptionRecord,
    SubscriptionRecordUpdate,
    SubscriptionState,
    SubscriptionStatus,
)
from .sync import CancelRequest, CancelResult, SyncRequest, SyncResult
from .webhook_event import BillingEventType, DispatchResult, WebhookEvent
