"""Mirror-side subscription record schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionStatus(str, Enum):
    """Subscription status as stored on the mirror."""

    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INACTIVE = "inactive"
    UNPAID = "unpaid"


class SubscriptionState(BaseModel):
    """The status/plan pair that drift is measured on."""

    model_config = ConfigDict(frozen=True)

    status: Optional[SubscriptionStatus] = Field(None, description="Subscription status")
    plan: Optional[str] = Field(None, description="Plan (price) identifier")


class SubscriptionRecord(BaseModel):
    """A customer's entitlement record as persisted on the mirror."""

    identity: str = Field(..., description="Identity key (email)")
    status: Optional[SubscriptionStatus] = Field(None, description="Subscription status")
    plan: Optional[str] = Field(None, description="Plan (price) identifier")
    trial: Optional[bool] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None
    payment_method: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    @property
    def state(self) -> SubscriptionState:
        """The record's status/plan pair."""
        return SubscriptionState(status=self.status, plan=self.plan)


class SubscriptionRecordUpdate(BaseModel):
    """Field updates for a mirror record.

    Only fields that were explicitly set are written; setting a field to None writes null.
    """

    status: Optional[SubscriptionStatus] = None
    plan: Optional[str] = None
    trial: Optional[bool] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    cancel_at_period_end: Optional[bool] = None
    payment_method: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    def changes(self) -> dict[str, Any]:
        """Logical field name to value for every explicitly set field."""
        return self.model_dump(exclude_unset=True)
