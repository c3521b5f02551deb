"""Plan change schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from subscription_mirror.core.sync_config import ProrationMode


class PlanChangeAction(str, Enum):
    """Tagged outcome of a plan change."""

    PLAN_CHANGED = "PLAN_CHANGED"
    ALREADY_ON_PLAN = "ALREADY_ON_PLAN"
    USE_PAYMENT_LINK = "USE_PAYMENT_LINK"


class PlanChangeRequest(BaseModel):
    """Plan change request."""

    email: str = Field(..., description="Identity of the user changing plans")
    new_plan_id: str = Field(..., min_length=1, description="Target price ID")
    proration_behavior: Optional[ProrationMode] = Field(
        None, description="Overrides the configured and direction-based proration"
    )


class PlanChangeResult(BaseModel):
    """Plan change result."""

    action: PlanChangeAction
    subscription_id: Optional[str] = None
    customer_id: Optional[str] = Field(
        None, description="Set for USE_PAYMENT_LINK so the caller can start checkout"
    )
    proration: Optional[ProrationMode] = None
    effective_date: Optional[datetime] = Field(
        None, description="End of the new current period"
    )
    trial_days: Optional[int] = Field(None, description="Trial days carried into the update")
