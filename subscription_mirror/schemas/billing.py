"""Provider-side (billing) schemas.

These are read-only snapshots of provider objects; they are fetched fresh for every
operation and never cached.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class BillingCustomer(BaseModel):
    """A billing provider customer."""

    id: str = Field(..., description="Provider customer ID")
    email: Optional[str] = Field(None, description="Customer email")


class BillingPrice(BaseModel):
    """A billing provider price."""

    id: str = Field(..., description="Provider price ID")
    unit_amount: int = Field(0, description="Amount in the smallest currency unit")


class BillingSubscription(BaseModel):
    """A billing provider subscription snapshot."""

    id: str = Field(..., description="Provider subscription ID")
    customer_id: Optional[str] = Field(None, description="Provider customer ID")
    customer_email: Optional[str] = Field(
        None, description="Email carried on the payload itself, if any"
    )
    status: str = Field(..., description="Raw provider status")
    price_id: Optional[str] = Field(None, description="Price of the first subscription item")
    item_id: Optional[str] = Field(None, description="ID of the first subscription item")
    cancel_at_period_end: bool = False
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    payment_method: Optional[str] = Field(None, description="Payment method summary")
