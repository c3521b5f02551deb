"""Translate Stripe objects into provider-side schemas.

Stripe objects are converted to plain dicts first so that the same code handles live
`StripeObject` instances, event payloads and test fixtures.
"""

from collections.abc import Mapping
from typing import Any, Optional

from subscription_mirror.core.datetime_utils import from_unix
from subscription_mirror.schemas.billing import BillingCustomer, BillingPrice, BillingSubscription


def to_plain(obj: Any) -> Any:
    """Return a plain-dict view of a Stripe object (or the value itself)."""
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if type(obj) is dict:
        return obj
    for attr in ("to_dict", "to_dict_recursive"):
        method = getattr(obj, attr, None)
        if callable(method):
            return method()
    if isinstance(obj, Mapping):
        return dict(obj)
    return obj


def _first_item(subscription: dict) -> dict:
    items = subscription.get("items") or {}
    data = items.get("data") if isinstance(items, Mapping) else None
    if not data:
        return {}
    return to_plain(data[0]) or {}


def _id_of(value: Any) -> Optional[str]:
    """Stripe references are either an ID string or an expanded object."""
    value = to_plain(value)
    if isinstance(value, Mapping):
        return value.get("id")
    return value


def _payment_method_summary(value: Any) -> Optional[str]:
    value = to_plain(value)
    if not value:
        return None
    if isinstance(value, Mapping):
        card = value.get("card") or {}
        if card.get("brand") and card.get("last4"):
            return f"{card['brand']} ****{card['last4']}"
        return value.get("id")
    return str(value)


def _explicit_email(subscription: dict) -> Optional[str]:
    """Email carried by the subscription payload itself, without a customer lookup."""
    if subscription.get("customer_email"):
        return subscription["customer_email"]
    metadata = subscription.get("metadata") or {}
    if metadata.get("email"):
        return metadata["email"]
    customer = to_plain(subscription.get("customer"))
    if isinstance(customer, Mapping):
        return customer.get("email")
    return None


def subscription_from_stripe(obj: Any) -> BillingSubscription:
    """Build a subscription snapshot from a Stripe subscription object.

    Newer Stripe API versions carry the billing period on the subscription item rather than
    on the subscription, so both places are read.
    """
    subscription = to_plain(obj)
    item = _first_item(subscription)
    price = to_plain(item.get("price"))

    period_start = subscription.get("current_period_start") or item.get("current_period_start")
    period_end = subscription.get("current_period_end") or item.get("current_period_end")

    return BillingSubscription(
        id=subscription["id"],
        customer_id=_id_of(subscription.get("customer")),
        customer_email=_explicit_email(subscription),
        status=subscription.get("status") or "",
        price_id=_id_of(price),
        item_id=item.get("id"),
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
        trial_start=from_unix(subscription.get("trial_start")),
        trial_end=from_unix(subscription.get("trial_end")),
        current_period_start=from_unix(period_start),
        current_period_end=from_unix(period_end),
        canceled_at=from_unix(subscription.get("canceled_at")),
        payment_method=_payment_method_summary(subscription.get("default_payment_method")),
    )


def customer_from_stripe(obj: Any) -> Optional[BillingCustomer]:
    """Build a customer from a Stripe customer object; deleted customers yield None."""
    customer = to_plain(obj)
    if not customer or customer.get("deleted"):
        return None
    return BillingCustomer(id=customer["id"], email=customer.get("email"))


def price_from_stripe(obj: Any) -> BillingPrice:
    """Build a price from a Stripe price object."""
    price = to_plain(obj)
    return BillingPrice(id=price["id"], unit_amount=price.get("unit_amount") or 0)
