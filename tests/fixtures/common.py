"""Common test fixtures."""

import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import MagicMock

import pytest

from subscription_mirror.core.exceptions import UserNotFound
from subscription_mirror.core.sync_config import SyncConfig
from subscription_mirror.integrations._base import BillingProvider
from subscription_mirror.platform.billing.mirror_repository import MirrorRepository
from subscription_mirror.schemas.billing import BillingCustomer, BillingPrice, BillingSubscription
from subscription_mirror.schemas.subscription_record import (
    SubscriptionRecord,
    SubscriptionRecordUpdate,
)

WEBHOOK_SECRET = "whsec_test_secret"

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

PRICE_AMOUNTS = {"price_basic": 1000, "price_pro": 2000, "price_team": 5000}


class InMemoryMirror(MirrorRepository):
    """Mirror repository keeping records in a dict, with call counters for assertions."""

    def __init__(self, auto_create_on_miss: bool = False):
        self.records: dict[str, SubscriptionRecord] = {}
        self.auto_create_on_miss = auto_create_on_miss
        self.update_calls: list[tuple[str, dict]] = []

    async def find_by_identity(self, identity: str) -> Optional[SubscriptionRecord]:
        return self.records.get(identity)

    async def update_by_identity(
        self, identity: str, update: SubscriptionRecordUpdate
    ) -> SubscriptionRecord:
        changes = update.changes()
        self.update_calls.append((identity, changes))
        record = self.records.get(identity)
        if record is None:
            if not self.auto_create_on_miss:
                raise UserNotFound(f"User with email {identity} not found in users")
            record = SubscriptionRecord(identity=identity)
        record = record.model_copy(update=changes)
        self.records[identity] = record
        return record

    async def insert(
        self, identity: str, update: Optional[SubscriptionRecordUpdate] = None
    ) -> SubscriptionRecord:
        changes = update.changes() if update else {}
        record = SubscriptionRecord(identity=identity, **changes)
        self.records[identity] = record
        return record


def make_subscription(**overrides) -> BillingSubscription:
    """Build a provider subscription snapshot with sensible defaults."""
    values = {
        "id": "sub_123",
        "customer_id": "cus_123",
        "customer_email": None,
        "status": "active",
        "price_id": "price_basic",
        "item_id": "si_123",
        "cancel_at_period_end": False,
        "current_period_start": FIXED_NOW - timedelta(days=10),
        "current_period_end": FIXED_NOW + timedelta(days=20),
    }
    values.update(overrides)
    return BillingSubscription(**values)


def stripe_subscription_payload(**overrides) -> dict:
    """A Stripe subscription object as it appears in webhook payloads."""
    payload = {
        "id": "sub_123",
        "object": "subscription",
        "customer": "cus_123",
        "status": "active",
        "cancel_at_period_end": False,
        "trial_start": None,
        "trial_end": None,
        "canceled_at": None,
        "current_period_start": 1709294400,
        "current_period_end": 1711972800,
        "metadata": {},
        "items": {
            "object": "list",
            "data": [{"id": "si_123", "price": {"id": "price_pro", "unit_amount": 2000}}],
        },
    }
    payload.update(overrides)
    return payload


def signed_event(
    event_type: str,
    data_object: dict,
    secret: str = WEBHOOK_SECRET,
    event_id: str = "evt_123",
) -> tuple[bytes, str]:
    """Serialize an event and sign it the way Stripe signs webhook deliveries."""
    body = json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": data_object},
        }
    ).encode("utf-8")
    timestamp = int(time.time())
    signed_payload = f"{timestamp}.{body.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return body, f"t={timestamp},v1={signature}"


@pytest.fixture
def sync_config():
    """Default sync configuration."""
    return SyncConfig()


@pytest.fixture
def trial_config():
    """Configuration that mirrors trial fields and preserves trials across plan changes."""
    return SyncConfig.from_mapping({"trialFieldsMirrored": True, "preserveTrialPeriods": True})


@pytest.fixture
def mock_provider():
    """Billing provider mock; async methods are AsyncMocks."""
    provider = MagicMock(spec=BillingProvider)
    provider.find_customer_by_email.return_value = BillingCustomer(
        id="cus_123", email="user@example.com"
    )
    provider.get_customer.return_value = BillingCustomer(id="cus_123", email="user@example.com")
    provider.list_active_subscriptions.return_value = []
    provider.retrieve_price.side_effect = lambda price_id: BillingPrice(
        id=price_id, unit_amount=PRICE_AMOUNTS.get(price_id, 0)
    )
    return provider


@pytest.fixture
def mirror():
    """In-memory mirror holding one record for user@example.com."""
    repository = InMemoryMirror()
    repository.records["user@example.com"] = SubscriptionRecord(
        identity="user@example.com", status="active", plan="price_basic"
    )
    return repository
