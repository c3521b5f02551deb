"""Verification and decoding of inbound billing events."""

from typing import Any, Mapping, Optional

from subscription_mirror.core.exceptions import BodyMissing, SignatureInvalid, SignatureMissing
from subscription_mirror.core.logging import LoggerConfigurator
from subscription_mirror.core.sync_config import SyncConfig
from subscription_mirror.integrations._base import BillingProvider
from subscription_mirror.integrations.stripe_translator import subscription_from_stripe, to_plain
from subscription_mirror.schemas.webhook_event import BillingEventType, WebhookEvent

logger = LoggerConfigurator.configure_logger(__name__, dimensions={"component": "webhooks"})


class EventVerifier:
    """Authenticate raw webhook bodies and decode them into typed events.

    Trust decisions go through the provider's signature verification only; the body is
    never parsed before the signature has been checked.
    """

    def __init__(
        self,
        provider: BillingProvider,
        config: SyncConfig,
        secret: Optional[str] = None,
    ):
        """Initialize the verifier."""
        self.provider = provider
        self.config = config
        self.secret = secret
        self.log = LoggerConfigurator.for_instance(logger, config.debug)

    def verify(
        self,
        raw_body: Optional[bytes],
        signature: Optional[str],
        headers: Optional[Mapping[str, str]] = None,
        secret: Optional[str] = None,
    ) -> WebhookEvent:
        """Verify a raw event and decode it.

        Args:
            raw_body: The unparsed request body.
            signature: The `Stripe-Signature` header value.
            headers: The full header map, only logged for diagnostics.
            secret: Overrides the verifier's webhook secret.

        Raises:
            BodyMissing: If the body is empty.
            SignatureMissing: If there is no signature header.
            SignatureInvalid: If the provider rejects the signature or the body.
        """
        if headers is not None and self.config.debug:
            self.log.debug(f"Webhook headers: {dict(headers)}")

        if not raw_body:
            raise BodyMissing()
        if not signature:
            raise SignatureMissing()

        try:
            event = self.provider.verify_webhook_signature(
                raw_body, signature, secret or self.secret
            )
        except ValueError as e:
            self.log.warning(f"Rejected webhook: {e}")
            raise SignatureInvalid(str(e)) from e

        return self._decode(event, raw_body, signature)

    def _decode(self, event: Any, raw_body: bytes, signature: str) -> WebhookEvent:
        data = to_plain(event)
        raw_type = data.get("type") or ""
        event_type = BillingEventType.from_provider(raw_type)

        event_object = to_plain((data.get("data") or {}).get("object")) or {}
        subscription = None
        if event_object.get("object") == "subscription":
            subscription = subscription_from_stripe(event_object)

        if event_type == BillingEventType.IGNORED:
            self.log.debug(f"Unhandled webhook event type: {raw_type}")

        return WebhookEvent(
            id=data.get("id"),
            type=event_type,
            raw_type=raw_type,
            subscription=subscription,
            payload=raw_body,
            signature=signature,
        )
