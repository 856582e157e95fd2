import json
import time
import uuid
from datetime import datetime, timezone

from src.models.events import InboundEvent
from src.utils.crypto import generate_signature_header


def _id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


class StripeObjectFactory:
    """Stripe-shaped API objects (plain dicts) with sensible defaults."""

    @staticmethod
    def charge(**overrides) -> dict:
        defaults = {
            "id": _id("ch"),
            "object": "charge",
            "amount": 2500,
            "currency": "usd",
            "status": "succeeded",
            "metadata": {},
            "invoice": None,
            "payment_intent": None,
        }
        defaults.update(overrides)
        return defaults

    @staticmethod
    def refund(charge: str | dict | None = None, **overrides) -> dict:
        """``charge`` may be an id or an embedded charge dict."""
        defaults = {
            "id": _id("re"),
            "object": "refund",
            "amount": 2500,
            "currency": "usd",
            "status": "failed",
            "charge": charge if charge is not None else _id("ch"),
            "payment_intent": None,
            "metadata": {},
        }
        defaults.update(overrides)
        return defaults

    @staticmethod
    def invoice(line_metadata: dict | None = None, **overrides) -> dict:
        defaults = {
            "id": _id("in"),
            "object": "invoice",
            "currency": "usd",
            "amount_paid": 1000,
            "subtotal": 1000,
            "total_excluding_tax": 1000,
            "tax": 0,
            "subscription": _id("sub"),
            "charge": None,
            "lines": {
                "object": "list",
                "data": [{"id": _id("il"), "object": "line_item", "metadata": line_metadata or {}}],
            },
        }
        defaults.update(overrides)
        return defaults

    @staticmethod
    def checkout_session(**overrides) -> dict:
        defaults = {
            "id": _id("cs_test"),
            "object": "checkout.session",
            "currency": "usd",
            "amount_total": 2500,
            "amount_subtotal": 2500,
            "total_details": {"amount_tax": 0},
            "payment_intent": _id("pi"),
            "payment_status": "paid",
            "metadata": {},
        }
        defaults.update(overrides)
        return defaults


class WebhookFactory:
    """Event envelopes and signed inbound webhook requests."""

    @staticmethod
    def envelope(event_type: str, data_object: dict, **overrides) -> dict:
        defaults = {
            "id": _id("evt"),
            "object": "event",
            "api_version": "2020-08-27",
            "created": int(time.time()),
            "livemode": False,
            "type": event_type,
            "data": {"object": data_object},
        }
        defaults.update(overrides)
        return defaults

    @staticmethod
    def body(event_type: str, data_object: dict, **overrides) -> bytes:
        return json.dumps(WebhookFactory.envelope(event_type, data_object, **overrides)).encode()

    @staticmethod
    def signed(
        event_type: str,
        data_object: dict,
        secret: str,
        timestamp: int | None = None,
        **overrides,
    ) -> InboundEvent:
        payload = WebhookFactory.body(event_type, data_object, **overrides)
        return WebhookFactory.sign_payload(payload, secret, timestamp)

    @staticmethod
    def sign_payload(payload: bytes, secret: str, timestamp: int | None = None) -> InboundEvent:
        return InboundEvent(
            payload=payload,
            signature_header=generate_signature_header(payload, secret, timestamp),
            received_at=datetime.now(timezone.utc),
        )
