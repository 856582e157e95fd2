from enum import Enum

from src.models.events import VerifiedEvent

# charge.succeeded is the only event sent for one-time payments, first
# subscription payments and renewals alike, so it drives provisioning. The
# checkout.session.* and invoice.* events overlap with it and are not handled.
HANDLED_EVENT_TYPES = frozenset({
    "charge.succeeded",
    "charge.refunded",
    "charge.failed",
    "refund.failed",
})


class Classification(Enum):
    PROCESSABLE = "processable"
    LOG_ONLY = "log_only"


def classify(event: VerifiedEvent, handled: frozenset[str] = HANDLED_EVENT_TYPES) -> Classification:
    """Unknown types are acknowledged and logged, never retried.

    Extra types show up when an endpoint is reconfigured by hand or events are
    forwarded from the Stripe CLI.
    """
    if event.type in handled:
        return Classification.PROCESSABLE
    return Classification.LOG_ONLY
