from .events import (
    Charge, CheckoutSession, EventObject, InboundEvent, Invoice, InvoiceLine,
    Refund, UnknownObject, VerifiedEvent, parse_event_object,
)
from .settlement import (
    AmountInfo, OutcomeKind, PaymentMetadata, ReasonCode, RetryDecision,
    SettlementOutcome,
)

__all__ = [
    "Charge", "CheckoutSession", "EventObject", "InboundEvent", "Invoice",
    "InvoiceLine", "Refund", "UnknownObject", "VerifiedEvent", "parse_event_object",
    "AmountInfo", "OutcomeKind", "PaymentMetadata", "ReasonCode", "RetryDecision",
    "SettlementOutcome",
]
