"""Stripe objects the reconciliation pipeline understands.

Every object is parsed from a mapping, which may be a plain ``dict`` decoded
from a webhook body or a ``stripe.StripeObject`` returned by the SDK (both
support ``.get``). Only the fields the pipeline reads are kept.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Union


def _int_or_none(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def _id_of(value: Any) -> str | None:
    """Expandable fields arrive either as an id string or an embedded object."""
    if value is None or isinstance(value, str):
        return value
    return value.get("id")


def _metadata(data: Mapping) -> dict:
    return dict(data.get("metadata") or {})


@dataclass(frozen=True)
class Charge:
    id: str
    amount: int | None
    currency: str | None
    metadata: dict = field(default_factory=dict)
    invoice: str | None = None
    payment_intent: str | None = None
    status: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> "Charge":
        return cls(
            id=data.get("id") or "",
            amount=_int_or_none(data.get("amount")),
            currency=data.get("currency"),
            metadata=_metadata(data),
            invoice=_id_of(data.get("invoice")),
            payment_intent=_id_of(data.get("payment_intent")),
            status=data.get("status"),
        )


@dataclass(frozen=True)
class Refund:
    id: str
    charge: "str | Charge | None"
    amount: int | None
    currency: str | None
    payment_intent: str | None = None
    status: str | None = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping) -> "Refund":
        charge = data.get("charge")
        if charge is not None and not isinstance(charge, str):
            charge = Charge.from_dict(charge)
        return cls(
            id=data.get("id") or "",
            charge=charge,
            amount=_int_or_none(data.get("amount")),
            currency=data.get("currency"),
            payment_intent=_id_of(data.get("payment_intent")),
            status=data.get("status"),
            metadata=_metadata(data),
        )

    @property
    def charge_id(self) -> str | None:
        if isinstance(self.charge, Charge):
            return self.charge.id
        return self.charge


@dataclass(frozen=True)
class InvoiceLine:
    id: str
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping) -> "InvoiceLine":
        return cls(id=data.get("id") or "", metadata=_metadata(data))


@dataclass(frozen=True)
class Invoice:
    id: str
    currency: str | None
    amount_paid: int | None
    subtotal: int | None
    total_excluding_tax: int | None
    tax: int | None = None
    subscription: str | None = None
    charge: str | None = None
    lines: tuple[InvoiceLine, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping) -> "Invoice":
        lines = (data.get("lines") or {}).get("data") or []
        return cls(
            id=data.get("id") or "",
            currency=data.get("currency"),
            amount_paid=_int_or_none(data.get("amount_paid")),
            subtotal=_int_or_none(data.get("subtotal")),
            total_excluding_tax=_int_or_none(data.get("total_excluding_tax")),
            tax=_int_or_none(data.get("tax")),
            subscription=_id_of(data.get("subscription")),
            charge=_id_of(data.get("charge")),
            lines=tuple(InvoiceLine.from_dict(line) for line in lines),
        )

    @property
    def first_line_metadata(self) -> dict:
        if not self.lines:
            return {}
        return self.lines[0].metadata


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    currency: str | None
    amount_total: int | None
    amount_subtotal: int | None
    amount_tax: int | None
    payment_intent: str | None = None
    payment_status: str | None = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping) -> "CheckoutSession":
        total_details = data.get("total_details") or {}
        return cls(
            id=data.get("id") or "",
            currency=data.get("currency"),
            amount_total=_int_or_none(data.get("amount_total")),
            amount_subtotal=_int_or_none(data.get("amount_subtotal")),
            amount_tax=_int_or_none(total_details.get("amount_tax")),
            payment_intent=_id_of(data.get("payment_intent")),
            payment_status=data.get("payment_status"),
            metadata=_metadata(data),
        )


@dataclass(frozen=True)
class UnknownObject:
    """Any data object the pipeline has no arm for (kept for logging)."""

    object_type: str
    raw: dict = field(default_factory=dict)


EventObject = Union[Charge, Refund, Invoice, UnknownObject]

_OBJECT_PARSERS = {
    "charge": Charge.from_dict,
    "refund": Refund.from_dict,
    "invoice": Invoice.from_dict,
}


def parse_event_object(data: Mapping) -> EventObject:
    object_type = data.get("object") or ""
    parser = _OBJECT_PARSERS.get(object_type)
    if parser is None:
        return UnknownObject(object_type=object_type, raw=dict(data))
    return parser(data)


@dataclass(frozen=True)
class InboundEvent:
    """A webhook request exactly as received, before any verification."""

    payload: bytes
    signature_header: str
    received_at: datetime


@dataclass(frozen=True)
class VerifiedEvent:
    type: str
    data_object: EventObject
    id: str | None = None
    created: int | None = None
    livemode: bool = False

    @property
    def transaction_id(self) -> str | None:
        """The charge this event is about (a refund points at its charge)."""
        obj = self.data_object
        if isinstance(obj, Charge):
            return obj.id
        if isinstance(obj, Refund):
            return obj.charge_id
        if isinstance(obj, Invoice):
            return obj.charge or obj.id
        return None
