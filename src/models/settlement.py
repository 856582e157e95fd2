from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class ReasonCode(Enum):
    INVALID_REQUEST = "invalid_request"
    INVALID_PAYLOAD = "invalid_payload"
    INVALID_SIGNATURE = "invalid_signature"
    VERIFICATION_ERROR = "verify_webhook_unknown_error"
    FETCH_CHARGE_FAILED = "failed_fetch_charge"
    FETCH_INVOICE_FAILED = "failed_fetch_invoice"
    METADATA_MISSING = "metadata_missing"
    MISSING_AMOUNT_DATA = "missing_currency_amount_data"
    PAYMENT_NOT_FOUND = "payment_not_found"
    INVALID_PAYMENT_AMOUNT = "invalid_payment_amount"
    INVALID_PAYMENT_STATUS = "invalid_payment_status"
    INVALID_SESSION = "invalid_stripe_session_id"
    UNHANDLED_EVENT = "unhandled_event"
    CHARGE_FAILED = "charge_failed"
    INTERNAL_ERROR = "stripe_verify_payment_failed"


class RetryDecision(Enum):
    ACK = "ack"
    RETRY = "retry"

    @property
    def status_code(self) -> int:
        return 200 if self is RetryDecision.ACK else 400


class OutcomeKind(Enum):
    PAID = "paid"
    REFUNDED = "refunded"
    REFUND_FAILED = "refund_failed"
    UNHANDLED = "unhandled"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SettlementOutcome:
    kind: OutcomeKind
    reason: ReasonCode | None = None

    @classmethod
    def paid(cls) -> "SettlementOutcome":
        return cls(OutcomeKind.PAID)

    @classmethod
    def refunded(cls) -> "SettlementOutcome":
        return cls(OutcomeKind.REFUNDED)

    @classmethod
    def refund_failed(cls) -> "SettlementOutcome":
        return cls(OutcomeKind.REFUND_FAILED)

    @classmethod
    def unhandled(cls, reason: ReasonCode = ReasonCode.UNHANDLED_EVENT) -> "SettlementOutcome":
        return cls(OutcomeKind.UNHANDLED, reason)

    @classmethod
    def rejected(cls, reason: ReasonCode) -> "SettlementOutcome":
        return cls(OutcomeKind.REJECTED, reason)

    @property
    def is_settlement(self) -> bool:
        """True when the ledger should record something for this outcome."""
        return self.kind in (OutcomeKind.PAID, OutcomeKind.REFUNDED, OutcomeKind.REFUND_FAILED)


@dataclass(frozen=True)
class PaymentMetadata:
    """Ledger correlation data carried in Stripe metadata.

    ``hash`` is the only key the ledger needs; the rest are informational
    (they make records searchable in the Stripe dashboard).
    """

    hash: str
    subscription_id: str = ""
    user_id: str = ""
    source: str = ""
    data_src: str = ""

    @staticmethod
    def has_hash(metadata: Mapping | None) -> bool:
        return bool(metadata) and bool(metadata.get("hash"))

    @classmethod
    def from_mapping(cls, metadata: Mapping) -> "PaymentMetadata":
        return cls(
            hash=str(metadata["hash"]),
            subscription_id=str(metadata.get("subscriptionid") or ""),
            user_id=str(metadata.get("userid") or ""),
            source=str(metadata.get("source") or ""),
            data_src=str(metadata.get("data_src") or ""),
        )


@dataclass(frozen=True)
class AmountInfo:
    amount_minor_units: int
    currency: str
    tax_minor_units: int = 0
    tax_inclusive: bool = True

    def __post_init__(self):
        if isinstance(self.amount_minor_units, bool) or not isinstance(self.amount_minor_units, int):
            raise TypeError(f"amount must be integral minor units, got {self.amount_minor_units!r}")
        if not isinstance(self.tax_minor_units, int):
            raise TypeError(f"tax must be integral minor units, got {self.tax_minor_units!r}")
        if self.amount_minor_units < 0:
            raise ValueError(f"amount cannot be negative: {self.amount_minor_units}")
        if not isinstance(self.currency, str) or len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(f"invalid ISO-4217 currency code: {self.currency!r}")
        # Stripe sends and expects lower case codes.
        object.__setattr__(self, "currency", self.currency.lower())
