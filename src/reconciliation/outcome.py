from enum import Enum

from src.ledger.store import LedgerRecord, PaymentLedger
from src.models.settlement import AmountInfo, PaymentMetadata, ReasonCode, SettlementOutcome
from src.utils.currency import CurrencyRules, STRIPE_CURRENCY_RULES, from_minor_units


class ProcessingState(Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    CLASSIFIED = "classified"
    METADATA_RESOLVED = "metadata_resolved"
    AMOUNT_COMPUTED = "amount_computed"
    OUTCOME = "outcome"


_ORDER = list(ProcessingState)


class IllegalTransition(Exception):
    def __init__(self, current: ProcessingState, target: ProcessingState):
        super().__init__(f"cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


class OutcomeStateMachine:
    """Tracks one request through the pipeline and maps it to an outcome.

    States only move one step forward, except that OUTCOME can be reached
    from any earlier state when processing ends early.
    """

    def __init__(self, rules: CurrencyRules = STRIPE_CURRENCY_RULES):
        self.rules = rules
        self.state = ProcessingState.UNVERIFIED
        self.history: list[ProcessingState] = [self.state]

    @property
    def terminal(self) -> bool:
        return self.state is ProcessingState.OUTCOME

    def advance(self, target: ProcessingState) -> ProcessingState:
        if self.terminal:
            raise IllegalTransition(self.state, target)
        next_step = _ORDER[_ORDER.index(self.state) + 1]
        if target is not next_step and target is not ProcessingState.OUTCOME:
            raise IllegalTransition(self.state, target)
        self.state = target
        self.history.append(target)
        return target

    def settle(
        self,
        event_type: str,
        amount: AmountInfo,
        metadata: PaymentMetadata,
        ledger: PaymentLedger,
    ) -> tuple[SettlementOutcome, LedgerRecord | None]:
        if event_type == "charge.succeeded":
            result = self._check_payment(amount, metadata, ledger)
        elif event_type == "charge.refunded":
            result = self._check_refund(SettlementOutcome.refunded(), metadata, ledger)
        elif event_type == "refund.failed":
            result = self._check_refund(SettlementOutcome.refund_failed(), metadata, ledger)
        elif event_type == "charge.failed":
            # Logged and acknowledged; nothing is settled for a failed charge.
            result = SettlementOutcome.unhandled(ReasonCode.CHARGE_FAILED), None
        else:
            result = SettlementOutcome.unhandled(), None
        self.advance(ProcessingState.OUTCOME)
        return result

    def settle_session(
        self,
        payment_status: str | None,
        amount: AmountInfo,
        metadata: PaymentMetadata,
        ledger: PaymentLedger,
    ) -> tuple[SettlementOutcome, LedgerRecord | None]:
        """Outcome for a synchronous checkout redirect."""
        if payment_status == "paid":
            result = self._check_payment(amount, metadata, ledger)
        else:
            result = SettlementOutcome.rejected(ReasonCode.INVALID_PAYMENT_STATUS), None
        self.advance(ProcessingState.OUTCOME)
        return result

    @staticmethod
    def _check_refund(
        outcome: SettlementOutcome, metadata: PaymentMetadata, ledger: PaymentLedger
    ) -> tuple[SettlementOutcome, LedgerRecord | None]:
        # Amounts are not compared; the payment only has to exist.
        record = ledger.find_payment(metadata.hash)
        if record is None:
            return SettlementOutcome.rejected(ReasonCode.PAYMENT_NOT_FOUND), None
        return outcome, record

    def _check_payment(
        self, amount: AmountInfo, metadata: PaymentMetadata, ledger: PaymentLedger
    ) -> tuple[SettlementOutcome, LedgerRecord | None]:
        record = ledger.find_payment(metadata.hash)
        if record is None:
            return SettlementOutcome.rejected(ReasonCode.PAYMENT_NOT_FOUND), None

        expected = ledger.subscription_price(
            record.subscription_id, record.subscription_sub_id, amount.currency
        )
        paid = from_minor_units(amount.amount_minor_units, amount.currency, self.rules)
        if expected is None or expected != paid:
            return SettlementOutcome.rejected(ReasonCode.INVALID_PAYMENT_AMOUNT), record
        return SettlementOutcome.paid(), record
