import pytest

from src.models.settlement import AmountInfo, OutcomeKind, PaymentMetadata, ReasonCode
from src.reconciliation.outcome import IllegalTransition, OutcomeStateMachine, ProcessingState

PAYMENT_HASH = "hash_abc123"


@pytest.fixture
def machine():
    machine = OutcomeStateMachine()
    for state in (
        ProcessingState.VERIFIED,
        ProcessingState.CLASSIFIED,
        ProcessingState.METADATA_RESOLVED,
        ProcessingState.AMOUNT_COMPUTED,
    ):
        machine.advance(state)
    return machine


@pytest.fixture
def metadata():
    return PaymentMetadata(hash=PAYMENT_HASH)


class TestTransitions:
    """Forward-only progression."""

    @pytest.mark.unit
    def test_starts_unverified(self):
        assert OutcomeStateMachine().state is ProcessingState.UNVERIFIED

    @pytest.mark.unit
    def test_skipping_a_step_is_illegal(self):
        machine = OutcomeStateMachine()
        with pytest.raises(IllegalTransition):
            machine.advance(ProcessingState.CLASSIFIED)

    @pytest.mark.unit
    def test_going_back_is_illegal(self):
        machine = OutcomeStateMachine()
        machine.advance(ProcessingState.VERIFIED)
        with pytest.raises(IllegalTransition):
            machine.advance(ProcessingState.UNVERIFIED)

    @pytest.mark.unit
    def test_outcome_reachable_early(self):
        machine = OutcomeStateMachine()
        machine.advance(ProcessingState.VERIFIED)
        machine.advance(ProcessingState.OUTCOME)
        assert machine.terminal
        assert machine.history == [
            ProcessingState.UNVERIFIED, ProcessingState.VERIFIED, ProcessingState.OUTCOME,
        ]

    @pytest.mark.unit
    def test_outcome_is_terminal(self):
        machine = OutcomeStateMachine()
        machine.advance(ProcessingState.OUTCOME)
        with pytest.raises(IllegalTransition):
            machine.advance(ProcessingState.OUTCOME)


class TestSettle:
    """Event type to settlement outcome."""

    @pytest.mark.unit
    def test_matching_amount_is_paid(self, machine, metadata, ledger):
        outcome, record = machine.settle("charge.succeeded", AmountInfo(2500, "usd"), metadata, ledger)

        assert outcome.kind is OutcomeKind.PAID
        assert record.hash == PAYMENT_HASH
        assert machine.state is ProcessingState.OUTCOME

    @pytest.mark.unit
    def test_mismatched_amount_is_rejected(self, machine, metadata, ledger):
        ledger.set_price("7", "3", "usd", "30.00")
        outcome, _ = machine.settle("charge.succeeded", AmountInfo(2500, "usd"), metadata, ledger)

        assert outcome.kind is OutcomeKind.REJECTED
        assert outcome.reason is ReasonCode.INVALID_PAYMENT_AMOUNT

    @pytest.mark.unit
    def test_no_price_for_currency_is_rejected(self, machine, metadata, ledger):
        outcome, _ = machine.settle("charge.succeeded", AmountInfo(2500, "eur"), metadata, ledger)
        assert outcome.reason is ReasonCode.INVALID_PAYMENT_AMOUNT

    @pytest.mark.unit
    def test_unknown_hash_is_payment_not_found(self, machine, ledger):
        outcome, record = machine.settle(
            "charge.succeeded", AmountInfo(2500, "usd"), PaymentMetadata(hash="nope"), ledger
        )
        assert outcome.reason is ReasonCode.PAYMENT_NOT_FOUND
        assert record is None

    @pytest.mark.unit
    def test_zero_decimal_price(self, machine, metadata, ledger):
        ledger.set_price("7", "3", "jpy", 2500)
        outcome, _ = machine.settle("charge.succeeded", AmountInfo(2500, "jpy"), metadata, ledger)
        assert outcome.kind is OutcomeKind.PAID

    @pytest.mark.unit
    def test_refunded(self, machine, metadata, ledger):
        outcome, _ = machine.settle("charge.refunded", AmountInfo(2500, "usd"), metadata, ledger)
        assert outcome.kind is OutcomeKind.REFUNDED

    @pytest.mark.unit
    def test_refund_failed(self, machine, metadata, ledger):
        outcome, _ = machine.settle("refund.failed", AmountInfo(2500, "usd"), metadata, ledger)
        assert outcome.kind is OutcomeKind.REFUND_FAILED

    @pytest.mark.unit
    @pytest.mark.parametrize("event_type", ["charge.refunded", "refund.failed"])
    def test_refund_of_unknown_payment_is_not_found(self, machine, ledger, event_type):
        outcome, record = machine.settle(
            event_type, AmountInfo(2500, "usd"), PaymentMetadata(hash="no_such_hash"), ledger
        )
        assert outcome.kind is OutcomeKind.REJECTED
        assert outcome.reason is ReasonCode.PAYMENT_NOT_FOUND
        assert record is None

    @pytest.mark.unit
    def test_refund_ignores_amount(self, machine, metadata, ledger):
        outcome, record = machine.settle("charge.refunded", AmountInfo(1, "eur"), metadata, ledger)
        assert outcome.kind is OutcomeKind.REFUNDED
        assert record.hash == PAYMENT_HASH

    @pytest.mark.unit
    def test_charge_failed_is_unhandled(self, machine, metadata, ledger):
        outcome, record = machine.settle("charge.failed", AmountInfo(2500, "usd"), metadata, ledger)
        assert outcome.kind is OutcomeKind.UNHANDLED
        assert outcome.reason is ReasonCode.CHARGE_FAILED
        assert record is None

    @pytest.mark.unit
    def test_other_type_is_unhandled(self, machine, metadata, ledger):
        outcome, _ = machine.settle("invoice.paid", AmountInfo(2500, "usd"), metadata, ledger)
        assert outcome.reason is ReasonCode.UNHANDLED_EVENT


class TestSettleSession:
    @pytest.mark.unit
    def test_paid_session(self, machine, metadata, ledger):
        outcome, _ = machine.settle_session("paid", AmountInfo(2500, "usd"), metadata, ledger)
        assert outcome.kind is OutcomeKind.PAID

    @pytest.mark.unit
    def test_unpaid_session(self, machine, metadata, ledger):
        outcome, _ = machine.settle_session("unpaid", AmountInfo(2500, "usd"), metadata, ledger)
        assert outcome.reason is ReasonCode.INVALID_PAYMENT_STATUS
