import pytest

from src.models.events import (
    Charge, CheckoutSession, Invoice, Refund, UnknownObject, VerifiedEvent, parse_event_object,
)
from src.models.settlement import AmountInfo, PaymentMetadata, RetryDecision, SettlementOutcome, OutcomeKind
from src.utils.factories import StripeObjectFactory


class TestParseEventObject:
    """Dispatch on the Stripe ``object`` discriminator."""

    @pytest.mark.unit
    def test_charge(self):
        obj = parse_event_object(StripeObjectFactory.charge(id="ch_1", invoice="in_1"))
        assert isinstance(obj, Charge)
        assert obj.invoice == "in_1"

    @pytest.mark.unit
    def test_refund_with_charge_id(self):
        obj = parse_event_object(StripeObjectFactory.refund(charge="ch_2"))
        assert isinstance(obj, Refund)
        assert obj.charge_id == "ch_2"

    @pytest.mark.unit
    def test_invoice_lines(self):
        obj = parse_event_object(StripeObjectFactory.invoice(line_metadata={"hash": "B"}))
        assert isinstance(obj, Invoice)
        assert obj.first_line_metadata == {"hash": "B"}

    @pytest.mark.unit
    def test_invoice_without_lines(self):
        obj = parse_event_object(StripeObjectFactory.invoice(lines={"data": []}))
        assert obj.first_line_metadata == {}

    @pytest.mark.unit
    def test_unknown(self):
        obj = parse_event_object({"object": "payout", "id": "po_1"})
        assert isinstance(obj, UnknownObject)
        assert obj.raw["id"] == "po_1"

    @pytest.mark.unit
    def test_expanded_invoice_reduced_to_id(self):
        charge = Charge.from_dict(StripeObjectFactory.charge(invoice={"id": "in_9", "object": "invoice"}))
        assert charge.invoice == "in_9"

    @pytest.mark.unit
    def test_session_tax_from_total_details(self):
        session = CheckoutSession.from_dict(
            StripeObjectFactory.checkout_session(total_details={"amount_tax": 200})
        )
        assert session.amount_tax == 200


class TestTransactionId:
    @pytest.mark.unit
    def test_invoice_prefers_its_charge(self):
        invoice = Invoice.from_dict(StripeObjectFactory.invoice(id="in_1", charge="ch_1"))
        assert VerifiedEvent(type="x", data_object=invoice).transaction_id == "ch_1"


class TestValueTypes:
    """Metadata, amount and outcome value objects."""

    @pytest.mark.unit
    def test_metadata_from_mapping(self):
        metadata = PaymentMetadata.from_mapping(
            {"hash": "h", "subscriptionid": "7", "userid": "42", "source": "web", "data_src": "x"}
        )
        assert metadata == PaymentMetadata("h", "7", "42", "web", "x")

    @pytest.mark.unit
    def test_empty_hash_does_not_count(self):
        assert not PaymentMetadata.has_hash({"hash": ""})
        assert not PaymentMetadata.has_hash({})
        assert not PaymentMetadata.has_hash(None)

    @pytest.mark.unit
    def test_amount_rejects_negative(self):
        with pytest.raises(ValueError):
            AmountInfo(-1, "usd")

    @pytest.mark.unit
    def test_amount_rejects_non_integral(self):
        with pytest.raises(TypeError):
            AmountInfo(12.5, "usd")

    @pytest.mark.unit
    def test_amount_rejects_bad_currency(self):
        with pytest.raises(ValueError):
            AmountInfo(100, "dollars")

    @pytest.mark.unit
    def test_amount_lowercases_currency(self):
        assert AmountInfo(100, "EUR").currency == "eur"

    @pytest.mark.unit
    def test_decision_status_codes(self):
        assert RetryDecision.ACK.status_code == 200
        assert RetryDecision.RETRY.status_code == 400

    @pytest.mark.unit
    def test_outcome_settlement_flag(self):
        assert SettlementOutcome.paid().is_settlement
        assert SettlementOutcome.refund_failed().kind is OutcomeKind.REFUND_FAILED
        assert not SettlementOutcome.unhandled().is_settlement
