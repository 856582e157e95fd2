import pytest

from src.models.events import Charge, Invoice, Refund, UnknownObject, VerifiedEvent
from src.models.settlement import ReasonCode, RetryDecision
from src.reconciliation.ack import AckSignal
from src.reconciliation.errors import FetchFailure, MetadataMissing
from src.reconciliation.metadata import MetadataResolver
from src.utils.factories import StripeObjectFactory


@pytest.fixture
def resolver(gateway):
    return MetadataResolver(gateway)


@pytest.fixture
def signal(channel, context):
    return AckSignal(channel, context)


def _event(event_type: str, data: dict) -> VerifiedEvent:
    if data["object"] == "charge":
        obj = Charge.from_dict(data)
    elif data["object"] == "refund":
        obj = Refund.from_dict(data)
    else:
        obj = Invoice.from_dict(data)
    return VerifiedEvent(type=event_type, data_object=obj)


class TestChargeMetadata:
    """Charges carry their own metadata or point at an invoice."""

    @pytest.mark.unit
    def test_charge_hash_used_directly(self, resolver, signal, context, gateway, channel):
        charge = StripeObjectFactory.charge(metadata={"hash": "A", "userid": "42"})
        resolution = resolver.resolve(_event("charge.succeeded", charge), signal, context)

        assert resolution.metadata.hash == "A"
        assert resolution.metadata.user_id == "42"
        assert resolution.invoice is None
        assert gateway.calls == []
        assert channel.decisions == [RetryDecision.ACK]

    @pytest.mark.unit
    def test_invoice_line_hash_when_charge_has_none(self, resolver, signal, context, gateway):
        gateway.add_invoice(StripeObjectFactory.invoice(id="in_1", line_metadata={"hash": "B"}))
        charge = StripeObjectFactory.charge(invoice="in_1")

        resolution = resolver.resolve(_event("charge.succeeded", charge), signal, context)
        assert resolution.metadata.hash == "B"
        assert resolution.invoice.id == "in_1"

    @pytest.mark.unit
    def test_invoice_still_fetched_when_charge_has_hash(self, resolver, signal, context, gateway):
        gateway.add_invoice(StripeObjectFactory.invoice(id="in_1", line_metadata={"hash": "B"}))
        charge = StripeObjectFactory.charge(invoice="in_1", metadata={"hash": "A"})

        resolution = resolver.resolve(_event("charge.succeeded", charge), signal, context)
        assert resolution.metadata.hash == "A"
        assert resolution.invoice is not None

    @pytest.mark.unit
    def test_correlation_switches_to_hash(self, resolver, signal, context):
        charge = StripeObjectFactory.charge(metadata={"hash": "A"})
        resolver.resolve(_event("charge.succeeded", charge), signal, context)
        assert context.correlation_id == "A"


class TestRefundMetadata:
    """Refunds resolve their underlying charge first."""

    @pytest.mark.unit
    def test_charge_hash_wins_over_invoice_hash(self, resolver, signal, context, gateway):
        gateway.add_charge(StripeObjectFactory.charge(id="ch_1", invoice="in_1", metadata={"hash": "A"}))
        gateway.add_invoice(StripeObjectFactory.invoice(id="in_1", line_metadata={"hash": "B"}))
        refund = StripeObjectFactory.refund(charge="ch_1")

        resolution = resolver.resolve(_event("refund.failed", refund), signal, context)
        assert resolution.metadata.hash == "A"

    @pytest.mark.unit
    def test_embedded_charge_is_not_fetched(self, resolver, signal, context, gateway):
        embedded = StripeObjectFactory.charge(id="ch_1", metadata={"hash": "A"})
        refund = StripeObjectFactory.refund(charge=embedded)

        resolution = resolver.resolve(_event("refund.failed", refund), signal, context)
        assert resolution.metadata.hash == "A"
        assert gateway.call_count("retrieve_charge") == 0

    @pytest.mark.unit
    def test_charge_fetch_failure_retries(self, resolver, signal, context, gateway, channel):
        gateway.fail("retrieve_charge")
        refund = StripeObjectFactory.refund(charge="ch_1")

        with pytest.raises(FetchFailure) as exc_info:
            resolver.resolve(_event("refund.failed", refund), signal, context)
        assert exc_info.value.reason is ReasonCode.FETCH_CHARGE_FAILED
        assert channel.decisions == [RetryDecision.RETRY]

    @pytest.mark.unit
    def test_missing_charge_is_metadata_missing(self, resolver, signal, context, channel):
        refund = StripeObjectFactory.refund(charge="ch_gone")

        with pytest.raises(MetadataMissing):
            resolver.resolve(_event("refund.failed", refund), signal, context)
        assert channel.decisions == [RetryDecision.ACK]


class TestFailures:
    """Transient fetch failures retry; missing data acks."""

    @pytest.mark.unit
    def test_invoice_fetch_failure_retries(self, resolver, signal, context, gateway, channel):
        gateway.fail("retrieve_invoice", "in_1")
        charge = StripeObjectFactory.charge(invoice="in_1", metadata={"hash": "A"})

        with pytest.raises(FetchFailure) as exc_info:
            resolver.resolve(_event("charge.succeeded", charge), signal, context)
        assert exc_info.value.reason is ReasonCode.FETCH_INVOICE_FAILED
        assert channel.decisions == [RetryDecision.RETRY]

    @pytest.mark.unit
    def test_no_hash_anywhere_acks_then_raises(self, resolver, signal, context, gateway, channel):
        gateway.add_invoice(StripeObjectFactory.invoice(id="in_1", line_metadata={}))
        charge = StripeObjectFactory.charge(invoice="in_1")

        with pytest.raises(MetadataMissing):
            resolver.resolve(_event("charge.succeeded", charge), signal, context)
        assert channel.decisions == [RetryDecision.ACK]

    @pytest.mark.unit
    def test_invoice_event_is_its_own_invoice(self, resolver, signal, context, gateway):
        invoice = StripeObjectFactory.invoice(line_metadata={"hash": "B"})
        resolution = resolver.resolve(_event("charge.succeeded", invoice), signal, context)

        assert resolution.metadata.hash == "B"
        assert gateway.calls == []

    @pytest.mark.unit
    def test_unknown_object_is_metadata_missing(self, resolver, signal, context):
        event = VerifiedEvent(type="charge.succeeded", data_object=UnknownObject("payout"))
        with pytest.raises(MetadataMissing):
            resolver.resolve(event, signal, context)
