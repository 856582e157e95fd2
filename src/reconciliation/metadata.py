import logging
from dataclasses import dataclass

from src.models.events import Charge, Invoice, Refund, VerifiedEvent
from src.models.settlement import PaymentMetadata, ReasonCode
from src.provider.base import ProviderGateway
from src.reconciliation.ack import AckSignal
from src.reconciliation.errors import FetchFailure, MetadataMissing
from src.reconciliation.logger import RequestContext


@dataclass(frozen=True)
class Resolution:
    metadata: PaymentMetadata
    charge: Charge | None = None
    invoice: Invoice | None = None


class MetadataResolver:
    """Finds the ledger correlation metadata for a processable event.

    Owns the earliest Ack: as soon as the charge and invoice are in hand the
    request is acknowledged, and everything after that (metadata checks,
    amount lookups, ledger work) runs without holding up the provider. A
    failed fetch emits Retry instead so the provider redelivers.
    """

    def __init__(self, gateway: ProviderGateway):
        self.gateway = gateway

    def resolve(self, event: VerifiedEvent, signal: AckSignal, context: RequestContext) -> Resolution:
        charge, invoice = self._linked_objects(event, signal, context)
        signal.ack()

        if charge is not None and PaymentMetadata.has_hash(charge.metadata):
            metadata = PaymentMetadata.from_mapping(charge.metadata)
            source = "charge"
        elif invoice is not None and PaymentMetadata.has_hash(invoice.first_line_metadata):
            metadata = PaymentMetadata.from_mapping(invoice.first_line_metadata)
            source = "invoice line"
        else:
            context.log(
                "metadata", "resolve",
                f"no hash on charge or invoice for {event.type}",
                level=logging.WARNING,
                charge_id=charge.id if charge else None,
                invoice_id=invoice.id if invoice else None,
            )
            raise MetadataMissing()

        context.correlate(metadata.hash)
        context.log("metadata", "resolve", f"hash found in {source} metadata", event_type=event.type)
        return Resolution(metadata=metadata, charge=charge, invoice=invoice)

    def _linked_objects(
        self, event: VerifiedEvent, signal: AckSignal, context: RequestContext
    ) -> tuple[Charge | None, Invoice | None]:
        obj = event.data_object
        charge: Charge | None = None
        invoice: Invoice | None = None

        if isinstance(obj, Charge):
            charge = obj
        elif isinstance(obj, Refund):
            if isinstance(obj.charge, Charge):
                charge = obj.charge
            elif obj.charge:
                charge = self._fetch(
                    self.gateway.retrieve_charge, obj.charge,
                    ReasonCode.FETCH_CHARGE_FAILED, signal, context,
                )
        elif isinstance(obj, Invoice):
            invoice = obj

        if charge is not None and charge.invoice:
            invoice = self._fetch(
                self.gateway.retrieve_invoice, charge.invoice,
                ReasonCode.FETCH_INVOICE_FAILED, signal, context,
            )
        return charge, invoice

    @staticmethod
    def _fetch(fetch, object_id: str, reason: ReasonCode, signal: AckSignal, context: RequestContext):
        result = fetch(object_id)
        if result.failed:
            context.log(
                "metadata", "fetch",
                f"could not fetch {object_id}: {result.error}",
                level=logging.ERROR,
                reason=reason.value,
            )
            signal.retry(reason)
            raise FetchFailure(reason, str(result.error))
        if result.value is None:
            context.log("metadata", "fetch", f"{object_id} not found", level=logging.WARNING)
        return result.value
