import logging

from src.models.events import CheckoutSession, Invoice, VerifiedEvent
from src.models.settlement import AmountInfo
from src.provider.base import ProviderGateway
from src.reconciliation.errors import AmountDataError
from src.reconciliation.logger import RequestContext

DEFAULT_CURRENCY = "usd"


def amount_from_session(session: CheckoutSession) -> AmountInfo:
    """Amount and tax for a Checkout Session (webhook and redirect flows)."""
    if not session.currency or session.amount_subtotal is None:
        raise AmountDataError(f"Checkout session {session.id} has no currency or subtotal.")
    return AmountInfo(
        amount_minor_units=session.amount_subtotal,
        currency=session.currency,
        tax_minor_units=session.amount_tax or 0,
        tax_inclusive=session.amount_total == session.amount_subtotal,
    )


def remote_subscription_id(invoice: Invoice | None) -> str:
    """The provider subscription behind a recurring payment, or ``""``."""
    if invoice is None:
        return ""
    return invoice.subscription or ""


class AmountCalculator:
    def __init__(self, gateway: ProviderGateway):
        self.gateway = gateway

    def compute(self, event: VerifiedEvent, invoice: Invoice | None, context: RequestContext) -> AmountInfo:
        if invoice is not None:
            return self._from_invoice(invoice)
        return self._one_time(event, context)

    def _one_time(self, event: VerifiedEvent, context: RequestContext) -> AmountInfo:
        obj = event.data_object
        default = AmountInfo(
            amount_minor_units=getattr(obj, "amount", None) or 0,
            currency=getattr(obj, "currency", None) or DEFAULT_CURRENCY,
        )

        payment_intent = getattr(obj, "payment_intent", None)
        if not payment_intent:
            return default

        # Tax precision is best-effort on this path: a failed or empty
        # lookup keeps the event's own amount.
        sessions = self.gateway.list_checkout_sessions(payment_intent)
        if sessions.failed:
            context.log(
                "amounts", "session_lookup",
                f"checkout session lookup for {payment_intent} failed, using event amount: {sessions.error}",
                level=logging.WARNING,
            )
            return default
        if not sessions.value:
            context.log("amounts", "session_lookup", f"no checkout session for {payment_intent}")
            return default

        try:
            return amount_from_session(sessions.value[0])
        except AmountDataError as e:
            context.log("amounts", "session_lookup", str(e), level=logging.WARNING)
            return default

    @staticmethod
    def _from_invoice(invoice: Invoice) -> AmountInfo:
        if not invoice.currency or invoice.amount_paid is None or invoice.subtotal is None:
            raise AmountDataError(f"Invoice {invoice.id} is missing currency or amount fields.")

        inclusive = invoice.subtotal == invoice.amount_paid
        if inclusive:
            amount = invoice.amount_paid
        else:
            # Stripe's own pre-tax figure; amount_paid - tax drifts by a cent.
            if invoice.total_excluding_tax is None:
                raise AmountDataError(f"Invoice {invoice.id} has no total_excluding_tax.")
            amount = invoice.total_excluding_tax

        return AmountInfo(
            amount_minor_units=amount,
            currency=invoice.currency,
            tax_minor_units=invoice.tax or 0,
            tax_inclusive=inclusive,
        )
