import threading
import time
from typing import Self

from src.models.events import Charge, CheckoutSession, Invoice
from src.provider.base import FetchResult, WebhookEndpoint


class StubTransportError(Exception):
    """Stands in for a provider transport error in the stub gateway."""


class StubGateway:
    """In-process provider gateway with seeded objects and failure injection.

    Used by tests, the load test and local runs of the gateway server. Every
    call is appended to ``calls`` as ``(method, argument)``.
    """

    def __init__(self):
        self._charges: dict[str, Charge] = {}
        self._invoices: dict[str, Invoice] = {}
        self._sessions: dict[str, CheckoutSession] = {}
        self._endpoints: dict[str, WebhookEndpoint] = {}
        self._cancel_statuses: dict[str, str] = {}
        self._failing: set[str] = set()
        self._failing_ids: set[tuple[str, str]] = set()
        self._delay = 0.0
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str | None]] = []

    # Seeding

    def add_charge(self, charge: Charge | dict) -> Self:
        if isinstance(charge, dict):
            charge = Charge.from_dict(charge)
        self._charges[charge.id] = charge
        return self

    def add_invoice(self, invoice: Invoice | dict) -> Self:
        if isinstance(invoice, dict):
            invoice = Invoice.from_dict(invoice)
        self._invoices[invoice.id] = invoice
        return self

    def add_session(self, session: CheckoutSession | dict) -> Self:
        if isinstance(session, dict):
            session = CheckoutSession.from_dict(session)
        self._sessions[session.id] = session
        return self

    def add_webhook_endpoint(self, endpoint_id: str, url: str, status: str = "enabled") -> Self:
        self._endpoints[endpoint_id] = WebhookEndpoint(id=endpoint_id, url=url, status=status)
        return self

    def set_cancel_status(self, subscription_id: str, status: str) -> Self:
        self._cancel_statuses[subscription_id] = status
        return self

    # Behaviour

    def fail(self, method: str, object_id: str | None = None) -> Self:
        """Make ``method`` fail, for every id or just ``object_id``."""
        if object_id is None:
            self._failing.add(method)
        else:
            self._failing_ids.add((method, object_id))
        return self

    def heal(self) -> Self:
        self._failing.clear()
        self._failing_ids.clear()
        return self

    def set_delay(self, seconds: float) -> Self:
        self._delay = seconds
        return self

    def call_count(self, method: str) -> int:
        with self._lock:
            return sum(1 for name, _ in self.calls if name == method)

    def _enter(self, method: str, object_id: str | None = None) -> FetchResult | None:
        with self._lock:
            self.calls.append((method, object_id))
        if self._delay > 0:
            time.sleep(self._delay)
        if method in self._failing or (method, object_id) in self._failing_ids:
            return FetchResult.failure(StubTransportError(f"{method}({object_id}) failed"))
        return None

    # ProviderGateway

    def retrieve_charge(self, charge_id: str) -> FetchResult[Charge]:
        return self._enter("retrieve_charge", charge_id) or FetchResult.success(
            self._charges.get(charge_id)
        )

    def retrieve_invoice(self, invoice_id: str) -> FetchResult[Invoice]:
        return self._enter("retrieve_invoice", invoice_id) or FetchResult.success(
            self._invoices.get(invoice_id)
        )

    def list_checkout_sessions(self, payment_intent: str) -> FetchResult[list[CheckoutSession]]:
        return self._enter("list_checkout_sessions", payment_intent) or FetchResult.success(
            [s for s in self._sessions.values() if s.payment_intent == payment_intent]
        )

    def retrieve_checkout_session(self, session_id: str) -> FetchResult[CheckoutSession]:
        return self._enter("retrieve_checkout_session", session_id) or FetchResult.success(
            self._sessions.get(session_id)
        )

    def cancel_subscription(self, subscription_id: str) -> FetchResult[str]:
        return self._enter("cancel_subscription", subscription_id) or FetchResult.success(
            self._cancel_statuses.get(subscription_id, "canceled")
        )

    def list_webhook_endpoints(self) -> FetchResult[list[WebhookEndpoint]]:
        return self._enter("list_webhook_endpoints") or FetchResult.success(
            list(self._endpoints.values())
        )

    def retrieve_webhook_endpoint(self, endpoint_id: str) -> FetchResult[WebhookEndpoint]:
        return self._enter("retrieve_webhook_endpoint", endpoint_id) or FetchResult.success(
            self._endpoints.get(endpoint_id)
        )
