import logging
import ssl

import requests
import stripe
from requests.adapters import HTTPAdapter

from src.config import Settings
from src.models.events import Charge, CheckoutSession, Invoice
from src.provider.base import FetchResult, WebhookEndpoint

logger = logging.getLogger(__name__)


class MinimumTLSAdapter(HTTPAdapter):
    """HTTPS adapter that refuses to negotiate below a given TLS version.

    For hosts whose OpenSSL defaults to TLS 1.0 even though it supports 1.2,
    which Stripe requires.
    """

    def __init__(self, minimum_version: ssl.TLSVersion, **kwargs):
        self.minimum_version = minimum_version
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        context = ssl.create_default_context()
        context.minimum_version = self.minimum_version
        kwargs["ssl_context"] = context
        return super().init_poolmanager(*args, **kwargs)


def build_http_session(settings: Settings) -> requests.Session:
    session = requests.Session()
    if settings.tls_min_version:
        session.mount("https://", MinimumTLSAdapter(ssl.TLSVersion[settings.tls_min_version]))
    return session


def configure_stripe(settings: Settings) -> stripe.StripeClient:
    """Build the SDK client once per process.

    Telemetry and the CA bundle are module-level SDK options, so they are set
    here and nowhere else. With ``max_network_retries`` above zero the SDK adds
    idempotency keys to retried requests.
    """
    stripe.enable_telemetry = settings.enable_telemetry
    if settings.ca_bundle_path:
        stripe.ca_bundle_path = settings.ca_bundle_path

    http_client = stripe.RequestsClient(session=build_http_session(settings))
    return stripe.StripeClient(
        settings.secret_key,
        stripe_version=settings.api_version,
        max_network_retries=settings.max_network_retries,
        http_client=http_client,
    )


class StripeGateway:
    """Provider reads/writes over the Stripe SDK, returning FetchResults.

    ``stripe.StripeError`` covers connection, authentication, rate limit and
    API errors; those become failed results. Anything else is a bug and
    propagates.
    """

    def __init__(self, client: stripe.StripeClient):
        self._client = client

    def _call(self, operation: str, fn, *args, **kwargs) -> FetchResult:
        try:
            return FetchResult.success(fn(*args, **kwargs))
        except stripe.StripeError as e:
            logger.warning(
                "stripe %s failed: %s", operation, e,
                extra={"component": "provider", "operation": operation},
            )
            return FetchResult.failure(e)

    def retrieve_charge(self, charge_id: str) -> FetchResult[Charge]:
        result = self._call("retrieve_charge", self._client.charges.retrieve, charge_id)
        return result.map(Charge.from_dict)

    def retrieve_invoice(self, invoice_id: str) -> FetchResult[Invoice]:
        result = self._call("retrieve_invoice", self._client.invoices.retrieve, invoice_id)
        return result.map(Invoice.from_dict)

    def list_checkout_sessions(self, payment_intent: str) -> FetchResult[list[CheckoutSession]]:
        result = self._call(
            "list_checkout_sessions",
            self._client.checkout.sessions.list,
            params={"payment_intent": payment_intent},
        )
        return result.map(lambda page: [CheckoutSession.from_dict(s) for s in page.data])

    def retrieve_checkout_session(self, session_id: str) -> FetchResult[CheckoutSession]:
        result = self._call(
            "retrieve_checkout_session", self._client.checkout.sessions.retrieve, session_id
        )
        return result.map(CheckoutSession.from_dict)

    def cancel_subscription(self, subscription_id: str) -> FetchResult[str]:
        result = self._call("cancel_subscription", self._client.subscriptions.cancel, subscription_id)
        return result.map(lambda subscription: subscription.get("status"))

    def list_webhook_endpoints(self) -> FetchResult[list[WebhookEndpoint]]:
        result = self._call("list_webhook_endpoints", self._client.webhook_endpoints.list)
        return result.map(lambda page: [WebhookEndpoint.from_dict(e) for e in page.data])

    def retrieve_webhook_endpoint(self, endpoint_id: str) -> FetchResult[WebhookEndpoint]:
        result = self._call(
            "retrieve_webhook_endpoint", self._client.webhook_endpoints.retrieve, endpoint_id
        )
        return result.map(WebhookEndpoint.from_dict)
