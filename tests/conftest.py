import time

import pytest
import requests

from src.config import Settings
from src.gateway_server.server import PaymentGatewayServer
from src.ledger.store import InMemoryLedger, LedgerRecord
from src.observability.alerting import RetryRateAlert
from src.observability.metrics import AckMetrics
from src.provider.stub import StubGateway
from src.reconciliation.ack import RecordingChannel
from src.reconciliation.engine import ReconciliationEngine
from src.reconciliation.logger import ReconciliationLogger, RequestContext
from src.utils.factories import StripeObjectFactory, WebhookFactory


WEBHOOK_SECRET = "whsec_test_secret_for_hmac"
PAYMENT_HASH = "hash_abc123"
USER_ID = "42"
SUBSCRIPTION_ID = "7"
SUB_PLAN_ID = "3"


@pytest.fixture
def webhook_secret():
    return WEBHOOK_SECRET


@pytest.fixture
def settings():
    return Settings(
        secret_key="sk_test_123",
        webhook_secret=WEBHOOK_SECRET,
        publishable_key="pk_test_123",
        webhook_id="we_123",
        site_url="https://shop.example.com",
    )


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def ledger():
    """Ledger with one pending $25.00 payment keyed by PAYMENT_HASH."""
    ledger = InMemoryLedger()
    ledger.add_payment(LedgerRecord(
        hash=PAYMENT_HASH,
        user_id=USER_ID,
        subscription_id=SUBSCRIPTION_ID,
        subscription_sub_id=SUB_PLAN_ID,
        username="alice",
    ))
    ledger.set_price(SUBSCRIPTION_ID, SUB_PLAN_ID, "usd", "25.00")
    return ledger


@pytest.fixture
def logger():
    return ReconciliationLogger()


@pytest.fixture
def context(logger):
    return RequestContext(logger, "req_test")


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def metrics():
    return AckMetrics(window_seconds=300)


@pytest.fixture
def alert(metrics):
    return RetryRateAlert(metrics=metrics, threshold=0.10)


@pytest.fixture
def engine(settings, gateway, ledger, logger, metrics):
    return ReconciliationEngine(settings, gateway, ledger, logger=logger, metrics=metrics)


@pytest.fixture
def gateway_server(engine):
    server = PaymentGatewayServer(engine)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def objects():
    return StripeObjectFactory


@pytest.fixture
def webhook_factory():
    return WebhookFactory


@pytest.fixture
def now():
    return int(time.time())


@pytest.fixture
def post_webhook():
    """POST a signed InboundEvent the way Stripe does."""

    def _post(url, inbound, timeout=5):
        return requests.post(
            url,
            data=inbound.payload,
            headers={
                "Content-Type": "application/json; charset=utf-8",
                "Stripe-Signature": inbound.signature_header,
            },
            timeout=timeout,
        )

    return _post
