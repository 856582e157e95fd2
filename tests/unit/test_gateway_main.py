import logging
from unittest.mock import MagicMock

import pytest

import src.gateway_server.__main__ as gateway_main
from src.observability.alerting import RetryRateAlert


class _CapturingServer:
    instances = []

    def __init__(self, engine, **kwargs):
        self.engine = engine
        self.kwargs = kwargs
        _CapturingServer.instances.append(self)

    def serve_forever(self):
        pass


@pytest.fixture
def started(monkeypatch):
    """Run main() with a valid environment and a server that returns at once."""
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_123")
    for name in ("STRIPE_CA_BUNDLE", "STRIPE_TLS_MIN_VERSION", "STRIPE_MAX_NETWORK_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(gateway_main, "configure_logging", lambda **kwargs: None)
    monkeypatch.setattr(gateway_main, "configure_stripe", lambda settings: MagicMock())
    monkeypatch.setattr(gateway_main, "PaymentGatewayServer", _CapturingServer)
    _CapturingServer.instances.clear()
    return gateway_main


class TestMain:
    """python -m src.gateway_server"""

    @pytest.mark.unit
    def test_retry_rate_alert_is_wired(self, started):
        assert started.main([]) == 0

        engine = _CapturingServer.instances[0].engine
        assert isinstance(engine.alert, RetryRateAlert)
        assert engine.alert.metrics is engine.metrics
        assert engine.alert.min_requests == started.ALERT_MIN_REQUESTS

    @pytest.mark.unit
    def test_in_memory_ledger_is_announced(self, started, caplog):
        with caplog.at_level(logging.WARNING, logger="src.gateway_server"):
            started.main([])

        assert any("in-memory ledger" in r.getMessage() for r in caplog.records)

    @pytest.mark.unit
    def test_bad_configuration_refuses_to_start(self, started, monkeypatch):
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET")

        assert started.main([]) == 2
        assert _CapturingServer.instances == []
