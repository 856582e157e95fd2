"""Run the payment gateway: ``python -m src.gateway_server [--port 8000]``."""

import argparse
import logging
import sys

from src.config import InitializationFailure, load_settings
from src.gateway_server.server import PaymentGatewayServer
from src.ledger.store import InMemoryLedger
from src.observability.alerting import RetryRateAlert
from src.observability.log_format import configure_logging
from src.observability.metrics import AckMetrics
from src.provider.client import StripeGateway, configure_stripe
from src.provider.diagnostics import run_configuration_test
from src.reconciliation.engine import ReconciliationEngine

logger = logging.getLogger("src.gateway_server")

# A handful of bad deliveries right after startup should not page anyone.
ALERT_MIN_REQUESTS = 20


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Stripe webhook reconciliation gateway")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--env-file", default=None)
    parser.add_argument("--check", action="store_true", help="run the configuration test and exit")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except InitializationFailure as e:
        configure_logging()
        logger.critical("refusing to start: %s", e)
        return 2

    configure_logging(debug=settings.debug_payments, json_output=settings.log_json)
    gateway = StripeGateway(configure_stripe(settings))

    if args.check:
        report = run_configuration_test(settings, gateway)
        return 0 if report.ok else 1

    logger.warning(
        "using an empty in-memory ledger: every payment will be rejected as payment_not_found "
        "until a billing database ledger is wired in",
        extra={"component": "server"},
    )
    metrics = AckMetrics()
    engine = ReconciliationEngine(
        settings,
        gateway,
        InMemoryLedger(),
        metrics=metrics,
        alert=RetryRateAlert(metrics, min_requests=ALERT_MIN_REQUESTS),
    )
    server = PaymentGatewayServer(
        engine,
        host=args.host,
        port=args.port,
        webhook_path=settings.webhook_path,
        redirect_path=settings.redirect_path,
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
