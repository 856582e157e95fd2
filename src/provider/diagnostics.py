import logging
from dataclasses import dataclass, field

from src.config import Settings
from src.provider.base import ProviderGateway

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticReport:
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems

    def add(self, problem: str) -> None:
        logger.error("stripe configuration test: %s", problem, extra={"component": "diagnostics"})
        self.problems.append(problem)


def run_configuration_test(settings: Settings, gateway: ProviderGateway) -> DiagnosticReport:
    """Check that the account is reachable and the webhook points back at us.

    Listing endpoints exercises connectivity, TLS and the secret key in one
    call. The configured endpoint must exist and its URL must match
    ``settings.webhook_url``.
    """
    report = DiagnosticReport()

    required = {
        "secret key": settings.secret_key,
        "publishable key": settings.publishable_key,
        "webhook id": settings.webhook_id,
        "webhook secret": settings.webhook_secret,
    }
    for name, value in required.items():
        if not value:
            report.add(f"{name} is not configured")
    if not report.ok:
        return report

    listing = gateway.list_webhook_endpoints()
    if listing.failed:
        report.add(f"could not list webhook endpoints: {listing.error}")
        return report

    endpoint = gateway.retrieve_webhook_endpoint(settings.webhook_id)
    if endpoint.failed:
        report.add(f"could not retrieve webhook endpoint {settings.webhook_id}: {endpoint.error}")
    elif endpoint.value is None:
        report.add(f"webhook endpoint {settings.webhook_id} does not exist")
    elif endpoint.value.url != settings.webhook_url:
        report.add(
            f"webhook endpoint {settings.webhook_id} points at {endpoint.value.url}, "
            f"expected {settings.webhook_url}"
        )

    if report.ok:
        logger.info("stripe configuration test passed", extra={"component": "diagnostics"})
    return report
