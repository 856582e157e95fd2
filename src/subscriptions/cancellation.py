import logging
from dataclasses import dataclass, field

from src.ledger.store import PaymentLedger
from src.provider.base import ProviderGateway
from src.reconciliation.logger import ReconciliationLogger

CANCELED = "canceled"


@dataclass
class CancellationReport:
    canceled: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    unconfirmed: list[str] = field(default_factory=list)
    completed: bool = True


class RemoteCancellationOrchestrator:
    """Cancels every active provider subscription for a user's plan.

    Best-effort: one failed cancel does not stop the batch, and the local
    record is only deactivated once the provider confirms ``canceled``.
    """

    def __init__(self, gateway: ProviderGateway, ledger: PaymentLedger, logger: ReconciliationLogger):
        self.gateway = gateway
        self.ledger = ledger
        self.logger = logger

    def cancel_all(self, user_id: str, subscription_id: str) -> bool:
        return self.cancel_all_with_report(user_id, subscription_id).completed

    def cancel_all_with_report(self, user_id: str, subscription_id: str) -> CancellationReport:
        report = CancellationReport()
        correlation_id = f"{user_id}:{subscription_id}"
        try:
            remote_ids = self.ledger.active_remote_subscriptions(user_id, subscription_id)
            for remote_id in remote_ids:
                self._cancel_one(user_id, subscription_id, remote_id, report, correlation_id)
        except Exception:
            self.logger.record(
                "cancellation", "cancel_all",
                "remote cancellation aborted",
                correlation_id=correlation_id, level=logging.ERROR, exc_info=True,
            )
            report.completed = False
        return report

    def _cancel_one(
        self,
        user_id: str,
        subscription_id: str,
        remote_id: str,
        report: CancellationReport,
        correlation_id: str,
    ) -> None:
        result = self.gateway.cancel_subscription(remote_id)
        if result.failed:
            self.logger.record(
                "cancellation", "cancel",
                f"could not cancel {remote_id}: {result.error}",
                correlation_id=correlation_id, level=logging.WARNING,
            )
            report.failed.append(remote_id)
            return

        if result.value == CANCELED:
            self.ledger.deactivate_remote_subscription(user_id, subscription_id, remote_id)
            self.logger.record(
                "cancellation", "cancel", f"canceled {remote_id}", correlation_id=correlation_id,
            )
            report.canceled.append(remote_id)
        else:
            self.logger.record(
                "cancellation", "cancel",
                f"{remote_id} reported status {result.value}, left active",
                correlation_id=correlation_id, level=logging.WARNING,
            )
            report.unconfirmed.append(remote_id)
