import logging

from src.observability.metrics import AckMetrics

logger = logging.getLogger(__name__)


class RetryRateAlert:
    """Fires when too many webhooks are answered with Retry.

    Retry is only sent when a provider read fails, so a high rate usually
    means the provider API (or our connection to it) is down.
    """

    def __init__(
        self,
        metrics: AckMetrics,
        threshold: float = 0.10,
        callback=None,
        min_requests: int = 1,
    ):
        self.metrics = metrics
        self.threshold = threshold
        self.min_requests = min_requests
        self.callback = callback
        self._fired = False
        self._alerts: list[dict] = []

    def check(self) -> dict | None:
        rate = self.metrics.retry_rate()
        total = self.metrics.total_in_window()
        retries = self.metrics.retry_count_in_window()

        if total == 0 or total < self.min_requests:
            return None

        if rate > self.threshold:
            if self._fired:
                return None

            alert = {
                "type": "webhook_retry_rate",
                "retry_rate": rate,
                "threshold": self.threshold,
                "total_requests": total,
                "retried_requests": retries,
                "reasons": self.metrics.reason_counts(),
                "message": (
                    f"Webhook retry rate {rate:.1%} exceeds "
                    f"threshold {self.threshold:.1%} "
                    f"({retries}/{total} requests asked for redelivery)"
                ),
            }
            self._fired = True
            self._alerts.append(alert)
            logger.error(alert["message"], extra={"component": "alerting", "operation": "check"})

            if self.callback:
                self.callback(alert)

            return alert

        self._fired = False
        return None

    def get_alerts(self) -> list[dict]:
        return list(self._alerts)

    def reset(self) -> None:
        self._fired = False
        self._alerts.clear()
