import logging
import threading
from typing import Callable

from src.models.settlement import ReasonCode, RetryDecision
from src.reconciliation.logger import RequestContext

AckChannel = Callable[[RetryDecision], None]


class RecordingChannel:
    """In-process channel that keeps every decision it is handed."""

    def __init__(self):
        self.decisions: list[RetryDecision] = []

    def __call__(self, decision: RetryDecision) -> None:
        self.decisions.append(decision)

    @property
    def last(self) -> RetryDecision | None:
        return self.decisions[-1] if self.decisions else None


class AckSignal:
    """Emits the single Ack/Retry decision for one inbound webhook request.

    The provider redelivers on anything but a 200, so:
    - ACK as soon as redelivery can no longer help (the default).
    - RETRY only for conditions expected to change on redelivery
      (provider reads that failed).
    Only the first call reaches the channel; later calls are no-ops.
    """

    def __init__(self, channel: AckChannel, context: RequestContext, metrics=None):
        self._channel = channel
        self._context = context
        self._metrics = metrics
        self._decision: RetryDecision | None = None
        self._reason: ReasonCode | None = None
        self._lock = threading.Lock()

    @property
    def decision(self) -> RetryDecision | None:
        return self._decision

    @property
    def reason(self) -> ReasonCode | None:
        return self._reason

    @property
    def emitted(self) -> bool:
        return self._decision is not None

    def ack(self, reason: ReasonCode | None = None) -> bool:
        return self._emit(RetryDecision.ACK, reason)

    def retry(self, reason: ReasonCode | None = None) -> bool:
        return self._emit(RetryDecision.RETRY, reason)

    def _emit(self, decision: RetryDecision, reason: ReasonCode | None) -> bool:
        with self._lock:
            if self._decision is not None:
                self._context.log(
                    "ack", "emit",
                    f"ignoring {decision.value}, {self._decision.value} already sent",
                    level=logging.DEBUG,
                )
                return False
            self._decision = decision
            self._reason = reason

        self._channel(decision)
        self._context.log(
            "ack", "emit",
            f"sent {decision.value} ({decision.status_code})",
            reason=reason.value if reason else None,
        )
        if self._metrics is not None:
            self._metrics.record(decision, reason)
        return True
