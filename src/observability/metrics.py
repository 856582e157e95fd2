import threading
import time
from collections import Counter, deque

from src.models.settlement import ReasonCode, RetryDecision


class AckMetrics:
    """Rolling-window counts of the Ack/Retry decisions sent to the provider.

    Timestamps older than the window are dropped on every read and write, so
    memory is bounded by the traffic inside one window.
    """

    def __init__(self, window_seconds: float = 300, clock=time.monotonic):
        self._window_seconds = window_seconds
        self._clock = clock
        self._acks: deque[float] = deque()  # timestamps, oldest first
        self._retries: deque[float] = deque()
        self._reasons: Counter[str] = Counter()
        self._lock = threading.Lock()

    def record(self, decision: RetryDecision, reason: ReasonCode | None = None) -> None:
        with self._lock:
            now = self._clock()
            self._prune(now)
            if decision is RetryDecision.ACK:
                self._acks.append(now)
            else:
                self._retries.append(now)
            if reason is not None:
                self._reasons[reason.value] += 1

    def _prune(self, now: float) -> None:
        """Drop expired timestamps. Caller holds the lock."""
        cutoff = now - self._window_seconds
        for data in (self._acks, self._retries):
            while data and data[0] < cutoff:
                data.popleft()

    def retry_rate(self) -> float:
        """Share of Retry decisions in the current window (0.0 to 1.0)."""
        with self._lock:
            self._prune(self._clock())
            total = len(self._acks) + len(self._retries)
            if total == 0:
                return 0.0
            return len(self._retries) / total

    def total_in_window(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return len(self._acks) + len(self._retries)

    def retry_count_in_window(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return len(self._retries)

    def ack_count_in_window(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return len(self._acks)

    def reason_counts(self) -> dict[str, int]:
        """Lifetime tally per reason code."""
        with self._lock:
            return dict(self._reasons)

    def reset(self) -> None:
        with self._lock:
            self._acks.clear()
            self._retries.clear()
            self._reasons.clear()
