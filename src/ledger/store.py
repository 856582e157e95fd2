import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol


@dataclass(frozen=True)
class LedgerRecord:
    """A pending payment as the billing ledger knows it, keyed by ``hash``."""

    hash: str
    user_id: str
    subscription_id: str
    subscription_sub_id: str
    username: str = ""


class PaymentLedger(Protocol):
    def find_payment(self, hash_: str) -> LedgerRecord | None: ...

    def subscription_price(
        self, subscription_id: str, sub_plan_id: str, currency: str
    ) -> Decimal | None: ...

    def active_remote_subscriptions(self, user_id: str, subscription_id: str) -> list[str]: ...

    def deactivate_remote_subscription(
        self, user_id: str, subscription_id: str, remote_id: str
    ) -> None: ...


class InMemoryLedger:
    """Thread-safe in-memory ledger for tests and local runs."""

    def __init__(self):
        self._payments: dict[str, LedgerRecord] = {}
        self._prices: dict[tuple[str, str, str], Decimal] = {}
        # (user_id, subscription_id) -> {remote_id: active}
        self._remote: dict[tuple[str, str], dict[str, bool]] = {}
        self._lock = threading.Lock()

    def add_payment(self, record: LedgerRecord) -> None:
        with self._lock:
            self._payments[record.hash] = record

    def set_price(self, subscription_id: str, sub_plan_id: str, currency: str, price) -> None:
        with self._lock:
            self._prices[(subscription_id, sub_plan_id, currency.lower())] = Decimal(str(price))

    def add_remote_subscription(
        self, user_id: str, subscription_id: str, remote_id: str, active: bool = True
    ) -> None:
        with self._lock:
            self._remote.setdefault((user_id, subscription_id), {})[remote_id] = active

    def is_active(self, user_id: str, subscription_id: str, remote_id: str) -> bool:
        with self._lock:
            return self._remote.get((user_id, subscription_id), {}).get(remote_id, False)

    def find_payment(self, hash_: str) -> LedgerRecord | None:
        with self._lock:
            return self._payments.get(hash_)

    def subscription_price(self, subscription_id: str, sub_plan_id: str, currency: str) -> Decimal | None:
        with self._lock:
            return self._prices.get((subscription_id, sub_plan_id, currency.lower()))

    def active_remote_subscriptions(self, user_id: str, subscription_id: str) -> list[str]:
        with self._lock:
            remote = self._remote.get((user_id, subscription_id), {})
            return [remote_id for remote_id, active in remote.items() if active]

    def deactivate_remote_subscription(self, user_id: str, subscription_id: str, remote_id: str) -> None:
        with self._lock:
            remote = self._remote.get((user_id, subscription_id))
            if remote is not None and remote_id in remote:
                remote[remote_id] = False
