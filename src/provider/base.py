from dataclasses import dataclass
from typing import Callable, Generic, Mapping, Protocol, TypeVar

from src.models.events import Charge, CheckoutSession, Invoice

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of one provider read.

    Three distinct cases:
    - ``failed``: the call itself failed (network, auth, API error); transient.
    - ``ok`` with a value: the object was fetched.
    - ``ok`` with ``None`` or an empty list: the call worked, the data is absent.
    """

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, value: T | None) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "FetchResult[T]":
        return cls(error=error)

    def map(self, fn: Callable[[T], U]) -> "FetchResult[U]":
        if self.failed or self.value is None:
            return FetchResult(value=None, error=self.error)
        return FetchResult(value=fn(self.value))


@dataclass(frozen=True)
class WebhookEndpoint:
    id: str
    url: str
    status: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> "WebhookEndpoint":
        return cls(id=data.get("id") or "", url=data.get("url") or "", status=data.get("status"))


class ProviderGateway(Protocol):
    """The provider reads and writes the reconciliation pipeline depends on."""

    def retrieve_charge(self, charge_id: str) -> FetchResult[Charge]: ...

    def retrieve_invoice(self, invoice_id: str) -> FetchResult[Invoice]: ...

    def list_checkout_sessions(self, payment_intent: str) -> FetchResult[list[CheckoutSession]]: ...

    def retrieve_checkout_session(self, session_id: str) -> FetchResult[CheckoutSession]: ...

    def cancel_subscription(self, subscription_id: str) -> FetchResult[str]: ...

    def list_webhook_endpoints(self) -> FetchResult[list[WebhookEndpoint]]: ...

    def retrieve_webhook_endpoint(self, endpoint_id: str) -> FetchResult[WebhookEndpoint]: ...
