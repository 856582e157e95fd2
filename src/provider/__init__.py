from .base import FetchResult, ProviderGateway, WebhookEndpoint
from .stub import StubGateway, StubTransportError

__all__ = [
    "FetchResult", "ProviderGateway", "WebhookEndpoint",
    "StubGateway", "StubTransportError",
]
