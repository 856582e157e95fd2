from .crypto import compute_signature, generate_signature_header, parse_signature_header
from .currency import STRIPE_CURRENCY_RULES, CurrencyRules, from_minor_units, to_minor_units
from .factories import StripeObjectFactory, WebhookFactory

__all__ = [
    "compute_signature", "generate_signature_header", "parse_signature_header",
    "STRIPE_CURRENCY_RULES", "CurrencyRules", "from_minor_units", "to_minor_units",
    "StripeObjectFactory", "WebhookFactory",
]
