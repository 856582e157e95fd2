"""Conversion between major units (1.25 USD) and provider minor units (125).

The rule set below is Stripe's. Another provider with different
zero-decimal handling should pass its own ``CurrencyRules``.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN

# ISO-4217 minor unit 0: there is no smaller denomination to multiply into.
_STRIPE_ZERO_DECIMAL = frozenset({
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "VND", "VUV", "XAF", "XOF", "XPF",
})

# Stripe expects these as x100 but only accepts whole major units.
_STRIPE_WHOLE_UNIT_ONLY = frozenset({"HUF", "TWD", "UGX"})

_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class CurrencyRules:
    zero_decimal: frozenset[str]
    whole_unit_only: frozenset[str] = frozenset()

    def is_zero_decimal(self, currency: str) -> bool:
        return currency.upper() in self.zero_decimal


STRIPE_CURRENCY_RULES = CurrencyRules(
    zero_decimal=_STRIPE_ZERO_DECIMAL,
    whole_unit_only=_STRIPE_WHOLE_UNIT_ONLY,
)


def _as_decimal(amount) -> Decimal:
    if isinstance(amount, float):
        # str() keeps 1.1 as 1.1 instead of its binary expansion.
        return Decimal(str(amount))
    return Decimal(amount)


def to_minor_units(amount, currency: str, rules: CurrencyRules = STRIPE_CURRENCY_RULES) -> int:
    """Convert a major-unit amount to an exact integer of minor units.

    Raises ValueError if the result would contain a fraction of a minor unit.
    """
    code = currency.upper()
    value = _as_decimal(amount)

    if code in rules.zero_decimal:
        minor = value
    elif code in rules.whole_unit_only:
        minor = value.to_integral_value(rounding=ROUND_DOWN) * _HUNDRED
    else:
        minor = value * _HUNDRED

    if minor != minor.to_integral_value():
        raise ValueError(f"{amount} {code} is not a whole number of minor units")
    return int(minor)


def from_minor_units(amount: int, currency: str, rules: CurrencyRules = STRIPE_CURRENCY_RULES) -> Decimal:
    """Convert provider minor units back to a major-unit Decimal."""
    value = Decimal(int(amount))
    if rules.is_zero_decimal(currency):
        return value
    return value / _HUNDRED
