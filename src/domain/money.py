"""Currency unit conversion

Stored amounts are integers in minor units (kobo, cents). Payment providers
quote major units (naira, dollars), so amounts are converted at the provider
boundary only.
"""

from decimal import Decimal
from typing import Union

DEFAULT_EXPONENT = 2

CURRENCY_EXPONENTS = {
    "NGN": 2,
    "USD": 2,
    "GHS": 2,
    "KES": 2,
    "EUR": 2,
    "GBP": 2,
    "JPY": 0,
}


def currency_exponent(currency: str) -> int:
    return CURRENCY_EXPONENTS.get((currency or "").upper(), DEFAULT_EXPONENT)


def to_major_units(amount: int, currency: str) -> Decimal:
    """2500 NGN kobo -> Decimal("25.00")"""
    exponent = currency_exponent(currency)
    return (Decimal(amount) / (Decimal(10) ** exponent)).quantize(Decimal(1).scaleb(-exponent))


def to_minor_units(amount: Union[Decimal, int, float, str], currency: str) -> Decimal:
    """
    Provider-reported major amount -> minor units

    Not rounded: a fraction of a minor unit survives, so the settlement
    cross-check rejects it instead of silently matching.
    """
    return Decimal(str(amount)) * (Decimal(10) ** currency_exponent(currency))
