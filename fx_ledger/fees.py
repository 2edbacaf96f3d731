"""
Fee Policy Module

Percentage transfer fee, charged in the sender's currency before conversion.
"""

from decimal import Decimal
from typing import Union

from .currency import Currency, quantize_to_currency

DEFAULT_FEE_RATE = Decimal("0.01")


class FeePolicy:
    """Flat percentage fee rounded to the currency's canonical scale"""

    def __init__(self, rate: Union[Decimal, str] = DEFAULT_FEE_RATE):
        if not isinstance(rate, Decimal):
            rate = Decimal(str(rate))
        if rate < Decimal('0'):
            raise ValueError("Fee rate cannot be negative")
        self.rate = rate

    def fee(self, amount: Decimal, currency: Union[Currency, str]) -> Decimal:
        """Fee for transferring amount in currency"""
        currency = Currency.from_code(currency)
        return quantize_to_currency(amount * self.rate, currency)
