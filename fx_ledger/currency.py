"""
Currency Conversion Module

Supported currencies, their canonical decimal scales, the fixed base-rate
table and the converter that routes every cross-currency conversion through
the base currency. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, getcontext
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Union
from enum import Enum

from .errors import UnsupportedCurrencyError

# Set global decimal context for financial precision
getcontext().prec = 28

# Fractional digits carried by the base-unit intermediate
INTERMEDIATE_SCALE = 10


class Currency(Enum):
    """Supported currencies with precision info"""
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    JPN = ("JPN", 0)  # Japanese Yen, no minor units
    AUD = ("AUD", 2)  # Australian Dollar, 2 decimal places
    CNY = ("CNY", 2)  # Chinese Yuan, 2 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, e.g. Decimal('0.01')"""
        return Decimal(1).scaleb(-self.precision)

    @classmethod
    def from_code(cls, code: Union[str, 'Currency']) -> 'Currency':
        """Resolve a currency code, raising UnsupportedCurrencyError if unknown"""
        if isinstance(code, cls):
            return code
        try:
            return cls[str(code).strip().upper()]
        except KeyError:
            raise UnsupportedCurrencyError(code) from None


# Units of each currency per 1 unit of the base currency (USD)
BASE_CURRENCY = Currency.USD
BASE_RATES: Mapping[Currency, Decimal] = MappingProxyType({
    Currency.USD: Decimal("1"),
    Currency.AUD: Decimal("2.00"),   # 1 USD = 2 AUD
    Currency.JPN: Decimal("110.00"), # 1 USD = 110 JPN
    Currency.CNY: Decimal("7.00"),   # 1 USD = 7 CNY
})


def quantize_to_currency(value: Decimal, currency: Currency) -> Decimal:
    """Round a decimal to the currency's canonical scale using ROUND_HALF_UP"""
    return value.quantize(currency.quantum, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    The amount is always held at the currency's canonical scale.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        object.__setattr__(self, 'amount', quantize_to_currency(self.amount, self.currency))

    def _check_currency(self, other: 'Money', verb: str) -> None:
        if self.currency != other.currency:
            raise ValueError(f"Cannot {verb} {self.currency.code} and {other.currency.code}")

    def __add__(self, other: 'Money') -> 'Money':
        self._check_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._check_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __lt__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def to_string(self) -> str:
        """Format for display"""
        if self.currency.precision == 0:
            return f"{self.currency.code} {self.amount:,.0f}"
        return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"


class CurrencyConverter:
    """
    Converts amounts between supported currencies via the base currency.

    The rate table gives units of each currency per one unit of the base.
    Converting divides by the source rate (yielding base units, carried at
    INTERMEDIATE_SCALE digits) and multiplies by the target rate, rounding
    the result to the target's canonical scale.
    """

    def __init__(
        self,
        rates: Optional[Mapping[Currency, Decimal]] = None,
        base_currency: Currency = BASE_CURRENCY
    ):
        table = dict(BASE_RATES if rates is None else rates)
        for currency, rate in table.items():
            if not isinstance(rate, Decimal):
                table[currency] = Decimal(str(rate))
        self._rates: Mapping[Currency, Decimal] = MappingProxyType(table)
        self.base_currency = base_currency

    @property
    def rates(self) -> Mapping[Currency, Decimal]:
        """Read-only view of the rate table"""
        return self._rates

    def _rate_for(self, currency: Currency) -> Decimal:
        rate = self._rates.get(currency)
        if rate is None or rate == Decimal('0'):
            raise UnsupportedCurrencyError(
                currency.code,
                f"No usable exchange rate for {currency.code}"
            )
        return rate

    def to_base(self, amount: Decimal, currency: Currency) -> Decimal:
        """Convert an amount into base-currency units at intermediate precision"""
        if currency == self.base_currency:
            return amount
        rate = self._rate_for(currency)
        return (amount / rate).quantize(
            Decimal(1).scaleb(-INTERMEDIATE_SCALE), rounding=ROUND_HALF_UP
        )

    def convert(
        self,
        amount: Decimal,
        from_currency: Union[Currency, str],
        to_currency: Union[Currency, str]
    ) -> Decimal:
        """
        Convert amount from one currency to another

        Args:
            amount: Amount in from_currency
            from_currency: Source currency (enum or code)
            to_currency: Target currency (enum or code)

        Returns:
            Amount in to_currency, rounded to its canonical scale

        Raises:
            UnsupportedCurrencyError: If either currency is unknown or has no rate
        """
        source = Currency.from_code(from_currency)
        target = Currency.from_code(to_currency)
        if not isinstance(amount, Decimal):
            amount = Decimal(str(amount))

        if source == target:
            return quantize_to_currency(amount, target)

        # Validate the target before doing any arithmetic
        target_rate = self._rate_for(target) if target != self.base_currency else Decimal('1')
        base_amount = self.to_base(amount, source)
        return quantize_to_currency(base_amount * target_rate, target)

    def convert_money(self, money: Money, to_currency: Union[Currency, str]) -> Money:
        """Convert a Money value into another currency"""
        target = Currency.from_code(to_currency)
        return Money(self.convert(money.amount, money.currency, target), target)

    def rate(self, from_currency: Union[Currency, str], to_currency: Union[Currency, str]) -> Decimal:
        """Effective cross rate (target units per source unit) at intermediate precision"""
        source = Currency.from_code(from_currency)
        target = Currency.from_code(to_currency)
        if source == target:
            return Decimal('1')
        target_rate = self._rate_for(target) if target != self.base_currency else Decimal('1')
        return (self.to_base(Decimal('1'), source) * target_rate).quantize(
            Decimal(1).scaleb(-INTERMEDIATE_SCALE), rounding=ROUND_HALF_UP
        )
