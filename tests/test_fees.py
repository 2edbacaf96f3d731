"""
Tests for the percentage fee policy
"""

import pytest
from decimal import Decimal, ROUND_HALF_UP

from fx_ledger.currency import Currency
from fx_ledger.fees import FeePolicy, DEFAULT_FEE_RATE


class TestFeePolicy:

    def setup_method(self):
        self.policy = FeePolicy()

    def test_default_rate_is_one_percent(self):
        assert self.policy.rate == DEFAULT_FEE_RATE == Decimal('0.01')

    def test_reference_fees(self):
        assert self.policy.fee(Decimal('50.00'), Currency.USD) == Decimal('0.50')
        assert self.policy.fee(Decimal('100.00'), Currency.AUD) == Decimal('1.00')
        assert self.policy.fee(Decimal('1000'), Currency.JPN) == Decimal('10')

    def test_rounds_half_up_to_currency_scale(self):
        assert self.policy.fee(Decimal('0.50'), Currency.USD) == Decimal('0.01')
        assert self.policy.fee(Decimal('12.34'), Currency.CNY) == Decimal('0.12')
        assert self.policy.fee(Decimal('150'), Currency.JPN) == Decimal('2')
        assert self.policy.fee(Decimal('149'), Currency.JPN) == Decimal('1')

    @pytest.mark.parametrize("currency", list(Currency))
    @pytest.mark.parametrize("amount", ["1", "7", "49", "250", "1234", "99999"])
    def test_fee_matches_rounded_percentage(self, currency, amount):
        value = Decimal(amount)
        expected = (value * Decimal('0.01')).quantize(currency.quantum, rounding=ROUND_HALF_UP)
        assert self.policy.fee(value, currency) == expected

    def test_custom_rate(self):
        policy = FeePolicy("0.025")
        assert policy.fee(Decimal('100.00'), Currency.USD) == Decimal('2.50')

    def test_zero_rate(self):
        assert FeePolicy(Decimal('0')).fee(Decimal('100.00'), Currency.USD) == Decimal('0.00')

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            FeePolicy(Decimal('-0.01'))
