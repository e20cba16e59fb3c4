"""
Tests for processor fee arithmetic and amount limits.
"""
import pytest

from movetogether.models.competition import PoolMode
from movetogether.services.payment.fees import (
    calculate_charge,
    calculate_processor_fee,
    validate_prize_amount,
)


class TestProcessorFee:

    @pytest.mark.parametrize("amount,fee,total", [
        (30, 1.17, 31.17),
        (10, 0.59, 10.59),
        (50, 1.75, 51.75),
        (100, 3.2, 103.2),
        (500, 14.8, 514.8),
    ])
    def test_fee_and_total(self, amount, fee, total):
        calculation = calculate_charge(amount)

        assert calculate_processor_fee(amount) == fee
        assert calculation.processor_fee == fee
        assert calculation.total_charge == total
        assert calculation.currency == "USD"

    def test_fee_rounded_to_cents(self):
        # 12.34 * 0.029 + 0.30 = 0.65786
        assert calculate_processor_fee(12.34) == 0.66
        assert calculate_charge(12.34).total_charge == 13.0


class TestAmountLimits:

    @pytest.mark.parametrize("mode,amount,valid", [
        (PoolMode.CREATOR_FUNDED, 5, True),
        (PoolMode.CREATOR_FUNDED, 500, True),
        (PoolMode.CREATOR_FUNDED, 4.99, False),
        (PoolMode.CREATOR_FUNDED, 500.01, False),
        (PoolMode.BUY_IN, 1, True),
        (PoolMode.BUY_IN, 100, True),
        (PoolMode.BUY_IN, 0.5, False),
        (PoolMode.BUY_IN, 101, False),
    ])
    def test_bounds_are_inclusive(self, mode, amount, valid):
        assert validate_prize_amount(amount, mode).is_valid is valid

    def test_missing_amount(self):
        result = validate_prize_amount(None, PoolMode.BUY_IN)

        assert not result.is_valid
        assert result.reason == "Enter a buy-in amount"

    @pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_amount_rejected(self, amount):
        result = validate_prize_amount(amount, PoolMode.CREATOR_FUNDED)

        assert not result.is_valid
        assert result.reason == "Enter a valid prize pool amount"
        assert result.fee_breakdown is None

    def test_messages_name_the_limit(self):
        assert validate_prize_amount(3, PoolMode.CREATOR_FUNDED).reason == "Minimum prize pool is $5.00"
        assert validate_prize_amount(600, PoolMode.CREATOR_FUNDED).reason == "Maximum prize pool is $500.00"

    def test_valid_amount_carries_fee_breakdown(self):
        result = validate_prize_amount(20, PoolMode.CREATOR_FUNDED)

        assert result.fee_breakdown.processor_fee == 0.88
        assert result.fee_breakdown.total_charge == 20.88
