"""
Prize Pool Fee Service
Processor fee arithmetic and client-side amount limits
"""
import math
from typing import Optional

from movetogether.models.competition import PoolMode
from movetogether.models.payment import (
    AMOUNT_LIMITS,
    PROCESSOR_FEE_FIXED,
    PROCESSOR_FEE_PERCENTAGE,
    AmountValidation,
    PrizePoolFeeCalculation,
)


def calculate_processor_fee(amount: float) -> float:
    """fee = round2(amount * 0.029 + 0.30)"""
    return round(amount * PROCESSOR_FEE_PERCENTAGE / 100 + PROCESSOR_FEE_FIXED, 2)


def calculate_charge(amount: float) -> PrizePoolFeeCalculation:
    """
    Calculate the total charge for a prize pool contribution.

    Args:
        amount: Prize amount (creator-funded) or buy-in amount

    Returns:
        PrizePoolFeeCalculation with fee and total
    """
    fee = calculate_processor_fee(amount)
    return PrizePoolFeeCalculation(
        amount=round(amount, 2),
        processor_fee_percentage=PROCESSOR_FEE_PERCENTAGE,
        processor_fee_fixed=PROCESSOR_FEE_FIXED,
        processor_fee=fee,
        total_charge=round(amount + fee, 2),
    )


def validate_prize_amount(amount: Optional[float], mode: PoolMode) -> AmountValidation:
    """
    Validate an amount against the limits of its pool mode.

    Creator-funded pools accept 5-500, buy-ins accept 1-100.
    """
    limits = AMOUNT_LIMITS[mode]
    label = "buy-in" if mode == PoolMode.BUY_IN else "prize pool"

    if amount is None:
        return AmountValidation(is_valid=False, reason=f"Enter a {label} amount")

    if not math.isfinite(amount):
        return AmountValidation(is_valid=False, reason=f"Enter a valid {label} amount")

    if amount < limits["min"]:
        return AmountValidation(
            is_valid=False,
            reason=f"Minimum {label} is ${limits['min']:.2f}"
        )

    if amount > limits["max"]:
        return AmountValidation(
            is_valid=False,
            reason=f"Maximum {label} is ${limits['max']:.2f}"
        )

    return AmountValidation(is_valid=True, fee_breakdown=calculate_charge(amount))
