"""
Prize Pool Payment Models
Charge requests/results, payment intents and fee breakdowns
"""
from pydantic import BaseModel
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from enum import Enum

from movetogether.models.competition import PoolMode


# Processor fee model: amount * 2.9% + $0.30
PROCESSOR_FEE_PERCENTAGE = 2.9
PROCESSOR_FEE_FIXED = 0.30

# Client-side amount limits per pool mode (USD)
AMOUNT_LIMITS: Dict[PoolMode, Dict[str, float]] = {
    PoolMode.CREATOR_FUNDED: {"min": 5.0, "max": 500.0},
    PoolMode.BUY_IN: {"min": 1.0, "max": 100.0},
}


class ChargeStatus(str, Enum):
    """Outcome of a charge attempt"""
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class ChargeRequest:
    """Everything a charge strategy needs to collect a prize pool contribution"""
    competition_id: str
    amount: float
    processor_fee: float
    total_charge: float
    pool_type: PoolMode = PoolMode.CREATOR_FUNDED
    payout_structure: Dict[str, float] = field(default_factory=lambda: {"first": 100})
    buy_in_amount: Optional[float] = None
    invitation_id: Optional[str] = None

    @property
    def label(self) -> str:
        if self.pool_type == PoolMode.BUY_IN:
            return "Competition Buy-In"
        return "Competition Prize Pool"


@dataclass
class ChargeResult:
    status: ChargeStatus
    reason: Optional[str] = None
    strategy_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ChargeStatus.SUCCEEDED

    @property
    def cancelled(self) -> bool:
        return self.status == ChargeStatus.CANCELLED

    @property
    def failed(self) -> bool:
        return self.status == ChargeStatus.FAILED


@dataclass
class PaymentIntent:
    """Result of asking the payment endpoint for a client secret"""
    success: bool
    client_secret: Optional[str] = None
    amount: Optional[float] = None
    error_message: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


@dataclass
class SheetResult:
    """What the device payment sheet reported back"""
    completed: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self.error_code == "Canceled"


class PrizePoolFeeCalculation(BaseModel):
    """Fee calculation result"""
    amount: float
    processor_fee_percentage: float
    processor_fee_fixed: float
    processor_fee: float
    total_charge: float
    currency: str = "USD"


class AmountValidation(BaseModel):
    """Validation result for a prize pool amount"""
    is_valid: bool
    reason: Optional[str] = None
    fee_breakdown: Optional[PrizePoolFeeCalculation] = None


class PaymentRecordType(str, Enum):
    """What a processor payment paid for (payment intent metadata "type")"""
    PRIZE_POOL = "prize_pool"
    BUY_IN_JOIN = "buy_in_join"


class PaymentRecordStatus(str, Enum):
    """
    Payment record status as reported by the processor webhook.
    State transitions:
    - FAILED -> PAID (a later attempt on the same intent succeeded)
    - PAID is final
    """
    PAID = "paid"
    FAILED = "failed"


@dataclass
class WebhookVerificationResult:
    """Result of verifying a processor webhook"""
    is_valid: bool
    event: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
