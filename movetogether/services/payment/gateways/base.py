"""
Base Charge Strategy
Abstract classes defining how a prize pool contribution is collected on device
"""
from abc import ABC, abstractmethod

from movetogether.models.payment import (
    ChargeRequest,
    ChargeResult,
    ChargeStatus,
    PaymentIntent,
    SheetResult,
)


class PaymentSheet(ABC):
    """
    Device-side payment UI.
    Implemented by the host application (native pay sheet, card form).
    """

    @abstractmethod
    async def platform_pay_available(self) -> bool:
        """Whether the platform one-tap wallet is available"""
        pass

    @abstractmethod
    async def present_platform_pay(self, client_secret: str, amount: float, label: str) -> SheetResult:
        """Present the platform wallet sheet for a payment intent"""
        pass

    @abstractmethod
    async def present_card_entry(self, client_secret: str) -> SheetResult:
        """Present the card entry sheet for a payment intent"""
        pass


class BaseChargeStrategy(ABC):
    """
    Abstract base class for charge strategies.
    A strategy confirms a payment intent through one kind of payment sheet.
    """

    strategy_id: str = "base"
    strategy_name: str = "Base Strategy"

    def __init__(self, intents, sheet: PaymentSheet):
        """
        Args:
            intents: PaymentIntentClient used to obtain client secrets
            sheet: Device payment sheet
        """
        self.intents = intents
        self.sheet = sheet

    @abstractmethod
    async def is_available(self) -> bool:
        """Whether this strategy can run on the current device"""
        pass

    @abstractmethod
    async def confirm(self, intent: PaymentIntent, request: ChargeRequest) -> SheetResult:
        """Confirm an existing payment intent"""
        pass

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        """
        Create a payment intent and confirm it.

        Returns:
            ChargeResult; never raises
        """
        try:
            intent = await self.intents.create_intent(request)
            if not intent.success:
                return self._failed(intent.error_message or "Failed to create payment")

            return self.to_charge_result(await self.confirm(intent, request))

        except Exception as e:
            return self._failed(str(e) or "Something went wrong")

    def to_charge_result(self, sheet_result: SheetResult) -> ChargeResult:
        """Map a sheet result to a charge outcome"""
        if sheet_result.completed:
            return ChargeResult(status=ChargeStatus.SUCCEEDED, strategy_id=self.strategy_id)
        if sheet_result.cancelled:
            return ChargeResult(status=ChargeStatus.CANCELLED, strategy_id=self.strategy_id)
        return self._failed(sheet_result.error_message or "Payment failed")

    def _failed(self, reason: str) -> ChargeResult:
        return ChargeResult(status=ChargeStatus.FAILED, reason=reason, strategy_id=self.strategy_id)
