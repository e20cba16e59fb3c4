"""
Card Strategy
Card entry sheet, available on every device
"""
from movetogether.models.payment import ChargeRequest, PaymentIntent, SheetResult
from movetogether.services.payment.gateways.base import BaseChargeStrategy


class CardStrategy(BaseChargeStrategy):

    strategy_id = "card"
    strategy_name = "Card"

    async def is_available(self) -> bool:
        return True

    async def confirm(self, intent: PaymentIntent, request: ChargeRequest) -> SheetResult:
        return await self.sheet.present_card_entry(intent.client_secret)
