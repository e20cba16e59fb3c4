"""
Platform Pay Strategy
One-tap wallet payments (Apple Pay / Google Pay)
"""
from movetogether.models.payment import ChargeRequest, PaymentIntent, SheetResult
from movetogether.services.payment.gateways.base import BaseChargeStrategy


class PlatformPayStrategy(BaseChargeStrategy):
    """Charges through the device's native wallet sheet"""

    strategy_id = "platform_pay"
    strategy_name = "Platform Pay"

    async def is_available(self) -> bool:
        try:
            return bool(await self.sheet.platform_pay_available())
        except Exception:
            return False

    async def confirm(self, intent: PaymentIntent, request: ChargeRequest) -> SheetResult:
        # The intent amount is authoritative; fall back to our own total
        amount = intent.amount if intent.amount is not None else request.total_charge
        return await self.sheet.present_platform_pay(
            intent.client_secret,
            round(float(amount), 2),
            request.label
        )
