"""
Payment Orchestrator
Collects prize pool contributions through the charge strategy the device supports
"""
import logging
from typing import Dict, Iterable, Optional

from movetogether.models.competition import PoolMode
from movetogether.models.payment import ChargeRequest, ChargeResult, ChargeStatus
from movetogether.services.payment.fees import validate_prize_amount
from movetogether.services.payment.gateways.base import BaseChargeStrategy, PaymentSheet
from movetogether.services.payment.gateways.card import CardStrategy
from movetogether.services.payment.gateways.factory import ChargeStrategyFactory
from movetogether.services.payment.gateways.intents import PaymentIntentClient
from movetogether.services.payment.gateways.platform_pay import PlatformPayStrategy

logger = logging.getLogger(__name__)


class PaymentOrchestrator:
    """
    Payment collaborator of the competition flows.

    The charge strategy is chosen once by mount(); every later charge reuses it.
    Outcomes are always returned as ChargeResult, never raised.
    """

    def __init__(
        self,
        intents: PaymentIntentClient,
        sheet: PaymentSheet,
        preference: Iterable[str] = ChargeStrategyFactory.DEFAULT_PREFERENCE
    ):
        self.intents = intents
        self.sheet = sheet
        self.preference = tuple(preference)
        self.strategy: Optional[BaseChargeStrategy] = None
        self.in_flight = False

    async def mount(self) -> BaseChargeStrategy:
        """Run the capability check (once per screen mount)"""
        if self.strategy is None:
            self.strategy = await ChargeStrategyFactory.select_strategy(
                self.intents, self.sheet, self.preference
            )
            logger.info(f"[PAYMENT] Using {self.strategy.strategy_name} for prize pool charges")
        return self.strategy

    @property
    def platform_pay_available(self) -> bool:
        return self.strategy is not None and self.strategy.strategy_id == PlatformPayStrategy.strategy_id

    async def charge(
        self,
        competition_id: str,
        amount: float,
        payout_structure: Optional[Dict[str, float]] = None,
        pool_type: PoolMode = PoolMode.CREATOR_FUNDED,
        buy_in_amount: Optional[float] = None
    ) -> ChargeResult:
        """
        Charge a prize pool contribution.

        Args:
            competition_id: Draft or competition the pool belongs to
            amount: Prize amount for creator-funded pools
            payout_structure: place -> percentage
            pool_type: creator_funded or buy_in
            buy_in_amount: Per-participant amount for buy-in pools

        Returns:
            ChargeResult (succeeded, cancelled, or failed with a reason)
        """
        effective = buy_in_amount if pool_type == PoolMode.BUY_IN and buy_in_amount is not None else amount
        validation = validate_prize_amount(effective, pool_type)
        if not validation.is_valid:
            return ChargeResult(status=ChargeStatus.FAILED, reason=validation.reason)

        fees = validation.fee_breakdown
        request = ChargeRequest(
            competition_id=competition_id,
            amount=fees.amount,
            processor_fee=fees.processor_fee,
            total_charge=fees.total_charge,
            pool_type=pool_type,
            payout_structure=payout_structure or {"first": 100},
            buy_in_amount=buy_in_amount,
        )

        strategy = await self.mount()
        return await self._run(strategy.charge(request), competition_id)

    async def charge_buy_in(
        self,
        competition_id: str,
        invitation_id: str,
        buy_in_amount: float
    ) -> ChargeResult:
        """
        Charge an invitee's buy-in.

        Platform pay is tried first; if it fails (not cancelled) the same
        payment intent is confirmed through card entry.
        """
        validation = validate_prize_amount(buy_in_amount, PoolMode.BUY_IN)
        if not validation.is_valid:
            return ChargeResult(status=ChargeStatus.FAILED, reason=validation.reason)

        fees = validation.fee_breakdown
        request = ChargeRequest(
            competition_id=competition_id,
            amount=fees.amount,
            processor_fee=fees.processor_fee,
            total_charge=fees.total_charge,
            pool_type=PoolMode.BUY_IN,
            buy_in_amount=buy_in_amount,
            invitation_id=invitation_id,
        )
        return await self._run(self._confirm_with_fallback(request), competition_id)

    async def _confirm_with_fallback(self, request: ChargeRequest) -> ChargeResult:
        intent = await self.intents.create_intent(request)
        if not intent.success:
            return ChargeResult(status=ChargeStatus.FAILED, reason=intent.error_message)

        platform = PlatformPayStrategy(self.intents, self.sheet)
        if await platform.is_available():
            result = platform.to_charge_result(await platform.confirm(intent, request))
            if not result.failed:
                return result
            logger.warning(f"[PAYMENT] Platform pay failed ({result.reason}), falling back to card")

        card = CardStrategy(self.intents, self.sheet)
        return card.to_charge_result(await card.confirm(intent, request))

    async def _run(self, charge_coro, competition_id: str) -> ChargeResult:
        self.in_flight = True
        try:
            result = await charge_coro
        except Exception as e:
            result = ChargeResult(status=ChargeStatus.FAILED, reason=str(e) or "Something went wrong")
        finally:
            self.in_flight = False

        if result.failed:
            logger.warning(f"[PAYMENT] Charge for {competition_id} failed: {result.reason}")
        elif result.cancelled:
            logger.info(f"[PAYMENT] Charge for {competition_id} cancelled by user")
        else:
            logger.info(f"[PAYMENT] Charge for {competition_id} succeeded")
        return result
