"""
Charge Strategy Factory
Creates charge strategies and picks the one the device supports
"""
from typing import Dict, Iterable, Type

from movetogether.services.payment.gateways.base import BaseChargeStrategy, PaymentSheet
from movetogether.services.payment.gateways.card import CardStrategy
from movetogether.services.payment.gateways.intents import PaymentIntentClient
from movetogether.services.payment.gateways.platform_pay import PlatformPayStrategy


class ChargeStrategyFactory:
    """
    Factory for creating charge strategy instances.
    Strategies are tried in preference order; card entry is the fallback.
    """

    _strategies: Dict[str, Type[BaseChargeStrategy]] = {
        "platform_pay": PlatformPayStrategy,
        "card": CardStrategy,
    }

    DEFAULT_PREFERENCE = ("platform_pay", "card")

    @classmethod
    def register_strategy(cls, strategy_id: str, strategy_class: Type[BaseChargeStrategy]):
        cls._strategies[strategy_id] = strategy_class

    @classmethod
    def get_strategy(
        cls,
        strategy_id: str,
        intents: PaymentIntentClient,
        sheet: PaymentSheet
    ) -> BaseChargeStrategy:
        """
        Get a charge strategy instance.

        Raises:
            ValueError: If strategy is not registered
        """
        if strategy_id not in cls._strategies:
            raise ValueError(f"Unknown charge strategy: {strategy_id}. Available: {list(cls._strategies.keys())}")
        return cls._strategies[strategy_id](intents, sheet)

    @classmethod
    async def select_strategy(
        cls,
        intents: PaymentIntentClient,
        sheet: PaymentSheet,
        preference: Iterable[str] = DEFAULT_PREFERENCE
    ) -> BaseChargeStrategy:
        """Return the first strategy in preference order that is available on this device"""
        for strategy_id in preference:
            strategy = cls.get_strategy(strategy_id, intents, sheet)
            if await strategy.is_available():
                return strategy

        return cls.get_strategy("card", intents, sheet)
