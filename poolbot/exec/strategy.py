"""Trigger band strategy with hysteresis."""

import random
from collections.abc import Callable
from decimal import Decimal

import structlog
from pydantic import BaseModel, Field

from ..core.errors import ConfigurationError
from ..core.types import Balances, Decision, EngineMode

logger = structlog.get_logger(__name__)


class TriggerConfig(BaseModel):
    """Static price thresholds and trade size range."""

    model_config = {"frozen": True}

    sell_trigger: Decimal = Field(description="Sell at or above this price")
    buy_trigger: Decimal = Field(description="Buy at or below this price")
    target_low: Decimal = Field(description="Lower edge of the neutral band")
    target_high: Decimal = Field(description="Upper edge of the neutral band")
    amount_min: int = Field(default=100, description="Minimum trade size in token_in units")
    amount_max: int = Field(default=1000, description="Maximum trade size in token_in units")


def validate_trigger_config(config: TriggerConfig) -> None:
    """Check threshold ordering and amount range.

    Raises:
        ConfigurationError: If the configuration is inconsistent
    """
    if not (
        config.sell_trigger
        > config.target_high
        >= config.target_low
        > config.buy_trigger
        > 0
    ):
        raise ConfigurationError(
            "Thresholds must satisfy sell_trigger > target_high >= target_low "
            f"> buy_trigger > 0 (got sell={config.sell_trigger}, "
            f"high={config.target_high}, low={config.target_low}, "
            f"buy={config.buy_trigger})"
        )
    if not 1 <= config.amount_min <= config.amount_max:
        raise ConfigurationError(
            f"Invalid amount range [{config.amount_min}, {config.amount_max}]"
        )


class TriggerEngine:
    """Decides sells and buys from price crossings of static trigger bands.

    Once a trade fires in one direction the engine stays armed in that
    direction and will not fire it again until price re-enters the target
    band. The mode lives only in memory.
    """

    def __init__(
        self,
        config: TriggerConfig,
        amount_fn: Callable[[int, int], int] | None = None,
    ) -> None:
        """Initialize trigger engine.

        Args:
            config: Trigger thresholds and amount range
            amount_fn: Optional inclusive integer draw (a, b) -> n, defaults
                to random.randint (for testing)

        Raises:
            ConfigurationError: If the configuration is inconsistent
        """
        validate_trigger_config(config)
        self.config = config
        self._amount_fn = amount_fn or random.randint
        self.mode = EngineMode.NEUTRAL

    def _draw_amount(self) -> int:
        return self._amount_fn(self.config.amount_min, self.config.amount_max)

    def evaluate(self, price: Decimal, balances: Balances) -> Decision:
        """Evaluate the current price against the trigger bands.

        Args:
            price: Base token price in quote units
            balances: Wallet balances in human units

        Returns:
            Decision for this cycle. Never raises.
        """
        cfg = self.config
        previous = self.mode

        if price >= cfg.sell_trigger and self.mode != EngineMode.ARMED_SELL:
            amount = self._draw_amount()
            if balances.base >= amount:
                decision = Decision.sell(amount)
                self.mode = EngineMode.ARMED_SELL
            else:
                decision = Decision.insufficient_balance(
                    "base", available=balances.base, required=amount
                )
        elif price <= cfg.buy_trigger and self.mode != EngineMode.ARMED_BUY:
            amount = self._draw_amount()
            if balances.quote >= amount:
                decision = Decision.buy(amount)
                self.mode = EngineMode.ARMED_BUY
            else:
                decision = Decision.insufficient_balance(
                    "quote", available=balances.quote, required=amount
                )
        elif cfg.target_low <= price <= cfg.target_high:
            self.mode = EngineMode.NEUTRAL
            decision = Decision.no_action("in target band")
        else:
            decision = Decision.no_action("no trigger crossed")

        if self.mode != previous:
            logger.info(
                "Engine mode changed",
                previous=previous.value,
                mode=self.mode.value,
                price=str(price),
            )

        return decision

    def reset(self) -> None:
        """Return to the neutral mode."""
        self.mode = EngineMode.NEUTRAL

    def get_state_summary(self) -> dict:
        """Get current engine state summary."""
        return {
            "mode": self.mode.value,
            "sell_trigger": str(self.config.sell_trigger),
            "buy_trigger": str(self.config.buy_trigger),
            "target_low": str(self.config.target_low),
            "target_high": str(self.config.target_high),
            "amount_range": [self.config.amount_min, self.config.amount_max],
        }
