"""Paper trading execution engine."""

import time
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog

from ..core.types import Direction, TradeIntent, TxOutcome
from .swapper import to_base_units

logger = structlog.get_logger(__name__)

FEE_DENOMINATOR = Decimal(1_000_000)


class PaperExecutor:
    """Simulates swaps at the triggering price without touching the chain."""

    def __init__(
        self,
        decimals_fn: Callable,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        """Initialize paper executor.

        Args:
            decimals_fn: Async callable returning decimals for a token address
            now_fn: Optional function to get current timestamp (for testing)
        """
        self._decimals_fn = decimals_fn
        self._now_fn = now_fn or time.time
        self._trade_history: list[dict[str, Any]] = []

    def estimate_amount_out(
        self, direction: Direction, amount: Decimal, price: Decimal, fee: int
    ) -> Decimal:
        """Estimate swap output at a spot price after the pool fee.

        Args:
            direction: SELL spends base for quote, BUY spends quote for base
            amount: Amount of token_in in human units
            price: Base price in quote units
            fee: Pool fee tier in hundredths of a bip

        Returns:
            Estimated amount of token_out in human units
        """
        net_in = amount * (1 - Decimal(fee) / FEE_DENOMINATOR)
        if direction == Direction.SELL:
            return net_in * price
        return net_in / price

    async def execute(self, intent: TradeIntent, fee: int) -> TxOutcome:
        """Record a simulated fill for the intent.

        Args:
            intent: Trade to simulate
            fee: Pool fee tier

        Returns:
            Simulated outcome
        """
        decimals = await self._decimals_fn(intent.token_in)
        amount_in = to_base_units(intent.amount, decimals)

        amount_out = None
        if intent.ref_price is not None:
            amount_out = self.estimate_amount_out(
                intent.direction, intent.amount, intent.ref_price, fee
            )

        record = {
            "direction": intent.direction.value,
            "token_in": intent.token_in,
            "token_out": intent.token_out,
            "amount": intent.amount,
            "amount_in_units": amount_in,
            "amount_out_estimate": amount_out,
            "ref_price": intent.ref_price,
            "fee": fee,
            "ts": datetime.fromtimestamp(self._now_fn()),
        }
        self._trade_history.append(record)

        logger.info(
            "Paper trade executed",
            direction=intent.direction.value,
            amount=str(intent.amount),
            amount_out_estimate=str(amount_out) if amount_out is not None else None,
            ref_price=str(intent.ref_price) if intent.ref_price is not None else None,
            fee=fee,
        )

        return TxOutcome(
            success=True,
            direction=intent.direction,
            amount_in_units=amount_in,
            simulated=True,
            amount_out_estimate=amount_out,
        )

    def get_trade_history(self) -> list[dict[str, Any]]:
        """Get trade history.

        Returns:
            List of simulated trade records
        """
        return self._trade_history.copy()
