"""Core data types for the pool trading bot."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class Direction(str, Enum):
    """Swap direction relative to the base token."""

    BUY = "buy"
    SELL = "sell"


class EngineMode(str, Enum):
    """Hysteresis state of the trigger engine."""

    NEUTRAL = "neutral"
    ARMED_SELL = "armed_sell"
    ARMED_BUY = "armed_buy"


class PoolState(BaseModel):
    """Snapshot of a Uniswap V3 pool read once per cycle."""

    model_config = {"frozen": True}

    sqrt_price_x96: int = Field(ge=0, description="slot0 sqrtPriceX96")
    token0: str = Field(description="Pool token0 address")
    token1: str = Field(description="Pool token1 address")
    fee: int = Field(default=0, ge=0, description="Pool fee tier in hundredths of a bip")


class TokenMeta(BaseModel):
    """Static ERC20 metadata."""

    model_config = {"frozen": True}

    address: str = Field(description="Token contract address")
    decimals: int = Field(ge=0, le=255, description="ERC20 decimals")


class PriceQuote(BaseModel):
    """Price of one base token expressed in quote tokens."""

    model_config = {"frozen": True}

    base_token: str = Field(description="Base token address")
    quote_token: str = Field(description="Quote token address")
    price: Decimal = Field(gt=0, description="Quote units per 1 base unit")


class Balances(BaseModel):
    """Wallet balances in human units."""

    base: Decimal = Field(default=Decimal(0), description="Base token balance")
    quote: Decimal = Field(default=Decimal(0), description="Quote token balance")


class TradeIntent(BaseModel):
    """A swap the engine wants executed. Consumed once."""

    direction: Direction
    token_in: str
    token_out: str
    amount: Decimal = Field(gt=0, description="Amount of token_in in human units")
    ref_price: Decimal | None = Field(
        default=None, description="Base price that triggered the intent"
    )


class Decision(BaseModel):
    """Outcome of one engine evaluation."""

    kind: Literal["sell", "buy", "insufficient_balance", "no_action"]
    amount: Decimal | None = None
    token: Literal["base", "quote"] | None = None
    available: Decimal | None = None
    reason: str | None = None

    @classmethod
    def sell(cls, amount: int | Decimal) -> "Decision":
        return cls(kind="sell", amount=Decimal(amount))

    @classmethod
    def buy(cls, amount: int | Decimal) -> "Decision":
        return cls(kind="buy", amount=Decimal(amount))

    @classmethod
    def insufficient_balance(
        cls,
        token: Literal["base", "quote"],
        available: Decimal | None = None,
        required: int | Decimal | None = None,
    ) -> "Decision":
        return cls(
            kind="insufficient_balance",
            token=token,
            available=available,
            amount=Decimal(required) if required is not None else None,
        )

    @classmethod
    def no_action(cls, reason: str) -> "Decision":
        return cls(kind="no_action", reason=reason)

    @property
    def direction(self) -> Direction | None:
        """Swap direction for trade decisions, None otherwise."""
        if self.kind == "sell":
            return Direction.SELL
        if self.kind == "buy":
            return Direction.BUY
        return None

    @property
    def is_trade(self) -> bool:
        return self.direction is not None


class TxConfirmation(BaseModel):
    """Mined transaction reference."""

    tx_hash: str
    block_number: int | None = None
    gas_used: int | None = None


class TxOutcome(BaseModel):
    """Result of fulfilling a TradeIntent."""

    success: bool
    direction: Direction
    amount_in_units: int = Field(ge=0, description="Amount in token_in base units")
    swap: TxConfirmation | None = None
    approval: TxConfirmation | None = None
    simulated: bool = False
    amount_out_estimate: Decimal | None = None


class CycleResult(BaseModel):
    """Structured record of one decision cycle, suitable for logging."""

    price: Decimal | None = None
    decision: Decision | None = None
    tx_outcome: TxOutcome | None = None
    error: str | None = None
    error_type: str | None = None
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None

    @property
    def fatal(self) -> bool:
        """True for any error except a failed submission."""
        return self.error_type is not None and self.error_type != "SubmissionError"
