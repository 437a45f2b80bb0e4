"""Core interfaces for the pool trading bot."""

from typing import Protocol

from .types import PoolState, TradeIntent, TxConfirmation, TxOutcome


class ChainClient(Protocol):
    """Chain access collaborator protocol."""

    @property
    def address(self) -> str:
        """Wallet address used as owner and swap recipient."""
        ...

    async def read_pool_state(self, pool_address: str) -> PoolState:
        """Read slot0, token0, token1 and fee of a pool."""
        ...

    async def read_token_decimals(self, token_address: str) -> int:
        """Read ERC20 decimals."""
        ...

    async def read_balance(self, token_address: str, owner: str) -> int:
        """Read ERC20 balance in base units."""
        ...

    async def read_allowance(self, token_address: str, owner: str, spender: str) -> int:
        """Read ERC20 allowance in base units."""
        ...

    async def approve(
        self, token_address: str, spender: str, amount: int
    ) -> TxConfirmation:
        """Set an ERC20 allowance and wait for confirmation."""
        ...

    async def submit_swap(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
        recipient: str,
        deadline: int,
    ) -> TxConfirmation:
        """Submit an exact-input single-pool swap and wait for confirmation."""
        ...


class TradeExecutor(Protocol):
    """Fulfils trade intents produced by the decision engine."""

    async def execute(self, intent: TradeIntent, fee: int) -> TxOutcome:
        """Execute a trade intent through a pool with the given fee tier."""
        ...
