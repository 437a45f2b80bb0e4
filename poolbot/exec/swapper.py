"""Live swap execution through a Uniswap V3 router."""

import time
from collections.abc import Callable
from decimal import Decimal

import structlog

from ..core.errors import SubmissionError
from ..core.interfaces import ChainClient
from ..core.types import TradeIntent, TxConfirmation, TxOutcome

logger = structlog.get_logger(__name__)


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Convert a human amount into integer token base units."""
    return int(Decimal(amount).scaleb(decimals))


def from_base_units(amount: int, decimals: int) -> Decimal:
    """Convert integer token base units into a human amount."""
    return Decimal(amount).scaleb(-decimals)


class SwapExecutor:
    """Executes trade intents on chain: allowance first, then the swap."""

    def __init__(
        self,
        chain: ChainClient,
        router_address: str,
        decimals_fn: Callable,
        deadline_seconds: int = 600,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        """Initialize swap executor.

        Args:
            chain: Chain access collaborator
            router_address: Router that receives allowances and swaps
            decimals_fn: Async callable returning decimals for a token address
            deadline_seconds: Swap deadline offset from now
            now_fn: Optional function to get current timestamp (for testing)
        """
        self.chain = chain
        self.router_address = router_address
        self._decimals_fn = decimals_fn
        self.deadline_seconds = deadline_seconds
        self._now_fn = now_fn or time.time

    async def ensure_allowance(
        self, token_address: str, owner: str, spender: str, needed: int
    ) -> TxConfirmation | None:
        """Make sure spender may pull at least `needed` units of the token.

        Some tokens refuse to change a non-zero allowance to another non-zero
        value, so an existing allowance is first reset to zero. That reset is
        best effort: only its SubmissionError is suppressed, and the real
        approval that follows still has to succeed.

        Returns:
            Confirmation of the approval, or None if none was needed
        """
        current = await self.chain.read_allowance(token_address, owner, spender)
        if current >= needed:
            logger.debug(
                "Allowance already sufficient",
                token=token_address,
                allowance=current,
                needed=needed,
            )
            return None

        if current != 0:
            try:
                await self.chain.approve(token_address, spender, 0)
            except SubmissionError as e:
                logger.warning(
                    "Allowance reset to zero failed, continuing",
                    token=token_address,
                    error=str(e),
                )

        confirmation = await self.chain.approve(token_address, spender, needed)
        logger.info("Approved router allowance", token=token_address, amount=needed)
        return confirmation

    async def execute(self, intent: TradeIntent, fee: int) -> TxOutcome:
        """Approve and swap `intent.amount` of token_in for token_out.

        Args:
            intent: Trade to execute
            fee: Pool fee tier

        Returns:
            Outcome with swap and approval confirmations

        Raises:
            SubmissionError: If the approval or swap fails
            UnavailableError: If a chain read fails
        """
        decimals = await self._decimals_fn(intent.token_in)
        amount_in = to_base_units(intent.amount, decimals)
        owner = self.chain.address

        logger.info(
            "Executing swap",
            direction=intent.direction.value,
            token_in=intent.token_in,
            token_out=intent.token_out,
            amount=str(intent.amount),
            amount_in_units=amount_in,
            fee=fee,
        )

        approval = await self.ensure_allowance(
            intent.token_in, owner, self.router_address, amount_in
        )

        deadline = int(self._now_fn()) + self.deadline_seconds
        swap = await self.chain.submit_swap(
            intent.token_in, intent.token_out, fee, amount_in, owner, deadline
        )

        logger.info(
            "Swap confirmed",
            direction=intent.direction.value,
            tx_hash=swap.tx_hash,
            block_number=swap.block_number,
        )

        return TxOutcome(
            success=True,
            direction=intent.direction,
            amount_in_units=amount_in,
            swap=swap,
            approval=approval,
        )
