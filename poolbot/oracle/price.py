"""Spot price derivation from Uniswap V3 pool state."""

from decimal import Decimal

import structlog

from ..core.errors import ConfigurationError
from ..core.interfaces import ChainClient
from ..core.types import PoolState, PriceQuote, TokenMeta

logger = structlog.get_logger(__name__)

Q192 = 2**192
FIXED_POINT_DIGITS = 18
MAX_DECIMALS = 36


def _validate_decimals(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= MAX_DECIMALS:
        raise ConfigurationError(
            f"{name} must be between 0 and {MAX_DECIMALS}, got {value}"
        )


def token1_per_token0_fixed(sqrt_price_x96: int, decimals0: int, decimals1: int) -> int:
    """Return the human price of token0 in token1 with 18 fractional digits.

    Only integer arithmetic is used, so the result is exact up to the final
    floor division.
    """
    price_x192 = sqrt_price_x96 * sqrt_price_x96
    numerator = price_x192 * 10 ** (FIXED_POINT_DIGITS + decimals0)
    denominator = Q192 * 10**decimals1
    return numerator // denominator


def compute_price(
    sqrt_price_x96: int,
    decimals0: int,
    decimals1: int,
    token0: str,
    token1: str,
    base_token: str,
    quote_token: str,
) -> PriceQuote:
    """Convert a pool sqrtPriceX96 into quote-token units per base token.

    Args:
        sqrt_price_x96: Pool slot0 sqrtPriceX96
        decimals0: ERC20 decimals of token0
        decimals1: ERC20 decimals of token1
        token0: Pool token0 address
        token1: Pool token1 address
        base_token: Token being priced
        quote_token: Token the price is denominated in

    Returns:
        PriceQuote for base_token in quote_token

    Raises:
        ConfigurationError: If the pool is uninitialized, decimals are out of
            range or the pair does not match the pool tokens
    """
    if sqrt_price_x96 <= 0:
        raise ConfigurationError(
            f"Pool sqrtPriceX96 is {sqrt_price_x96}; pool is uninitialized or invalid"
        )
    _validate_decimals("decimals0", decimals0)
    _validate_decimals("decimals1", decimals1)

    t0, t1 = token0.lower(), token1.lower()
    base, quote = base_token.lower(), quote_token.lower()

    if (base, quote) == (t0, t1):
        invert = False
    elif (base, quote) == (t1, t0):
        invert = True
    else:
        raise ConfigurationError(
            f"Pool pair {token0}/{token1} does not match configured "
            f"pair {base_token}/{quote_token}"
        )

    fixed = token1_per_token0_fixed(sqrt_price_x96, decimals0, decimals1)
    if fixed == 0:
        raise ConfigurationError(
            "Pool price is below 18-decimal fixed-point resolution"
        )

    price = Decimal(fixed).scaleb(-FIXED_POINT_DIGITS)
    if invert:
        price = 1 / price

    return PriceQuote(base_token=base_token, quote_token=quote_token, price=price)


class PriceOracle:
    """Reads pool state and token metadata and produces price quotes."""

    def __init__(
        self,
        chain: ChainClient,
        pool_address: str,
        base_token: str,
        quote_token: str,
    ) -> None:
        self.chain = chain
        self.pool_address = pool_address
        self.base_token = base_token
        self.quote_token = quote_token
        self._meta: dict[str, TokenMeta] = {}

    async def token_meta(self, token_address: str) -> TokenMeta:
        """Return token metadata, reading decimals only on first use."""
        key = token_address.lower()
        meta = self._meta.get(key)
        if meta is None:
            decimals = await self.chain.read_token_decimals(token_address)
            _validate_decimals(f"decimals of {token_address}", decimals)
            meta = TokenMeta(address=token_address, decimals=decimals)
            self._meta[key] = meta
            logger.debug("Cached token metadata", token=token_address, decimals=decimals)
        return meta

    async def decimals(self, token_address: str) -> int:
        return (await self.token_meta(token_address)).decimals

    async def read_state(self) -> PoolState:
        """Read a fresh pool snapshot."""
        return await self.chain.read_pool_state(self.pool_address)

    async def quote(self, state: PoolState | None = None) -> PriceQuote:
        """Price the base token from a pool snapshot.

        Args:
            state: Pool snapshot; read from chain when omitted

        Returns:
            PriceQuote for the configured pair
        """
        if state is None:
            state = await self.read_state()

        meta0 = await self.token_meta(state.token0)
        meta1 = await self.token_meta(state.token1)

        return compute_price(
            state.sqrt_price_x96,
            meta0.decimals,
            meta1.decimals,
            state.token0,
            state.token1,
            self.base_token,
            self.quote_token,
        )
