"""web3.py implementation of the chain access collaborator."""

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import (
    BadFunctionCallOutput,
    ProviderConnectionError,
    TimeExhausted,
)

from ..core.errors import ConfigurationError, SubmissionError, UnavailableError
from ..core.types import PoolState, TxConfirmation

logger = structlog.get_logger(__name__)

T = TypeVar("T")

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
]

POOL_ABI = [
    {
        "inputs": [],
        "name": "slot0",
        "outputs": [
            {"internalType": "uint160", "name": "sqrtPriceX96", "type": "uint160"},
            {"internalType": "int24", "name": "tick", "type": "int24"},
            {"internalType": "uint16", "name": "observationIndex", "type": "uint16"},
            {"internalType": "uint16", "name": "observationCardinality", "type": "uint16"},
            {"internalType": "uint16", "name": "observationCardinalityNext", "type": "uint16"},
            {"internalType": "uint8", "name": "feeProtocol", "type": "uint8"},
            {"internalType": "bool", "name": "unlocked", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "token0",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "token1",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "fee",
        "outputs": [{"internalType": "uint24", "name": "", "type": "uint24"}],
        "stateMutability": "view",
        "type": "function",
    },
]

SWAP_ROUTER_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"internalType": "address", "name": "tokenIn", "type": "address"},
                    {"internalType": "address", "name": "tokenOut", "type": "address"},
                    {"internalType": "uint24", "name": "fee", "type": "uint24"},
                    {"internalType": "address", "name": "recipient", "type": "address"},
                    {"internalType": "uint256", "name": "deadline", "type": "uint256"},
                    {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
                    {"internalType": "uint256", "name": "amountOutMinimum", "type": "uint256"},
                    {"internalType": "uint160", "name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
                "internalType": "struct ISwapRouter.ExactInputSingleParams",
                "name": "params",
                "type": "tuple",
            }
        ],
        "name": "exactInputSingle",
        "outputs": [{"internalType": "uint256", "name": "amountOut", "type": "uint256"}],
        "stateMutability": "payable",
        "type": "function",
    }
]


def _is_retryable_error(exception) -> bool:
    """Check if an exception is a transient transport failure."""
    if isinstance(exception, ProviderConnectionError):
        return True
    if isinstance(exception, TimeoutError):
        return True
    if isinstance(exception, OSError):
        return True
    return False


def short_address(address: str) -> str:
    """Shorten an address for logging."""
    return f"{address[:6]}…{address[-4:]}"


class Web3ChainClient:
    """Chain client backed by an AsyncWeb3 instance and a local signer."""

    def __init__(
        self,
        rpc_url: str,
        private_key: str | None,
        router_address: str,
        w3: AsyncWeb3 | None = None,
        swap_gas_limit: int = 500_000,
        receipt_timeout: float = 180.0,
        max_attempts: int = 3,
        retry_backoff: float = 1.0,
        wallet_address: str | None = None,
    ) -> None:
        """Initialize the chain client.

        Args:
            rpc_url: JSON-RPC endpoint URL
            private_key: Hex private key for signing, None for read-only use
            router_address: Uniswap V3 SwapRouter address
            w3: Optional AsyncWeb3 instance (will create one if not provided)
            swap_gas_limit: Gas limit for swap transactions
            receipt_timeout: Seconds to wait for a transaction receipt
            max_attempts: Read attempts before giving up
            retry_backoff: Exponential backoff multiplier for read retries
            wallet_address: Address to read balances for when no key is given

        Raises:
            ConfigurationError: If the private key cannot be loaded
        """
        self.rpc_url = rpc_url
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.router_address = AsyncWeb3.to_checksum_address(router_address)
        self.swap_gas_limit = swap_gas_limit
        self.receipt_timeout = receipt_timeout
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff
        self._account = None
        if private_key:
            try:
                self._account = self.w3.eth.account.from_key(private_key)
            except Exception as e:
                raise ConfigurationError("Invalid private key") from e
        self._wallet_address = (
            AsyncWeb3.to_checksum_address(wallet_address) if wallet_address else None
        )

        logger.info(
            "Web3ChainClient initialized",
            rpc_url=rpc_url,
            signer=self._account is not None,
        )

    @property
    def address(self) -> str:
        if self._account is not None:
            return self._account.address
        if self._wallet_address is None:
            raise ConfigurationError("No private key or wallet address configured")
        return self._wallet_address

    def _contract(self, address: str, abi: list[dict[str, Any]]):
        return self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)

    async def _read(self, label: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run a read call with retries and map failures to the error taxonomy.

        Args:
            label: Name of the read for logging
            call: Zero-argument factory returning a fresh awaitable

        Raises:
            ConfigurationError: If the target address holds no matching contract
            UnavailableError: If the read keeps failing
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.retry_backoff, max=10),
                retry=retry_if_exception(_is_retryable_error),
                reraise=True,
            ):
                with attempt:
                    return await call()
        except BadFunctionCallOutput as e:
            logger.error("Contract returned no data", read=label, error=str(e))
            raise ConfigurationError(f"{label}: no contract data at address") from e
        except Exception as e:
            logger.error(
                "Chain read failed",
                read=label,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UnavailableError(f"{label} failed: {e}") from e

    async def read_pool_state(self, pool_address: str) -> PoolState:
        pool = self._contract(pool_address, POOL_ABI)
        slot0 = await self._read("slot0", lambda: pool.functions.slot0().call())
        token0 = await self._read("token0", lambda: pool.functions.token0().call())
        token1 = await self._read("token1", lambda: pool.functions.token1().call())
        fee = await self._read("fee", lambda: pool.functions.fee().call())
        return PoolState(
            sqrt_price_x96=int(slot0[0]), token0=token0, token1=token1, fee=int(fee)
        )

    async def read_token_decimals(self, token_address: str) -> int:
        token = self._contract(token_address, ERC20_ABI)
        return int(await self._read("decimals", lambda: token.functions.decimals().call()))

    async def read_balance(self, token_address: str, owner: str) -> int:
        token = self._contract(token_address, ERC20_ABI)
        owner = AsyncWeb3.to_checksum_address(owner)
        return int(
            await self._read("balanceOf", lambda: token.functions.balanceOf(owner).call())
        )

    async def read_allowance(self, token_address: str, owner: str, spender: str) -> int:
        token = self._contract(token_address, ERC20_ABI)
        owner = AsyncWeb3.to_checksum_address(owner)
        spender = AsyncWeb3.to_checksum_address(spender)
        return int(
            await self._read(
                "allowance", lambda: token.functions.allowance(owner, spender).call()
            )
        )

    async def _transact(self, label: str, fn, gas: int | None = None) -> TxConfirmation:
        """Build, sign, send and confirm a contract call.

        Raises:
            SubmissionError: If sending fails, the receipt times out or the
                transaction reverts
        """
        if self._account is None:
            raise ConfigurationError("Cannot send transactions without a private key")

        tx_hash = None
        try:
            params: dict[str, Any] = {
                "from": self._account.address,
                "nonce": await self.w3.eth.get_transaction_count(
                    self._account.address, "pending"
                ),
            }
            if gas is not None:
                params["gas"] = gas

            tx = await fn.build_transaction(params)
            signed = self._account.sign_transaction(tx)
            raw_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            tx_hash = AsyncWeb3.to_hex(raw_hash)
            logger.info("Transaction sent", tx=label, tx_hash=tx_hash)

            start_time = time.time()
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                raw_hash, timeout=self.receipt_timeout
            )
        except TimeExhausted as e:
            logger.error("Transaction confirmation timeout", tx=label, tx_hash=tx_hash)
            raise SubmissionError(f"{label} not confirmed: {e}", tx_hash=tx_hash) from e
        except Exception as e:
            logger.error(
                "Transaction submission failed",
                tx=label,
                tx_hash=tx_hash,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SubmissionError(f"{label} failed: {e}", tx_hash=tx_hash) from e

        if receipt["status"] != 1:
            logger.error("Transaction reverted", tx=label, tx_hash=tx_hash)
            raise SubmissionError(f"{label} reverted", tx_hash=tx_hash)

        confirmation = TxConfirmation(
            tx_hash=tx_hash,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )
        logger.info(
            "Transaction confirmed",
            tx=label,
            tx_hash=tx_hash,
            block_number=confirmation.block_number,
            gas_used=confirmation.gas_used,
            duration=time.time() - start_time,
        )
        return confirmation

    async def approve(
        self, token_address: str, spender: str, amount: int
    ) -> TxConfirmation:
        token = self._contract(token_address, ERC20_ABI)
        fn = token.functions.approve(AsyncWeb3.to_checksum_address(spender), amount)
        return await self._transact("approve", fn)

    async def submit_swap(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
        recipient: str,
        deadline: int,
    ) -> TxConfirmation:
        router = self._contract(self.router_address, SWAP_ROUTER_ABI)
        params = (
            AsyncWeb3.to_checksum_address(token_in),
            AsyncWeb3.to_checksum_address(token_out),
            fee,
            AsyncWeb3.to_checksum_address(recipient),
            deadline,
            amount_in,
            0,  # amountOutMinimum
            0,  # sqrtPriceLimitX96
        )
        fn = router.functions.exactInputSingle(params)
        return await self._transact("exactInputSingle", fn, gas=self.swap_gas_limit)
