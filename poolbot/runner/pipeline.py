"""Main trading cycle runner."""

import argparse
import asyncio
import logging
import random
import signal
import sys
from collections.abc import Callable
from datetime import datetime

import structlog

from ..config.settings import AppSettings, load_settings
from ..core.errors import ConfigurationError, SubmissionError, UnavailableError
from ..core.interfaces import ChainClient, TradeExecutor
from ..core.types import Balances, CycleResult, Decision, Direction, TradeIntent
from ..exec.paper import PaperExecutor
from ..exec.strategy import TriggerEngine
from ..exec.swapper import SwapExecutor, from_base_units
from ..exec.web3_client import Web3ChainClient, short_address
from ..oracle.price import PriceOracle

logger = structlog.get_logger(__name__)


class TradingBot:
    """Runs read -> price -> decide -> execute cycles for one pool."""

    def __init__(
        self,
        settings: AppSettings,
        chain: ChainClient | None = None,
        executor: TradeExecutor | None = None,
        amount_fn: Callable[[int, int], int] | None = None,
        delay_fn: Callable[[float, float], float] | None = None,
    ) -> None:
        """Initialize the bot with assembled components.

        Args:
            settings: Application settings
            chain: Optional chain client (built from settings if not provided)
            executor: Optional trade executor (paper or live from settings)
            amount_fn: Optional inclusive integer draw for trade sizes
            delay_fn: Optional draw for the delay between cycles

        Raises:
            ConfigurationError: If thresholds or amount range are invalid
        """
        self.settings = settings
        self.running = False
        self._delay_fn = delay_fn or random.uniform
        self._stop_event = asyncio.Event()

        self.chain = chain or Web3ChainClient(
            rpc_url=settings.rpc_url,
            private_key=settings.private_key,
            router_address=settings.router_address,
            swap_gas_limit=settings.swap_gas_limit,
            receipt_timeout=settings.receipt_timeout_seconds,
            max_attempts=settings.rpc_max_attempts,
            wallet_address=settings.wallet_address,
        )
        self.oracle = PriceOracle(
            self.chain,
            settings.pool_address,
            settings.base_token_address,
            settings.quote_token_address,
        )
        self.engine = TriggerEngine(settings.trigger_config(), amount_fn=amount_fn)

        if executor is not None:
            self.executor = executor
        elif settings.dry_run:
            self.executor = PaperExecutor(decimals_fn=self.oracle.decimals)
            logger.info("Using paper executor (dry run mode)")
        else:
            self.executor = SwapExecutor(
                self.chain,
                settings.router_address,
                decimals_fn=self.oracle.decimals,
                deadline_seconds=settings.swap_deadline_seconds,
            )
            logger.critical(
                "LIVE TRADING MODE ENABLED",
                pool=settings.pool_address,
                router=settings.router_address,
            )

        logger.info(
            "Trading bot initialized",
            dry_run=settings.dry_run,
            pool=settings.pool_address,
            base=settings.base_token_address,
            quote=settings.quote_token_address,
        )

    async def preflight(self) -> None:
        """Verify the pool holds the configured pair and warm the decimals cache.

        Raises:
            ConfigurationError: If the pool does not match the configured pair
            UnavailableError: If the chain cannot be read
        """
        state = await self.oracle.read_state()
        pool_tokens = {state.token0.lower(), state.token1.lower()}
        pair = {
            self.settings.base_token_address.lower(),
            self.settings.quote_token_address.lower(),
        }
        if pool_tokens != pair:
            raise ConfigurationError(
                f"Pool {self.settings.pool_address} holds {state.token0}/{state.token1}, "
                "not the configured base/quote pair"
            )

        await self.oracle.token_meta(state.token0)
        await self.oracle.token_meta(state.token1)

        logger.info(
            "Preflight passed",
            wallet=short_address(self.chain.address),
            rpc_url=self.settings.rpc_url,
            fee=state.fee,
            engine=self.engine.get_state_summary(),
        )

    async def _read_balances(self) -> Balances:
        owner = self.chain.address
        base = self.settings.base_token_address
        quote = self.settings.quote_token_address

        base_raw = await self.chain.read_balance(base, owner)
        quote_raw = await self.chain.read_balance(quote, owner)

        return Balances(
            base=from_base_units(base_raw, await self.oracle.decimals(base)),
            quote=from_base_units(quote_raw, await self.oracle.decimals(quote)),
        )

    def _intent_for(self, decision: Decision, price) -> TradeIntent:
        base = self.settings.base_token_address
        quote = self.settings.quote_token_address
        if decision.direction == Direction.SELL:
            token_in, token_out = base, quote
        else:
            token_in, token_out = quote, base
        return TradeIntent(
            direction=decision.direction,
            token_in=token_in,
            token_out=token_out,
            amount=decision.amount,
            ref_price=price,
        )

    async def run_cycle(self) -> CycleResult:
        """Execute one decision cycle. Never raises."""
        result = CycleResult()

        try:
            state = await self.oracle.read_state()
            quote = await self.oracle.quote(state)
            result.price = quote.price

            balances = await self._read_balances()
            logger.info(
                "Price read",
                price=f"{quote.price:.6f}",
                fee=state.fee,
                base_balance=str(balances.base),
                quote_balance=str(balances.quote),
            )

            decision = self.engine.evaluate(quote.price, balances)
            result.decision = decision

            if decision.is_trade:
                intent = self._intent_for(decision, quote.price)
                fee = self.settings.fee_tier if self.settings.fee_tier is not None else state.fee
                result.tx_outcome = await self.executor.execute(intent, fee)
            elif decision.kind == "insufficient_balance":
                logger.warning(
                    "Insufficient balance",
                    token=decision.token,
                    available=str(decision.available),
                    required=str(decision.amount),
                )
            else:
                logger.info("No action", reason=decision.reason, mode=self.engine.mode.value)

        except ConfigurationError as e:
            self._record_error(result, e, "Configuration error, cycle aborted")
        except UnavailableError as e:
            self._record_error(result, e, "Chain unavailable, cycle skipped")
        except SubmissionError as e:
            self._record_error(result, e, "Trade submission failed", tx_hash=e.tx_hash)
        except Exception as e:
            self._record_error(result, e, "Unexpected error in trading cycle")

        result.finished_at = datetime.now()
        return result

    def _record_error(self, result: CycleResult, error: Exception, message: str, **extra) -> None:
        result.error = str(error)
        result.error_type = type(error).__name__
        logger.error(
            message,
            error=str(error),
            error_type=result.error_type,
            price=str(result.price) if result.price is not None else None,
            mode=self.engine.mode.value,
            **extra,
        )

    def next_delay(self) -> float:
        """Draw the pause before the next cycle."""
        return self._delay_fn(self.settings.poll_min_seconds, self.settings.poll_max_seconds)

    async def run_forever(self) -> None:
        """Run cycles until stopped, one at a time with a random pause between."""
        logger.info("Starting trading loop", dry_run=self.settings.dry_run)
        self.running = True
        self._stop_event.clear()

        cycle_count = 0
        error_count = 0
        start_time = datetime.now()

        try:
            while self.running:
                result = await self.run_cycle()

                cycle_count += 1
                if result.error is not None:
                    error_count += 1

                # Log metrics every 10 cycles
                if cycle_count % 10 == 0:
                    uptime = (datetime.now() - start_time).total_seconds()
                    logger.info(
                        "Loop metrics",
                        cycles=cycle_count,
                        errors=error_count,
                        uptime_seconds=uptime,
                        mode=self.engine.mode.value,
                    )

                if not self.running:
                    break

                delay = self.next_delay()
                logger.debug("Sleeping until next cycle", seconds=round(delay, 1))
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

        except asyncio.CancelledError:
            logger.info("Trading loop cancelled")
        finally:
            self.running = False
            logger.info("Trading loop stopped", cycles=cycle_count, errors=error_count)

    def stop(self) -> None:
        """Ask the loop to finish after the current cycle."""
        logger.info("Stopping trading loop")
        self.running = False
        self._stop_event.set()


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog console output with a level filter."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Uniswap V3 trigger band trading bot")
    parser.add_argument(
        "--config", default="configs/paper.yaml", help="Configuration file path"
    )
    parser.add_argument(
        "--profile",
        default="paper",
        choices=["dev", "paper", "prod"],
        help="Configuration profile",
    )
    parser.add_argument(
        "--once", action="store_true", help="Run a single cycle and exit"
    )
    parser.add_argument("--log-level", default="INFO", help="Log level")
    return parser


async def main(argv: list[str] | None = None) -> int:
    """Main entry point for the trading bot.

    Returns:
        Process exit code: 1 on configuration or chain errors at startup, or on
        any error other than a failed submission in single-cycle mode;
        0 otherwise, including cycles that take no action
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        settings = load_settings(args.profile, args.config)
        bot = TradingBot(settings)
        await bot.preflight()
    except (ConfigurationError, FileNotFoundError) as e:
        logger.error("Fatal configuration error", error=str(e))
        return 1
    except UnavailableError as e:
        logger.error("Chain unavailable at startup", error=str(e))
        return 1

    if args.once:
        result = await bot.run_cycle()
        logger.info(
            "Cycle finished",
            price=str(result.price) if result.price is not None else None,
            decision=result.decision.kind if result.decision else None,
            error=result.error,
        )
        return 1 if result.fatal else 0

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, bot.stop)

    await bot.run_forever()
    return 0


def cli() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    cli()
