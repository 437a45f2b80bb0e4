"""Application settings and configuration management."""

from decimal import Decimal
from pathlib import Path
from typing import Literal

import structlog
import yaml
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings
from web3 import Web3

from ..core.errors import ConfigurationError
from ..exec.strategy import TriggerConfig

logger = structlog.get_logger(__name__)

UNISWAP_V3_ROUTER = "0xE592427A0AEce92De3Edee1F18E0157C05861564"


class AppSettings(BaseSettings):
    """Application settings with environment variable support."""

    # Environment and mode
    env: Literal["dev", "paper", "prod"] = Field(
        description="Environment: dev, paper, prod"
    )

    # RPC and wallet
    rpc_url: str = Field(default="https://polygon-rpc.com", description="EVM JSON-RPC URL")
    private_key: str | None = Field(default=None, description="Hex private key of the wallet")
    wallet_address: str | None = Field(
        default=None, description="Wallet to watch in dry run when no key is given"
    )

    # Pool and tokens
    pool_address: str = Field(description="Uniswap V3 pool address")
    router_address: str = Field(
        default=UNISWAP_V3_ROUTER, description="Uniswap V3 SwapRouter address"
    )
    base_token_address: str = Field(description="Token being priced and sold")
    quote_token_address: str = Field(description="Token the price is denominated in")
    fee_tier: int | None = Field(
        default=None, description="Pool fee tier override, read from the pool if unset"
    )

    # Trigger bands
    sell_trigger: Decimal = Field(default=Decimal("0.054"), description="Sell at or above")
    buy_trigger: Decimal = Field(default=Decimal("0.047"), description="Buy at or below")
    target_low: Decimal = Field(default=Decimal("0.049"), description="Neutral band low")
    target_high: Decimal = Field(default=Decimal("0.051"), description="Neutral band high")
    amount_min: int = Field(default=100, description="Minimum trade size in token_in units")
    amount_max: int = Field(default=1000, description="Maximum trade size in token_in units")

    # Transaction settings
    swap_deadline_seconds: int = Field(default=600, description="Swap deadline offset")
    swap_gas_limit: int = Field(default=500000, description="Gas limit for swaps")
    receipt_timeout_seconds: float = Field(
        default=180.0, description="Seconds to wait for a receipt"
    )
    rpc_max_attempts: int = Field(default=3, ge=1, description="Read attempts per RPC call")

    # Scheduling
    poll_min_seconds: float = Field(default=30.0, ge=0, description="Minimum delay between cycles")
    poll_max_seconds: float = Field(default=90.0, ge=0, description="Maximum delay between cycles")

    # Execution mode
    dry_run: bool = Field(default=True, description="Dry run mode (no real trades)")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "hide_input_in_errors": True,
    }

    @field_validator(
        "pool_address",
        "router_address",
        "base_token_address",
        "quote_token_address",
        "wallet_address",
    )
    @classmethod
    def _checksum_address(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not Web3.is_address(value):
            raise ValueError(f"Malformed address: {value!r}")
        return Web3.to_checksum_address(value)

    @field_validator("private_key")
    @classmethod
    def _check_private_key(cls, value: str | None) -> str | None:
        if not value:
            return None
        key = value[2:] if value.startswith(("0x", "0X")) else value
        if len(key) != 64:
            raise ValueError("private_key must be 32 bytes of hex")
        try:
            bytes.fromhex(key)
        except ValueError:
            raise ValueError("private_key must be 32 bytes of hex") from None
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "AppSettings":
        if self.base_token_address == self.quote_token_address:
            raise ValueError("base and quote token must differ")
        if self.poll_min_seconds > self.poll_max_seconds:
            raise ValueError("poll_min_seconds cannot exceed poll_max_seconds")
        if not self.dry_run and not self.private_key:
            raise ValueError("private_key is required when dry_run is false")
        if not self.private_key and not self.wallet_address:
            raise ValueError("one of private_key or wallet_address is required")
        return self

    def trigger_config(self) -> TriggerConfig:
        """Thresholds and amount range for the trigger engine."""
        return TriggerConfig(
            sell_trigger=self.sell_trigger,
            buy_trigger=self.buy_trigger,
            target_low=self.target_low,
            target_high=self.target_high,
            amount_min=self.amount_min,
            amount_max=self.amount_max,
        )


def load_settings(profile: str, yaml_path: str) -> AppSettings:
    """Load settings from YAML file and environment variables.

    Args:
        profile: Configuration profile name (dev, paper, prod)
        yaml_path: Path to YAML configuration file

    Returns:
        AppSettings instance with loaded configuration

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ConfigurationError: If profile, YAML or settings are invalid
    """
    if profile not in ["dev", "paper", "prod"]:
        raise ConfigurationError(
            f"Invalid profile: {profile}. Must be one of: dev, paper, prod"
        )

    yaml_file = Path(yaml_path)
    if not yaml_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    try:
        with open(yaml_file, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        if not isinstance(yaml_config, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping, got {type(yaml_config).__name__}"
            )

        yaml_config["env"] = profile

        # paper never trades, prod always does; dev keeps the YAML value
        if profile == "paper":
            yaml_config["dry_run"] = True
        elif profile == "prod":
            yaml_config["dry_run"] = False

        logger.info("Loading configuration", profile=profile, yaml_path=yaml_path)

        settings = AppSettings(**yaml_config)

        logger.info(
            "Configuration loaded successfully",
            profile=profile,
            dry_run=settings.dry_run,
            pool=settings.pool_address,
            rpc_url=settings.rpc_url[:50] + "..."
            if len(settings.rpc_url) > 50
            else settings.rpc_url,
        )

        return settings

    except yaml.YAMLError as e:
        logger.error("Failed to parse YAML configuration", error=str(e))
        raise ConfigurationError(f"Invalid YAML configuration: {e}") from e
    except ValidationError as e:
        logger.error("Configuration validation failed", error=str(e))
        raise ConfigurationError(f"Invalid configuration: {e}") from e
