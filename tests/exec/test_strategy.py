"""Tests for the trigger band strategy."""

from decimal import Decimal

import pytest

from poolbot.core.errors import ConfigurationError
from poolbot.core.types import Balances, EngineMode
from poolbot.exec.strategy import TriggerConfig, TriggerEngine, validate_trigger_config


def make_config(**overrides) -> TriggerConfig:
    values = {
        "sell_trigger": Decimal("0.054"),
        "buy_trigger": Decimal("0.047"),
        "target_low": Decimal("0.049"),
        "target_high": Decimal("0.051"),
        "amount_min": 100,
        "amount_max": 1000,
    }
    values.update(overrides)
    return TriggerConfig(**values)


class FixedAmount:
    """Amount draw that always returns the same value and records calls."""

    def __init__(self, value: int):
        self.value = value
        self.calls: list[tuple[int, int]] = []

    def __call__(self, low: int, high: int) -> int:
        self.calls.append((low, high))
        return self.value


RICH = Balances(base=Decimal(100000), quote=Decimal(100000))


class TestTriggerConfig:
    """Test configuration validation."""

    def test_valid_config(self):
        """Default thresholds are consistent."""
        validate_trigger_config(make_config())

    def test_collapsed_target_band_allowed(self):
        """target_low may equal target_high."""
        validate_trigger_config(
            make_config(target_low=Decimal("0.05"), target_high=Decimal("0.05"))
        )

    @pytest.mark.parametrize(
        "overrides",
        [
            {"sell_trigger": Decimal("0.051")},
            {"sell_trigger": Decimal("0.050")},
            {"target_low": Decimal("0.052")},
            {"buy_trigger": Decimal("0.049")},
            {"buy_trigger": Decimal("0")},
            {"buy_trigger": Decimal("-0.01")},
            {"amount_min": 0},
            {"amount_min": 500, "amount_max": 100},
        ],
    )
    def test_invalid_config(self, overrides):
        """Inconsistent thresholds or amounts are configuration errors."""
        with pytest.raises(ConfigurationError):
            TriggerEngine(make_config(**overrides))

    def test_config_is_frozen(self):
        """Thresholds cannot be changed after construction."""
        config = make_config()
        with pytest.raises(Exception):
            config.sell_trigger = Decimal("1")


class TestTriggerEngine:
    """Test TriggerEngine decisions and mode transitions."""

    @pytest.fixture
    def engine(self):
        return TriggerEngine(make_config(), amount_fn=FixedAmount(300))

    def test_initial_mode(self, engine):
        """Engine starts neutral."""
        assert engine.mode == EngineMode.NEUTRAL

    def test_in_target_band(self, engine):
        """Price in band resets to neutral without trading."""
        decision = engine.evaluate(Decimal("0.05"), Balances(base=Decimal(0), quote=Decimal(500)))

        assert decision.kind == "no_action"
        assert decision.reason == "in target band"
        assert engine.mode == EngineMode.NEUTRAL

    def test_sell_at_trigger_boundary(self, engine):
        """Price exactly at sell_trigger sells."""
        decision = engine.evaluate(Decimal("0.054"), RICH)

        assert decision.kind == "sell"
        assert decision.amount == Decimal(300)
        assert engine.mode == EngineMode.ARMED_SELL

    def test_buy_at_trigger_boundary(self, engine):
        """Price exactly at buy_trigger buys."""
        decision = engine.evaluate(Decimal("0.047"), RICH)

        assert decision.kind == "buy"
        assert engine.mode == EngineMode.ARMED_BUY

    def test_sell_insufficient_base(self):
        """Not enough base balance reports it and keeps the engine armable."""
        amount_fn = FixedAmount(100)
        engine = TriggerEngine(make_config(), amount_fn=amount_fn)

        decision = engine.evaluate(
            Decimal("0.06"), Balances(base=Decimal(50), quote=Decimal(0))
        )

        assert decision.kind == "insufficient_balance"
        assert decision.token == "base"
        assert decision.available == Decimal(50)
        assert decision.amount == Decimal(100)
        assert engine.mode == EngineMode.NEUTRAL
        assert amount_fn.calls == [(100, 1000)]

    def test_buy_insufficient_quote(self, engine):
        """Not enough quote balance reports it for buys."""
        decision = engine.evaluate(
            Decimal("0.04"), Balances(base=Decimal(100000), quote=Decimal(299))
        )

        assert decision.kind == "insufficient_balance"
        assert decision.token == "quote"
        assert engine.mode == EngineMode.NEUTRAL

    def test_balance_exactly_amount_is_enough(self, engine):
        """A balance equal to the drawn amount suffices."""
        decision = engine.evaluate(
            Decimal("0.06"), Balances(base=Decimal(300), quote=Decimal(0))
        )

        assert decision.kind == "sell"

    def test_buy_then_suppressed(self, engine):
        """A second buy is suppressed while armed."""
        balances = Balances(base=Decimal(0), quote=Decimal(10000))

        first = engine.evaluate(Decimal("0.04"), balances)
        second = engine.evaluate(Decimal("0.04"), balances)

        assert first.kind == "buy"
        assert first.amount == Decimal(300)
        assert second.kind == "no_action"
        assert second.reason == "no trigger crossed"
        assert engine.mode == EngineMode.ARMED_BUY

    def test_sell_suppressed_until_target_band(self, engine):
        """Sell fires again only after price revisits the band."""
        assert engine.evaluate(Decimal("0.06"), RICH).kind == "sell"

        for price in ("0.06", "0.07", "0.054", "0.052"):
            decision = engine.evaluate(Decimal(price), RICH)
            assert decision.kind == "no_action"
            assert engine.mode == EngineMode.ARMED_SELL

        assert engine.evaluate(Decimal("0.05"), RICH).reason == "in target band"
        assert engine.mode == EngineMode.NEUTRAL

        assert engine.evaluate(Decimal("0.06"), RICH).kind == "sell"

    @pytest.mark.parametrize("price", ["0.049", "0.051"])
    def test_target_band_edges_reset(self, engine, price):
        """Band edges are inclusive."""
        engine.evaluate(Decimal("0.06"), RICH)

        decision = engine.evaluate(Decimal(price), RICH)

        assert decision.reason == "in target band"
        assert engine.mode == EngineMode.NEUTRAL

    def test_between_band_and_trigger(self, engine):
        """Price outside band and triggers leaves mode alone."""
        engine.evaluate(Decimal("0.04"), RICH)

        decision = engine.evaluate(Decimal("0.048"), RICH)

        assert decision.kind == "no_action"
        assert decision.reason == "no trigger crossed"
        assert engine.mode == EngineMode.ARMED_BUY

    def test_armed_sell_allows_buy(self, engine):
        """Being armed in one direction does not block the other."""
        engine.evaluate(Decimal("0.06"), RICH)

        decision = engine.evaluate(Decimal("0.04"), RICH)

        assert decision.kind == "buy"
        assert engine.mode == EngineMode.ARMED_BUY

    def test_default_amount_within_range(self):
        """The default draw stays within the configured range."""
        engine = TriggerEngine(make_config(amount_min=100, amount_max=120))

        for _ in range(20):
            engine.reset()
            decision = engine.evaluate(Decimal("0.06"), RICH)
            assert decision.kind == "sell"
            assert Decimal(100) <= decision.amount <= Decimal(120)

    def test_reset(self, engine):
        """reset returns to neutral."""
        engine.evaluate(Decimal("0.06"), RICH)
        engine.reset()

        assert engine.mode == EngineMode.NEUTRAL

    def test_state_summary(self, engine):
        """Summary exposes mode and thresholds."""
        engine.evaluate(Decimal("0.04"), RICH)

        summary = engine.get_state_summary()

        assert summary["mode"] == "armed_buy"
        assert summary["sell_trigger"] == "0.054"
        assert summary["amount_range"] == [100, 1000]
