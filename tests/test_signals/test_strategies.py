"""Tests for the registered indicator strategies and the walk-forward backtest.

Verifies:
- Each strategy raises InsufficientDataError below its lookback
- Terminal buy/sell signals for crafted series
- Registry selection by name (empty = default or horizon set, unknown raises)
- Horizon strategies all evaluate on a five-sample price-change series
- Backtest trade extraction and metrics
"""

from decimal import Decimal

import pytest

from tokentrader.exceptions import InsufficientDataError
from tokentrader.market_data.http_provider import HORIZON_SERIES_LENGTH, series_from_price_changes
from tokentrader.models import PriceSample, PriceSeries
from tokentrader.signals.backtest import compute_metrics, run_backtest
from tokentrader.signals.evaluator import StrategyEvaluator
from tokentrader.signals.models import StrategyCategory, StrategyDefinition
from tokentrader.signals.strategies import (
    bollinger_strategy,
    cci_strategy,
    default_strategies,
    ema_crossover_strategy,
    horizon_strategies,
    roc_strategy,
    rsi_strategy,
    select_strategies,
)


def _series(prices: list, volumes: list | None = None) -> PriceSeries:
    vols = volumes or [0] * len(prices)
    return PriceSeries(
        "TOKEN",
        tuple(
            PriceSample(float(i), Decimal(str(p)), Decimal(str(v)))
            for i, (p, v) in enumerate(zip(prices, vols))
        ),
    )


class TestStrategySignals:
    """Terminal signals of individual strategies."""

    def test_rsi_oversold_buys(self) -> None:
        signal = rsi_strategy().signal(_series(range(30, 15, -1)))
        assert signal == (True, False)

    def test_rsi_overbought_sells(self) -> None:
        signal = rsi_strategy().signal(_series(range(1, 16)))
        assert signal == (False, True)

    def test_rsi_below_lookback_raises(self) -> None:
        with pytest.raises(InsufficientDataError, match="needs 15 samples"):
            rsi_strategy().signal(_series(range(14)))

    def test_cci_sharp_drop_buys(self) -> None:
        assert cci_strategy().signal(_series([10] * 19 + [5])) == (True, False)

    def test_cci_below_lookback_raises(self) -> None:
        with pytest.raises(InsufficientDataError):
            cci_strategy().signal(_series([10] * 19))

    def test_roc_direction(self) -> None:
        assert roc_strategy().signal(_series(range(1, 14))) == (True, False)
        assert roc_strategy().signal(_series(range(14, 1, -1))) == (False, True)

    def test_bollinger_below_lower_band_buys(self) -> None:
        assert bollinger_strategy().signal(_series([10] * 19 + [5])) == (True, False)

    def test_bollinger_flat_series_is_neutral(self) -> None:
        assert bollinger_strategy().signal(_series([10] * 20)) == (False, False)

    def test_ema_crossover_buys_on_cross(self) -> None:
        signal = ema_crossover_strategy().signal(_series([10] * 20 + [9, 20]))
        assert signal == (True, False)


class TestRegistry:
    """default_strategies / select_strategies."""

    def test_default_set_has_unique_names(self) -> None:
        names = [s.name for s in default_strategies()]
        assert len(names) == 9
        assert len(set(names)) == len(names)

    def test_empty_selection_returns_all(self) -> None:
        assert len(select_strategies([])) == len(default_strategies())

    def test_select_by_name_keeps_order(self) -> None:
        selected = select_strategies(["MACD", "RSI CLASSIC"])
        assert [s.name for s in selected] == ["MACD", "RSI CLASSIC"]

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(ValueError, match="NOPE"):
            select_strategies(["RSI CLASSIC", "NOPE"])

    def test_horizon_names_resolve(self) -> None:
        selected = select_strategies(["RSI SHORT", "MACD"])
        assert [s.name for s in selected] == ["RSI SHORT", "MACD"]

    def test_empty_selection_on_horizon_series(self) -> None:
        selected = select_strategies([], horizon_series=True)
        assert [s.name for s in selected] == [s.name for s in horizon_strategies()]


class TestHorizonStrategies:
    """Short-period strategies on a series rebuilt from DexScreener price changes."""

    PAIR = {
        "priceUsd": "1.5",
        "priceChange": {"h24": 50, "h6": 20, "h1": 10, "m5": 5},
    }

    def test_every_horizon_strategy_fits(self) -> None:
        series = series_from_price_changes("T", self.PAIR, now=1_700_000_000.0)

        assert len(series) == HORIZON_SERIES_LENGTH
        assert all(s.lookback <= len(series) for s in horizon_strategies())

    def test_rising_pair_produces_signals(self) -> None:
        series = series_from_price_changes("T", self.PAIR, now=1_700_000_000.0)

        evaluator = StrategyEvaluator(horizon_strategies())
        results = {r.strategy_name: r for r in evaluator.evaluate_all("T", series)}

        assert set(results) == {s.name for s in horizon_strategies()}
        assert results["RATE OF CHANGE SHORT"].should_buy
        assert results["RSI SHORT"].should_sell

    def test_default_set_is_skipped_on_horizon_series(self) -> None:
        series = series_from_price_changes("T", self.PAIR, now=1_700_000_000.0)

        assert StrategyEvaluator(default_strategies()).evaluate_all("T", series) == []


def _threshold_strategy() -> StrategyDefinition:
    """Buys below 5, sells above 15, reading the raw price."""
    return StrategyDefinition(
        name="THRESHOLD",
        category=StrategyCategory.MOMENTUM,
        lookback=1,
        indicator=lambda s: s.prices,
        evaluate=lambda v: (v[-1] < 5, v[-1] > 15),
    )


class TestBacktest:
    """Walk-forward backtest."""

    def test_round_trips_and_final_close(self) -> None:
        metrics, trades = run_backtest(_threshold_strategy(), _series([4, 10, 20, 3, 10]))

        assert [(t.entry_index, t.exit_index) for t in trades] == [(0, 2), (3, 4)]
        assert [t.profit for t in trades] == [Decimal("16"), Decimal("7")]
        assert metrics.trade_count == 2
        assert metrics.win_rate == Decimal("1")
        assert metrics.total_profit == Decimal("23")
        assert metrics.average_profit == Decimal("11.5")

    def test_no_signals_no_trades(self) -> None:
        metrics, trades = run_backtest(_threshold_strategy(), _series([10, 10, 10]))
        assert trades == ()
        assert metrics.trade_count == 0
        assert metrics.win_rate == Decimal("0")

    def test_metrics_count_losses(self) -> None:
        _, trades = run_backtest(_threshold_strategy(), _series([4, 16, 3, 2]))
        metrics = compute_metrics(list(trades))
        assert metrics.trade_count == 2
        assert metrics.win_rate == Decimal("0.5")
