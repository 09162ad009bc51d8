"""Registered indicator strategies.

Each factory returns a StrategyDefinition whose signal reads only the
terminal indicator value(s). Factories take the indicator parameters so
tests and configuration can build variants; ``default_strategies`` is the
registered set, keyed by unique name; ``horizon_strategies`` holds the
short-period variants used on five-sample price-change series.
"""

from dataclasses import replace
from decimal import Decimal

from tokentrader.models import PriceSeries
from tokentrader.signals import indicators
from tokentrader.signals.models import StrategyCategory, StrategyDefinition


def cci_strategy(period: int = 20, threshold: Decimal = Decimal("100")) -> StrategyDefinition:
    """Buy below -threshold (oversold), sell above +threshold."""
    return StrategyDefinition(
        name="CCI",
        category=StrategyCategory.MOMENTUM,
        lookback=period,
        params={"period": period, "threshold": threshold},
        indicator=lambda s: indicators.compute_cci(s.prices, period),
        evaluate=lambda v: (v[-1] < -threshold, v[-1] > threshold),
    )


def rsi_strategy(
    period: int = 14,
    oversold: Decimal = Decimal("30"),
    overbought: Decimal = Decimal("70"),
) -> StrategyDefinition:
    """Classic RSI: buy when oversold, sell when overbought."""
    return StrategyDefinition(
        name="RSI CLASSIC",
        category=StrategyCategory.MOMENTUM,
        lookback=period + 1,
        params={"period": period, "oversold": oversold, "overbought": overbought},
        indicator=lambda s: indicators.compute_rsi(s.prices, period),
        evaluate=lambda v: (v[-1] < oversold, v[-1] > overbought),
    )


def roc_strategy(period: int = 12) -> StrategyDefinition:
    """Buy on positive rate of change, sell on negative."""
    return StrategyDefinition(
        name="RATE OF CHANGE MOMENTUM",
        category=StrategyCategory.MOMENTUM,
        lookback=period + 1,
        params={"period": period},
        indicator=lambda s: indicators.compute_roc(s.prices, period),
        evaluate=lambda v: (v[-1] > 0, v[-1] < 0),
    )


def macd_strategy(fast: int = 12, slow: int = 26, signal: int = 9) -> StrategyDefinition:
    """Buy when the MACD histogram crosses above zero, sell when it crosses below."""
    return StrategyDefinition(
        name="MACD",
        category=StrategyCategory.MOMENTUM,
        lookback=slow + signal,
        params={"fast": fast, "slow": slow, "signal": signal},
        indicator=lambda s: indicators.compute_macd_histogram(s.prices, fast, slow, signal),
        evaluate=lambda v: (indicators.crossed_above(v), indicators.crossed_below(v)),
        min_values=2,
    )


def adx_strategy(
    period: int = 14,
    strong: Decimal = Decimal("25"),
    weak: Decimal = Decimal("20"),
) -> StrategyDefinition:
    """Buy on a strong trend, sell when the trend fades."""
    return StrategyDefinition(
        name="TREND STRENGTH ADX",
        category=StrategyCategory.TREND,
        lookback=2 * period,
        params={"period": period, "strong": strong, "weak": weak},
        indicator=lambda s: indicators.compute_adx(s.prices, period),
        evaluate=lambda v: (v[-1] > strong, v[-1] < weak),
    )


def force_index_strategy(period: int = 13) -> StrategyDefinition:
    """Buy on positive smoothed force, sell on negative."""

    def _indicator(series: PriceSeries) -> list[Decimal]:
        return indicators.compute_force_index(series.prices, series.volumes, period)

    return StrategyDefinition(
        name="FORCE INDEX TREND",
        category=StrategyCategory.TREND,
        lookback=period + 1,
        params={"period": period},
        indicator=_indicator,
        evaluate=lambda v: (v[-1] > 0, v[-1] < 0),
    )


def awesome_oscillator_strategy(fast: int = 5, slow: int = 34) -> StrategyDefinition:
    """Zero-line crossings of the Awesome Oscillator."""
    return StrategyDefinition(
        name="AWESOME OSCILLATOR",
        category=StrategyCategory.TREND,
        lookback=slow + 1,
        params={"fast": fast, "slow": slow},
        indicator=lambda s: indicators.compute_awesome_oscillator(s.prices, fast, slow),
        evaluate=lambda v: (indicators.crossed_above(v), indicators.crossed_below(v)),
        min_values=2,
    )


def ema_crossover_strategy(fast: int = 9, slow: int = 21) -> StrategyDefinition:
    """Fast EMA crossing the slow EMA."""
    return StrategyDefinition(
        name="EMA CROSSOVER",
        category=StrategyCategory.TREND,
        lookback=slow + 1,
        params={"fast": fast, "slow": slow},
        indicator=lambda s: indicators.compute_ema_spread(s.prices, fast, slow),
        evaluate=lambda v: (indicators.crossed_above(v), indicators.crossed_below(v)),
        min_values=2,
    )


def bollinger_strategy(period: int = 20, std_dev: Decimal = Decimal("2")) -> StrategyDefinition:
    """Buy below the lower band, sell above the upper band."""

    def _indicator(series: PriceSeries) -> list[tuple[Decimal, Decimal, Decimal, Decimal]]:
        bands = indicators.compute_bollinger_bands(series.prices, period, std_dev)
        prices = series.prices[-len(bands):] if bands else []
        return [(p, lower, mid, upper) for p, (lower, mid, upper) in zip(prices, bands)]

    return StrategyDefinition(
        name="BOLLINGER BANDS",
        category=StrategyCategory.TREND,
        lookback=period,
        params={"period": period, "std_dev": std_dev},
        indicator=_indicator,
        evaluate=lambda v: (v[-1][0] < v[-1][1], v[-1][0] > v[-1][3]),
    )


def default_strategies() -> list[StrategyDefinition]:
    """Return the registered strategy set."""
    return [
        cci_strategy(),
        rsi_strategy(),
        roc_strategy(),
        macd_strategy(),
        adx_strategy(),
        force_index_strategy(),
        awesome_oscillator_strategy(),
        ema_crossover_strategy(),
        bollinger_strategy(),
    ]


def horizon_strategies() -> list[StrategyDefinition]:
    """Short-period variants that fit a series rebuilt from price-change horizons.

    Without candles the series holds the 24h/6h/1h/5m horizon prices plus the
    current price, five samples in all, so every default strategy would be
    skipped for insufficient data.
    """
    return [
        replace(rsi_strategy(period=3), name="RSI SHORT"),
        replace(roc_strategy(period=2), name="RATE OF CHANGE SHORT"),
        replace(ema_crossover_strategy(fast=2, slow=4), name="EMA CROSSOVER SHORT"),
        replace(bollinger_strategy(period=4), name="BOLLINGER BANDS SHORT"),
    ]


def select_strategies(enabled: list[str], horizon_series: bool = False) -> list[StrategyDefinition]:
    """Return the registered strategies whose names are in ``enabled``.

    An empty list selects the default set, or the horizon set when
    ``horizon_series`` is True. Names resolve against both sets; unknown
    names raise ValueError.
    """
    if not enabled:
        return horizon_strategies() if horizon_series else default_strategies()
    registry = {s.name: s for s in [*default_strategies(), *horizon_strategies()]}
    unknown = [name for name in enabled if name not in registry]
    if unknown:
        raise ValueError(f"Unknown strategies: {', '.join(unknown)}")
    return [registry[name] for name in enabled]
