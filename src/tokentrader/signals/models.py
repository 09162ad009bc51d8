"""Strategy and signal data models.

CRITICAL: All indicator values, percentages and profits use Decimal.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from tokentrader.exceptions import InsufficientDataError
from tokentrader.models import PriceSeries


class StrategyCategory(str, Enum):
    """Indicator family a strategy belongs to."""

    MOMENTUM = "momentum"
    TREND = "trend"


@dataclass(frozen=True)
class StrategyDefinition:
    """A named, parameterized signal function.

    ``indicator`` maps a series to indicator values (oldest first) and
    ``evaluate`` maps those values to ``(should_buy, should_sell)`` using the
    terminal value(s). ``lookback`` is the minimum number of samples the
    indicator needs and ``min_values`` the number of indicator values
    ``evaluate`` reads.
    """

    name: str
    category: StrategyCategory
    lookback: int
    indicator: Callable[[PriceSeries], list[Any]]
    evaluate: Callable[[list[Any]], tuple[bool, bool]]
    params: dict[str, Any] = field(default_factory=dict)
    min_values: int = 1

    def signal(self, series: PriceSeries) -> tuple[bool, bool]:
        """Return the terminal ``(should_buy, should_sell)``.

        Raises:
            InsufficientDataError: The series is shorter than ``lookback`` or
                the indicator produced fewer than ``min_values`` values.
        """
        if len(series) < self.lookback:
            raise InsufficientDataError(
                f"{self.name} needs {self.lookback} samples, got {len(series)}"
            )
        values = self.indicator(series)
        if len(values) < self.min_values:
            raise InsufficientDataError(
                f"{self.name} needs {self.min_values} indicator values, got {len(values)}"
            )
        return self.evaluate(values)


@dataclass(frozen=True)
class BacktestTrade:
    """One simulated round trip (per-unit profit)."""

    entry_index: int
    exit_index: int
    entry_price: Decimal
    exit_price: Decimal

    @property
    def profit(self) -> Decimal:
        return self.exit_price - self.entry_price


@dataclass(frozen=True)
class BacktestMetrics:
    """Aggregate performance of a strategy's simulated trades."""

    win_rate: Decimal
    average_profit: Decimal
    total_profit: Decimal
    trade_count: int


@dataclass(frozen=True)
class SignalResult:
    """One strategy's verdict for one evaluation."""

    strategy_name: str
    should_buy: bool
    should_sell: bool
    metrics: BacktestMetrics | None = None
    trades: tuple[BacktestTrade, ...] = ()


@dataclass(frozen=True)
class ConsensusResult:
    """Fraction of evaluated strategies agreeing on each direction (0-100)."""

    buy_percentage: Decimal
    sell_percentage: Decimal
    evaluated: int
