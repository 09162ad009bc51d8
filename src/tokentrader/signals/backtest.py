"""Walk-forward backtest of a single strategy over a price series.

Starting at the strategy's lookback, the signal is recomputed on every
prefix ``series[: i + 1]``. A flat book buys on a buy signal; an open
position sells on a sell signal; a position still open after the last
sample is closed at the last price. Profits are per unit of the token.
"""

from decimal import Decimal

from tokentrader.exceptions import InsufficientDataError
from tokentrader.models import PriceSeries
from tokentrader.signals.models import BacktestMetrics, BacktestTrade, StrategyDefinition

_ZERO = Decimal("0")


def run_backtest(
    strategy: StrategyDefinition, series: PriceSeries
) -> tuple[BacktestMetrics, tuple[BacktestTrade, ...]]:
    """Simulate the strategy over the series.

    Returns:
        Tuple of (metrics, trades). With no trades all metrics are zero.
    """
    prices = series.prices
    trades: list[BacktestTrade] = []
    entry: tuple[int, Decimal] | None = None

    for i in range(strategy.lookback - 1, len(prices)):
        try:
            should_buy, should_sell = strategy.signal(series.prefix(i + 1))
        except InsufficientDataError:
            continue
        if entry is None and should_buy:
            entry = (i, prices[i])
        elif entry is not None and should_sell:
            trades.append(BacktestTrade(entry[0], i, entry[1], prices[i]))
            entry = None

    if entry is not None:
        last = len(prices) - 1
        trades.append(BacktestTrade(entry[0], last, entry[1], prices[last]))

    return compute_metrics(trades), tuple(trades)


def compute_metrics(trades: list[BacktestTrade]) -> BacktestMetrics:
    """Win rate, average and total per-unit profit; zeros when there are no trades."""
    if not trades:
        return BacktestMetrics(_ZERO, _ZERO, _ZERO, 0)

    count = Decimal(len(trades))
    total = sum((t.profit for t in trades), _ZERO)
    wins = sum(1 for t in trades if t.profit > 0)
    return BacktestMetrics(
        win_rate=Decimal(wins) / count,
        average_profit=total / count,
        total_profit=total,
        trade_count=len(trades),
    )
