"""Strategy evaluator running the registered strategy set against one token.

The StrategyEvaluator:
1. Skips strategies whose lookback exceeds the series (not an error)
2. Computes each remaining strategy's terminal buy/sell signal
3. Optionally backtests each strategy over the series
4. Logs one line per strategy and a summary line

Skipped strategies produce no SignalResult, so they never enter the
consensus denominator. Strategies are pure, so evaluation order is
irrelevant.
"""

from __future__ import annotations

from tokentrader.exceptions import InsufficientDataError
from tokentrader.logging import get_logger
from tokentrader.models import PriceSeries
from tokentrader.signals.backtest import run_backtest
from tokentrader.signals.models import SignalResult, StrategyDefinition
from tokentrader.signals.strategies import default_strategies

logger = get_logger(__name__)


class StrategyEvaluator:
    """Runs a fixed set of strategies and collects their signals.

    Args:
        strategies: Strategies to evaluate. None = the registered default set.
        backtest: Attach walk-forward backtest metrics to every result.
    """

    def __init__(
        self,
        strategies: list[StrategyDefinition] | None = None,
        backtest: bool = False,
    ) -> None:
        self._strategies = list(strategies) if strategies is not None else default_strategies()
        names = [s.name for s in self._strategies]
        if len(set(names)) != len(names):
            raise ValueError(f"Strategy names must be unique: {names}")
        self._backtest = backtest

    @property
    def strategies(self) -> list[StrategyDefinition]:
        return list(self._strategies)

    def evaluate_all(self, token_address: str, series: PriceSeries) -> list[SignalResult]:
        """Evaluate every strategy that has enough data.

        Args:
            token_address: Token being evaluated (for logging).
            series: Price series, oldest first.

        Returns:
            One SignalResult per evaluated strategy. Empty when no strategy
            has enough data.
        """
        results: list[SignalResult] = []
        skipped: list[str] = []

        for strategy in self._strategies:
            try:
                should_buy, should_sell = strategy.signal(series)
            except InsufficientDataError as exc:
                skipped.append(strategy.name)
                logger.debug(
                    "strategy_skipped_insufficient_data",
                    token_address=token_address,
                    strategy=strategy.name,
                    required=strategy.lookback,
                    available=len(series),
                    reason=str(exc),
                )
                continue

            if self._backtest:
                metrics, trades = run_backtest(strategy, series)
                result = SignalResult(strategy.name, should_buy, should_sell, metrics, trades)
            else:
                result = SignalResult(strategy.name, should_buy, should_sell)
            results.append(result)

            logger.debug(
                "strategy_signal",
                token_address=token_address,
                strategy=strategy.name,
                category=strategy.category.value,
                should_buy=should_buy,
                should_sell=should_sell,
                win_rate=str(result.metrics.win_rate) if result.metrics else None,
            )

        logger.info(
            "strategy_evaluation_summary",
            token_address=token_address,
            samples=len(series),
            evaluated=len(results),
            skipped=len(skipped),
            buy=sum(1 for r in results if r.should_buy),
            sell=sum(1 for r in results if r.should_sell),
        )
        return results
