"""Signal analysis: indicator strategies, evaluator, backtest and consensus.

Provides the indicator math, the registered strategy set, the
StrategyEvaluator that runs them against a token's series, and the
consensus aggregator that reduces signals to a trade plan.
"""

from tokentrader.signals.backtest import compute_metrics, run_backtest
from tokentrader.signals.consensus import aggregate, generate_trade_plan
from tokentrader.signals.evaluator import StrategyEvaluator
from tokentrader.signals.models import (
    BacktestMetrics,
    BacktestTrade,
    ConsensusResult,
    SignalResult,
    StrategyCategory,
    StrategyDefinition,
)
from tokentrader.signals.strategies import default_strategies, horizon_strategies, select_strategies

__all__ = [
    "BacktestMetrics",
    "BacktestTrade",
    "ConsensusResult",
    "SignalResult",
    "StrategyCategory",
    "StrategyDefinition",
    "StrategyEvaluator",
    "aggregate",
    "compute_metrics",
    "default_strategies",
    "generate_trade_plan",
    "horizon_strategies",
    "run_backtest",
    "select_strategies",
]
