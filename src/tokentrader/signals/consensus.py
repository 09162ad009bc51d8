"""Consensus aggregation and trade plan generation.

Reduces a signal vector to the percentage of strategies agreeing on each
direction, then compares against configurable thresholds. Buy is checked
first, so when both thresholds are met the plan is a buy.

CRITICAL: Percentages use Decimal. Never use float.
"""

from decimal import Decimal

from tokentrader.models import TradeAction, TradePlan
from tokentrader.signals.models import ConsensusResult, SignalResult

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

DEFAULT_THRESHOLD = Decimal("50")


def aggregate(signals: list[SignalResult]) -> ConsensusResult:
    """Compute buy and sell percentages over the evaluated strategies.

    With no evaluated strategies both percentages are 0.
    """
    total = len(signals)
    if total == 0:
        return ConsensusResult(_ZERO, _ZERO, 0)

    buys = sum(1 for s in signals if s.should_buy)
    sells = sum(1 for s in signals if s.should_sell)
    n = Decimal(total)
    return ConsensusResult(
        buy_percentage=_HUNDRED * buys / n,
        sell_percentage=_HUNDRED * sells / n,
        evaluated=total,
    )


def _format_pct(value: Decimal) -> str:
    """Render 100, 66.666..., 0 as '100', '66.67', '0'."""
    rounded = value.quantize(Decimal("0.01"))
    return f"{rounded.normalize():f}" if rounded != 0 else "0"


def generate_trade_plan(
    token_address: str,
    consensus: ConsensusResult,
    buy_threshold: Decimal = DEFAULT_THRESHOLD,
    sell_threshold: Decimal = DEFAULT_THRESHOLD,
) -> TradePlan:
    """Turn consensus percentages into a BUY / SELL / HOLD plan.

    Args:
        token_address: Token the plan is for.
        consensus: Output of aggregate().
        buy_threshold: Minimum buy percentage for a buy.
        sell_threshold: Minimum sell percentage for a sell.

    Returns:
        TradePlan with a single reasoning line.
    """
    buy_pct = consensus.buy_percentage
    sell_pct = consensus.sell_percentage

    if consensus.evaluated > 0 and buy_pct >= buy_threshold:
        action = TradeAction.BUY
        reason = f"{_format_pct(buy_pct)}% of strategies suggest buying"
    elif consensus.evaluated > 0 and sell_pct >= sell_threshold:
        action = TradeAction.SELL
        reason = f"{_format_pct(sell_pct)}% of strategies suggest selling"
    else:
        action = TradeAction.HOLD
        reason = "No strong signals detected"

    return TradePlan(
        token_address=token_address,
        action=action,
        buy_percentage=buy_pct,
        sell_percentage=sell_pct,
        reasoning=[reason],
    )
