"""Shared data models for the token trading engine.

CRITICAL: All monetary values use Decimal. Never use float for prices, amounts, or scores.
Timestamps are Unix seconds as float.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

_ZERO = Decimal("0")


class TradeAction(str, Enum):
    """Action carried by a trade plan."""

    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class PositionStatus(str, Enum):
    """Status of the derived position view."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class RecommendedAction(str, Enum):
    """Outcome of the pre-trade simulation gate."""

    EXECUTE = "EXECUTE"
    REJECT = "REJECT"


class ExitReason(str, Enum):
    """Why an open position is being sold."""

    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    COMPROMISED = "compromised"
    CONSENSUS = "consensus"


@dataclass(frozen=True)
class PriceSample:
    """One point of a price series."""

    timestamp: float
    price: Decimal
    volume: Decimal = _ZERO


@dataclass(frozen=True)
class PriceSeries:
    """Immutable snapshot of a token's price history, ordered oldest to newest."""

    token_address: str
    samples: tuple[PriceSample, ...]

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def prices(self) -> list[Decimal]:
        return [s.price for s in self.samples]

    @property
    def volumes(self) -> list[Decimal]:
        return [s.volume for s in self.samples]

    def prefix(self, length: int) -> PriceSeries:
        """Return the series truncated to its first ``length`` samples."""
        return PriceSeries(self.token_address, self.samples[:length])

    @classmethod
    def from_horizons(
        cls,
        token_address: str,
        horizons: list[tuple[int, Decimal, Decimal]],
        current_price: Decimal,
        now: float | None = None,
    ) -> PriceSeries:
        """Build a series from lookback-horizon aggregates.

        Args:
            token_address: Token the series belongs to.
            horizons: ``(seconds_ago, price, volume)`` tuples in any order,
                e.g. the 24h/8h/4h/2h/1h/30m history prices.
            current_price: Latest price, appended as the newest sample.
            now: Reference Unix time (defaults to time.time()).
        """
        ref = time.time() if now is None else now
        ordered = sorted(horizons, key=lambda h: h[0], reverse=True)
        samples = [PriceSample(ref - ago, price, volume) for ago, price, volume in ordered]
        samples.append(PriceSample(ref, current_price))
        return cls(token_address, tuple(samples))


@dataclass
class TokenMarketData:
    """Point-in-time market snapshot for a token (first DEX pair)."""

    token_address: str
    price_usd: Decimal
    price_native: Decimal = _ZERO
    market_cap: Decimal = _ZERO
    fdv: Decimal = _ZERO
    liquidity_usd: Decimal = _ZERO
    volume_m5: Decimal = _ZERO
    volume_h1: Decimal = _ZERO
    volume_h24: Decimal = _ZERO
    buys_m5: int = 0
    sells_m5: int = 0
    buys_h1: int = 0
    sells_h1: int = 0
    price_change_m5: Decimal = _ZERO  # percent
    price_change_h24: Decimal = _ZERO  # percent
    fetched_at: float = field(default_factory=time.time)


@dataclass
class TradePlan:
    """Decision for one token, derived each cycle and never persisted."""

    token_address: str
    action: TradeAction
    buy_percentage: Decimal = _ZERO
    sell_percentage: Decimal = _ZERO
    reasoning: list[str] = field(default_factory=list)

    def as_hold(self, reason: str) -> TradePlan:
        """Return a HOLD copy of this plan with ``reason`` appended."""
        return TradePlan(
            token_address=self.token_address,
            action=TradeAction.HOLD,
            buy_percentage=self.buy_percentage,
            sell_percentage=self.sell_percentage,
            reasoning=[*self.reasoning, reason],
        )


@dataclass
class TradePerformanceRecord:
    """Durable record of one position: buy side on open, sell side on close."""

    token_address: str
    recommender_id: str
    buy_price: Decimal
    buy_amount: Decimal
    buy_timestamp: float
    buy_value_usd: Decimal
    buy_market_cap: Decimal = _ZERO
    buy_liquidity: Decimal = _ZERO
    sell_price: Decimal | None = None
    sell_amount: Decimal | None = None
    sell_timestamp: float | None = None
    sell_value_usd: Decimal | None = None
    profit_usd: Decimal | None = None
    profit_percent: Decimal | None = None
    market_cap_change: Decimal | None = None
    liquidity_change: Decimal | None = None
    rapid_dump: bool = False
    provisional: bool = False

    @property
    def is_open(self) -> bool:
        return self.sell_timestamp is None


@dataclass
class Position:
    """Derived view of a record with its exit levels."""

    token_address: str
    entry_price: Decimal
    size: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    open_timestamp: float
    status: PositionStatus

    @classmethod
    def from_record(
        cls,
        record: TradePerformanceRecord,
        stop_loss_pct: Decimal,
        take_profit_pct: Decimal,
    ) -> Position:
        return cls(
            token_address=record.token_address,
            entry_price=record.buy_price,
            size=record.buy_amount,
            stop_loss=record.buy_price * (Decimal("1") - stop_loss_pct),
            take_profit=record.buy_price * (Decimal("1") + take_profit_pct),
            open_timestamp=record.buy_timestamp,
            status=PositionStatus.OPEN if record.is_open else PositionStatus.CLOSED,
        )


@dataclass
class SimulationResult:
    """Outcome of a dry-run trade simulation."""

    recommended_action: RecommendedAction
    reason: str = ""
    price_impact: Decimal = _ZERO


@dataclass
class TradeResult:
    """Result returned by the execution capability.

    ``amount_in`` is what was spent (quote on buy, tokens on sell) and
    ``amount_out`` what was received.
    """

    success: bool
    signature: str | None = None
    error: str | None = None
    amount_in: Decimal = _ZERO
    amount_out: Decimal = _ZERO
    timestamp: float = field(default_factory=time.time)


@dataclass
class TradeEvent:
    """Payload handed to fire-and-forget notifiers."""

    category: str  # "trade" or "market_search"
    kind: str  # "buy" or "sell"
    token_address: str
    record: TradePerformanceRecord | None = None
    reason: str = ""
