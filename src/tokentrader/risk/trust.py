"""Token trust scoring from a market snapshot.

The trust score is a 0-1 blend of three saturating components:

    min(liquidity_usd / 100k, 1) * 0.4
  + min(volume_h24 / 50k, 1)     * 0.4
  + min(market_cap / 1M, 1)      * 0.2

Advice and the compromised flag (``stop_monitoring``) derive from the score
together with the 5m/24h price changes. A compromised token is force-sold by
the engine whatever the consensus says.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from tokentrader.config import TrustSettings
from tokentrader.models import TokenMarketData

_ONE = Decimal("1")

_LIQUIDITY_SCALE = Decimal("100000")
_VOLUME_SCALE = Decimal("50000")
_MARKET_CAP_SCALE = Decimal("1000000")

_LIQUIDITY_WEIGHT = Decimal("0.4")
_VOLUME_WEIGHT = Decimal("0.4")
_MARKET_CAP_WEIGHT = Decimal("0.2")

# Steep 5m drop combined with a weak score also counts as compromised.
_WEAK_SCORE_DROP_M5 = Decimal("-15")
_WEAK_SCORE = Decimal("0.15")


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TradingAdvice(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass
class TrustEvaluation:
    """Trust verdict for one token snapshot."""

    trust_score: Decimal
    risk_level: RiskLevel
    trading_advice: TradingAdvice
    reason: str
    stop_monitoring: bool = False


def compute_trust_score(market: TokenMarketData) -> Decimal:
    """Blend liquidity, 24h volume and market cap into a 0-1 score."""
    liquidity = min(max(market.liquidity_usd, Decimal("0")) / _LIQUIDITY_SCALE, _ONE)
    volume = min(max(market.volume_h24, Decimal("0")) / _VOLUME_SCALE, _ONE)
    market_cap = min(max(market.market_cap, Decimal("0")) / _MARKET_CAP_SCALE, _ONE)
    return (
        liquidity * _LIQUIDITY_WEIGHT
        + volume * _VOLUME_WEIGHT
        + market_cap * _MARKET_CAP_WEIGHT
    )


def evaluate_trust(market: TokenMarketData, settings: TrustSettings) -> TrustEvaluation:
    """Score a token and derive risk level, advice and the compromised flag.

    Args:
        market: Current snapshot of the token.
        settings: Score and price-change thresholds.

    Returns:
        TrustEvaluation. ``stop_monitoring`` is True when the token looks
        compromised (crashing 5m price, or a near-zero score).
    """
    score = compute_trust_score(market)
    m5 = market.price_change_m5
    h24 = market.price_change_h24

    if score >= settings.ideal_trust_score:
        risk = RiskLevel.LOW
    elif score >= settings.minimum_trust_score:
        risk = RiskLevel.MEDIUM
    else:
        risk = RiskLevel.HIGH

    stop = (
        m5 < settings.compromised_price_change_5m
        or (m5 < _WEAK_SCORE_DROP_M5 and score < _WEAK_SCORE)
        or score < settings.compromised_trust_score
    )

    momentum = (
        m5 >= settings.price_change_5m_threshold
        or h24 >= settings.price_change_24h_threshold
    )
    if stop:
        advice = TradingAdvice.SELL
        reason = f"Token compromised: 5m change {m5}%, trust score {score:.4f}"
    elif m5 <= -settings.price_change_5m_threshold or score <= settings.minimum_trust_score:
        advice = TradingAdvice.SELL
        reason = f"Weak token: 5m change {m5}%, trust score {score:.4f}"
    elif (
        momentum
        and score >= settings.ideal_trust_score
        and market.volume_h24 >= settings.min_volume_24h
    ):
        advice = TradingAdvice.BUY
        reason = f"Positive momentum with trust score {score:.4f}"
    else:
        advice = TradingAdvice.HOLD
        reason = f"No clear trust signal (score {score:.4f})"

    return TrustEvaluation(
        trust_score=score,
        risk_level=risk,
        trading_advice=advice,
        reason=reason,
        stop_monitoring=stop,
    )
