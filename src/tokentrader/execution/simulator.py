"""Pre-trade simulation gate.

A buy only proceeds when the simulator recommends EXECUTE. The market-based
simulator applies momentum rules to the DexScreener snapshot and then
refines the verdict with the token's trust evaluation.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from tokentrader.config import SimulationSettings, TrustSettings
from tokentrader.logging import get_logger
from tokentrader.market_data.provider import MarketDataProvider
from tokentrader.models import RecommendedAction, SimulationResult, TokenMarketData
from tokentrader.risk.trust import RiskLevel, TradingAdvice, evaluate_trust

logger = get_logger(__name__)


class TradeSimulator(ABC):
    """Dry-run check consulted before every buy."""

    @abstractmethod
    async def simulate(self, token_address: str, amount: Decimal) -> SimulationResult:
        """Return EXECUTE or REJECT for buying ``amount`` quote units of a token."""
        ...


class MarketSimulationService(TradeSimulator):
    """Rule-based simulator over the current market snapshot.

    Momentum rules (all must hold):
      - m5 volume > min_volume_m5 or h1 volume > min_volume_h1
      - m5 buys > min_buys_m5 with buy/sell ratio >= min_buy_ratio_m5,
        or h1 buys > min_buys_h1
      - m5 price change > min_price_change_m5
      - h1 buys outnumber h1 sells
      - fdv < max_fdv

    Trust refinement: HIGH risk or SELL advice always rejects; a momentum
    rejection is overridden when trust advice is BUY.

    Args:
        provider: Source of the market snapshot.
        settings: Momentum rule thresholds.
        trust_settings: Trust score thresholds.
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        settings: SimulationSettings,
        trust_settings: TrustSettings,
    ) -> None:
        self._provider = provider
        self._settings = settings
        self._trust_settings = trust_settings

    def check_momentum(self, market: TokenMarketData) -> tuple[bool, str]:
        """Apply the momentum rules. Returns (passed, reason)."""
        s = self._settings
        if not (market.volume_m5 > s.min_volume_m5 or market.volume_h1 > s.min_volume_h1):
            return False, "Insufficient recent volume"

        buy_ratio = Decimal(market.buys_m5) / Decimal(market.sells_m5 or 1)
        strong_m5 = market.buys_m5 > s.min_buys_m5 and buy_ratio >= s.min_buy_ratio_m5
        if not (strong_m5 or market.buys_h1 > s.min_buys_h1):
            return False, "Insufficient buying pressure"

        if market.price_change_m5 <= s.min_price_change_m5:
            return False, f"5m price change {market.price_change_m5}% too negative"
        if market.buys_h1 <= market.sells_h1:
            return False, "Sells outnumber buys over 1h"
        if market.fdv >= s.max_fdv:
            return False, f"FDV {market.fdv} above {s.max_fdv}"
        return True, "Momentum checks passed"

    async def simulate(self, token_address: str, amount: Decimal) -> SimulationResult:
        market = await self._provider.fetch_market_data(token_address)
        passed, reason = self.check_momentum(market)
        action = RecommendedAction.EXECUTE if passed else RecommendedAction.REJECT

        trust = evaluate_trust(market, self._trust_settings)
        if trust.risk_level == RiskLevel.HIGH or trust.trading_advice == TradingAdvice.SELL:
            action = RecommendedAction.REJECT
            reason = f"Trust check failed: {trust.reason}"
        elif action == RecommendedAction.REJECT and trust.trading_advice == TradingAdvice.BUY:
            action = RecommendedAction.EXECUTE
            reason = f"Trust override: {trust.reason}"

        liquidity_native = (
            market.liquidity_usd * market.price_native / market.price_usd
            if market.price_usd > 0
            else Decimal("0")
        )
        price_impact = amount / liquidity_native if liquidity_native > 0 else Decimal("0")

        logger.info(
            "trade_simulated",
            token_address=token_address,
            amount=str(amount),
            recommended_action=action.value,
            trust_score=str(trust.trust_score),
            risk_level=trust.risk_level.value,
            reason=reason,
        )
        return SimulationResult(
            recommended_action=action,
            reason=reason,
            price_impact=price_impact,
        )
