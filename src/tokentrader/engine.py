"""Per-token decision cycle: evaluate strategies and act on the result.

Each call to evaluate_and_act_on_token:
  1. Fetches the market snapshot and refreshes the shared price cache
  2. Loads the open record (adopting an untracked balance if there is one)
  3. Held token: take-profit / stop-loss first, then the compromised check,
     then the strategy consensus
  4. Prospect token: strategy consensus, buying on a BUY plan

The returned plan's action is the action actually taken. Any blocked or
failed transition comes back as a HOLD plan carrying the reason, so calling
again with unchanged state is a no-op.
"""

from __future__ import annotations

import asyncio

from tokentrader.config import StrategySettings, TrustSettings
from tokentrader.data.gateway import PersistenceGateway
from tokentrader.exceptions import (
    ExecutionFailedError,
    MarketDataUnavailableError,
    RecordNotFoundError,
    TradeBlockedError,
)
from tokentrader.logging import get_logger, token_context
from tokentrader.market_data.provider import MarketDataProvider
from tokentrader.market_data.ticker_service import TickerService
from tokentrader.models import (
    ExitReason,
    TokenMarketData,
    TradeAction,
    TradeEvent,
    TradePerformanceRecord,
    TradePlan,
)
from tokentrader.notifications.notifier import NotificationDispatcher
from tokentrader.position.manager import PositionLifecycleManager
from tokentrader.risk.trust import evaluate_trust
from tokentrader.signals.consensus import aggregate, generate_trade_plan
from tokentrader.signals.evaluator import StrategyEvaluator

logger = get_logger(__name__)


class TradingEngine:
    """Runs the evaluate-decide-act cycle for one token at a time.

    Calls for the same token are serialized; different tokens may run
    concurrently.

    Args:
        provider: Market snapshot and price series source.
        evaluator: Strategy evaluator.
        manager: Position lifecycle manager.
        gateway: Persistence gateway (open record lookups).
        ticker_service: Shared price cache, fed with the native price.
        strategy_settings: Consensus thresholds.
        trust_settings: Thresholds for the compromised-token check.
        notifier: Dispatcher for market_search events, optional.
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        evaluator: StrategyEvaluator,
        manager: PositionLifecycleManager,
        gateway: PersistenceGateway,
        ticker_service: TickerService,
        strategy_settings: StrategySettings,
        trust_settings: TrustSettings,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self._provider = provider
        self._evaluator = evaluator
        self._manager = manager
        self._gateway = gateway
        self._ticker_service = ticker_service
        self._strategy_settings = strategy_settings
        self._trust_settings = trust_settings
        self._notifier = notifier
        self._token_locks: dict[str, asyncio.Lock] = {}
        self._last_plans: dict[str, TradePlan] = {}

    @property
    def last_plans(self) -> dict[str, TradePlan]:
        """Most recent plan per token."""
        return dict(self._last_plans)

    async def evaluate_and_act_on_token(self, token_address: str) -> TradePlan:
        """Evaluate one token and perform at most one transition.

        Returns:
            The plan whose action was actually taken (HOLD when nothing was).

        Raises:
            RateLimitError: Market data provider answered HTTP 429.
            TransientDatabaseError: Persistence retries were exhausted.
        """
        lock = self._token_locks.setdefault(token_address, asyncio.Lock())
        async with lock:
            with token_context(token_address):
                plan = await self._evaluate(token_address)
                self._last_plans[token_address] = plan
                logger.info(
                    "token_evaluated",
                    action=plan.action.value,
                    buy_percentage=str(plan.buy_percentage),
                    sell_percentage=str(plan.sell_percentage),
                    reasoning=plan.reasoning,
                )
        return plan

    async def _evaluate(self, token_address: str) -> TradePlan:
        try:
            market = await self._provider.fetch_market_data(token_address)
        except MarketDataUnavailableError as exc:
            logger.warning("market_data_unavailable", error=str(exc))
            return TradePlan(
                token_address, TradeAction.HOLD, reasoning=[f"Market data unavailable: {exc}"]
            )

        await self._ticker_service.update_price(
            token_address, market.price_native if market.price_native > 0 else market.price_usd
        )

        record = await self._gateway.get_open_trade(token_address)
        if record is None:
            record = await self._manager.recover_open_record(token_address, market)

        if record is not None:
            return await self._act_on_held(record, market)
        return await self._act_on_prospect(token_address, market)

    async def _act_on_held(
        self, record: TradePerformanceRecord, market: TokenMarketData
    ) -> TradePlan:
        token_address = record.token_address

        exit_reason = self._manager.check_exit_conditions(record, market.price_usd)
        if exit_reason is not None:
            position = self._manager.get_position(record)
            level = position.take_profit if exit_reason == ExitReason.TAKE_PROFIT else position.stop_loss
            plan = TradePlan(
                token_address,
                TradeAction.SELL,
                reasoning=[
                    f"{exit_reason.value} triggered: price {market.price_usd} vs level {level}"
                ],
            )
            return await self._sell(plan, record, market, exit_reason)

        trust = evaluate_trust(market, self._trust_settings)
        if trust.stop_monitoring:
            plan = TradePlan(token_address, TradeAction.SELL, reasoning=[trust.reason])
            return await self._sell(plan, record, market, ExitReason.COMPROMISED)

        plan = await self._consensus_plan(token_address)
        if plan.action == TradeAction.SELL:
            return await self._sell(plan, record, market, ExitReason.CONSENSUS)
        if plan.action == TradeAction.BUY:
            return plan.as_hold("Position already open")
        return plan

    async def _act_on_prospect(self, token_address: str, market: TokenMarketData) -> TradePlan:
        plan = await self._consensus_plan(token_address)
        if plan.action == TradeAction.SELL:
            return plan.as_hold("No open position to sell")
        if plan.action != TradeAction.BUY:
            return plan

        self._announce(plan)
        try:
            await self._manager.buy(token_address, market)
        except (TradeBlockedError, ExecutionFailedError) as exc:
            logger.info("buy_not_executed", error_type=type(exc).__name__, reason=str(exc))
            return plan.as_hold(str(exc))
        return plan

    async def _sell(
        self,
        plan: TradePlan,
        record: TradePerformanceRecord,
        market: TokenMarketData,
        reason: ExitReason,
    ) -> TradePlan:
        try:
            await self._manager.sell(record, market, reason)
        except (TradeBlockedError, ExecutionFailedError, RecordNotFoundError) as exc:
            logger.info(
                "sell_not_executed",
                error_type=type(exc).__name__,
                exit_reason=reason.value,
                reason=str(exc),
            )
            return plan.as_hold(str(exc))
        return plan

    async def _consensus_plan(self, token_address: str) -> TradePlan:
        try:
            series = await self._provider.fetch_token_time_series(token_address)
        except MarketDataUnavailableError as exc:
            logger.warning("time_series_unavailable", error=str(exc))
            return TradePlan(
                token_address, TradeAction.HOLD, reasoning=[f"Price series unavailable: {exc}"]
            )

        signals = self._evaluator.evaluate_all(token_address, series)
        consensus = aggregate(signals)
        return generate_trade_plan(
            token_address,
            consensus,
            buy_threshold=self._strategy_settings.buy_threshold,
            sell_threshold=self._strategy_settings.sell_threshold,
        )

    def _announce(self, plan: TradePlan) -> None:
        if self._notifier is None:
            return
        self._notifier.dispatch(
            TradeEvent(
                category="market_search",
                kind="buy",
                token_address=plan.token_address,
                reason="; ".join(plan.reasoning),
            )
        )
