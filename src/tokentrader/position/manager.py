"""Position lifecycle management for single-token spot positions.

Per-token states: NONE -> OPEN -> CLOSED -> (after cooldown) OPEN again.
A recovered on-chain balance moves NONE -> OPEN as a provisional record.

Buy flow:
1. Risk checks: no open record, cooldown elapsed, below max positions
2. Size the buy from the wallet balance via TradeSizer
3. Simulation gate must recommend EXECUTE
4. Re-check for an open record immediately before execution
5. Execute, then persist the new record through the PersistenceGateway
6. Notify (fire-and-forget)

Every precondition raises a TradeBlockedError before any side effect. A
failed execution raises ExecutionFailedError and nothing is persisted.
"""

import time
from collections.abc import Callable
from dataclasses import replace
from decimal import Decimal

from tokentrader.config import TradingSettings
from tokentrader.data.gateway import PersistenceGateway
from tokentrader.exceptions import (
    DustAmountError,
    ExecutionFailedError,
    InsufficientBalanceError,
    PositionAlreadyOpenError,
    SimulationRejectedError,
)
from tokentrader.execution.executor import TradeExecutor
from tokentrader.execution.simulator import TradeSimulator
from tokentrader.logging import get_logger
from tokentrader.models import (
    ExitReason,
    Position,
    RecommendedAction,
    TokenMarketData,
    TradeEvent,
    TradePerformanceRecord,
)
from tokentrader.notifications.notifier import NotificationDispatcher
from tokentrader.position.sizing import TradeSizer
from tokentrader.risk.manager import RiskManager

logger = get_logger(__name__)

_HUNDRED = Decimal("100")


class PositionLifecycleManager:
    """Opens, closes and recovers positions backed by trade records.

    Holds no position state of its own: every decision reads the current
    record through the gateway.

    Args:
        gateway: Only reader/writer of trade records.
        executor: Trade execution capability (paper or live).
        simulator: Pre-trade simulation gate.
        risk_manager: Open-record, cooldown and position-count checks.
        sizer: Computes the quote amount for a buy.
        settings: Trading settings (slippage, exits, dust threshold).
        notifier: Fire-and-forget dispatcher, optional.
        clock: Time source, injectable for tests.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        executor: TradeExecutor,
        simulator: TradeSimulator,
        risk_manager: RiskManager,
        sizer: TradeSizer,
        settings: TradingSettings,
        notifier: NotificationDispatcher | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._executor = executor
        self._simulator = simulator
        self._risk_manager = risk_manager
        self._sizer = sizer
        self._settings = settings
        self._notifier = notifier
        self._clock = clock

    async def buy(self, token_address: str, market: TokenMarketData) -> TradePerformanceRecord:
        """Open a position in ``token_address``.

        Args:
            token_address: Token to buy.
            market: Current snapshot (price, market cap, liquidity).

        Returns:
            The persisted open record.

        Raises:
            PositionAlreadyOpenError: An open record exists.
            CooldownActiveError: Re-entry delay has not elapsed.
            MaxPositionsReachedError: At the open-position limit.
            InsufficientBalanceError: Wallet cannot fund the minimum trade.
            SimulationRejectedError: Simulation did not recommend EXECUTE.
            ExecutionFailedError: The executor reported a failed trade.
        """
        await self._risk_manager.ensure_can_buy(token_address)

        balance = await self._executor.get_wallet_balance()
        amount = self._sizer.calculate_buy_amount(balance)
        if amount is None:
            raise InsufficientBalanceError(
                f"Balance {balance} below minimum trade {self._settings.minimum_trade}"
            )

        simulation = await self._simulator.simulate(token_address, amount)
        if simulation.recommended_action != RecommendedAction.EXECUTE:
            raise SimulationRejectedError(simulation.reason or "Simulation rejected the trade")

        # The other loop may have opened this token while we were simulating.
        if await self._gateway.get_open_trade(token_address) is not None:
            raise PositionAlreadyOpenError(f"Already have position in {token_address}")

        result = await self._executor.execute_trade(
            token_address, amount, is_sell=False, slippage_tolerance=self._settings.max_slippage
        )
        if not result.success:
            logger.error(
                "buy_execution_failed",
                token_address=token_address,
                amount=str(amount),
                error=result.error,
            )
            raise ExecutionFailedError(result.error or f"Buy of {token_address} failed")

        record = TradePerformanceRecord(
            token_address=token_address,
            recommender_id=self._settings.recommender_id,
            buy_price=market.price_usd,
            buy_amount=result.amount_out,
            buy_timestamp=self._clock(),
            buy_value_usd=result.amount_out * market.price_usd,
            buy_market_cap=market.market_cap,
            buy_liquidity=market.liquidity_usd,
        )
        await self._gateway.create_trade(record)

        logger.info(
            "position_opened",
            token_address=token_address,
            amount_in=str(result.amount_in),
            tokens=str(record.buy_amount),
            buy_price=str(record.buy_price),
            signature=result.signature,
        )
        self._notify("buy", record, simulation.reason)
        return record

    async def sell(
        self,
        record: TradePerformanceRecord,
        market: TokenMarketData,
        reason: ExitReason,
    ) -> TradePerformanceRecord:
        """Close an open position by selling its full token amount.

        Args:
            record: The open record to close.
            market: Current snapshot used for the sell side of the record.
            reason: Why the position is being closed.

        Returns:
            The closed record as persisted.

        Raises:
            DustAmountError: The position is below the dust threshold.
            ExecutionFailedError: The executor reported a failed trade.
            RecordNotFoundError: The record was closed concurrently.
        """
        if record.buy_amount < self._settings.dust_token_amount:
            logger.info(
                "sell_skipped_dust",
                token_address=record.token_address,
                amount=str(record.buy_amount),
                threshold=str(self._settings.dust_token_amount),
            )
            raise DustAmountError(
                f"Position of {record.buy_amount} below dust threshold "
                f"{self._settings.dust_token_amount}"
            )

        result = await self._executor.execute_trade(
            record.token_address,
            record.buy_amount,
            is_sell=True,
            slippage_tolerance=self._settings.max_slippage,
        )
        if not result.success:
            logger.error(
                "sell_execution_failed",
                token_address=record.token_address,
                amount=str(record.buy_amount),
                reason=reason.value,
                error=result.error,
            )
            raise ExecutionFailedError(result.error or f"Sell of {record.token_address} failed")

        sell_value = record.buy_amount * market.price_usd
        profit = sell_value - record.buy_value_usd
        profit_percent = (
            profit / record.buy_value_usd * _HUNDRED
            if record.buy_value_usd != 0
            else Decimal("0")
        )
        closed = replace(
            record,
            sell_price=market.price_usd,
            sell_amount=record.buy_amount,
            sell_timestamp=self._clock(),
            sell_value_usd=sell_value,
            profit_usd=profit,
            profit_percent=profit_percent,
            market_cap_change=market.market_cap - record.buy_market_cap,
            liquidity_change=market.liquidity_usd - record.buy_liquidity,
            rapid_dump=market.price_change_h24 < self._settings.rapid_dump_threshold,
        )
        await self._gateway.close_trade(closed)

        logger.info(
            "position_closed",
            token_address=record.token_address,
            reason=reason.value,
            sell_price=str(closed.sell_price),
            profit_usd=str(profit),
            profit_percent=str(profit_percent),
            signature=result.signature,
        )
        self._notify("sell", closed, reason.value)
        return closed

    def check_exit_conditions(
        self, record: TradePerformanceRecord, current_price: Decimal | None
    ) -> ExitReason | None:
        """Return TAKE_PROFIT or STOP_LOSS when the price crossed an exit level."""
        if current_price is None or not record.buy_price:
            return None
        change = (current_price - record.buy_price) / record.buy_price
        if change >= self._settings.take_profit_pct:
            return ExitReason.TAKE_PROFIT
        if change <= -self._settings.stop_loss_pct:
            return ExitReason.STOP_LOSS
        return None

    async def recover_open_record(
        self, token_address: str, market: TokenMarketData
    ) -> TradePerformanceRecord | None:
        """Adopt an untracked on-chain balance as a provisional open record.

        P&L of the recovered record is measured from the current price,
        since the original entry price is unknown.

        Returns:
            The provisional record, or None when the token already has an
            open record or the balance is below the dust threshold.
        """
        if await self._gateway.get_open_trade(token_address) is not None:
            return None
        balance = await self._executor.get_token_balance(token_address)
        if balance < self._settings.dust_token_amount:
            return None

        record = TradePerformanceRecord(
            token_address=token_address,
            recommender_id=self._settings.recommender_id,
            buy_price=market.price_usd,
            buy_amount=balance,
            buy_timestamp=self._clock(),
            buy_value_usd=balance * market.price_usd,
            buy_market_cap=market.market_cap,
            buy_liquidity=market.liquidity_usd,
            provisional=True,
        )
        try:
            await self._gateway.create_trade(record)
        except PositionAlreadyOpenError:
            return await self._gateway.get_open_trade(token_address)

        logger.warning(
            "position_recovered",
            token_address=token_address,
            balance=str(balance),
            price=str(market.price_usd),
        )
        return record

    def get_position(self, record: TradePerformanceRecord) -> Position:
        """Derived view of ``record`` with its stop-loss and take-profit levels."""
        return Position.from_record(
            record, self._settings.stop_loss_pct, self._settings.take_profit_pct
        )

    def _notify(self, kind: str, record: TradePerformanceRecord, reason: str) -> None:
        if self._notifier is None:
            return
        self._notifier.dispatch(
            TradeEvent(
                category="trade",
                kind=kind,
                token_address=record.token_address,
                record=record,
                reason=reason,
            )
        )
