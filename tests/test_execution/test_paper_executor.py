"""Tests for PaperExecutor simulated fills.

Verifies:
- Buys spend quote and credit tokens at price plus slippage
- Sells spend tokens and credit quote at price minus slippage
- Missing/stale prices, short balances and excess slippage fail without
  touching balances (results, never exceptions)
"""

from decimal import Decimal

import pytest

from tokentrader.execution.paper_executor import PaperExecutor
from tokentrader.market_data.ticker_service import TickerService

TOKEN = "So1TestMint1111111111111111111111111111111"


class _Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def ticker_service(clock: _Clock) -> TickerService:
    return TickerService(clock=clock)


@pytest.fixture
def executor(ticker_service: TickerService) -> PaperExecutor:
    return PaperExecutor(ticker_service, initial_balance=Decimal("10"), slippage=Decimal("0.01"))


class TestPaperBuy:
    """Buy side."""

    @pytest.mark.asyncio
    async def test_buy_moves_balances(self, executor: PaperExecutor, ticker_service: TickerService) -> None:
        await ticker_service.update_price(TOKEN, Decimal("0.5"))

        result = await executor.execute_trade(TOKEN, Decimal("1.01"), is_sell=False, slippage_tolerance=Decimal("0.2"))

        assert result.success
        assert result.signature is not None and result.signature.startswith("paper_")
        assert result.amount_in == Decimal("1.01")
        assert result.amount_out == Decimal("2")  # 1.01 / (0.5 * 1.01)
        assert await executor.get_wallet_balance() == Decimal("8.99")
        assert await executor.get_token_balance(TOKEN) == Decimal("2")

    @pytest.mark.asyncio
    async def test_no_price_fails(self, executor: PaperExecutor) -> None:
        result = await executor.execute_trade(TOKEN, Decimal("1"), is_sell=False, slippage_tolerance=Decimal("0.2"))
        assert not result.success
        assert "No price" in result.error
        assert await executor.get_wallet_balance() == Decimal("10")

    @pytest.mark.asyncio
    async def test_stale_price_fails(
        self, executor: PaperExecutor, ticker_service: TickerService, clock: _Clock
    ) -> None:
        await ticker_service.update_price(TOKEN, Decimal("0.5"))
        clock.now += 61

        result = await executor.execute_trade(TOKEN, Decimal("1"), is_sell=False, slippage_tolerance=Decimal("0.2"))
        assert not result.success
        assert "stale" in result.error

    @pytest.mark.asyncio
    async def test_insufficient_quote_fails(self, executor: PaperExecutor, ticker_service: TickerService) -> None:
        await ticker_service.update_price(TOKEN, Decimal("0.5"))
        result = await executor.execute_trade(TOKEN, Decimal("11"), is_sell=False, slippage_tolerance=Decimal("0.2"))
        assert not result.success
        assert await executor.get_token_balance(TOKEN) == Decimal("0")

    @pytest.mark.asyncio
    async def test_slippage_beyond_tolerance_fails(
        self, executor: PaperExecutor, ticker_service: TickerService
    ) -> None:
        await ticker_service.update_price(TOKEN, Decimal("0.5"))
        result = await executor.execute_trade(TOKEN, Decimal("1"), is_sell=False, slippage_tolerance=Decimal("0.005"))
        assert not result.success
        assert "Slippage" in result.error


class TestPaperSell:
    """Sell side."""

    @pytest.mark.asyncio
    async def test_sell_credits_quote(self, executor: PaperExecutor, ticker_service: TickerService) -> None:
        executor.set_token_balance(TOKEN, Decimal("100"))
        await ticker_service.update_price(TOKEN, Decimal("0.02"))

        result = await executor.execute_trade(TOKEN, Decimal("100"), is_sell=True, slippage_tolerance=Decimal("0.2"))

        assert result.success
        assert result.amount_out == Decimal("1.98")  # 100 * 0.02 * 0.99
        assert await executor.get_token_balance(TOKEN) == Decimal("0")
        assert await executor.get_wallet_balance() == Decimal("11.98")

    @pytest.mark.asyncio
    async def test_sell_more_than_held_fails(self, executor: PaperExecutor, ticker_service: TickerService) -> None:
        executor.set_token_balance(TOKEN, Decimal("5"))
        await ticker_service.update_price(TOKEN, Decimal("0.02"))

        result = await executor.execute_trade(TOKEN, Decimal("6"), is_sell=True, slippage_tolerance=Decimal("0.2"))

        assert not result.success
        assert executor.get_virtual_balances() == {"quote": Decimal("10"), TOKEN: Decimal("5")}
