"""Paper trading executor with simulated fills.

Uses TickerService for the token's current native (quote-denominated) price
and applies a fixed slippage. Fills are instant. Quote and token balances
are virtual and live only in memory.
"""

import asyncio
import time
from decimal import Decimal
from uuid import uuid4

from tokentrader.execution.executor import TradeExecutor
from tokentrader.logging import get_logger
from tokentrader.market_data.ticker_service import TickerService
from tokentrader.models import TradeResult

logger = get_logger(__name__)

# Simulated slippage: 0.5% (50 basis points)
_SLIPPAGE = Decimal("0.005")

# Maximum price age in seconds before considered stale
_MAX_PRICE_AGE_SECONDS = 60.0


class PaperExecutor(TradeExecutor):
    """Simulated executor for paper trading.

    Args:
        ticker_service: Shared price cache for current token prices.
        initial_balance: Starting virtual quote balance.
        slippage: Fractional price penalty applied to every fill.
    """

    def __init__(
        self,
        ticker_service: TickerService,
        initial_balance: Decimal = Decimal("0"),
        slippage: Decimal = _SLIPPAGE,
    ) -> None:
        self._ticker_service = ticker_service
        self._slippage = slippage
        self._quote_balance = initial_balance
        self._token_balances: dict[str, Decimal] = {}
        self._lock = asyncio.Lock()

    def set_token_balance(self, token_address: str, amount: Decimal) -> None:
        """Seed a virtual token holding (e.g. to exercise recovery)."""
        self._token_balances[token_address] = amount

    def get_virtual_balances(self) -> dict[str, Decimal]:
        """Return the quote balance under ``"quote"`` plus every token holding."""
        return {"quote": self._quote_balance, **self._token_balances}

    async def get_wallet_balance(self) -> Decimal:
        return self._quote_balance

    async def get_token_balance(self, token_address: str) -> Decimal:
        return self._token_balances.get(token_address, Decimal("0"))

    async def execute_trade(
        self,
        token_address: str,
        amount: Decimal,
        is_sell: bool,
        slippage_tolerance: Decimal,
    ) -> TradeResult:
        """Simulate a swap at the cached price.

        1. Fetch price from TickerService; missing or stale fails.
        2. Reject when the fixed slippage exceeds the tolerance.
        3. Check the virtual balance covers ``amount``.
        4. Move balances and return the filled amounts.
        """
        if amount <= 0:
            return TradeResult(success=False, error="Amount must be positive")

        price = await self._ticker_service.get_price(token_address)
        if price is None or price <= 0:
            return TradeResult(success=False, error=f"No price available for {token_address}")
        if await self._ticker_service.is_stale(token_address, max_age_seconds=_MAX_PRICE_AGE_SECONDS):
            return TradeResult(
                success=False,
                error=f"Price for {token_address} is stale (>{_MAX_PRICE_AGE_SECONDS}s old)",
            )
        if self._slippage > slippage_tolerance:
            return TradeResult(
                success=False,
                error=f"Slippage {self._slippage} exceeds tolerance {slippage_tolerance}",
            )

        async with self._lock:
            if is_sell:
                held = self._token_balances.get(token_address, Decimal("0"))
                if held < amount:
                    return TradeResult(
                        success=False,
                        error=f"Insufficient token balance: {held} < {amount}",
                    )
                fill_price = price * (Decimal("1") - self._slippage)
                amount_out = amount * fill_price
                self._token_balances[token_address] = held - amount
                self._quote_balance += amount_out
            else:
                if self._quote_balance < amount:
                    return TradeResult(
                        success=False,
                        error=f"Insufficient quote balance: {self._quote_balance} < {amount}",
                    )
                fill_price = price * (Decimal("1") + self._slippage)
                amount_out = amount / fill_price
                self._quote_balance -= amount
                self._token_balances[token_address] = (
                    self._token_balances.get(token_address, Decimal("0")) + amount_out
                )

        signature = f"paper_{uuid4().hex[:12]}"
        logger.info(
            "paper_trade_filled",
            signature=signature,
            token_address=token_address,
            side="sell" if is_sell else "buy",
            amount_in=str(amount),
            amount_out=str(amount_out),
            fill_price=str(fill_price),
        )
        return TradeResult(
            success=True,
            signature=signature,
            amount_in=amount,
            amount_out=amount_out,
            timestamp=time.time(),
        )
