"""Abstract trade execution interface.

Defines the contract for swapping quote currency into a token and back.
PaperExecutor implements this ABC; the lifecycle manager depends only on it,
so buy/sell code is identical whatever fills the order.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from tokentrader.models import TradeResult


class TradeExecutor(ABC):
    """Abstract base class for trade executors.

    Failures are reported through ``TradeResult.success`` and
    ``TradeResult.error`` rather than raised, so the caller decides how a
    failed fill maps onto lifecycle state.
    """

    @abstractmethod
    async def execute_trade(
        self,
        token_address: str,
        amount: Decimal,
        is_sell: bool,
        slippage_tolerance: Decimal,
    ) -> TradeResult:
        """Execute a market swap.

        Args:
            token_address: Token being bought or sold.
            amount: Quote units to spend on a buy, token units to sell.
            is_sell: True to sell tokens for quote, False to buy.
            slippage_tolerance: Maximum accepted slippage as a fraction.

        Returns:
            TradeResult with amounts in/out on success, error text on failure.
        """
        ...

    @abstractmethod
    async def get_wallet_balance(self) -> Decimal:
        """Return the spendable quote-currency balance."""
        ...

    @abstractmethod
    async def get_token_balance(self, token_address: str) -> Decimal:
        """Return the wallet's balance of ``token_address`` (0 if none)."""
        ...
