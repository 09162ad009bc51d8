"""Buy size calculation in quote units.

All calculations use Decimal arithmetic exclusively -- no float conversions.

Sizing flow:
1. Cap the configured trade amount by a fraction of the wallet balance
2. Return None when the wallet or the capped amount is below the minimum trade
"""

from decimal import Decimal

from tokentrader.config import TradingSettings


class TradeSizer:
    """Calculates how much quote currency a buy may spend.

    Args:
        settings: Trading settings (trade_amount, minimum_trade, max_balance_fraction).
    """

    def __init__(self, settings: TradingSettings) -> None:
        self._settings = settings

    def calculate_buy_amount(self, balance: Decimal) -> Decimal | None:
        """Return ``min(trade_amount, balance * max_balance_fraction)``.

        Args:
            balance: Spendable quote balance.

        Returns:
            Amount to spend, or None if the balance or the resulting amount
            is below ``minimum_trade``.
        """
        if balance < self._settings.minimum_trade:
            return None
        amount = min(
            self._settings.trade_amount,
            balance * self._settings.max_balance_fraction,
        )
        if amount < self._settings.minimum_trade:
            return None
        return amount
