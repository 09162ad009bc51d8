"""Pre-trade risk checks for opening a position.

Enforces, in order:
  - one open record per token
  - the re-entry delay after a close (cooldown)
  - the maximum number of simultaneously open positions

Reads go through the PersistenceGateway so the answer always reflects the
durable store, never an in-memory copy.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from tokentrader.config import TradingSettings
from tokentrader.data.gateway import PersistenceGateway
from tokentrader.exceptions import (
    CooldownActiveError,
    MaxPositionsReachedError,
    PositionAlreadyOpenError,
    TradeBlockedError,
)


class RiskManager:
    """Pre-trade risk manager for buys.

    Args:
        gateway: Persistence gateway for open/closed record lookups.
        settings: Trading settings containing reentry delay and position limit.
        clock: Time source, injectable for tests.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        settings: TradingSettings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._settings = settings
        self._clock = clock

    def cooldown_remaining(self, last_sell_timestamp: float | None) -> float:
        """Seconds left before re-entry is allowed (0 when allowed)."""
        if last_sell_timestamp is None:
            return 0.0
        ready_at = last_sell_timestamp + self._settings.reentry_delay_seconds
        return max(ready_at - self._clock(), 0.0)

    async def ensure_can_buy(self, token_address: str) -> None:
        """Raise the matching TradeBlockedError when a buy is not allowed.

        Raises:
            PositionAlreadyOpenError: The token has an open record.
            CooldownActiveError: The last close is within the re-entry delay.
            MaxPositionsReachedError: Open positions are at the limit.
        """
        if await self._gateway.get_open_trade(token_address) is not None:
            raise PositionAlreadyOpenError(f"Already have position in {token_address}")

        last_closed = await self._gateway.get_last_closed_trade(token_address)
        remaining = self.cooldown_remaining(
            last_closed.sell_timestamp if last_closed is not None else None
        )
        if remaining > 0:
            raise CooldownActiveError(
                f"Re-entry cooldown active for {token_address}: {remaining:.0f}s left"
            )

        open_trades = await self._gateway.get_open_trades()
        if len(open_trades) >= self._settings.max_active_positions:
            raise MaxPositionsReachedError(
                f"At max positions: {self._settings.max_active_positions}"
            )

    async def check_can_buy(self, token_address: str) -> tuple[bool, str]:
        """Non-raising form of ensure_can_buy.

        Returns:
            Tuple of (allowed, reason). If allowed is True, reason is "".
        """
        try:
            await self.ensure_can_buy(token_address)
        except TradeBlockedError as exc:
            return False, str(exc)
        return True, ""
