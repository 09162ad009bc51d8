"""Shared in-memory price cache for market data consumers.

The TradingEngine writes each token's latest native (quote-denominated)
price here every cycle; the PaperExecutor reads it to simulate fills and
the status API lists it. Guarded by an asyncio.Lock for concurrent access
from both driver loops.
"""

import asyncio
import time
from collections.abc import Callable
from decimal import Decimal


class TickerService:
    """Per-token price cache with staleness detection.

    Args:
        clock: Time source, injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._prices: dict[str, tuple[Decimal, float]] = {}
        self._lock = asyncio.Lock()

    async def update_price(self, token_address: str, price: Decimal, timestamp: float | None = None) -> None:
        """Store the latest quote-denominated price for a token."""
        observed = self._clock() if timestamp is None else timestamp
        async with self._lock:
            self._prices[token_address] = (price, observed)

    async def get_price(self, token_address: str) -> Decimal | None:
        """Return the latest cached price, or None if never cached."""
        async with self._lock:
            entry = self._prices.get(token_address)
            return entry[0] if entry is not None else None

    async def is_stale(self, token_address: str, max_age_seconds: float = 60.0) -> bool:
        """True when the token has no cached price or it is older than max_age_seconds."""
        async with self._lock:
            entry = self._prices.get(token_address)
        if entry is None:
            return True
        return self._clock() - entry[1] > max_age_seconds

    async def snapshot(self) -> dict[str, dict[str, str | float]]:
        """Return ``{token: {"price": str, "age_seconds": float}}`` for every cached token."""
        now = self._clock()
        async with self._lock:
            return {
                token: {"price": str(price), "age_seconds": round(now - ts, 1)}
                for token, (price, ts) in self._prices.items()
            }
