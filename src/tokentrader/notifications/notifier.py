"""Fire-and-forget trade notifications.

The lifecycle manager hands every completed buy/sell to a
NotificationDispatcher. The dispatcher checks the injected RateLimiter for
the event's category, then schedules each notifier as a background task.
A failing notifier is logged and never propagates back into the trade path.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from tokentrader.logging import get_logger
from tokentrader.models import TradeEvent
from tokentrader.risk.rate_limiter import RateLimiter

logger = get_logger(__name__)


class Notifier(ABC):
    """Outbound channel for trade events."""

    @abstractmethod
    async def notify(self, event: TradeEvent) -> None:
        ...


class LoggingNotifier(Notifier):
    """Writes each trade event to the structured log."""

    async def notify(self, event: TradeEvent) -> None:
        record = event.record
        fields: dict[str, str] = {}
        if record is not None:
            fields["buy_price"] = str(record.buy_price)
            fields["buy_amount"] = str(record.buy_amount)
            if record.profit_percent is not None:
                fields["profit_percent"] = str(record.profit_percent)
                fields["profit_usd"] = str(record.profit_usd)
        logger.info(
            "trade_notification",
            category=event.category,
            kind=event.kind,
            token_address=event.token_address,
            reason=event.reason,
            **fields,
        )


class NotificationDispatcher:
    """Rate-limited fan-out of trade events to background notifier tasks.

    Args:
        notifiers: Channels receiving every admitted event.
        rate_limiter: Per-category hourly limiter (None disables limiting).
        enabled: When False, every event is dropped.
    """

    def __init__(
        self,
        notifiers: list[Notifier],
        rate_limiter: RateLimiter | None = None,
        enabled: bool = True,
    ) -> None:
        self._notifiers = list(notifiers)
        self._rate_limiter = rate_limiter
        self._enabled = enabled
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of notifier tasks still running."""
        return len(self._tasks)

    def dispatch(self, event: TradeEvent) -> bool:
        """Schedule the event on every notifier without awaiting them.

        Returns:
            True if the event was admitted, False if dropped (disabled or
            rate limited).
        """
        if not self._enabled or not self._notifiers:
            return False
        if self._rate_limiter is not None and not self._rate_limiter.try_acquire(event.category):
            logger.info(
                "notification_rate_limited",
                category=event.category,
                token_address=event.token_address,
            )
            return False
        for notifier in self._notifiers:
            task = asyncio.create_task(self._deliver(notifier, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return True

    async def _deliver(self, notifier: Notifier, event: TradeEvent) -> None:
        try:
            await notifier.notify(event)
        except Exception:
            logger.warning(
                "notification_failed",
                notifier=type(notifier).__name__,
                category=event.category,
                token_address=event.token_address,
                exc_info=True,
            )

    async def drain(self) -> None:
        """Wait for in-flight notifier tasks (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
