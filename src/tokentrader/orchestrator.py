"""Main bot orchestrator -- drives the per-token decision cycle.

Two asyncio loops share one TradingEngine:
  - held loop: every token with an open record, every held_interval
    (idle_held_interval when nothing is held)
  - prospect loop: watchlist tokens without an open record, every
    prospect_interval

Tokens are processed one at a time with a random jitter between them. A
token already being evaluated by the other loop is skipped for this pass.
HTTP 429 from market data triggers a randomized, capped exponential backoff;
any other failure is logged and the pass continues with the next token.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable

from tokentrader.config import AppSettings
from tokentrader.data.gateway import PersistenceGateway
from tokentrader.engine import TradingEngine
from tokentrader.exceptions import RateLimitError
from tokentrader.logging import get_logger
from tokentrader.models import TradePlan

logger = get_logger(__name__)


class Orchestrator:
    """Schedules held-position and prospect evaluation loops.

    Args:
        settings: Application-wide settings (driver intervals, watchlist).
        engine: Per-token decision cycle.
        gateway: Persistence gateway, used to list held tokens.
        rng: Random source for jitter and backoff, injectable for tests.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        settings: AppSettings,
        engine: TradingEngine,
        gateway: PersistenceGateway,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._engine = engine
        self._gateway = gateway
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._in_flight: set[str] = set()
        self._rate_limit_attempt = 0
        self._last_pass: dict[str, float] = {}
        self._pass_counts: dict[str, int] = {"held": 0, "prospect": 0}

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run both loops until stop() is called."""
        logger.info(
            "orchestrator_starting",
            watchlist_size=len(self._settings.trading.watchlist),
            held_interval=self._settings.driver.held_interval,
            prospect_interval=self._settings.driver.prospect_interval,
        )
        self._running = True
        self._tasks = [
            asyncio.create_task(self._held_loop(), name="held_loop"),
            asyncio.create_task(self._prospect_loop(), name="prospect_loop"),
        ]
        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            self._running = False
            logger.info("orchestrator_stopped")

    async def stop(self) -> None:
        """Signal both loops to stop and cancel any pending sleep."""
        logger.info("orchestrator_stopping")
        self._running = False
        for task in self._tasks:
            task.cancel()

    def rate_limit_delay(self, attempt: int) -> float:
        """Backoff after the ``attempt``-th consecutive 429, with +/-50% jitter."""
        driver = self._settings.driver
        delay = min(driver.rate_limit_base_delay * (2**attempt), driver.rate_limit_max_delay)
        return delay * self._rng.uniform(0.5, 1.5)

    # ──────────────────────────────────────────────
    # Loops
    # ──────────────────────────────────────────────

    async def _held_loop(self) -> None:
        driver = self._settings.driver
        while self._running:
            interval = driver.held_interval
            try:
                records = await self._gateway.get_open_trades()
                tokens = [r.token_address for r in records]
                await self.run_pass("held", tokens)
                if not tokens:
                    interval = driver.idle_held_interval
                await self._sleep(interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("held_loop_error", error=str(e), exc_info=True)
                await self._sleep(interval)

    async def _prospect_loop(self) -> None:
        driver = self._settings.driver
        while self._running:
            try:
                held = {r.token_address for r in await self._gateway.get_open_trades()}
                tokens = [t for t in self._settings.trading.watchlist if t not in held]
                await self.run_pass("prospect", tokens)
                await self._sleep(driver.prospect_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("prospect_loop_error", error=str(e), exc_info=True)
                await self._sleep(driver.prospect_interval)

    async def run_pass(self, loop_name: str, tokens: list[str]) -> dict[str, TradePlan]:
        """Evaluate ``tokens`` sequentially with jitter between them.

        Returns:
            Plans for the tokens that completed in this pass.
        """
        driver = self._settings.driver
        plans: dict[str, TradePlan] = {}
        for index, token in enumerate(tokens):
            if not self._running:
                break
            if index > 0:
                await self._sleep(self._rng.uniform(driver.jitter_min, driver.jitter_max))
            plan = await self.process_token(token)
            if plan is not None:
                plans[token] = plan
        self._pass_counts[loop_name] = self._pass_counts.get(loop_name, 0) + 1
        self._last_pass[loop_name] = time.time()
        logger.debug("pass_complete", loop=loop_name, tokens=len(tokens), completed=len(plans))
        return plans

    async def process_token(self, token_address: str) -> TradePlan | None:
        """Evaluate one token unless it is already in flight.

        Returns:
            The engine's plan, or None when skipped or failed.
        """
        if token_address in self._in_flight:
            logger.debug("token_skipped_in_flight", token_address=token_address)
            return None

        backoff: float | None = None
        self._in_flight.add(token_address)
        try:
            plan = await self._engine.evaluate_and_act_on_token(token_address)
            self._rate_limit_attempt = 0
            return plan
        except RateLimitError as e:
            backoff = self.rate_limit_delay(self._rate_limit_attempt)
            self._rate_limit_attempt += 1
            logger.warning(
                "rate_limited",
                token_address=token_address,
                attempt=self._rate_limit_attempt,
                delay=round(backoff, 2),
                retry_after=e.retry_after,
            )
        except Exception as e:
            logger.error(
                "token_evaluation_failed",
                token_address=token_address,
                error=str(e),
                exc_info=True,
            )
        finally:
            self._in_flight.discard(token_address)

        if backoff is not None:
            await self._sleep(backoff)
        return None

    def get_status(self) -> dict:
        """Return current orchestrator status.

        Returns:
            Dict with: running, watchlist_size, in_flight, rate_limit_attempt,
            pass_counts, last_pass.
        """
        return {
            "running": self._running,
            "watchlist_size": len(self._settings.trading.watchlist),
            "in_flight": sorted(self._in_flight),
            "rate_limit_attempt": self._rate_limit_attempt,
            "pass_counts": dict(self._pass_counts),
            "last_pass": dict(self._last_pass),
        }
