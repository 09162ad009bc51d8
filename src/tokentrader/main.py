"""Entry point for the token trading engine.

Wires all components together, optionally embeds the FastAPI status API,
and starts the orchestrator. When the status API is enabled (default), the
engine and API share a single asyncio event loop via uvicorn's programmatic
API and FastAPI's lifespan context manager.

Handles SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. TradeDatabase + TradeStore + PersistenceGateway (trade records)
2. HttpMarketDataProvider (DexScreener / Birdeye)
3. TickerService (shared price cache)
4. PaperExecutor (simulated fills)
5. MarketSimulationService (pre-trade gate)
6. RateLimiter + NotificationDispatcher (fire-and-forget notifications)
7. RiskManager + TradeSizer + PositionLifecycleManager
8. StrategyEvaluator
9. TradingEngine (per-token decision cycle)
10. Orchestrator (held and prospect loops)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from tokentrader.config import AppSettings
from tokentrader.data.database import TradeDatabase
from tokentrader.data.gateway import PersistenceGateway
from tokentrader.data.retry import RetryPolicy
from tokentrader.data.store import TradeStore
from tokentrader.engine import TradingEngine
from tokentrader.execution.paper_executor import PaperExecutor
from tokentrader.execution.simulator import MarketSimulationService
from tokentrader.logging import get_logger, setup_logging
from tokentrader.market_data.http_provider import HORIZON_SERIES_LENGTH, HttpMarketDataProvider
from tokentrader.market_data.ticker_service import TickerService
from tokentrader.notifications.notifier import LoggingNotifier, NotificationDispatcher
from tokentrader.orchestrator import Orchestrator
from tokentrader.position.manager import PositionLifecycleManager
from tokentrader.position.sizing import TradeSizer
from tokentrader.risk.manager import RiskManager
from tokentrader.risk.rate_limiter import RateLimiter
from tokentrader.signals.evaluator import StrategyEvaluator
from tokentrader.signals.strategies import select_strategies


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all engine components from settings.

    Note: Does NOT open the database or the HTTP session -- that happens in
    the lifespan (status API mode) or run() (headless mode).

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("tokentrader.main")

    # 1. Persistence
    database = TradeDatabase(settings.database.db_path)
    store = TradeStore(database)
    gateway = PersistenceGateway(
        store,
        RetryPolicy(
            max_attempts=settings.database.max_retries,
            base_delay=settings.database.retry_base_delay,
            max_delay=settings.database.retry_max_delay,
        ),
    )

    # 2. Market data
    provider = HttpMarketDataProvider(settings.market_data)
    horizon_series = not settings.market_data.birdeye_api_key.get_secret_value()
    if horizon_series:
        logger.warning(
            "no_birdeye_api_key",
            note="Price series will be rebuilt from DexScreener price changes.",
        )

    # 3. Shared ticker service
    ticker_service = TickerService()

    # 4. Executor
    executor = PaperExecutor(ticker_service, settings.trading.paper_initial_balance)

    # 5. Simulation gate
    simulator = MarketSimulationService(provider, settings.simulation, settings.trust)

    # 6. Notifications
    rate_limiter = RateLimiter({
        "trade": settings.notifications.trade_per_hour,
        "market_search": settings.notifications.market_search_per_hour,
    })
    notifier = NotificationDispatcher(
        [LoggingNotifier()],
        rate_limiter=rate_limiter,
        enabled=settings.notifications.enabled,
    )

    # 7. Lifecycle
    risk_manager = RiskManager(gateway, settings.trading)
    manager = PositionLifecycleManager(
        gateway=gateway,
        executor=executor,
        simulator=simulator,
        risk_manager=risk_manager,
        sizer=TradeSizer(settings.trading),
        settings=settings.trading,
        notifier=notifier,
    )

    # 8. Strategies
    strategies = select_strategies(settings.strategy.enabled, horizon_series=horizon_series)
    if horizon_series:
        too_long = [s.name for s in strategies if s.lookback > HORIZON_SERIES_LENGTH]
        if too_long:
            logger.warning(
                "strategies_exceed_horizon_series",
                strategies=too_long,
                samples=HORIZON_SERIES_LENGTH,
                note="These strategies will be skipped for insufficient data.",
            )
    evaluator = StrategyEvaluator(
        strategies,
        backtest=settings.strategy.backtest_enabled,
    )

    # 9. Engine
    engine = TradingEngine(
        provider=provider,
        evaluator=evaluator,
        manager=manager,
        gateway=gateway,
        ticker_service=ticker_service,
        strategy_settings=settings.strategy,
        trust_settings=settings.trust,
        notifier=notifier,
    )

    # 10. Orchestrator
    orchestrator = Orchestrator(settings=settings, engine=engine, gateway=gateway)

    return {
        "database": database,
        "gateway": gateway,
        "provider": provider,
        "ticker_service": ticker_service,
        "executor": executor,
        "notifier": notifier,
        "manager": manager,
        "evaluator": evaluator,
        "engine": engine,
        "orchestrator": orchestrator,
    }


def _setup_signal_handlers(orchestrator: Orchestrator) -> None:
    """Register SIGINT/SIGTERM to stop the orchestrator gracefully.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("tokentrader.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(orchestrator.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def _open_resources(components: dict[str, Any]) -> None:
    await components["database"].connect()
    await components["provider"].connect()


async def _close_resources(components: dict[str, Any]) -> None:
    await components["notifier"].drain()
    await components["provider"].close()
    await components["database"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: stores components on app.state, opens the database and HTTP
    session, starts the orchestrator as a background task.

    On shutdown: stops the orchestrator, waits for it, releases resources.
    """
    logger = get_logger("tokentrader.main")
    components = app.state.components

    # Store components on app.state for route handler access
    for name in ("engine", "orchestrator", "gateway", "manager", "executor", "ticker_service"):
        setattr(app.state, name, components[name])

    await _open_resources(components)

    bot_task = asyncio.create_task(components["orchestrator"].start())
    logger.info("lifespan_started", watchlist_size=len(app.state.settings.trading.watchlist))

    yield

    await components["orchestrator"].stop()
    bot_task.cancel()
    try:
        await bot_task
    except asyncio.CancelledError:
        pass

    await _close_resources(components)
    logger.info("tokentrader_stopped")


async def run() -> None:
    """Run the token trading engine.

    When the status API is enabled (DASHBOARD_ENABLED=true, the default):
    - Creates the FastAPI app with lifespan
    - Runs engine and API in a single asyncio event loop via uvicorn
    - Lifespan manages component startup/shutdown

    When disabled (DASHBOARD_ENABLED=false):
    - Runs the orchestrator directly without a web server
    - Signal handlers and resources managed in this function
    """
    settings = AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("tokentrader.main")

    components = _build_components(settings)

    if settings.dashboard.enabled:
        from tokentrader.dashboard.app import create_dashboard_app

        app = create_dashboard_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_dashboard",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        _setup_signal_handlers(components["orchestrator"])

        logger.info(
            "starting_without_dashboard",
            watchlist_size=len(settings.trading.watchlist),
            max_positions=settings.trading.max_active_positions,
            trade_amount=str(settings.trading.trade_amount),
        )

        try:
            await _open_resources(components)
            await components["orchestrator"].start()
        finally:
            await _close_resources(components)
            logger.info("tokentrader_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
