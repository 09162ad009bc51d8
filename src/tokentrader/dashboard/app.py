"""FastAPI status API application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from tokentrader.dashboard.routes import api


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI status application.

    Route handlers read their collaborators from ``app.state``: ``engine``,
    ``orchestrator``, ``gateway``, ``manager``, ``executor`` and
    ``ticker_service``. main.py's lifespan (or a test) sets them.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        Configured FastAPI application with the JSON routes under /api.
    """
    app = FastAPI(
        title="Token Trader Status",
        lifespan=lifespan,
    )
    app.include_router(api.router, prefix="/api")
    return app
