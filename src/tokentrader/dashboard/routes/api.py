"""JSON API endpoints: driver status, open positions, closed trades, last plans,
and on-demand evaluation of a single token."""

from __future__ import annotations

import dataclasses
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from tokentrader.exceptions import RateLimitError, TraderError

log = structlog.get_logger(__name__)

router = APIRouter()

_MAX_TRADES_LIMIT = 500


def _to_jsonable(obj: Any) -> Any:
    """Recursively convert Decimals, enums and dataclasses for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _to_jsonable(dataclasses.asdict(obj))
    if isinstance(obj, dict):
        return {k: _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(item) for item in obj]
    return obj


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Driver state, open position count, wallet balance and cached prices."""
    state = request.app.state
    open_trades = await state.gateway.get_open_trades()
    result = {
        "orchestrator": state.orchestrator.get_status(),
        "open_positions": len(open_trades),
        "wallet_balance": await state.executor.get_wallet_balance(),
        "prices": await state.ticker_service.snapshot(),
    }
    return JSONResponse(content=_to_jsonable(result))


@router.get("/positions")
async def get_positions(request: Request) -> JSONResponse:
    """Open positions with exit levels and the latest cached price."""
    state = request.app.state
    records = await state.gateway.get_open_trades()

    result = []
    for record in records:
        position = state.manager.get_position(record)
        result.append({
            **_to_jsonable(position),
            "buy_value_usd": str(record.buy_value_usd),
            "provisional": record.provisional,
            "native_price": _to_jsonable(
                await state.ticker_service.get_price(record.token_address)
            ),
        })

    return JSONResponse(content=result)


@router.get("/trades")
async def get_trades(request: Request, limit: int = 50) -> JSONResponse:
    """Most recently closed trade records, newest first."""
    limit = max(1, min(limit, _MAX_TRADES_LIMIT))
    records = await request.app.state.gateway.get_closed_trades(limit)
    return JSONResponse(content=_to_jsonable(records))


@router.get("/plans")
async def get_plans(request: Request) -> JSONResponse:
    """The last plan computed for every evaluated token."""
    plans = request.app.state.engine.last_plans
    return JSONResponse(content=_to_jsonable(plans))


@router.post("/tokens/{address}/evaluate")
async def evaluate_token(request: Request, address: str) -> JSONResponse:
    """Run one evaluate-and-act cycle for ``address`` now."""
    engine = request.app.state.engine
    try:
        plan = await engine.evaluate_and_act_on_token(address)
    except RateLimitError as e:
        log.warning("evaluate_rate_limited", token_address=address, error=str(e))
        headers = {"Retry-After": str(int(e.retry_after))} if e.retry_after else None
        return JSONResponse(content={"error": str(e)}, status_code=429, headers=headers)
    except TraderError as e:
        log.error("evaluate_failed", token_address=address, error=str(e))
        return JSONResponse(content={"error": str(e)}, status_code=503)

    return JSONResponse(content=_to_jsonable(plan))
