"""Tests for the JSON status API.

Collaborators on app.state are mocks; the real PositionLifecycleManager
view logic is exercised through get_position.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from tokentrader.dashboard.app import create_dashboard_app
from tokentrader.exceptions import MarketDataUnavailableError, RateLimitError
from tokentrader.models import Position, TradeAction, TradePlan

TOKEN = "So1TestMint1111111111111111111111111111111"


@pytest.fixture
def state(make_record) -> MagicMock:
    record = make_record()
    state = MagicMock()
    state.gateway.get_open_trades = AsyncMock(return_value=[record])
    state.gateway.get_closed_trades = AsyncMock(return_value=[])
    state.orchestrator.get_status.return_value = {"running": True, "in_flight": []}
    state.executor.get_wallet_balance = AsyncMock(return_value=Decimal("9.9"))
    state.ticker_service.snapshot = AsyncMock(return_value={TOKEN: {"price": "0.01", "age_seconds": 1.0}})
    state.ticker_service.get_price = AsyncMock(return_value=Decimal("0.01"))
    state.manager.get_position.side_effect = lambda r: Position.from_record(
        r, Decimal("0.01"), Decimal("0.05")
    )
    plan = TradePlan(TOKEN, TradeAction.HOLD, reasoning=["No strong signals detected"])
    state.engine.last_plans = {TOKEN: plan}
    state.engine.evaluate_and_act_on_token = AsyncMock(return_value=plan)
    return state


@pytest.fixture
def client(state: MagicMock) -> TestClient:
    app = create_dashboard_app()
    for name in ("engine", "orchestrator", "gateway", "manager", "executor", "ticker_service"):
        setattr(app.state, name, getattr(state, name))
    return TestClient(app)


class TestReadEndpoints:
    """GET routes."""

    def test_status(self, client: TestClient) -> None:
        response = client.get("/api/status")

        assert response.status_code == 200
        body = response.json()
        assert body["open_positions"] == 1
        assert body["wallet_balance"] == "9.9"
        assert body["orchestrator"]["running"] is True

    def test_positions(self, client: TestClient) -> None:
        body = client.get("/api/positions").json()

        assert len(body) == 1
        assert body[0]["token_address"] == TOKEN
        assert body[0]["stop_loss"] == "0.99"
        assert body[0]["status"] == "OPEN"
        assert body[0]["native_price"] == "0.01"

    def test_trades_limit_clamped(self, client: TestClient, state: MagicMock) -> None:
        client.get("/api/trades?limit=10000")
        state.gateway.get_closed_trades.assert_awaited_with(500)

    def test_plans(self, client: TestClient) -> None:
        body = client.get("/api/plans").json()
        assert body[TOKEN]["action"] == "hold"


class TestEvaluateEndpoint:
    """POST /tokens/{address}/evaluate."""

    def test_returns_plan(self, client: TestClient) -> None:
        response = client.post(f"/api/tokens/{TOKEN}/evaluate")

        assert response.status_code == 200
        assert response.json()["reasoning"] == ["No strong signals detected"]

    def test_rate_limited(self, client: TestClient, state: MagicMock) -> None:
        state.engine.evaluate_and_act_on_token.side_effect = RateLimitError("429", retry_after=30)

        response = client.post(f"/api/tokens/{TOKEN}/evaluate")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"

    def test_upstream_failure(self, client: TestClient, state: MagicMock) -> None:
        state.engine.evaluate_and_act_on_token.side_effect = MarketDataUnavailableError("down")

        assert client.post(f"/api/tokens/{TOKEN}/evaluate").status_code == 503
