"""Tests for the DexScreener/Birdeye HTTP market data provider.

Verifies:
- Pair and candle payload parsing into Decimal snapshots and series
- Horizon fallback series when no Birdeye key is configured
- HTTP 429 -> RateLimitError with Retry-After, other failures ->
  MarketDataUnavailableError
"""

from decimal import Decimal

import aiohttp
import pytest
from pydantic import SecretStr

from tokentrader.config import MarketDataSettings
from tokentrader.exceptions import MarketDataUnavailableError, RateLimitError
from tokentrader.market_data.http_provider import (
    HttpMarketDataProvider,
    parse_birdeye_ohlcv,
    parse_dexscreener_pair,
    series_from_price_changes,
)

TOKEN = "So1TestMint1111111111111111111111111111111"

PAIR = {
    "chainId": "solana",
    "priceUsd": "0.002",
    "priceNative": "0.00001",
    "marketCap": 250000,
    "fdv": 300000,
    "liquidity": {"usd": 42000.5},
    "volume": {"m5": 120, "h1": 2400, "h6": 9000, "h24": 30000},
    "txns": {"m5": {"buys": 7, "sells": 3}, "h1": {"buys": 40, "sells": 25}},
    "priceChange": {"m5": 2.5, "h1": 0, "h6": -20, "h24": 100},
}


class _Response:
    def __init__(self, status: int = 200, payload: dict | None = None, headers: dict | None = None) -> None:
        self.status = status
        self._payload = payload or {}
        self.headers = headers or {}

    async def json(self) -> dict:
        return self._payload

    async def __aenter__(self) -> "_Response":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


class _Session:
    def __init__(self, *responses: _Response, error: Exception | None = None) -> None:
        self._responses = list(responses)
        self._error = error
        self.calls: list[tuple[str, dict | None, dict | None]] = []

    def get(self, url: str, params: dict | None = None, headers: dict | None = None) -> _Response:
        self.calls.append((url, params, headers))
        if self._error is not None:
            raise self._error
        return self._responses.pop(0)


class TestParsing:
    """Payload mapping."""

    def test_parse_pair(self) -> None:
        market = parse_dexscreener_pair(TOKEN, PAIR)

        assert market.price_usd == Decimal("0.002")
        assert market.price_native == Decimal("0.00001")
        assert market.market_cap == Decimal("250000")
        assert market.liquidity_usd == Decimal("42000.5")
        assert market.volume_h24 == Decimal("30000")
        assert (market.buys_m5, market.sells_m5, market.buys_h1, market.sells_h1) == (7, 3, 40, 25)
        assert market.price_change_m5 == Decimal("2.5")

    def test_missing_fields_default_to_zero(self) -> None:
        market = parse_dexscreener_pair(TOKEN, {"priceUsd": "1", "fdv": 900})

        assert market.market_cap == Decimal("900")
        assert market.liquidity_usd == Decimal("0")
        assert market.buys_m5 == 0

    def test_series_from_price_changes(self) -> None:
        series = series_from_price_changes(TOKEN, PAIR, now=100_000.0)

        assert [s.timestamp for s in series.samples] == [
            100_000.0 - 86400,
            100_000.0 - 21600,
            100_000.0 - 3600,
            100_000.0 - 300,
            100_000.0,
        ]
        # +100% over 24h -> half the current price
        assert series.prices[0] == Decimal("0.001")
        assert series.prices[2] == Decimal("0.002")
        assert series.prices[-1] == Decimal("0.002")

    def test_total_loss_horizon_skipped(self) -> None:
        pair = {"priceUsd": "1", "priceChange": {"h24": -100, "m5": 1}}
        series = series_from_price_changes(TOKEN, pair, now=0.0)
        assert len(series) == 2

    def test_parse_ohlcv_sorted(self) -> None:
        payload = {
            "data": {
                "items": [
                    {"unixTime": 200, "c": 1.2, "v": 10},
                    {"unixTime": 100, "c": 1.1, "v": 5},
                    {"unixTime": 300, "v": 3},
                ]
            }
        }
        series = parse_birdeye_ohlcv(TOKEN, payload)

        assert series.prices == [Decimal("1.1"), Decimal("1.2")]
        assert series.volumes == [Decimal("5"), Decimal("10")]


class TestProvider:
    """HTTP behaviour against a fake session."""

    @pytest.mark.asyncio
    async def test_fetch_market_data(self) -> None:
        session = _Session(_Response(payload={"pairs": [{"chainId": "ethereum", "priceUsd": "9"}, PAIR]}))
        provider = HttpMarketDataProvider(MarketDataSettings(), session=session)

        market = await provider.fetch_market_data(TOKEN)

        assert market.price_usd == Decimal("0.002")
        assert session.calls[0][0].endswith(f"/latest/dex/tokens/{TOKEN}")

    @pytest.mark.asyncio
    async def test_no_pairs_unavailable(self) -> None:
        provider = HttpMarketDataProvider(MarketDataSettings(), session=_Session(_Response(payload={"pairs": None})))

        with pytest.raises(MarketDataUnavailableError):
            await provider.fetch_market_data(TOKEN)

    @pytest.mark.asyncio
    async def test_zero_price_unavailable(self) -> None:
        pair = {**PAIR, "priceUsd": "0"}
        provider = HttpMarketDataProvider(MarketDataSettings(), session=_Session(_Response(payload={"pairs": [pair]})))

        with pytest.raises(MarketDataUnavailableError):
            await provider.fetch_market_data(TOKEN)

    @pytest.mark.asyncio
    async def test_429_raises_rate_limit(self) -> None:
        session = _Session(_Response(status=429, headers={"Retry-After": "12"}))
        provider = HttpMarketDataProvider(MarketDataSettings(), session=session)

        with pytest.raises(RateLimitError) as exc_info:
            await provider.fetch_market_data(TOKEN)
        assert exc_info.value.retry_after == 12.0

    @pytest.mark.asyncio
    async def test_server_error_unavailable(self) -> None:
        provider = HttpMarketDataProvider(MarketDataSettings(), session=_Session(_Response(status=502)))

        with pytest.raises(MarketDataUnavailableError, match="502"):
            await provider.fetch_market_data(TOKEN)

    @pytest.mark.asyncio
    async def test_connection_error_unavailable(self) -> None:
        session = _Session(error=aiohttp.ClientConnectionError("reset"))
        provider = HttpMarketDataProvider(MarketDataSettings(), session=session)

        with pytest.raises(MarketDataUnavailableError):
            await provider.fetch_market_data(TOKEN)

    @pytest.mark.asyncio
    async def test_series_without_key_uses_horizons(self) -> None:
        provider = HttpMarketDataProvider(MarketDataSettings(), session=_Session(_Response(payload={"pairs": [PAIR]})))

        series = await provider.fetch_token_time_series(TOKEN)

        assert len(series) == 5

    @pytest.mark.asyncio
    async def test_series_with_key_uses_birdeye(self) -> None:
        payload = {"data": {"items": [{"unixTime": 1, "c": 2, "v": 1}, {"unixTime": 2, "c": 3, "v": 1}]}}
        session = _Session(_Response(payload=payload))
        settings = MarketDataSettings(birdeye_api_key=SecretStr("key"))
        provider = HttpMarketDataProvider(settings, session=session)

        series = await provider.fetch_token_time_series(TOKEN)

        url, params, headers = session.calls[0]
        assert url.endswith("/defi/ohlcv")
        assert params["address"] == TOKEN
        assert headers["X-API-KEY"] == "key"
        assert series.prices == [Decimal("2"), Decimal("3")]

    @pytest.mark.asyncio
    async def test_empty_candles_unavailable(self) -> None:
        session = _Session(_Response(payload={"data": {"items": []}}))
        provider = HttpMarketDataProvider(MarketDataSettings(birdeye_api_key=SecretStr("key")), session=session)

        with pytest.raises(MarketDataUnavailableError):
            await provider.fetch_token_time_series(TOKEN)
