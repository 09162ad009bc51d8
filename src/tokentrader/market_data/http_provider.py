"""HTTP market data provider backed by DexScreener and Birdeye.

- Snapshot: DexScreener ``/latest/dex/tokens/{address}``. The first pair on
  the configured chain supplies price, market cap, liquidity, volumes,
  transaction counts and price changes.
- Series: Birdeye ``/defi/ohlcv`` candles (close price and volume) when an
  API key is configured. Without a key the series is rebuilt from the
  DexScreener price-change horizons (24h, 6h, 1h, 5m and the current price).

HTTP 429 raises RateLimitError (with Retry-After when present); any other
non-200 status or an empty payload raises MarketDataUnavailableError.
"""

from __future__ import annotations

import asyncio
import time
from decimal import Decimal, InvalidOperation
from typing import Any

import aiohttp

from tokentrader.config import MarketDataSettings
from tokentrader.exceptions import MarketDataUnavailableError, RateLimitError
from tokentrader.logging import get_logger
from tokentrader.market_data.provider import MarketDataProvider
from tokentrader.models import PriceSample, PriceSeries, TokenMarketData

logger = get_logger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

#: DexScreener price-change keys and how many seconds back each one reaches.
_CHANGE_HORIZONS = (("h24", 86400), ("h6", 21600), ("h1", 3600), ("m5", 300))

#: Samples in a series rebuilt from price changes: one per horizon plus the current price.
HORIZON_SERIES_LENGTH = len(_CHANGE_HORIZONS) + 1


def _to_decimal(value: Any) -> Decimal:
    """Parse a JSON number or numeric string; missing or malformed reads as 0."""
    if value is None:
        return _ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return _ZERO


def _nested(data: dict, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)  # type: ignore[assignment]
    return data


def parse_dexscreener_pair(token_address: str, pair: dict) -> TokenMarketData:
    """Map one DexScreener pair object to a TokenMarketData snapshot."""
    return TokenMarketData(
        token_address=token_address,
        price_usd=_to_decimal(pair.get("priceUsd")),
        price_native=_to_decimal(pair.get("priceNative")),
        market_cap=_to_decimal(pair.get("marketCap") or pair.get("fdv")),
        fdv=_to_decimal(pair.get("fdv")),
        liquidity_usd=_to_decimal(_nested(pair, "liquidity", "usd")),
        volume_m5=_to_decimal(_nested(pair, "volume", "m5")),
        volume_h1=_to_decimal(_nested(pair, "volume", "h1")),
        volume_h24=_to_decimal(_nested(pair, "volume", "h24")),
        buys_m5=int(_nested(pair, "txns", "m5", "buys") or 0),
        sells_m5=int(_nested(pair, "txns", "m5", "sells") or 0),
        buys_h1=int(_nested(pair, "txns", "h1", "buys") or 0),
        sells_h1=int(_nested(pair, "txns", "h1", "sells") or 0),
        price_change_m5=_to_decimal(_nested(pair, "priceChange", "m5")),
        price_change_h24=_to_decimal(_nested(pair, "priceChange", "h24")),
    )


def series_from_price_changes(
    token_address: str, pair: dict, now: float | None = None
) -> PriceSeries:
    """Rebuild horizon prices from percentage changes: ``p_then = p_now / (1 + change/100)``."""
    current = _to_decimal(pair.get("priceUsd"))
    horizons: list[tuple[int, Decimal, Decimal]] = []
    for key, seconds_ago in _CHANGE_HORIZONS:
        change = _nested(pair, "priceChange", key)
        if change is None:
            continue
        factor = Decimal("1") + _to_decimal(change) / _HUNDRED
        if factor <= 0:
            continue
        volume = _to_decimal(_nested(pair, "volume", key))
        horizons.append((seconds_ago, current / factor, volume))
    return PriceSeries.from_horizons(token_address, horizons, current, now=now)


def parse_birdeye_ohlcv(token_address: str, payload: dict) -> PriceSeries:
    """Map a Birdeye OHLCV payload to a series of (close, volume) samples."""
    items = _nested(payload, "data", "items") or []
    samples = sorted(
        (
            PriceSample(
                timestamp=float(item.get("unixTime", 0)),
                price=_to_decimal(item.get("c")),
                volume=_to_decimal(item.get("v")),
            )
            for item in items
            if item.get("c") is not None
        ),
        key=lambda s: s.timestamp,
    )
    return PriceSeries(token_address, tuple(samples))


class HttpMarketDataProvider(MarketDataProvider):
    """aiohttp-based provider for DexScreener snapshots and Birdeye candles.

    Args:
        settings: Endpoints, chain, API key and timeouts.
        session: Optional pre-built session (tests). Owned sessions are
            created lazily and closed by close().
    """

    def __init__(
        self,
        settings: MarketDataSettings,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._settings = settings
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> None:
        await self._get_session()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self._settings.request_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict:
        session = await self._get_session()
        try:
            async with session.get(url, params=params, headers=headers) as resp:
                if resp.status == 429:
                    retry_after = resp.headers.get("Retry-After")
                    raise RateLimitError(
                        f"Rate limited by {url}",
                        retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                    )
                if resp.status != 200:
                    raise MarketDataUnavailableError(f"{url} returned HTTP {resp.status}")
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise MarketDataUnavailableError(f"{url} request failed: {exc}") from exc

    async def _fetch_pair(self, token_address: str) -> dict:
        url = f"{self._settings.dexscreener_url}/latest/dex/tokens/{token_address}"
        payload = await self._get_json(url)
        pairs = [
            p for p in (payload.get("pairs") or [])
            if p.get("chainId", self._settings.chain) == self._settings.chain
        ]
        if not pairs:
            raise MarketDataUnavailableError(f"No {self._settings.chain} pairs for {token_address}")
        return pairs[0]

    async def fetch_market_data(self, token_address: str) -> TokenMarketData:
        pair = await self._fetch_pair(token_address)
        snapshot = parse_dexscreener_pair(token_address, pair)
        if snapshot.price_usd <= 0:
            raise MarketDataUnavailableError(f"No price for {token_address}")
        logger.debug(
            "market_data_fetched",
            token_address=token_address,
            price_usd=str(snapshot.price_usd),
            liquidity_usd=str(snapshot.liquidity_usd),
        )
        return snapshot

    async def fetch_token_time_series(self, token_address: str) -> PriceSeries:
        api_key = self._settings.birdeye_api_key.get_secret_value()
        if not api_key:
            pair = await self._fetch_pair(token_address)
            return series_from_price_changes(token_address, pair)

        now = int(time.time())
        lookback = self._settings.ohlcv_lookback_hours * 3600
        payload = await self._get_json(
            f"{self._settings.birdeye_url}/defi/ohlcv",
            params={
                "address": token_address,
                "type": self._settings.ohlcv_interval,
                "time_from": now - lookback,
                "time_to": now,
            },
            headers={"X-API-KEY": api_key, "x-chain": self._settings.chain},
        )
        series = parse_birdeye_ohlcv(token_address, payload)
        if len(series) == 0:
            raise MarketDataUnavailableError(f"No candles for {token_address}")
        logger.debug(
            "time_series_fetched",
            token_address=token_address,
            samples=len(series),
            interval=self._settings.ohlcv_interval,
        )
        return series
