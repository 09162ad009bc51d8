"""Market data layer -- provider interface, HTTP adapter and shared price cache."""

from tokentrader.market_data.http_provider import HttpMarketDataProvider
from tokentrader.market_data.provider import MarketDataProvider
from tokentrader.market_data.ticker_service import TickerService

__all__ = ["HttpMarketDataProvider", "MarketDataProvider", "TickerService"]
