"""Abstract market data interface.

Defines the contract for market data sources. Evaluation and lifecycle
code depends only on this interface, keeping API-specific details
isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod

from tokentrader.models import PriceSeries, TokenMarketData


class MarketDataProvider(ABC):
    """Abstract base class for token market data sources."""

    async def connect(self) -> None:
        """Acquire network resources. Default: nothing to do."""

    async def close(self) -> None:
        """Release network resources. Default: nothing to do."""

    @abstractmethod
    async def fetch_market_data(self, token_address: str) -> TokenMarketData:
        """Fetch the current market snapshot for a token.

        Raises:
            RateLimitError: Upstream answered HTTP 429.
            MarketDataUnavailableError: No usable data for the token.
        """
        ...

    @abstractmethod
    async def fetch_token_time_series(self, token_address: str) -> PriceSeries:
        """Fetch the token's recent price/volume series, oldest first.

        Raises:
            RateLimitError: Upstream answered HTTP 429.
            MarketDataUnavailableError: No usable data for the token.
        """
        ...
