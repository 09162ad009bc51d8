"""Custom exceptions for the token trading engine.

All persistence, market-data and lifecycle exceptions live here
to avoid circular imports between modules.
"""


class TraderError(Exception):
    """Base exception for all engine errors."""


class TransientError(TraderError):
    """Base for I/O failures that may succeed when retried later."""


class TransientDatabaseError(TransientError):
    """Raised when the trade store is temporarily unreachable."""


class DatabaseNotConnectedError(TransientDatabaseError):
    """Raised when the database connection is not open."""


class RateLimitError(TransientError):
    """Raised when an upstream API answers HTTP 429."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class MarketDataUnavailableError(TransientError):
    """Raised when price or market data for a token cannot be fetched."""


class DataValidationError(TraderError):
    """Base for malformed or insufficient input data."""


class InsufficientDataError(DataValidationError):
    """Raised when a series is shorter than an indicator's lookback."""


class TradeBlockedError(TraderError):
    """Base for lifecycle invariants that prevent a trade before any side effect."""


class PositionAlreadyOpenError(TradeBlockedError):
    """Raised when a buy is attempted while the token has an open record."""


class CooldownActiveError(TradeBlockedError):
    """Raised when a buy is attempted inside the re-entry delay window."""


class MaxPositionsReachedError(TradeBlockedError):
    """Raised when the number of open positions is at the configured limit."""


class InsufficientBalanceError(TradeBlockedError):
    """Raised when the wallet cannot fund the minimum trade size."""


class SimulationRejectedError(TradeBlockedError):
    """Raised when the pre-trade simulation does not recommend execution."""


class DustAmountError(TradeBlockedError):
    """Raised when a position is too small to be worth selling."""


class ExecutionFailedError(TraderError):
    """Raised when the execution capability rejects or fails a trade."""


class RecordNotFoundError(TraderError):
    """Raised when a close targets a record that is not open."""
