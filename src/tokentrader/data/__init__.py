"""Trade record persistence layer.

Provides SQLite database management, the typed trade store, the generic
retry-with-backoff decorator, and the PersistenceGateway that wraps every
store call with it.
"""

from tokentrader.data.database import TradeDatabase
from tokentrader.data.gateway import PersistenceGateway
from tokentrader.data.retry import RetryPolicy, is_transient_error, retry_with_backoff
from tokentrader.data.store import TradeStore

__all__ = [
    "PersistenceGateway",
    "RetryPolicy",
    "TradeDatabase",
    "TradeStore",
    "is_transient_error",
    "retry_with_backoff",
]
