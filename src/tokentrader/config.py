"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TradingSettings(BaseSettings):
    """Trade sizing, exit levels and lifecycle limits."""

    model_config = SettingsConfigDict(env_prefix="TRADING_")

    trade_amount: Decimal = Decimal("0.1")  # quote units per buy
    minimum_trade: Decimal = Decimal("0.001")
    max_balance_fraction: Decimal = Decimal("0.9")  # never spend the whole wallet
    dust_token_amount: Decimal = Decimal("0.0001")
    max_slippage: Decimal = Decimal("0.20")
    stop_loss_pct: Decimal = Decimal("0.01")  # 1%
    take_profit_pct: Decimal = Decimal("0.05")  # 5%
    reentry_delay_seconds: int = 600
    max_active_positions: int = 5
    rapid_dump_threshold: Decimal = Decimal("-50")  # 24h price change, percent
    recommender_id: str = "consensus-engine"
    watchlist: list[str] = []
    paper_initial_balance: Decimal = Decimal("10")


class StrategySettings(BaseSettings):
    """Strategy selection and consensus thresholds."""

    model_config = SettingsConfigDict(env_prefix="STRATEGY_")

    buy_threshold: Decimal = Decimal("50")  # percent of strategies
    sell_threshold: Decimal = Decimal("50")
    enabled: list[str] = []  # empty = default set, or the horizon set without a Birdeye key
    backtest_enabled: bool = False


class TrustSettings(BaseSettings):
    """Token trust scoring thresholds.

    The trust score is a 0-1 blend of liquidity, 24h volume and market cap.
    All fields configurable via TRUST_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="TRUST_")

    minimum_trust_score: Decimal = Decimal("0.30")
    ideal_trust_score: Decimal = Decimal("0.40")
    min_volume_24h: Decimal = Decimal("750")
    price_change_5m_threshold: Decimal = Decimal("5")  # percent
    price_change_24h_threshold: Decimal = Decimal("10")  # percent
    compromised_price_change_5m: Decimal = Decimal("-20")
    compromised_trust_score: Decimal = Decimal("0.08")


class SimulationSettings(BaseSettings):
    """Momentum rules used by the pre-trade simulation gate."""

    model_config = SettingsConfigDict(env_prefix="SIMULATION_")

    min_volume_m5: Decimal = Decimal("100")
    min_volume_h1: Decimal = Decimal("1000")
    min_buys_m5: int = 2
    min_buy_ratio_m5: Decimal = Decimal("0.8")
    min_buys_h1: int = 10
    min_price_change_m5: Decimal = Decimal("-15")
    max_fdv: Decimal = Decimal("1000000")


class DatabaseSettings(BaseSettings):
    """Trade record store location and retry policy."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    db_path: str = "data/trades.db"
    max_retries: int = 3
    retry_base_delay: float = 0.1
    retry_max_delay: float = 2.0


class DriverSettings(BaseSettings):
    """Scheduling of the held-position and prospect loops."""

    model_config = SettingsConfigDict(env_prefix="DRIVER_")

    prospect_interval: float = 60.0
    held_interval: float = 20.0
    idle_held_interval: float = 120.0
    jitter_min: float = 1.0
    jitter_max: float = 3.0
    rate_limit_base_delay: float = 2.0
    rate_limit_max_delay: float = 10.0


class MarketDataSettings(BaseSettings):
    """HTTP market data endpoints."""

    model_config = SettingsConfigDict(env_prefix="MARKET_DATA_")

    dexscreener_url: str = "https://api.dexscreener.com"
    birdeye_url: str = "https://public-api.birdeye.so"
    birdeye_api_key: SecretStr = SecretStr("")
    chain: str = "solana"
    ohlcv_interval: str = "15m"
    ohlcv_lookback_hours: int = 24
    request_timeout: float = 15.0


class NotificationSettings(BaseSettings):
    """Outbound notification limits per rolling hour bucket."""

    model_config = SettingsConfigDict(env_prefix="NOTIFY_")

    enabled: bool = True
    trade_per_hour: int = 10
    market_search_per_hour: int = 5


class DashboardSettings(BaseSettings):
    """Status API server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    trading: TradingSettings = TradingSettings()
    strategy: StrategySettings = StrategySettings()
    trust: TrustSettings = TrustSettings()
    simulation: SimulationSettings = SimulationSettings()
    database: DatabaseSettings = DatabaseSettings()
    driver: DriverSettings = DriverSettings()
    market_data: MarketDataSettings = MarketDataSettings()
    notifications: NotificationSettings = NotificationSettings()
    dashboard: DashboardSettings = DashboardSettings()
