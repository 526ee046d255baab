"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ExchangeSettings(BaseSettings):
    """ccxt exchange connection settings for the candle source."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_")

    exchange_id: str = "binance"
    default_type: Literal["spot", "swap", "future"] = "spot"
    recv_window: int = 60000
    enable_rate_limit: bool = True
    adjust_for_time_difference: bool = True
    batch_limit: int = 500  # bars per fetch_ohlcv call when paginating


class SimulationSettings(BaseSettings):
    """Trade outcome simulator thresholds.

    Percent values are fractions of the entry price (0.02 = 2%).
    """

    model_config = SettingsConfigDict(env_prefix="SIMULATION_")

    take_profit_pct: Decimal = Decimal("0.02")
    stop_loss_pct: Decimal = Decimal("0.02")  # hard stop
    dca_trigger_pct: Decimal | None = Decimal("0.01")  # None disables the DCA leg
    window_bars: int = 32  # 8h of 15m bars


class FeeSettings(BaseSettings):
    """Return and fee schedule used by the expected-value aggregator.

    Single-entry trades pay 0.1% per leg on both sides of a round trip
    (0.4% in total). Trades where the DCA leg triggered pay one extra
    entry (0.6%) and return from the blended average entry of two equal
    lots: entry * 0.995.
    """

    model_config = SettingsConfigDict(env_prefix="FEES_")

    take_profit_return: Decimal = Decimal("0.02")
    stop_loss_return: Decimal = Decimal("-0.01")
    timeout_return: Decimal = Decimal("0")
    round_trip_fee: Decimal = Decimal("0.004")

    dca_take_profit_return: Decimal = Decimal("0.0251")  # 1.02 / 0.995 - 1
    dca_stop_loss_return: Decimal = Decimal("-0.0151")
    dca_timeout_return: Decimal = Decimal("0")
    dca_round_trip_fee: Decimal = Decimal("0.006")


class ForecastSettings(BaseSettings):
    """Volatility forecast gate configuration."""

    model_config = SettingsConfigDict(env_prefix="FORECAST_")

    horizon_bars: int = 32
    confidence: Decimal = Decimal("0.95")
    min_move_percent: Decimal = Decimal("1.0")  # gate passes at >= 1% predicted move
    history_bars: int = 1000  # candles fed to the forecaster before each signal
    require_reliable: bool = True


class ResearchSettings(BaseSettings):
    """Defaults for the research runners (DCA and volatility gate analyses)."""

    model_config = SettingsConfigDict(env_prefix="RESEARCH_")

    symbol: str = "BTCUSDT"
    interval: str = "15m"
    signal_script: str = "signal_strategy_15m.pine"
    indicator_limit: int = 100
    warmup_days: int = 31
    as_of_dates: list[str] = ["2024-02-08", "2024-02-15", "2024-02-22", "2024-02-29"]


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    exchange: ExchangeSettings = ExchangeSettings()
    simulation: SimulationSettings = SimulationSettings()
    fees: FeeSettings = FeeSettings()
    forecast: ForecastSettings = ForecastSettings()
    research: ResearchSettings = ResearchSettings()
