"""Configuration models for the signal desk."""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field


class ExchangeConfig(BaseModel):
    name: str = "binance"
    base_url: str = "https://api.binance.com"
    timeout_seconds: float = 10.0
    retries: int = 2
    retry_wait_seconds: float = 3.0


class DataConfig(BaseModel):
    pairs: List[str] = Field(
        default_factory=lambda: [
            "BTC/USDT",
            "ETH/USDT",
            "ADA/USDT",
            "SOL/USDT",
            "XRP/USDT",
            "DOGE/USDT",
            "DOT/USDT",
            "LINK/USDT",
            "AVAX/USDT",
        ]
    )
    selected_pair: str = "BTC/USDT"
    interval: str = "1h"
    candle_limit: int = 200
    min_candles: int = 21
    snapshot_refresh_seconds: float = 15.0
    candle_refresh_seconds: float = 45.0


class IndicatorConfig(BaseModel):
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    sma_period: int = 20
    ema_period: int = 12
    bollinger_period: int = 20
    bollinger_std: float = 2.0
    stochastic_k: int = 14
    stochastic_d: int = 3
    williams_period: int = 14
    atr_period: int = 14
    adx_period: int = 14
    cci_period: int = 20


class PatternConfig(BaseModel):
    min_reliability: float = 60.0
    volume_confirmation_ratio: float = 1.2
    volume_lookback: int = 10
    pivot_lookback: int = 50
    level_tolerance_pct: float = 0.02
    volatility_lookback: int = 10
    stop_buffer_pct: float = 0.001
    reward_multiple: float = 2.0


class RiskConfig(BaseModel):
    taker_fee_rate: float = 0.001
    base_position: float = 1000.0
    confidence_bands: List[float] = Field(default_factory=lambda: [0.2, 0.4, 0.6, 0.8])
    leverage_steps: List[float] = Field(default_factory=lambda: [20.0, 21.0, 22.0, 24.0, 25.0])
    atr_fallback_pct: float = 0.02


class ThresholdConfig(BaseModel):
    pair_confidence: Dict[str, float] = Field(
        default_factory=lambda: {"BTC/USDT": 0.60, "ETH/USDT": 0.58}
    )
    pair_quality: Dict[str, float] = Field(
        default_factory=lambda: {"BTC/USDT": 65.0, "ETH/USDT": 63.0}
    )
    major_pairs: List[str] = Field(
        default_factory=lambda: ["SOL/USDT", "AVAX/USDT", "ADA/USDT", "XRP/USDT"]
    )
    major_confidence: float = 0.55
    major_quality: float = 60.0
    default_confidence: float = 0.52
    default_quality: float = 58.0
    min_confidence: float = 0.35
    max_confidence: float = 0.90
    min_quality: float = 40.0
    max_quality: float = 90.0
    activity_window_minutes: float = 60.0
    busy_accept_count: int = 6
    quiet_confidence_factor: float = 0.85
    quiet_quality_offset: float = 8.0
    momentum_spike_pct: float = 3.0


class CoordinatorConfig(BaseModel):
    cooldown_seconds: float = 600.0
    debounce_seconds: float = 8.0
    performance_tracking: bool = True
    min_risk_reward: float = 0.0


class PersistenceConfig(BaseModel):
    storage_path: str | None = None
    signals_key: str = "trading_signals_history"
    max_records: int = 500


class TrackingConfig(BaseModel):
    performance_key: str = "signal_performance_tracking"
    max_records: int = 1000
    duplicate_window_seconds: float = 10.0
    expiry_hours: float = 4.0
    resolve_interval_seconds: float = 60.0


class BacktestConfig(BaseModel):
    warmup_candles: int = 50
    max_open_trades: int = 1
    kelly_cap: float = 0.25


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    indicators: IndicatorConfig = Field(default_factory=IndicatorConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    coordinator: CoordinatorConfig = Field(default_factory=CoordinatorConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    backtest: BacktestConfig = Field(default_factory=BacktestConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metadata: Dict[str, str] = Field(default_factory=dict)


def default_config() -> AppConfig:
    return AppConfig()
