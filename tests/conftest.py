from __future__ import annotations

from datetime import datetime, timezone

import pytest

from signal_desk.config.models import AppConfig, default_config
from signal_desk.data.models import Candle, MarketSnapshot
from signal_desk.data.provider_base import TimeProvider
from signal_desk.signals.models import Signal, SignalType
from signal_desk.signals.sizing import PositionSizer

HOUR_MS = 3_600_000
START_MS = 1_700_000_000_000


class ManualClock(TimeProvider):
    def __init__(self, start_ms: int = START_MS + 200 * HOUR_MS) -> None:
        self.ms = start_ms

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.ms / 1000, tz=timezone.utc)

    def now_ms(self) -> int:
        return self.ms

    def advance(self, seconds: float) -> None:
        self.ms += int(seconds * 1000)


def ts(i: int) -> int:
    return START_MS + i * HOUR_MS


def bullish_engulfing_window() -> list[Candle]:
    """198 bars of steady decline, a bearish bar, then an engulfing bar on 3x volume."""
    candles = []
    for i in range(198):
        close = 110 - 0.05 * i
        open_ = close + 0.05
        candles.append(Candle(ts(i), open_, open_ + 0.1, close - 0.1, close, 100.0))
    candles.append(Candle(ts(198), 100.15, 100.25, 99.3, 99.4, 100.0))
    candles.append(Candle(ts(199), 99.35, 100.7, 99.25, 100.6, 300.0))
    return candles


def flat_window(n: int = 200, price: float = 100.0) -> list[Candle]:
    return [Candle(ts(i), price, price, price, price, 100.0) for i in range(n)]


def make_snapshot(symbol: str = "BTC/USDT", price: float = 100.6, volume24h: float = 2e9) -> MarketSnapshot:
    return MarketSnapshot(
        symbol=symbol,
        price=price,
        volume24h=volume24h,
        high24h=price * 1.02,
        low24h=price * 0.98,
        change_percent24h=1.2,
    )


def make_signal(
    type: SignalType = SignalType.BUY,
    entry: float = 100.0,
    stop_loss: float = 98.0,
    take_profit: float = 104.0,
    confidence: float = 0.8,
) -> Signal:
    plan = PositionSizer().plan(entry, stop_loss, take_profit, confidence)
    return Signal(
        type=type,
        confidence=confidence,
        patterns=("Bullish Engulfing",),
        entry=entry,
        stop_loss=stop_loss,
        take_profit=take_profit,
        risk_reward=plan.risk_reward,
        leverage=plan.leverage,
        position_size=plan.position_size,
        trading_fees=plan.trading_fees,
        net_profit=plan.net_profit,
        net_loss=plan.net_loss,
    )


@pytest.fixture
def config() -> AppConfig:
    return default_config()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def engulfing_candles() -> list[Candle]:
    return bullish_engulfing_window()


@pytest.fixture
def flat_candles() -> list[Candle]:
    return flat_window()
