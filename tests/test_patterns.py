from __future__ import annotations

import pytest

from signal_desk.data.models import Candle
from signal_desk.patterns.catalog import bullish_engulfing, dragonfly_doji, hammer_shape
from signal_desk.patterns.detector import PatternDetector
from signal_desk.signals.models import SignalType

from conftest import ts


def test_engulfing_window_best_pattern(engulfing_candles):
    scan = PatternDetector().detect(engulfing_candles)
    best = scan.best_pattern
    assert best is not None
    assert best.pattern_name == "Bullish Engulfing"
    assert best.type == SignalType.BUY
    assert best.reliability == 80
    assert [m.pattern_name for m in scan.matches] == ["Bullish Engulfing"]
    assert best.entry == pytest.approx(100.6)
    assert best.stop_loss == pytest.approx(99.25 * 0.999)
    assert best.take_profit == pytest.approx(100.6 + 2 * (100.6 - 99.25 * 0.999))
    assert best.risk_reward > 0
    assert best.position_size == pytest.approx(1000 * 25 / 100.6)


def test_volatility_is_recent_range_over_price(engulfing_candles):
    scan = PatternDetector().detect(engulfing_candles)
    recent = engulfing_candles[-10:]
    expected = (max(c.high for c in recent) - min(c.low for c in recent)) / 100.6 * 100
    assert scan.volatility == pytest.approx(expected)


def test_flat_window_has_no_pattern(flat_candles):
    scan = PatternDetector().detect(flat_candles)
    assert scan.best_pattern is None
    assert scan.volatility == 0.0


def test_too_few_candles(engulfing_candles):
    assert PatternDetector().detect(engulfing_candles[-2:]).best_pattern is None


def test_missing_volume_confirmation_lowers_reliability(engulfing_candles):
    last = engulfing_candles[-1]
    quiet = engulfing_candles[:-1] + [
        Candle(last.timestamp, last.open, last.high, last.low, last.close, 100.0)
    ]
    best = PatternDetector().detect(quiet).best_pattern
    assert best is not None
    assert best.reliability == 65


def test_breakout_outranks_marubozu():
    candles = [Candle(ts(i), 100.0, 100.5, 99.5, 100.0, 100.0) for i in range(30)]
    candles.append(Candle(ts(30), 100.0, 102.05, 99.98, 102.0, 300.0))
    scan = PatternDetector().detect(candles)
    names = {m.pattern_name: m.reliability for m in scan.matches}
    assert names == {"Resistance Breakout": 70, "Bullish Marubozu": 65}
    assert scan.best_pattern.pattern_name == "Resistance Breakout"


def test_bearish_engulfing_mirror():
    candles = []
    for i in range(198):
        close = 90 + 0.05 * i
        open_ = close - 0.05
        candles.append(Candle(ts(i), open_, close + 0.1, open_ - 0.1, close, 100.0))
    candles.append(Candle(ts(198), 99.85, 100.7, 99.75, 100.6, 100.0))
    candles.append(Candle(ts(199), 100.65, 100.75, 99.3, 99.4, 300.0))
    best = PatternDetector().detect(candles).best_pattern
    assert best is not None
    assert best.pattern_name == "Bearish Engulfing"
    assert best.type == SignalType.SELL
    assert best.stop_loss > best.entry > best.take_profit


def test_shape_predicates_guard_zero_range():
    doji = [Candle(ts(0), 1.0, 1.0, 1.0, 1.0, 1.0)]
    assert dragonfly_doji(doji) is False
    assert hammer_shape(doji) is False
    assert bullish_engulfing(doji * 2) is False
