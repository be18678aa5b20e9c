from __future__ import annotations

import pytest

from signal_desk.data.models import Candle
from signal_desk.indicators.engine import IndicatorEngine

from conftest import ts


def test_flat_window_gives_neutral_readings(flat_candles):
    ind = IndicatorEngine().compute(flat_candles)
    assert ind.rsi == 50.0
    assert ind.macd_line == pytest.approx(0.0)
    assert ind.macd_hist == pytest.approx(0.0)
    assert ind.bb_upper == pytest.approx(100.0)
    assert ind.bb_lower == pytest.approx(100.0)
    assert ind.stoch_k == 50.0
    assert ind.williams_r == pytest.approx(-50.0)
    assert ind.atr == pytest.approx(0.0)
    assert ind.adx == pytest.approx(0.0)
    assert ind.cci == 0.0
    assert ind.vwap == pytest.approx(100.0)
    assert ind.unavailable() == []


def test_short_window_reports_unavailable_instead_of_raising(flat_candles):
    ind = IndicatorEngine().compute(flat_candles[:10])
    missing = ind.unavailable()
    for name in ("rsi", "macd_line", "sma", "bb_middle", "stoch_k", "atr", "adx", "cci"):
        assert name in missing
    assert ind.vwap == pytest.approx(100.0)
    assert ind.macd_bullish is False


def test_empty_window():
    ind = IndicatorEngine().compute([])
    assert ind.rsi is None
    assert ind.vwap is None


def test_rsi_saturates_on_monotonic_rise():
    candles = [Candle(ts(i), 100 + i, 101 + i, 99 + i, 100.5 + i, 10.0) for i in range(40)]
    ind = IndicatorEngine().compute(candles)
    assert ind.rsi == 100.0
    assert ind.macd_bullish is True


def test_engulfing_window_readings(engulfing_candles):
    ind = IndicatorEngine().compute(engulfing_candles)
    assert ind.rsi_prev == pytest.approx(0.0)
    assert 45 < ind.rsi < 51
    assert ind.macd_line_prev < ind.macd_signal_prev
    assert ind.macd_line > ind.macd_signal
    assert ind.bb_middle == pytest.approx(100.5175, abs=1e-3)
    assert ind.stoch_k == pytest.approx(84.375, abs=0.01)


def test_compute_is_deterministic(engulfing_candles):
    engine = IndicatorEngine()
    assert engine.compute(engulfing_candles) == engine.compute(list(engulfing_candles))


def test_zero_volume_has_no_vwap():
    candles = [Candle(ts(i), 1.0, 1.0, 1.0, 1.0, 0.0) for i in range(5)]
    assert IndicatorEngine().compute(candles).vwap is None
