from __future__ import annotations

import pytest

from signal_desk.data.models import Candle
from signal_desk.persistence.kv import MemoryKeyValueStore
from signal_desk.persistence.signals import SignalPersistenceStore, SignalStatus
from signal_desk.signals.models import Outcome, SignalType
from signal_desk.tracking.performance import PerformanceTracker, TrackingStatus
from signal_desk.tracking.resolver import OutcomeResolver

from conftest import HOUR_MS, make_signal

ENTRY_MS = 10 * HOUR_MS


def _bar(offset_hours, high, low, close=100.0):
    return Candle(ENTRY_MS + offset_hours * HOUR_MS, 100.0, high, low, close, 100.0)


@pytest.fixture
def setup():
    persistence = SignalPersistenceStore(MemoryKeyValueStore())
    tracker = PerformanceTracker(MemoryKeyValueStore())
    resolver = OutcomeResolver(persistence, tracker, expiry_hours=4)
    return persistence, tracker, resolver


def test_target_hit(setup):
    persistence, _, resolver = setup
    record = persistence.append(make_signal(), "BTC/USDT", ENTRY_MS)
    candles = [_bar(0, 101.0, 99.5), _bar(1, 104.5, 100.5)]
    [resolution] = resolver.resolve("BTC/USDT", candles, ENTRY_MS + HOUR_MS)
    assert resolution.status == SignalStatus.HIT_TP
    assert resolution.outcome == Outcome.WIN
    assert resolution.exit_price == 104.0
    # 4 points on 250 units less 2 in fees
    assert resolution.pnl == pytest.approx(998.0)
    assert persistence.get(record.id).status == SignalStatus.HIT_TP


def test_stop_checked_before_target(setup):
    persistence, _, resolver = setup
    persistence.append(make_signal(), "BTC/USDT", ENTRY_MS)
    [resolution] = resolver.resolve("BTC/USDT", [_bar(0, 105.0, 97.0)], ENTRY_MS)
    assert resolution.status == SignalStatus.HIT_SL
    assert resolution.outcome == Outcome.LOSS
    assert resolution.pnl == pytest.approx(-502.0)


def test_sell_levels_mirror(setup):
    persistence, _, resolver = setup
    signal = make_signal(type=SignalType.SELL, stop_loss=102.0, take_profit=96.0)
    persistence.append(signal, "ETH/USDT", ENTRY_MS)
    [resolution] = resolver.resolve("ETH/USDT", [_bar(0, 100.5, 95.5)], ENTRY_MS)
    assert resolution.status == SignalStatus.HIT_TP
    assert resolution.pnl == pytest.approx(998.0)


def test_candles_before_entry_are_ignored(setup):
    persistence, _, resolver = setup
    persistence.append(make_signal(), "BTC/USDT", ENTRY_MS)
    assert resolver.resolve("BTC/USDT", [_bar(-1, 110.0, 90.0)], ENTRY_MS + HOUR_MS) == []
    assert len(persistence.active()) == 1


def test_expiry_closes_at_mark(setup):
    persistence, _, resolver = setup
    persistence.append(make_signal(), "BTC/USDT", ENTRY_MS)
    quiet = [_bar(0, 100.5, 99.5)]
    assert resolver.resolve("BTC/USDT", quiet, ENTRY_MS + 3 * HOUR_MS) == []
    [resolution] = resolver.resolve("BTC/USDT", quiet, ENTRY_MS + 4 * HOUR_MS, mark_price=101.0)
    assert resolution.status == SignalStatus.EXPIRED
    assert resolution.exit_price == 101.0
    assert resolution.outcome == Outcome.WIN


def test_expiry_without_mark_uses_last_close(setup):
    persistence, _, resolver = setup
    persistence.append(make_signal(), "BTC/USDT", ENTRY_MS)
    [resolution] = resolver.resolve("BTC/USDT", [_bar(0, 100.5, 99.5, close=99.9)], ENTRY_MS + 5 * HOUR_MS)
    assert resolution.exit_price == 99.9
    assert resolution.outcome == Outcome.LOSS


def test_terminal_records_are_not_resolved_again(setup):
    persistence, _, resolver = setup
    persistence.append(make_signal(), "BTC/USDT", ENTRY_MS)
    candles = [_bar(0, 104.5, 100.5)]
    assert len(resolver.resolve("BTC/USDT", candles, ENTRY_MS)) == 1
    assert resolver.resolve("BTC/USDT", candles, ENTRY_MS) == []


def test_other_pairs_untouched(setup):
    persistence, _, resolver = setup
    persistence.append(make_signal(), "ETH/USDT", ENTRY_MS)
    assert resolver.resolve("BTC/USDT", [_bar(0, 104.5, 100.5)], ENTRY_MS) == []


def test_tracker_follows_resolution(setup):
    persistence, tracker, resolver = setup
    signal = make_signal()
    record = persistence.append(signal, "BTC/USDT", ENTRY_MS)
    tracked = tracker.start_tracking(signal, "BTC/USDT", ENTRY_MS, record_id=record.id)
    resolver.resolve("BTC/USDT", [_bar(0, 100.5, 97.5)], ENTRY_MS + HOUR_MS)
    [updated] = tracker.records()
    assert updated.id == tracked.id
    assert updated.status == TrackingStatus.LOSS
    assert updated.exit_reason == "HIT_SL"
    assert updated.actual_return == pytest.approx(-2.0)
    assert updated.resolved_at == ENTRY_MS + HOUR_MS
