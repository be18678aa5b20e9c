from __future__ import annotations

import asyncio

import pytest

from signal_desk.persistence.kv import MemoryKeyValueStore
from signal_desk.persistence.signals import SignalPersistenceStore
from signal_desk.pipeline.coordinator import SignalCoordinator
from signal_desk.pipeline.desk import SignalDesk
from signal_desk.pipeline.scheduler import EvaluationScheduler
from signal_desk.signals.models import SignalType
from signal_desk.tracking.performance import PerformanceTracker

from conftest import make_snapshot


class GatedCoordinator(SignalCoordinator):
    """Holds every evaluation until ``gate`` is set."""

    def __init__(self, config):
        super().__init__(config)
        self.gate = asyncio.Event()
        self.calls = []

    async def prepare_async(self, pair, candles, snapshot=None):
        self.calls.append((pair, len(candles)))
        await self.gate.wait()
        return self.prepare(pair, candles, snapshot)


async def _settle(ticks: int = 5) -> None:
    for _ in range(ticks):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_debounce_collapses_bursts(config, clock, engulfing_candles):
    coordinator = GatedCoordinator(config)
    coordinator.gate.set()
    results = []
    scheduler = EvaluationScheduler(
        coordinator, lambda pair, result: results.append(result), clock, debounce_seconds=0.01
    )
    for size in (100, 150, 200):
        scheduler.submit("BTC/USDT", engulfing_candles[-size:], make_snapshot())
    await scheduler.drain()

    assert coordinator.calls == [("BTC/USDT", 200)]
    assert len(results) == 1
    assert scheduler.stats.submitted == 3
    assert scheduler.stats.dispatched == 1


@pytest.mark.asyncio
async def test_requests_during_evaluation_collapse_to_latest(config, clock, engulfing_candles):
    coordinator = GatedCoordinator(config)
    results = []
    scheduler = EvaluationScheduler(
        coordinator, lambda pair, result: results.append(result), clock, debounce_seconds=0
    )
    scheduler.submit("BTC/USDT", engulfing_candles, make_snapshot())
    await _settle()
    assert scheduler.in_flight("BTC/USDT")

    scheduler.submit("BTC/USDT", engulfing_candles[-150:], make_snapshot())
    await _settle()
    scheduler.submit("BTC/USDT", engulfing_candles[-120:], make_snapshot())
    await _settle()
    assert coordinator.calls == [("BTC/USDT", 200)]

    coordinator.gate.set()
    await scheduler.drain()

    assert coordinator.calls == [("BTC/USDT", 200), ("BTC/USDT", 120)]
    assert scheduler.stats.collapsed == 1
    assert scheduler.stats.completed == 2
    assert len(results) == 2
    assert not scheduler.in_flight("BTC/USDT")


@pytest.mark.asyncio
async def test_pair_switch_discards_inflight_result(config, clock, engulfing_candles):
    config.coordinator.debounce_seconds = 0
    coordinator = GatedCoordinator(config)
    persistence = SignalPersistenceStore(MemoryKeyValueStore())
    tracker = PerformanceTracker(MemoryKeyValueStore())
    seen = []
    desk = SignalDesk(
        config,
        coordinator,
        persistence,
        clock,
        tracker=tracker,
        listeners=[lambda pair, result: seen.append(pair)],
    )
    desk.update_snapshots([make_snapshot("BTC/USDT")])
    assert desk.update_candles("BTC/USDT", engulfing_candles) == 200
    await _settle()
    assert desk.scheduler.in_flight("BTC/USDT")

    desk.select_pair("ETH/USDT")
    coordinator.gate.set()
    await desk.scheduler.drain()

    assert desk.current_signal is None
    assert desk.persisted_signals == []
    assert seen == []
    assert desk.scheduler.stats.discarded == 1

    desk.update_snapshots([make_snapshot("ETH/USDT")])
    desk.update_candles("ETH/USDT", engulfing_candles)
    await desk.scheduler.drain()

    assert desk.current_signal.type == SignalType.BUY
    assert [r.pair for r in desk.persisted_signals] == ["ETH/USDT"]
    assert [r.pair for r in tracker.records()] == ["ETH/USDT"]
    assert tracker.records()[0].record_id == desk.persisted_signals[0].id
    assert seen == ["ETH/USDT"]
    assert [entry.pair for entry in desk.signal_history] == ["ETH/USDT"]


@pytest.mark.asyncio
async def test_unselected_pair_updates_are_not_evaluated(config, clock, engulfing_candles):
    config.coordinator.debounce_seconds = 0
    coordinator = GatedCoordinator(config)
    coordinator.gate.set()
    desk = SignalDesk(config, coordinator, SignalPersistenceStore(MemoryKeyValueStore()), clock)
    assert desk.update_candles("SOL/USDT", engulfing_candles) == 200
    await desk.scheduler.drain()
    assert coordinator.calls == []
    # re-sent candles add nothing and trigger nothing
    assert desk.update_candles("SOL/USDT", engulfing_candles) == 0

    desk.select_pair("SOL/USDT")
    await desk.scheduler.drain()
    assert coordinator.calls == [("SOL/USDT", 200)]


@pytest.mark.asyncio
async def test_cancel_before_debounce_fires(config, clock, engulfing_candles):
    coordinator = GatedCoordinator(config)
    coordinator.gate.set()
    scheduler = EvaluationScheduler(coordinator, lambda pair, result: None, clock, debounce_seconds=0.05)
    scheduler.submit("BTC/USDT", engulfing_candles, make_snapshot())
    scheduler.cancel("BTC/USDT")
    await scheduler.drain()
    assert coordinator.calls == []


@pytest.mark.asyncio
async def test_failing_handler_does_not_drop_parked_request(config, clock, engulfing_candles):
    coordinator = GatedCoordinator(config)
    results = []

    def handler(pair, result):
        results.append(result)
        if len(results) == 1:
            raise RuntimeError("render failed")

    scheduler = EvaluationScheduler(coordinator, handler, clock, debounce_seconds=0)
    scheduler.submit("BTC/USDT", engulfing_candles, make_snapshot())
    await _settle()
    scheduler.submit("BTC/USDT", engulfing_candles[-150:], make_snapshot())
    await _settle()

    coordinator.gate.set()
    await scheduler.drain()

    assert coordinator.calls == [("BTC/USDT", 200), ("BTC/USDT", 150)]
    assert len(results) == 2
    assert scheduler.stats.completed == 2
    assert not scheduler.in_flight("BTC/USDT")


@pytest.mark.asyncio
async def test_short_window_is_counted_as_skip(config, clock, engulfing_candles):
    coordinator = GatedCoordinator(config)
    coordinator.gate.set()
    results = []
    scheduler = EvaluationScheduler(
        coordinator, lambda pair, result: results.append(result), clock, debounce_seconds=0
    )
    scheduler.submit("BTC/USDT", engulfing_candles[:10], make_snapshot())
    await scheduler.drain()

    assert coordinator.calls == [("BTC/USDT", 10)]
    assert results == []
    assert scheduler.stats.completed == 0
    assert coordinator.stats()["skipped"] == 1
