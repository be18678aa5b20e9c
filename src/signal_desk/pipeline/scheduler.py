"""Debounced, per-pair serialized evaluation on the asyncio loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from signal_desk.data.models import Candle, MarketSnapshot
from signal_desk.data.provider_base import TimeProvider
from signal_desk.pipeline.coordinator import CoordinatorResult, SignalCoordinator

logger = logging.getLogger(__name__)

ResultHandler = Callable[[str, CoordinatorResult], None]
Request = Tuple[Sequence[Candle], Optional[MarketSnapshot]]


@dataclass(slots=True)
class SchedulerStats:
    submitted: int = 0
    dispatched: int = 0
    collapsed: int = 0
    completed: int = 0
    discarded: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class _PairSlot:
    generation: int = 0
    timer: Optional[asyncio.Task] = None
    runner: Optional[asyncio.Task] = None
    in_flight: bool = False
    pending: Optional[Request] = None


class EvaluationScheduler:
    """Run at most one evaluation per pair at a time.

    ``submit`` restarts the pair's debounce timer. When the timer fires while
    an evaluation is already running, the request is parked and collapsed
    with any later one into a single rerun. ``cancel`` bumps the pair's
    generation so an evaluation that finishes afterwards is dropped before
    its decision is made.
    """

    def __init__(
        self,
        coordinator: SignalCoordinator,
        on_result: ResultHandler,
        time_provider: TimeProvider,
        debounce_seconds: float = 8.0,
    ) -> None:
        self._coordinator = coordinator
        self._on_result = on_result
        self._time = time_provider
        self._debounce = debounce_seconds
        self._slots: Dict[str, _PairSlot] = {}
        self.stats = SchedulerStats()

    def submit(
        self,
        pair: str,
        candles: Sequence[Candle],
        snapshot: MarketSnapshot | None = None,
    ) -> None:
        slot = self._slots.setdefault(pair, _PairSlot())
        if slot.timer is not None and not slot.timer.done():
            slot.timer.cancel()
        self.stats.submitted += 1
        slot.timer = asyncio.create_task(
            self._debounced(pair, slot.generation, (candles, snapshot)),
            name=f"debounce-{pair}",
        )

    def cancel(self, pair: str) -> None:
        slot = self._slots.get(pair)
        if slot is None:
            return
        slot.generation += 1
        slot.pending = None
        if slot.timer is not None and not slot.timer.done():
            slot.timer.cancel()
        logger.debug("Cancelled evaluations for %s (generation %d)", pair, slot.generation)

    def cancel_all(self) -> None:
        for pair in list(self._slots):
            self.cancel(pair)

    def in_flight(self, pair: str) -> bool:
        slot = self._slots.get(pair)
        return bool(slot and slot.in_flight)

    async def drain(self) -> None:
        """Wait until no timer or evaluation is outstanding."""
        while True:
            tasks = [
                task
                for slot in self._slots.values()
                for task in (slot.timer, slot.runner)
                if task is not None and not task.done()
            ]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _debounced(self, pair: str, generation: int, request: Request) -> None:
        await asyncio.sleep(self._debounce)
        self._dispatch(pair, generation, request)

    def _dispatch(self, pair: str, generation: int, request: Request) -> None:
        slot = self._slots[pair]
        if generation != slot.generation:
            self.stats.discarded += 1
            return
        if slot.in_flight:
            if slot.pending is not None:
                self.stats.collapsed += 1
            slot.pending = request
            return
        slot.in_flight = True
        self.stats.dispatched += 1
        slot.runner = asyncio.create_task(self._run(pair, generation, request), name=f"evaluate-{pair}")

    async def _run(self, pair: str, generation: int, request: Request) -> None:
        slot = self._slots[pair]
        try:
            while True:
                candles, snapshot = request
                candidate = await self._coordinator.prepare_async(pair, candles, snapshot)
                if generation != slot.generation:
                    self.stats.discarded += 1
                    logger.debug("Discarding stale evaluation for %s", pair)
                elif candidate is None:
                    self._coordinator.record_skip()
                else:
                    # decide and publish without yielding to the loop
                    result = self._coordinator.decide(candidate, self._time.now_ms())
                    self.stats.completed += 1
                    try:
                        self._on_result(pair, result)
                    except Exception as exc:
                        logger.exception("Result handler failed for %s: %s", pair, exc)
                if slot.pending is None:
                    break
                request = slot.pending
                slot.pending = None
                generation = slot.generation
                self.stats.dispatched += 1
        except Exception as exc:
            logger.exception("Evaluation loop failed for %s: %s", pair, exc)
        finally:
            slot.in_flight = False
