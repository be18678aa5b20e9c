from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from signal_desk.config.models import AppConfig
from signal_desk.data.provider_base import MarketDataProvider, TimeProvider
from signal_desk.pipeline.desk import SignalDesk
from signal_desk.tracking.resolver import OutcomeResolver, Resolution

logger = logging.getLogger(__name__)


class DeskOrchestrator:
    def __init__(
        self,
        config: AppConfig,
        data_provider: MarketDataProvider,
        desk: SignalDesk,
        resolver: OutcomeResolver,
        time_provider: TimeProvider,
    ) -> None:
        self._config = config
        self._data_provider = data_provider
        self._desk = desk
        self._resolver = resolver
        self._time = time_provider
        self._tasks: list[asyncio.Task] = []
        self._running = False

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        data = self._config.data
        self._tasks = [
            asyncio.create_task(
                self._loop("Snapshot refresh", self.refresh_snapshots, data.snapshot_refresh_seconds),
                name="snapshot-loop",
            ),
            asyncio.create_task(
                self._loop("Candle refresh", self.refresh_candles, data.candle_refresh_seconds),
                name="candle-loop",
            ),
            asyncio.create_task(
                self._loop(
                    "Outcome resolution",
                    self.resolve_outcomes,
                    self._config.tracking.resolve_interval_seconds,
                ),
                name="resolution-loop",
            ),
        ]

    async def run_forever(self) -> None:
        await self.start()
        await self.wait_until_stopped()

    async def stop(self) -> None:
        self._running = False
        self._desk.scheduler.cancel_all()
        for task in self._tasks:
            task.cancel()
        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            self._tasks.clear()
        await self._data_provider.close()

    async def wait_until_stopped(self) -> None:
        if not self._tasks:
            return
        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        except asyncio.CancelledError:
            pass

    async def _loop(self, label: str, step: Callable[[], Awaitable[object]], interval: float) -> None:
        while self._running:
            try:
                await step()
            except Exception as exc:
                logger.exception("%s failed: %s", label, exc)
            await asyncio.sleep(interval)

    async def refresh_snapshots(self) -> int:
        snapshots = await self._data_provider.fetch_snapshots(self._config.data.pairs)
        self._desk.update_snapshots(snapshots)
        return len(snapshots)

    async def refresh_candles(self) -> int:
        pair = self._desk.selected_pair
        candles = await self._data_provider.fetch_candles(
            pair, self._config.data.interval, self._config.data.candle_limit
        )
        added = self._desk.update_candles(pair, candles)
        if added:
            logger.debug("%d new candles for %s", added, pair)
        return added

    async def resolve_outcomes(self) -> list[Resolution]:
        now_ms = self._time.now_ms()
        pairs = sorted({record.pair for record in self._desk.persisted_signals if not record.status.is_terminal})
        resolutions: list[Resolution] = []
        for pair in pairs:
            candles = self._desk.candles(pair)
            if not candles:
                candles = await self._data_provider.fetch_candles(
                    pair, self._config.data.interval, self._config.data.candle_limit
                )
            snapshot = self._desk.snapshot(pair)
            mark_price = snapshot.price if snapshot is not None else None
            resolutions.extend(self._resolver.resolve(pair, candles, now_ms, mark_price))
        return resolutions
