from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Iterable, List, Optional

from signal_desk.config.models import AppConfig
from signal_desk.data.models import Candle, CandleWindow, MarketSnapshot
from signal_desk.data.provider_base import TimeProvider
from signal_desk.persistence.signals import PersistedSignal, SignalPersistenceStore
from signal_desk.pipeline.coordinator import CoordinatorResult, SignalCoordinator
from signal_desk.pipeline.scheduler import EvaluationScheduler
from signal_desk.signals.models import Signal
from signal_desk.tracking.performance import PerformanceTracker

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    signal: Signal
    pair: str
    timestamp: int  # ms
    saved: bool
    reason: str


class SignalDesk:
    """Everything a display needs: the selected pair's current signal, the
    recent displayed history, and the persisted signals.

    Only the selected pair is evaluated. Switching pairs cancels outstanding
    work for the previous one so its late results are never shown or saved.
    """

    def __init__(
        self,
        config: AppConfig,
        coordinator: SignalCoordinator,
        persistence: SignalPersistenceStore,
        time_provider: TimeProvider,
        tracker: PerformanceTracker | None = None,
        listeners: Iterable[Callable[[str, CoordinatorResult], None]] = (),
    ) -> None:
        self._config = config
        self._coordinator = coordinator
        self._persistence = persistence
        self._tracker = tracker
        self._time = time_provider
        self._listeners = list(listeners)
        self.selected_pair = config.data.selected_pair
        self.current_signal: Optional[Signal] = None
        self.current_result: Optional[CoordinatorResult] = None
        self.signal_history: Deque[HistoryEntry] = deque(maxlen=HISTORY_LIMIT)
        self._windows: Dict[str, CandleWindow] = {}
        self._snapshots: Dict[str, MarketSnapshot] = {}
        self.scheduler = EvaluationScheduler(
            coordinator,
            self.apply,
            time_provider,
            debounce_seconds=config.coordinator.debounce_seconds,
        )

    @property
    def persisted_signals(self) -> List[PersistedSignal]:
        return self._persistence.list()

    def select_pair(self, pair: str) -> None:
        if pair == self.selected_pair:
            return
        previous = self.selected_pair
        self.scheduler.cancel(previous)
        self.selected_pair = pair
        self.current_signal = None
        self.current_result = None
        logger.info("Selected pair %s -> %s", previous, pair)
        window = self._windows.get(pair)
        if window is not None and len(window):
            self.scheduler.submit(pair, window.candles(), self._snapshots.get(pair))

    def update_snapshots(self, snapshots: Iterable[MarketSnapshot]) -> None:
        for snapshot in snapshots:
            self._snapshots[snapshot.symbol] = snapshot

    def snapshot(self, pair: str) -> MarketSnapshot | None:
        return self._snapshots.get(pair)

    def candles(self, pair: str) -> List[Candle]:
        window = self._windows.get(pair)
        return window.candles() if window is not None else []

    def update_candles(self, pair: str, candles: Iterable[Candle]) -> int:
        window = self._windows.setdefault(pair, CandleWindow(self._config.data.candle_limit))
        added = window.extend(candles)
        if added and pair == self.selected_pair:
            self.scheduler.submit(pair, window.candles(), self._snapshots.get(pair))
        return added

    def apply(self, pair: str, result: CoordinatorResult) -> None:
        if pair != self.selected_pair:
            logger.debug("Dropping result for %s; %s is selected", pair, self.selected_pair)
            return
        now_ms = self._time.now_ms()
        self.current_signal = result.signal
        self.current_result = result
        if result.signal.is_directional:
            self.signal_history.append(
                HistoryEntry(
                    signal=result.signal,
                    pair=pair,
                    timestamp=now_ms,
                    saved=result.should_save,
                    reason=result.processing_reason,
                )
            )
        if result.should_save:
            record = self._persistence.append(result.signal, pair, now_ms)
            if result.should_track and self._tracker is not None:
                self._tracker.start_tracking(result.signal, pair, now_ms, record_id=record.id)
        for listener in self._listeners:
            listener(pair, result)

    def clear(self) -> None:
        self.scheduler.cancel_all()
        self.current_signal = None
        self.current_result = None
        self.signal_history.clear()
        self._coordinator.clear()
        self._persistence.clear_all()
        if self._tracker is not None:
            self._tracker.clear()
