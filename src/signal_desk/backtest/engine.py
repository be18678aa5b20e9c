"""Replay the signal pipeline over historical candles."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from signal_desk.config.models import AppConfig
from signal_desk.data.models import Candle, MarketSnapshot
from signal_desk.errors import InsufficientDataError
from signal_desk.persistence.kv import MemoryKeyValueStore
from signal_desk.persistence.signals import PersistedSignal, SignalPersistenceStore
from signal_desk.pipeline.context import PipelineContext
from signal_desk.pipeline.coordinator import SignalCoordinator
from signal_desk.tracking.performance import PerformanceMetrics, PerformanceTracker
from signal_desk.tracking.resolver import OutcomeResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BacktestReport:
    pair: str
    candles: int
    evaluations: int
    trades: Tuple[PersistedSignal, ...]
    metrics: PerformanceMetrics
    total_pnl: float
    kelly_fraction: float
    blocked: int = 0  # accepted while max_open_trades were already open
    pipeline: dict = field(default_factory=dict)


def kelly_fraction(win_rate: float, average_win: float, average_loss: float, cap: float = 1.0) -> float:
    """Kelly stake from a win rate in percent and average returns, clamped to [0, cap]."""
    p = win_rate / 100
    if p <= 0 or average_win <= 0:
        return 0.0
    if average_loss >= 0:
        return min(p, cap)
    payoff = average_win / abs(average_loss)
    return max(0.0, min(p - (1 - p) / payoff, cap))


class Backtester:
    """Walk a candle history bar by bar through a fresh pipeline.

    Each bar is evaluated at its close with the trailing ``candle_limit``
    window. Accepted signals open trades that are settled by the bars that
    follow, exactly as the live resolver settles them: stop before target,
    expiry at the bar close. Trades still open when the history runs out are
    closed at the last close. Signals are generated only for bars inside
    ``[start_ms, end_ms]``; trades keep being managed until the end.
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    def run(
        self,
        pair: str,
        candles: Sequence[Candle],
        volume24h: float | None = None,
        start_ms: int | None = None,
        end_ms: int | None = None,
    ) -> BacktestReport:
        data = self._config.data
        settings = self._config.backtest
        first = max(settings.warmup_candles, data.min_candles) - 1
        if len(candles) <= first:
            raise InsufficientDataError(
                f"backtest needs more than {first} candles for {pair}, got {len(candles)}"
            )

        coordinator = SignalCoordinator(self._config, PipelineContext.from_config(self._config))
        persistence = SignalPersistenceStore(MemoryKeyValueStore(), max_records=len(candles))
        tracker = PerformanceTracker(
            MemoryKeyValueStore(),
            max_records=len(candles),
            duplicate_window_seconds=self._config.tracking.duplicate_window_seconds,
        )
        resolver = OutcomeResolver(persistence, tracker, expiry_hours=self._config.tracking.expiry_hours)

        evaluations = 0
        blocked = 0
        for idx in range(first, len(candles)):
            candle = candles[idx]
            close_ms = _close_time(candles, idx)
            resolver.resolve(pair, [candle], close_ms, mark_price=candle.close)

            if start_ms is not None and candle.timestamp < start_ms:
                continue
            if end_ms is not None and candle.timestamp > end_ms:
                continue
            window = candles[max(0, idx + 1 - data.candle_limit) : idx + 1]
            snapshot = _snapshot(pair, candle, volume24h)
            result = coordinator.evaluate(pair, window, close_ms, snapshot)
            evaluations += 1
            if result is None or not result.should_save:
                continue
            open_trades = sum(1 for r in persistence.active() if r.pair == pair)
            if open_trades >= settings.max_open_trades:
                blocked += 1
                logger.debug("Skipping %s trade at %d: %d already open", pair, close_ms, open_trades)
                continue
            record = persistence.append(result.signal, pair, close_ms)
            tracker.start_tracking(result.signal, pair, close_ms, record_id=record.id)

        last = candles[-1]
        closing = OutcomeResolver(persistence, tracker, expiry_hours=0.0)
        closing.resolve(pair, [], _close_time(candles, len(candles) - 1), mark_price=last.close)

        trades = tuple(persistence.list())
        metrics = tracker.metrics(pair)
        total_pnl = sum(t.pnl or 0.0 for t in trades)
        kelly = kelly_fraction(metrics.win_rate, metrics.average_win, metrics.average_loss, settings.kelly_cap)
        logger.info(
            "Backtest %s: %d evaluations, %d trades, win rate %.1f%%, pnl %.2f",
            pair,
            evaluations,
            len(trades),
            metrics.win_rate,
            total_pnl,
        )
        return BacktestReport(
            pair=pair,
            candles=len(candles),
            evaluations=evaluations,
            trades=trades,
            metrics=metrics,
            total_pnl=round(total_pnl, 6),
            kelly_fraction=kelly,
            blocked=blocked,
            pipeline=coordinator.stats(),
        )


def _close_time(candles: Sequence[Candle], idx: int) -> int:
    if idx + 1 < len(candles):
        return candles[idx + 1].timestamp
    step = candles[idx].timestamp - candles[idx - 1].timestamp if idx > 0 else 0
    return candles[idx].timestamp + step


def _snapshot(pair: str, candle: Candle, volume24h: Optional[float]) -> Optional[MarketSnapshot]:
    if volume24h is None:
        return None
    return MarketSnapshot(
        symbol=pair,
        price=candle.close,
        volume24h=volume24h,
        high24h=candle.high,
        low24h=candle.low,
        change_percent24h=0.0,
    )
