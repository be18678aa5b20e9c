from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from signal_desk.data.models import Candle
from signal_desk.persistence.signals import PersistedSignal, SignalPersistenceStore, SignalStatus
from signal_desk.signals.models import Outcome, SignalType
from signal_desk.tracking.performance import PerformanceTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Resolution:
    record_id: str
    status: SignalStatus
    outcome: Outcome
    exit_price: float
    pnl: float


class OutcomeResolver:
    """Settle ACTIVE signals against the price action that followed them.

    Within a single candle the stop is checked before the target, so a bar
    that spans both counts as a loss. Signals still open after the expiry
    horizon are closed at the mark price.
    """

    def __init__(
        self,
        persistence: SignalPersistenceStore,
        tracker: PerformanceTracker | None = None,
        expiry_hours: float = 4.0,
    ) -> None:
        self._persistence = persistence
        self._tracker = tracker
        self._expiry_ms = int(expiry_hours * 3_600_000)

    def resolve(
        self,
        pair: str,
        candles: Sequence[Candle],
        now_ms: int,
        mark_price: float | None = None,
    ) -> List[Resolution]:
        resolutions: List[Resolution] = []
        for record in self._persistence.active():
            if record.pair != pair:
                continue
            resolution = self.evaluate(record, candles, now_ms, mark_price)
            if resolution is None:
                continue
            if self._apply(record, resolution, now_ms):
                resolutions.append(resolution)
        return resolutions

    def evaluate(
        self,
        record: PersistedSignal,
        candles: Sequence[Candle],
        now_ms: int,
        mark_price: float | None = None,
    ) -> Optional[Resolution]:
        signal = record.signal
        if not signal.is_directional:
            return None
        buy = signal.type == SignalType.BUY
        for candle in candles:
            if candle.timestamp < record.entry_time:
                continue
            stop_hit = candle.low <= signal.stop_loss if buy else candle.high >= signal.stop_loss
            if stop_hit:
                return self._build(record, SignalStatus.HIT_SL, signal.stop_loss)
            target_hit = candle.high >= signal.take_profit if buy else candle.low <= signal.take_profit
            if target_hit:
                return self._build(record, SignalStatus.HIT_TP, signal.take_profit)

        if now_ms - record.entry_time < self._expiry_ms:
            return None
        exit_price = mark_price
        if exit_price is None and candles:
            exit_price = candles[-1].close
        if exit_price is None:
            exit_price = signal.entry
        return self._build(record, SignalStatus.EXPIRED, exit_price)

    @staticmethod
    def _build(record: PersistedSignal, status: SignalStatus, exit_price: float) -> Resolution:
        signal = record.signal
        direction = 1.0 if signal.type == SignalType.BUY else -1.0
        pnl = (exit_price - signal.entry) * signal.position_size * direction - signal.trading_fees
        if status is SignalStatus.HIT_TP:
            outcome = Outcome.WIN
        elif status is SignalStatus.HIT_SL:
            outcome = Outcome.LOSS
        else:
            outcome = Outcome.WIN if pnl > 0 else Outcome.LOSS
        return Resolution(
            record_id=record.id,
            status=status,
            outcome=outcome,
            exit_price=exit_price,
            pnl=round(pnl, 6),
        )

    def _apply(self, record: PersistedSignal, resolution: Resolution, now_ms: int) -> bool:
        updated = self._persistence.update_status(
            record.id,
            resolution.status,
            outcome=resolution.outcome,
            exit_price=resolution.exit_price,
            pnl=resolution.pnl,
        )
        if not updated:
            return False
        logger.info(
            "%s %s closed %s at %.4f (pnl %.2f)",
            record.pair,
            record.signal.type.value,
            resolution.status.value,
            resolution.exit_price,
            resolution.pnl,
        )
        if self._tracker is not None:
            tracked = self._tracker.find_by_record(record.id)
            if tracked is not None:
                self._tracker.resolve(
                    tracked.id,
                    resolution.outcome,
                    exit_price=resolution.exit_price,
                    exit_reason=resolution.status.value,
                    now_ms=now_ms,
                )
        return True
