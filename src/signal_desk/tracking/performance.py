"""Win/loss bookkeeping for tracked signals."""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from signal_desk.persistence.kv import KeyValueStore, read_json_list, write_json
from signal_desk.signals.models import Outcome, Signal, SignalType

logger = logging.getLogger(__name__)

PROFIT_FACTOR_CAP = 999.0
RECENT_LIMIT = 10


class TrackingStatus(str, Enum):
    PENDING = "PENDING"
    WIN = "WIN"
    LOSS = "LOSS"


@dataclass(frozen=True, slots=True)
class PerformanceRecord:
    id: str
    pair: str
    signal_type: SignalType
    entry: float
    stop_loss: float
    take_profit: float
    confidence: float
    timestamp: int  # ms
    status: TrackingStatus = TrackingStatus.PENDING
    record_id: Optional[str] = None  # PersistedSignal id, when saved
    actual_return: Optional[float] = None  # %
    exit_price: Optional[float] = None
    exit_reason: Optional[str] = None
    resolved_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["signal_type"] = self.signal_type.value
        payload["status"] = self.status.value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PerformanceRecord":
        data = dict(payload)
        data["signal_type"] = SignalType(data["signal_type"])
        data["status"] = TrackingStatus(data["status"])
        return cls(**data)


@dataclass(frozen=True, slots=True)
class PerformanceMetrics:
    total_signals: int = 0
    completed_signals: int = 0
    pending_signals: int = 0
    win_rate: float = 0.0  # %
    average_return: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    best_return: float = 0.0
    worst_return: float = 0.0
    profit_factor: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    longest_win_streak: int = 0
    longest_loss_streak: int = 0
    recent: Tuple[PerformanceRecord, ...] = field(default_factory=tuple)


def directional_return(signal_type: SignalType, entry: float, exit_price: float) -> float:
    if entry <= 0:
        return 0.0
    change = (exit_price - entry) / entry * 100
    return change if signal_type == SignalType.BUY else -change


class PerformanceTracker:
    """Records outcomes it is told about; it never polls prices itself.

    Metrics are recomputed from the full history on every call.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = "signal_performance_tracking",
        max_records: int = 1000,
        duplicate_window_seconds: float = 10.0,
    ) -> None:
        self._store = store
        self._key = key
        self._max_records = max_records
        self._duplicate_window_ms = int(duplicate_window_seconds * 1000)
        self._records: List[PerformanceRecord] = self._load()

    def start_tracking(
        self,
        signal: Signal,
        pair: str,
        now_ms: int,
        record_id: str | None = None,
    ) -> PerformanceRecord | None:
        if not signal.is_directional:
            return None
        for existing in reversed(self._records):
            if (
                existing.pair == pair
                and existing.signal_type == signal.type
                and abs(now_ms - existing.timestamp) < self._duplicate_window_ms
            ):
                logger.debug("Already tracking %s %s", signal.type.value, pair)
                return None
        record = PerformanceRecord(
            id=f"perf-{now_ms}-{uuid.uuid4().hex[:9]}",
            pair=pair,
            signal_type=signal.type,
            entry=signal.entry,
            stop_loss=signal.stop_loss,
            take_profit=signal.take_profit,
            confidence=signal.confidence,
            timestamp=now_ms,
            record_id=record_id,
        )
        self._records.append(record)
        if len(self._records) > self._max_records:
            del self._records[: len(self._records) - self._max_records]
        self._save()
        logger.info("Tracking %s %s (%s)", signal.type.value, pair, record.id)
        return record

    def resolve(
        self,
        tracking_id: str,
        outcome: Outcome,
        actual_return: float | None = None,
        exit_price: float | None = None,
        exit_reason: str | None = None,
        now_ms: int | None = None,
    ) -> bool:
        for idx, record in enumerate(self._records):
            if record.id != tracking_id:
                continue
            if record.status is not TrackingStatus.PENDING:
                return False
            if exit_price is None:
                exit_price = record.take_profit if outcome is Outcome.WIN else record.stop_loss
            if actual_return is None:
                actual_return = directional_return(record.signal_type, record.entry, exit_price)
            self._records[idx] = replace(
                record,
                status=TrackingStatus(outcome.value),
                actual_return=actual_return,
                exit_price=exit_price,
                exit_reason=exit_reason or ("target" if outcome is Outcome.WIN else "stop"),
                resolved_at=now_ms,
            )
            self._save()
            logger.info("Resolved %s as %s (%.2f%%)", tracking_id, outcome.value, actual_return)
            return True
        return False

    def find_by_record(self, record_id: str) -> PerformanceRecord | None:
        return next((r for r in self._records if r.record_id == record_id), None)

    def pending(self) -> List[PerformanceRecord]:
        return [r for r in self._records if r.status is TrackingStatus.PENDING]

    def records(self) -> List[PerformanceRecord]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()
        self._save()

    def metrics(self, pair: str | None = None) -> PerformanceMetrics:
        scoped = [r for r in self._records if pair is None or r.pair == pair]
        completed = sorted(
            (r for r in scoped if r.status is not TrackingStatus.PENDING),
            key=lambda r: (r.resolved_at or r.timestamp, r.timestamp),
        )
        recent = tuple(sorted(scoped, key=lambda r: r.timestamp)[-RECENT_LIMIT:][::-1])
        if not completed:
            return PerformanceMetrics(
                total_signals=len(scoped),
                pending_signals=len(scoped),
                recent=recent,
            )

        returns = pd.Series([r.actual_return or 0.0 for r in completed], dtype=float)
        wins = [r for r in completed if r.status is TrackingStatus.WIN]
        losses = [r for r in completed if r.status is TrackingStatus.LOSS]
        win_returns = pd.Series([r.actual_return or 0.0 for r in wins], dtype=float)
        loss_returns = pd.Series([r.actual_return or 0.0 for r in losses], dtype=float)

        gross_win = float(win_returns.clip(lower=0).sum())
        gross_loss = abs(float(loss_returns.clip(upper=0).sum()))
        if gross_loss > 0:
            profit_factor = min(gross_win / gross_loss, PROFIT_FACTOR_CAP)
        else:
            profit_factor = PROFIT_FACTOR_CAP if gross_win > 0 else 0.0

        std = float(returns.std(ddof=1)) if len(returns) > 1 else 0.0
        sharpe = float(returns.mean()) / std if std > 0 else 0.0

        equity = returns.cumsum()
        peak = equity.cummax().clip(lower=0.0)
        max_drawdown = float((peak - equity).max())

        win_streak, loss_streak = _longest_streaks([r.status for r in completed])
        return PerformanceMetrics(
            total_signals=len(scoped),
            completed_signals=len(completed),
            pending_signals=len(scoped) - len(completed),
            win_rate=len(wins) / len(completed) * 100,
            average_return=float(returns.mean()),
            average_win=float(win_returns.mean()) if len(win_returns) else 0.0,
            average_loss=float(loss_returns.mean()) if len(loss_returns) else 0.0,
            best_return=float(returns.max()),
            worst_return=float(returns.min()),
            profit_factor=profit_factor,
            sharpe_ratio=sharpe,
            max_drawdown=max(max_drawdown, 0.0),
            longest_win_streak=win_streak,
            longest_loss_streak=loss_streak,
            recent=recent,
        )

    def _load(self) -> List[PerformanceRecord]:
        records: List[PerformanceRecord] = []
        for item in read_json_list(self._store, self._key):
            try:
                records.append(PerformanceRecord.from_dict(item))
            except (KeyError, TypeError, ValueError):
                continue
        return records[-self._max_records :]

    def _save(self) -> None:
        write_json(self._store, self._key, [r.to_dict() for r in self._records])


def _longest_streaks(statuses: List[TrackingStatus]) -> Tuple[int, int]:
    best_win = best_loss = current_win = current_loss = 0
    for status in statuses:
        if status is TrackingStatus.WIN:
            current_win += 1
            current_loss = 0
        else:
            current_loss += 1
            current_win = 0
        best_win = max(best_win, current_win)
        best_loss = max(best_loss, current_loss)
    return best_win, best_loss
