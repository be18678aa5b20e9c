"""Bounded, append-only history of accepted signals."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from signal_desk.errors import PersistenceError
from signal_desk.persistence.kv import KeyValueStore, read_json_list, write_json
from signal_desk.signals.models import Outcome, Signal

logger = logging.getLogger(__name__)


class SignalStatus(str, Enum):
    ACTIVE = "ACTIVE"
    HIT_TP = "HIT_TP"
    HIT_SL = "HIT_SL"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self is not SignalStatus.ACTIVE


@dataclass(frozen=True, slots=True)
class PersistedSignal:
    id: str
    pair: str
    timestamp: int  # ms
    signal: Signal
    status: SignalStatus
    entry_time: int  # ms
    outcome: Optional[Outcome] = None
    exit_price: Optional[float] = None
    pnl: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = self.signal.to_dict()
        payload.update(
            id=self.id,
            pair=self.pair,
            timestamp=self.timestamp,
            status=self.status.value,
            entry_time=self.entry_time,
            outcome=self.outcome.value if self.outcome else None,
            exit_price=self.exit_price,
            pnl=self.pnl,
        )
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PersistedSignal":
        outcome = payload.get("outcome")
        exit_price = payload.get("exit_price")
        pnl = payload.get("pnl")
        return cls(
            id=str(payload["id"]),
            pair=str(payload["pair"]),
            timestamp=int(payload["timestamp"]),
            signal=Signal.from_dict(payload),
            status=SignalStatus(payload["status"]),
            entry_time=int(payload.get("entry_time", payload["timestamp"])),
            outcome=Outcome(outcome) if outcome else None,
            exit_price=float(exit_price) if exit_price is not None else None,
            pnl=float(pnl) if pnl is not None else None,
        )


def new_record_id(pair: str, now_ms: int) -> str:
    return f"{pair}-{now_ms}-{uuid.uuid4().hex[:9]}"


class SignalPersistenceStore:
    """In-memory history mirrored to a key-value store.

    The in-memory list is authoritative; a failed write is logged and the
    next successful write carries the full history again.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = "trading_signals_history",
        max_records: int = 500,
        write_attempts: int = 2,
    ) -> None:
        self._store = store
        self._key = key
        self._max_records = max_records
        self._write_attempts = write_attempts
        self._records: List[PersistedSignal] = self._load()

    def append(self, signal: Signal, pair: str, now_ms: int) -> PersistedSignal:
        record = PersistedSignal(
            id=new_record_id(pair, now_ms),
            pair=pair,
            timestamp=now_ms,
            signal=signal,
            status=SignalStatus.ACTIVE,
            entry_time=now_ms,
        )
        self._records.append(record)
        self._records.sort(key=lambda r: r.timestamp)
        overflow = len(self._records) - self._max_records
        if overflow > 0:
            del self._records[:overflow]
        self._save()
        logger.info("Persisted %s %s as %s", signal.type.value, pair, record.id)
        return record

    def update_status(
        self,
        record_id: str,
        status: SignalStatus,
        outcome: Outcome | None = None,
        exit_price: float | None = None,
        pnl: float | None = None,
    ) -> bool:
        for idx, record in enumerate(self._records):
            if record.id != record_id:
                continue
            if record.status.is_terminal:
                logger.debug("Ignoring %s for %s: already %s", status.value, record_id, record.status.value)
                return False
            self._records[idx] = replace(
                record, status=status, outcome=outcome, exit_price=exit_price, pnl=pnl
            )
            self._save()
            return True
        return False

    def get(self, record_id: str) -> PersistedSignal | None:
        return next((r for r in self._records if r.id == record_id), None)

    def active(self) -> List[PersistedSignal]:
        return [r for r in self._records if r.status is SignalStatus.ACTIVE]

    def list(self) -> List[PersistedSignal]:
        return list(self._records)

    def clear_all(self) -> None:
        self._records.clear()
        try:
            self._store.delete(self._key)
        except PersistenceError as exc:
            logger.warning("Failed to clear signal history: %s", exc)

    def __len__(self) -> int:
        return len(self._records)

    def _load(self) -> List[PersistedSignal]:
        records: List[PersistedSignal] = []
        dropped = 0
        for item in read_json_list(self._store, self._key):
            try:
                records.append(PersistedSignal.from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError):
                dropped += 1
        if dropped:
            logger.warning("Dropped %d malformed signal records", dropped)
        records.sort(key=lambda r: r.timestamp)
        return records[-self._max_records :]

    def _save(self) -> None:
        write_json(self._store, self._key, [r.to_dict() for r in self._records], self._write_attempts)
