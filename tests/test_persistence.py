from __future__ import annotations

import json

from signal_desk.errors import PersistenceError
from signal_desk.persistence.kv import JsonFileKeyValueStore, MemoryKeyValueStore
from signal_desk.persistence.signals import SignalPersistenceStore, SignalStatus
from signal_desk.signals.models import Outcome

from conftest import make_signal

KEY = "trading_signals_history"


class FailingStore(MemoryKeyValueStore):
    def __init__(self) -> None:
        super().__init__()
        self.attempts = 0

    def set(self, key, value):
        self.attempts += 1
        raise PersistenceError("disk full")


def test_retention_drops_oldest():
    store = SignalPersistenceStore(MemoryKeyValueStore(), KEY, max_records=5)
    for i in range(8):
        store.append(make_signal(), "BTC/USDT", 1_000 + i)
    records = store.list()
    assert len(records) == 5
    assert [r.timestamp for r in records] == [1_003, 1_004, 1_005, 1_006, 1_007]


def test_append_is_ordered_and_ids_unique():
    store = SignalPersistenceStore(MemoryKeyValueStore())
    store.append(make_signal(), "BTC/USDT", 2_000)
    store.append(make_signal(), "BTC/USDT", 1_000)
    records = store.list()
    assert [r.timestamp for r in records] == [1_000, 2_000]
    assert records[0].id != records[1].id
    assert all(r.status == SignalStatus.ACTIVE for r in records)


def test_corrupted_payload_loads_empty_and_is_cleared():
    kv = MemoryKeyValueStore({KEY: "{not json"})
    store = SignalPersistenceStore(kv, KEY)
    assert len(store) == 0
    assert kv.get(KEY) is None


def test_malformed_records_are_filtered():
    good = SignalPersistenceStore(MemoryKeyValueStore(), KEY)
    record = good.append(make_signal(), "ETH/USDT", 5_000)
    payload = [record.to_dict(), {"id": "x", "pair": "BTC/USDT"}, {"status": "NOPE"}]
    store = SignalPersistenceStore(MemoryKeyValueStore({KEY: json.dumps(payload)}), KEY)
    assert [r.id for r in store.list()] == [record.id]
    assert store.get(record.id).signal == record.signal


def test_status_only_moves_forward():
    store = SignalPersistenceStore(MemoryKeyValueStore())
    record = store.append(make_signal(), "BTC/USDT", 1_000)
    assert store.update_status(record.id, SignalStatus.HIT_TP, Outcome.WIN, 104.0, 86.0)
    assert not store.update_status(record.id, SignalStatus.HIT_SL, Outcome.LOSS, 98.0, -46.0)
    updated = store.get(record.id)
    assert updated.status == SignalStatus.HIT_TP
    assert updated.outcome == Outcome.WIN
    assert updated.exit_price == 104.0
    assert store.active() == []
    assert not store.update_status("missing", SignalStatus.EXPIRED)


def test_failed_writes_keep_memory_copy():
    kv = FailingStore()
    store = SignalPersistenceStore(kv, KEY, write_attempts=2)
    record = store.append(make_signal(), "BTC/USDT", 1_000)
    assert kv.attempts == 2
    assert store.get(record.id) is not None
    assert len(store) == 1


def test_file_store_survives_reload(tmp_path):
    first = SignalPersistenceStore(JsonFileKeyValueStore(tmp_path), KEY)
    record = first.append(make_signal(), "SOL/USDT", 1_000)
    first.update_status(record.id, SignalStatus.EXPIRED, Outcome.LOSS, 99.5, -12.0)
    assert (tmp_path / f"{KEY}.json").exists()

    reloaded = SignalPersistenceStore(JsonFileKeyValueStore(tmp_path), KEY)
    restored = reloaded.get(record.id)
    assert restored == first.get(record.id)
    assert restored.status == SignalStatus.EXPIRED


def test_clear_all(tmp_path):
    kv = JsonFileKeyValueStore(tmp_path)
    store = SignalPersistenceStore(kv, KEY)
    store.append(make_signal(), "BTC/USDT", 1_000)
    store.clear_all()
    assert len(store) == 0
    assert kv.get(KEY) is None
