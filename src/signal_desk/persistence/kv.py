from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from signal_desk.errors import PersistenceError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """String values under fixed string keys."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """One ``<key>.json`` file per key inside ``root``; writes are atomic."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _path(self, key: str) -> Path:
        return self._root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Failed to read {path}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except OSError as exc:
            raise PersistenceError(f"Failed to write {path}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Failed to delete {key}: {exc}") from exc


def _write_retrying(attempts: int) -> Retrying:
    return Retrying(
        wait=wait_fixed(0),
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type(PersistenceError),
        reraise=True,
    )


def read_json_list(store: KeyValueStore, key: str) -> List[Any]:
    """Decode the list stored under ``key``.

    Unreadable or corrupted entries load as an empty list; a corrupted entry
    is removed from the store.
    """
    try:
        raw = store.get(key)
    except PersistenceError as exc:
        logger.warning("%s unavailable, starting empty: %s", key, exc)
        return []
    if not raw:
        return []
    try:
        payload = json.loads(raw)
        if not isinstance(payload, list):
            raise ValueError("payload is not a list")
    except ValueError as exc:
        logger.warning("Corrupted entry under %s cleared: %s", key, exc)
        try:
            store.delete(key)
        except PersistenceError as delete_exc:
            logger.warning("Could not clear %s: %s", key, delete_exc)
        return []
    return payload


def write_json(store: KeyValueStore, key: str, payload: Any, attempts: int = 2) -> bool:
    """Best-effort write; returns ``False`` once every attempt has failed."""
    text = json.dumps(payload)
    try:
        for attempt in _write_retrying(attempts):
            with attempt:
                store.set(key, text)
    except PersistenceError as exc:
        logger.warning("Write to %s failed, keeping in memory: %s", key, exc)
        return False
    return True
