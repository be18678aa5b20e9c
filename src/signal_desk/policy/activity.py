from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque


@dataclass(frozen=True, slots=True)
class ActivitySnapshot:
    accepted: int
    evaluated: int
    window_minutes: float

    @property
    def is_quiet(self) -> bool:
        return self.accepted == 0


class ActivityWindow:
    """Rolling counts of evaluated and accepted signals."""

    def __init__(self, window_minutes: float = 60.0) -> None:
        self._window_ms = int(window_minutes * 60_000)
        self._window_minutes = window_minutes
        self._accepted: Deque[int] = deque()
        self._evaluated: Deque[int] = deque()

    def record_evaluation(self, now_ms: int) -> None:
        self._evaluated.append(now_ms)
        self._prune(now_ms)

    def record_accept(self, now_ms: int) -> None:
        self._accepted.append(now_ms)
        self._prune(now_ms)

    def snapshot(self, now_ms: int) -> ActivitySnapshot:
        self._prune(now_ms)
        return ActivitySnapshot(
            accepted=len(self._accepted),
            evaluated=len(self._evaluated),
            window_minutes=self._window_minutes,
        )

    def clear(self) -> None:
        self._accepted.clear()
        self._evaluated.clear()

    def _prune(self, now_ms: int) -> None:
        cutoff = now_ms - self._window_ms
        for bucket in (self._accepted, self._evaluated):
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()
