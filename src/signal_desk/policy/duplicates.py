from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from signal_desk.signals.models import SignalType

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GuardState:
    last_type: SignalType
    last_timestamp: int  # ms


class DuplicateGuard:
    """Per-pair cooldown on repeated signals of the same direction."""

    def __init__(self, cooldown_seconds: float = 600.0) -> None:
        self._cooldown_ms = int(cooldown_seconds * 1000)
        self._state: Dict[str, GuardState] = {}
        self._rejected = 0

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown_ms / 1000

    def record(self, signal_type: SignalType, pair: str, now_ms: int) -> bool:
        state = self._state.get(pair)
        if (
            state is not None
            and state.last_type == signal_type
            and now_ms - state.last_timestamp < self._cooldown_ms
        ):
            self._rejected += 1
            logger.warning(
                "Duplicate %s for %s suppressed (%.1fs since last)",
                signal_type.value,
                pair,
                (now_ms - state.last_timestamp) / 1000,
            )
            return False
        self._state[pair] = GuardState(last_type=signal_type, last_timestamp=now_ms)
        return True

    def last(self, pair: str) -> GuardState | None:
        return self._state.get(pair)

    def reset(self, pair: str | None = None) -> None:
        if pair is None:
            self._state.clear()
        else:
            self._state.pop(pair, None)

    def stats(self) -> dict:
        return {"tracked_pairs": len(self._state), "rejected": self._rejected}
