from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Sequence

from .models import Candle, MarketSnapshot


class MarketDataProvider(ABC):
    @abstractmethod
    async def fetch_snapshots(self, pairs: Sequence[str]) -> list[MarketSnapshot]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_candles(self, pair: str, interval: str, limit: int) -> list[Candle]:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class TimeProvider(ABC):
    @abstractmethod
    def now(self) -> datetime:
        raise NotImplementedError

    def now_ms(self) -> int:
        return int(self.now().timestamp() * 1000)
