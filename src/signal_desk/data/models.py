from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Iterable, List, Mapping, Sequence


@dataclass(frozen=True, slots=True)
class Candle:
    timestamp: int  # ms epoch, candle open time
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_kline(cls, row: Sequence[Any]) -> "Candle":
        return cls(
            timestamp=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )


@dataclass(frozen=True, slots=True)
class MarketSnapshot:
    symbol: str
    price: float
    volume24h: float
    high24h: float
    low24h: float
    change_percent24h: float

    @classmethod
    def from_ticker(cls, symbol: str, payload: Mapping[str, Any]) -> "MarketSnapshot":
        return cls(
            symbol=symbol,
            price=float(payload["lastPrice"]),
            volume24h=float(payload["quoteVolume"]),
            high24h=float(payload["highPrice"]),
            low24h=float(payload["lowPrice"]),
            change_percent24h=float(payload["priceChangePercent"]),
        )


class CandleWindow:
    """Sliding window of the most recent candles for one pair.

    Timestamps are strictly increasing; a candle whose timestamp is not newer
    than the current tail is ignored, so received candles are never rewritten.
    """

    def __init__(self, maxlen: int = 200) -> None:
        self._candles: Deque[Candle] = deque(maxlen=maxlen)

    def extend(self, candles: Iterable[Candle]) -> int:
        added = 0
        for candle in candles:
            if self._candles and candle.timestamp <= self._candles[-1].timestamp:
                continue
            self._candles.append(candle)
            added += 1
        return added

    def candles(self) -> List[Candle]:
        return list(self._candles)

    def latest(self) -> Candle | None:
        return self._candles[-1] if self._candles else None

    def __len__(self) -> int:
        return len(self._candles)
