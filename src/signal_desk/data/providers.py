from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Sequence

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from signal_desk.config.models import ExchangeConfig
from signal_desk.errors import ProviderError

from .models import Candle, MarketSnapshot
from .provider_base import MarketDataProvider, TimeProvider

logger = logging.getLogger(__name__)

SUPPORTED_INTERVALS = {"1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h", "6h", "12h", "1d", "1w"}


class SystemTimeProvider(TimeProvider):
    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)


def exchange_symbol(pair: str) -> str:
    return pair.replace("/", "").upper()


class BinanceMarketDataProvider(MarketDataProvider):
    """Public Binance REST endpoints with bounded timeouts and a small fixed retry count."""

    def __init__(self, config: ExchangeConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._cfg = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def fetch_snapshots(self, pairs: Sequence[str]) -> list[MarketSnapshot]:
        results = await asyncio.gather(
            *(self._fetch_snapshot(pair) for pair in pairs), return_exceptions=True
        )
        snapshots: list[MarketSnapshot] = []
        for pair, result in zip(pairs, results):
            if isinstance(result, BaseException):
                logger.warning("Snapshot fetch failed for %s: %s", pair, result)
                continue
            snapshots.append(result)
        return snapshots

    async def fetch_candles(self, pair: str, interval: str, limit: int) -> list[Candle]:
        if interval not in SUPPORTED_INTERVALS:
            raise ValueError(f"Unsupported interval: {interval}")
        params = {"symbol": exchange_symbol(pair), "interval": interval, "limit": limit}
        raw = await self._get_json("/api/v3/klines", params)
        if not raw:
            raise ProviderError(f"No candlestick data available for {pair}")
        return [Candle.from_kline(row) for row in raw]

    async def close(self) -> None:
        await self._client.aclose()

    async def _fetch_snapshot(self, pair: str) -> MarketSnapshot:
        payload = await self._get_json("/api/v3/ticker/24hr", {"symbol": exchange_symbol(pair)})
        return MarketSnapshot.from_ticker(pair, payload)

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.get(path, params=params)
                    response.raise_for_status()
                    return response.json()
        except httpx.HTTPError as exc:
            raise ProviderError(f"{path} failed after {self._cfg.retries} retries: {exc}") from exc
        raise ProviderError(f"{path} retries exhausted")

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            wait=wait_fixed(self._cfg.retry_wait_seconds),
            stop=stop_after_attempt(self._cfg.retries + 1),
            retry=retry_if_exception_type(httpx.HTTPError),
            reraise=True,
        )


class MockMarketDataProvider(MarketDataProvider):
    """Synthesizes a random walk per pair for demos and offline runs."""

    def __init__(self, time_provider: TimeProvider | None = None, seed: int | None = None) -> None:
        self._time = time_provider or SystemTimeProvider()
        self._rng = random.Random(seed)
        self._prices: dict[str, float] = {}

    async def fetch_snapshots(self, pairs: Sequence[str]) -> list[MarketSnapshot]:
        snapshots = []
        for pair in pairs:
            price = self._prices.setdefault(pair, self._seed_price(pair))
            snapshots.append(
                MarketSnapshot(
                    symbol=pair,
                    price=price,
                    volume24h=self._rng.uniform(5e8, 2e9),
                    high24h=price * 1.03,
                    low24h=price * 0.97,
                    change_percent24h=self._rng.uniform(-3, 3),
                )
            )
        return snapshots

    async def fetch_candles(self, pair: str, interval: str, limit: int) -> list[Candle]:
        step_ms = _parse_minutes(interval) * 60_000
        now_ms = self._time.now_ms()
        start = now_ms - now_ms % step_ms - step_ms * (limit - 1)
        price = self._prices.setdefault(pair, self._seed_price(pair))
        candles: list[Candle] = []
        for i in range(limit):
            open_price = price
            close = open_price * (1 + self._rng.uniform(-0.006, 0.006))
            high = max(open_price, close) * (1 + self._rng.uniform(0, 0.003))
            low = min(open_price, close) * (1 - self._rng.uniform(0, 0.003))
            candles.append(
                Candle(
                    timestamp=start + i * step_ms,
                    open=open_price,
                    high=high,
                    low=low,
                    close=close,
                    volume=self._rng.uniform(10, 1000),
                )
            )
            price = close
        self._prices[pair] = price
        return candles

    def _seed_price(self, pair: str) -> float:
        return {"BTC/USDT": 60000.0, "ETH/USDT": 3000.0}.get(pair, self._rng.uniform(0.5, 150.0))


def _parse_minutes(label: str) -> int:
    unit = label[-1]
    value = int(label[:-1])
    multiplier = {"m": 1, "h": 60, "d": 1440, "w": 10080}[unit]
    return value * multiplier
