from __future__ import annotations

import httpx
import pytest

from signal_desk.config.models import ExchangeConfig
from signal_desk.data.models import Candle, CandleWindow
from signal_desk.data.providers import BinanceMarketDataProvider, MockMarketDataProvider, exchange_symbol
from signal_desk.errors import ProviderError

from conftest import ManualClock, ts

KLINE = [ts(0), "100.0", "101.0", "99.0", "100.5", "1234.5", ts(1) - 1, "0", 10, "0", "0", "0"]
TICKER = {
    "lastPrice": "100.5",
    "quoteVolume": "2000000000",
    "highPrice": "102.0",
    "lowPrice": "98.0",
    "priceChangePercent": "1.5",
}


def _provider(handler) -> BinanceMarketDataProvider:
    config = ExchangeConfig(retries=2, retry_wait_seconds=0)
    return BinanceMarketDataProvider(config, transport=httpx.MockTransport(handler))


def test_exchange_symbol():
    assert exchange_symbol("btc/usdt") == "BTCUSDT"


@pytest.mark.asyncio
async def test_candles_retry_until_success():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502)
        return httpx.Response(200, json=[KLINE])

    provider = _provider(handler)
    candles = await provider.fetch_candles("BTC/USDT", "1h", 200)
    await provider.close()

    assert len(calls) == 3
    assert calls[-1].url.params["symbol"] == "BTCUSDT"
    assert calls[-1].url.params["interval"] == "1h"
    assert candles[0].timestamp == ts(0)
    assert candles[0].close == 100.5
    assert candles[0].volume == 1234.5


@pytest.mark.asyncio
async def test_gives_up_after_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    provider = _provider(handler)
    with pytest.raises(ProviderError):
        await provider.fetch_candles("BTC/USDT", "1h", 200)
    await provider.close()
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_empty_klines_is_an_error():
    provider = _provider(lambda request: httpx.Response(200, json=[]))
    with pytest.raises(ProviderError):
        await provider.fetch_candles("BTC/USDT", "1h", 200)
    await provider.close()


@pytest.mark.asyncio
async def test_unsupported_interval():
    provider = _provider(lambda request: httpx.Response(200, json=[KLINE]))
    with pytest.raises(ValueError):
        await provider.fetch_candles("BTC/USDT", "7m", 200)
    await provider.close()


@pytest.mark.asyncio
async def test_failed_snapshot_is_skipped():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["symbol"] == "ETHUSDT":
            return httpx.Response(503)
        return httpx.Response(200, json=TICKER)

    provider = _provider(handler)
    snapshots = await provider.fetch_snapshots(["BTC/USDT", "ETH/USDT"])
    await provider.close()

    assert [s.symbol for s in snapshots] == ["BTC/USDT"]
    assert snapshots[0].volume24h == 2e9
    assert snapshots[0].change_percent24h == 1.5


@pytest.mark.asyncio
async def test_mock_provider_produces_aligned_candles():
    clock = ManualClock()
    provider = MockMarketDataProvider(clock, seed=7)
    candles = await provider.fetch_candles("ETH/USDT", "1h", 50)
    assert len(candles) == 50
    assert all(b.timestamp - a.timestamp == 3_600_000 for a, b in zip(candles, candles[1:]))
    assert all(c.low <= min(c.open, c.close) and c.high >= max(c.open, c.close) for c in candles)
    snapshots = await provider.fetch_snapshots(["ETH/USDT"])
    assert snapshots[0].price == candles[-1].close


def test_candle_window_only_appends_newer():
    window = CandleWindow(maxlen=3)
    assert window.extend([]) == 0
    bars = [Candle(ts(i), 1.0, 1.0, 1.0, 1.0, 1.0) for i in range(5)]
    assert window.extend(bars[:2]) == 2
    assert window.extend(bars[:3]) == 1
    assert window.extend(bars) == 2
    assert [c.timestamp for c in window.candles()] == [ts(2), ts(3), ts(4)]
    assert window.latest().timestamp == ts(4)
