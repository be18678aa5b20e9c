from __future__ import annotations

import argparse
import asyncio
import logging

from signal_desk.backtest.engine import Backtester
from signal_desk.config.loader import load_config
from signal_desk.config.models import AppConfig
from signal_desk.data.provider_base import MarketDataProvider
from signal_desk.data.providers import (
    BinanceMarketDataProvider,
    MockMarketDataProvider,
    SystemTimeProvider,
)
from signal_desk.monitoring.console import SignalConsole
from signal_desk.persistence.kv import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from signal_desk.persistence.signals import SignalPersistenceStore
from signal_desk.pipeline.coordinator import SignalCoordinator
from signal_desk.pipeline.desk import SignalDesk
from signal_desk.scheduler.orchestrator import DeskOrchestrator
from signal_desk.tracking.performance import PerformanceTracker
from signal_desk.tracking.resolver import OutcomeResolver


async def run_app(config: AppConfig, run_minutes: float, use_mock: bool = False) -> None:
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

    time_provider = SystemTimeProvider()
    data_provider: MarketDataProvider
    if use_mock:
        data_provider = MockMarketDataProvider(time_provider=time_provider)
    else:
        data_provider = BinanceMarketDataProvider(config.exchange)

    store: KeyValueStore
    if config.persistence.storage_path:
        store = JsonFileKeyValueStore(config.persistence.storage_path)
    else:
        store = MemoryKeyValueStore()
    persistence = SignalPersistenceStore(
        store, key=config.persistence.signals_key, max_records=config.persistence.max_records
    )
    tracker = PerformanceTracker(
        store,
        key=config.tracking.performance_key,
        max_records=config.tracking.max_records,
        duplicate_window_seconds=config.tracking.duplicate_window_seconds,
    )
    console = SignalConsole()
    desk = SignalDesk(
        config,
        SignalCoordinator(config),
        persistence,
        time_provider,
        tracker=tracker,
        listeners=[console.on_result],
    )
    resolver = OutcomeResolver(persistence, tracker, expiry_hours=config.tracking.expiry_hours)
    orchestrator = DeskOrchestrator(
        config=config,
        data_provider=data_provider,
        desk=desk,
        resolver=resolver,
        time_provider=time_provider,
    )

    await orchestrator.start()
    try:
        await asyncio.sleep(run_minutes * 60)
    finally:
        await orchestrator.stop()

    console.log_history(desk.signal_history)
    console.log_persisted(desk.persisted_signals)
    console.log_metrics(tracker.metrics())


async def run_backtest(config: AppConfig, candle_count: int, use_mock: bool = False) -> None:
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    pair = config.data.selected_pair
    data_provider: MarketDataProvider
    if use_mock:
        data_provider = MockMarketDataProvider(time_provider=SystemTimeProvider())
    else:
        data_provider = BinanceMarketDataProvider(config.exchange)
    try:
        candles = await data_provider.fetch_candles(pair, config.data.interval, candle_count)
        snapshots = await data_provider.fetch_snapshots([pair])
    finally:
        await data_provider.close()

    volume24h = snapshots[0].volume24h if snapshots else None
    report = Backtester(config).run(pair, candles, volume24h=volume24h)
    SignalConsole().log_backtest(report)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Candlestick signal desk")
    parser.add_argument("--config", help="YAML or JSON config file")
    parser.add_argument(
        "--minutes",
        type=float,
        default=1.0,
        help="Run duration in minutes",
    )
    parser.add_argument("--mock", action="store_true", help="Use synthetic market data")
    parser.add_argument("--pair", help="Pair to evaluate, e.g. ETH/USDT")
    parser.add_argument("--backtest", action="store_true", help="Replay the pipeline over history and exit")
    parser.add_argument("--candles", type=int, default=500, help="History length for --backtest")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = load_config(args.config)
    if args.pair:
        config = config.model_copy(
            update={"data": config.data.model_copy(update={"selected_pair": args.pair})}
        )
    if args.backtest:
        asyncio.run(run_backtest(config, candle_count=args.candles, use_mock=args.mock))
        return
    asyncio.run(run_app(config, run_minutes=args.minutes, use_mock=args.mock))


if __name__ == "__main__":
    main()
