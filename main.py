"""
Signal Core - Main Entry Point

Replays one-minute candle history from CSV through the pipeline and
reports the consensus signals it produced.

Usage:
    python main.py --csv data/btcusdt_1m.csv --instrument BTCUSDT
    python main.py --csv data/btcusdt_1m.csv --instrument BTCUSDT --env prod --warm-start 1440
    python main.py --csv data/btcusdt_1m.csv --instrument BTCUSDT --output signals.jsonl -v
"""

from __future__ import annotations
import asyncio
import argparse
import sys
from collections import Counter
from typing import List

from config.config_manager import ConfigManager
from src.application import PipelineCoordinator
from src.domain.exceptions import FatalError
from src.domain.interfaces import CandleEvent
from src.infrastructure.loaders import CsvCandleLoader
from src.infrastructure.repositories import InMemoryCandleRepository
from src.infrastructure.sinks import (
    FanOutSignalSink,
    InMemorySignalSink,
    JsonLinesSignalSink,
    LoggingAnomalySink,
    LoggingErrorChannel,
    LoggingSignalSink,
)
from src.utils import flush_all_loggers, get_logger, shutdown_logging
from src.utils.logging_setup import setup_from_config

logger = get_logger("src.main")


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Multi-timeframe candle signal pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --csv data/btcusdt_1m.csv --instrument BTCUSDT
  python main.py --csv data/btcusdt_1m.csv --instrument BTCUSDT --warm-start 1440
  python main.py --csv data/btcusdt_1m.csv --instrument BTCUSDT --output out/signals.jsonl
        """
    )

    parser.add_argument(
        "--env",
        type=str,
        default="dev",
        choices=["dev", "prod", "test"],
        help="Environment to run in (default: dev)"
    )

    parser.add_argument(
        "--config-dir",
        type=str,
        default="config",
        help="Directory holding base.yaml and {env}.yaml (default: config)"
    )

    parser.add_argument(
        "--csv",
        type=str,
        required=True,
        help="One-minute candle CSV to replay"
    )

    parser.add_argument(
        "--instrument",
        type=str,
        help="Instrument for every row (required if the CSV has no instrument column)"
    )

    parser.add_argument(
        "--market",
        type=str,
        default="FUTURES",
        help="Market for rows without a market column (default: FUTURES)"
    )

    parser.add_argument(
        "--warm-start",
        type=int,
        default=0,
        metavar="N",
        help="Seed the first N candles per key as history instead of replaying them"
    )

    parser.add_argument(
        "--output",
        type=str,
        help="Append every result as JSON lines to this file"
    )

    parser.add_argument(
        "--console",
        action="store_true",
        help="Mirror logs to stderr"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level for all categories)"
    )

    return parser.parse_args(argv)


def split_history(events: List[CandleEvent], count: int) -> tuple[InMemoryCandleRepository, List[CandleEvent]]:
    """Move the first `count` final candles of every key into a repository."""
    repository = InMemoryCandleRepository()
    if count <= 0:
        return repository, events

    seeded: Counter = Counter()
    replay: List[CandleEvent] = []
    for event in events:
        if event.is_final and seeded[event.key] < count:
            repository.add(event.instrument, event.market, [event.candle])
            seeded[event.key] += 1
        else:
            replay.append(event)
    return repository, replay


async def replay(coordinator: PipelineCoordinator, events: List[CandleEvent], max_pending: int) -> None:
    """Submit events in order, yielding to workers when a queue fills up."""
    for event in events:
        while coordinator.worker(event.key).pending >= max_pending:
            await asyncio.sleep(0.001)
        coordinator.submit(event)
        await asyncio.sleep(0)


async def main_async(args: argparse.Namespace) -> int:
    """Main async entry point."""
    config = ConfigManager(config_dir=args.config_dir, env=args.env).load()

    setup_from_config(config.logging, env=args.env, verbose=args.verbose, console=args.console or None)

    logger.info(f"Starting signal pipeline (env={args.env})")

    loader = CsvCandleLoader(args.csv, instrument=args.instrument, market=args.market)
    events = loader.events()
    repository, events = split_history(events, args.warm_start)

    collected = InMemorySignalSink()
    sink = FanOutSignalSink(collected, LoggingSignalSink(include_neutral=False))
    if args.output:
        sink.add(JsonLinesSignalSink(args.output))

    coordinator = PipelineCoordinator.from_config(
        config,
        sink,
        error_channel=LoggingErrorChannel(),
        repository=repository,
        anomaly_sink=LoggingAnomalySink(),
    )

    try:
        if args.warm_start > 0:
            loaded = await coordinator.warm_start(repository.keys())
            logger.info(f"Warm start: {dict((str(k), n) for k, n in loaded.items())}")

        await coordinator.start()
        await replay(coordinator, events, max_pending=max(1, config.pipeline.max_queue_size - 1))
    finally:
        await coordinator.stop()
        flush_all_loggers()

    signals = Counter(r.overall_signal.value for r in collected.results)
    print(f"Replayed {len(events)} events ({loader.skipped} rows skipped)")
    print(f"Results: {len(collected)} ({collected.duplicates} duplicates)")
    for signal, count in sorted(signals.items()):
        print(f"  {signal:12} {count}")
    for key, stats in coordinator.stats().items():
        print(f"{key}: {stats}")
    return 0


def main() -> None:
    """Main entry point."""
    args = parse_args()

    try:
        exit_code = asyncio.run(main_async(args))
    except KeyboardInterrupt:
        print("Shutdown requested")
        exit_code = 0
    except FatalError as e:
        print(f"Fatal error: {e}")
        exit_code = 2
    except Exception as e:
        print(f"Fatal error: {e}")
        exit_code = 1
    finally:
        shutdown_logging()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
