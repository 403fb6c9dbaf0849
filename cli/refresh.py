#!/usr/bin/env python3
"""
Batch refresh CLI.

Recomputes analyses for the working set in rate-limited batches, either once
or as a long-running service on the configured interval.

Usage:
    python -m cli.refresh [SYMBOLS...] [--config CONFIG] [--service]
"""
import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from wavecore.automation.refresh import BatchRefreshCoordinator
from wavecore.automation.scheduler import RefreshScheduler
from wavecore.orchestration.analyzer import WaveAnalyzer
from wavecore.orchestration.events import EventDispatcher, RefreshProgress

from .common import add_common_arguments, load_config, log_path
from .logging_setup import setup_logging


def _log_progress(event: RefreshProgress):
    status = "ok" if event.success else "FAILED"
    logging.getLogger(__name__).info(f"[{event.completed}/{event.total}] {event.symbol}: {status}")


async def run_service(scheduler: RefreshScheduler):
    """Run the scheduler until SIGINT/SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass  # Windows: Ctrl+C still raises KeyboardInterrupt
    await scheduler.run_forever(stop_event)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Refresh wave analyses in rate-limited batches")
    parser.add_argument(
        "symbols",
        nargs="*",
        help="Symbols to refresh (default: from config)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Symbols per batch (default: from config)",
    )
    parser.add_argument(
        "--delay-ms",
        type=float,
        default=None,
        help="Delay between batches in milliseconds (default: from config)",
    )
    parser.add_argument(
        "--service",
        action="store_true",
        help="Keep running and refresh on the configured interval",
    )
    parser.add_argument(
        "--state-file",
        type=str,
        default=None,
        help="JSON file remembering the last scheduled run",
    )
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    config = load_config(args)
    if config is None:
        return 1
    if args.batch_size is not None:
        config.batch_size = args.batch_size
    if args.delay_ms is not None:
        config.inter_batch_delay_ms = args.delay_ms
    if args.state_file:
        config.state_file = args.state_file

    setup_logging(log_path(args), args.verbose)
    logger = logging.getLogger(__name__)

    symbols = args.symbols or list(config.symbols)
    dispatcher = EventDispatcher()
    dispatcher.subscribe(RefreshProgress, _log_progress)
    analyzer = WaveAnalyzer.from_config(config, dispatcher=dispatcher)
    coordinator = BatchRefreshCoordinator(analyzer)

    if args.service:
        scheduler = RefreshScheduler(
            coordinator,
            symbols,
            config.timeframe,
            interval_seconds=config.refresh_interval_seconds,
            timezone=config.schedule_timezone,
            state_file=config.state_file,
        )
        logger.info("=" * 80)
        logger.info("Wave analysis refresh service starting")
        logger.info("=" * 80)
        asyncio.run(run_service(scheduler))
        return 0

    try:
        report = asyncio.run(coordinator.refresh_symbols(symbols, config.timeframe))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(report.summary())
    for symbol, reason in report.failed.items():
        print(f"  ✗ {symbol}: {reason}")
    return 0 if report.success_count > 0 or report.total == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
