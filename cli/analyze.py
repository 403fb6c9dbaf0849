#!/usr/bin/env python3
"""
Wave analysis CLI.

Prints the Elliott Wave labeling, trend and Fibonacci targets for symbols.
"""
import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from wavecore.orchestration.analyzer import WaveAnalyzer
from wavecore.shared.types import WaveAnalysisResult
from wavecore.signals.target_calculator import reversal_candidates, targets_ahead

from .common import add_common_arguments, load_config, log_path
from .logging_setup import setup_logging


def _date(epoch: Optional[int]) -> str:
    if epoch is None:
        return "-"
    return datetime.fromtimestamp(epoch, timezone.utc).strftime('%Y-%m-%d')


def format_result(result: WaveAnalysisResult, show_all_targets: bool = False) -> str:
    """Human-readable summary of one analysis."""
    current = result.current_wave
    lines = [
        f"{result.symbol} ({result.timeframe}) - trend {result.trend.value}, "
        f"current wave {current.label.value} ({current.wave_type.value}) since {_date(current.start_timestamp)}",
    ]
    for wave in result.waves:
        state = "open" if not wave.is_complete else ""
        lines.append(
            f"  {wave.label.value:>2}  {_date(wave.start_timestamp)} {wave.start_price:>10.2f}"
            f" -> {_date(wave.end_timestamp)} {wave.end_price:>10.2f}  {state}"
        )

    targets = result.fib_targets
    if not show_all_targets and result.last_price is not None:
        targets = targets_ahead(targets, current, result.last_price)
    if targets:
        lines.append("  Targets: " + ", ".join(f"{t.label} @ {t.price:.2f}" for t in targets))
    else:
        lines.append("  Targets: none ahead")
    return "\n".join(lines)


async def run(analyzer: WaveAnalyzer, symbols: List[str], timeframe: str, force_refresh: bool) -> List[WaveAnalysisResult]:
    results = []
    for symbol in symbols:
        result = await analyzer.analyze(symbol, timeframe, force_refresh=force_refresh)
        if result is None:
            print(f"{symbol.upper()} ({timeframe}): no wave pattern detected")
        else:
            results.append(result)
    return results


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Elliott Wave analysis with Fibonacci targets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Analyze the default working set
    python -m cli.analyze

    # Analyze specific symbols on weekly bars
    python -m cli.analyze AAPL MSFT --timeframe 1wk

    # Recompute even if cached, print JSON
    python -m cli.analyze SPY --force-refresh --json

    # Analyze CSV files instead of downloading
    python -m cli.analyze SPY --data-dir data/
        """
    )
    parser.add_argument(
        "symbols",
        nargs="*",
        help="Symbols to analyze (default: from config)",
    )
    parser.add_argument(
        "--force-refresh", "-r",
        action="store_true",
        help="Ignore cached analyses and recompute",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    parser.add_argument(
        "--all-targets",
        action="store_true",
        help="Show all Fibonacci targets, not only those ahead of price",
    )
    parser.add_argument(
        "--reversals",
        action="store_true",
        help="Only list reversal candidates (every target already reached)",
    )
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    config = load_config(args)
    if config is None:
        return 1
    setup_logging(log_path(args), args.verbose)
    logger = logging.getLogger(__name__)

    symbols = args.symbols or list(config.symbols)
    analyzer = WaveAnalyzer.from_config(config)
    logger.debug(f"Analyzing {len(symbols)} symbols with {analyzer.cache!r}")

    results = asyncio.run(run(analyzer, symbols, config.timeframe, args.force_refresh))
    if args.reversals:
        results = reversal_candidates(results, limit=len(results))

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        for result in results:
            print(format_result(result, show_all_targets=args.all_targets))
            print()

    return 0 if results or args.reversals else 1


if __name__ == "__main__":
    sys.exit(main())
