"""
Batch refresh of many symbols against a rate-limited upstream.

Symbols are split into consecutive batches. Inside a batch symbols run one
after another with a short pause between them; between batches there is a
longer pause. A failing symbol is logged and recorded, never fatal to the
rest of the run, and completed symbols are never rolled back.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from ..orchestration.analyzer import WaveAnalyzer
from ..orchestration.events import EventDispatcher, RefreshFinished, RefreshProgress, publish_optional
from ..shared.types import WaveAnalysisResult


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class RefreshReport:
    """Outcome of one refresh_symbols run. Partial success is a normal outcome."""
    timeframe: str
    started_at: int
    finished_at: int = 0
    succeeded: Dict[str, WaveAnalysisResult] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)  # symbol -> reason

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    def summary(self) -> str:
        return (
            f"Refreshed {self.success_count}/{self.total} symbols ({self.timeframe}), "
            f"{self.failure_count} failed in {self.finished_at - self.started_at}s"
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe summary (results themselves are in the analysis cache)."""
        return {
            "timeframe": self.timeframe,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "succeeded": list(self.succeeded),
            "failed": dict(self.failed),
        }


def dedupe_symbols(symbols: Iterable[str]) -> List[str]:
    """Upper-case symbols, drop blanks and duplicates, keep first-seen order."""
    seen = {}
    for symbol in symbols:
        symbol = str(symbol).strip().upper()
        if symbol and symbol not in seen:
            seen[symbol] = None
    return list(seen)


def make_batches(symbols: List[str], batch_size: int) -> List[List[str]]:
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [symbols[i:i + batch_size] for i in range(0, len(symbols), batch_size)]


class BatchRefreshCoordinator:
    """Recomputes analyses for a list of symbols in rate-limited batches."""

    def __init__(
        self,
        analyzer: WaveAnalyzer,
        dispatcher: Optional[EventDispatcher] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize coordinator.

        Args:
            analyzer: Analyzer whose cache and provider are refreshed
            dispatcher: Event sink for progress (default: the analyzer's)
            sleep: Async sleep taking seconds (injectable for tests)
            clock: Returns epoch seconds
        """
        self.analyzer = analyzer
        self.dispatcher = dispatcher if dispatcher is not None else analyzer.dispatcher
        self.sleep = sleep
        self.clock = clock

    async def refresh_symbol(self, symbol: str, timeframe: str) -> WaveAnalysisResult:
        """Invalidate, refetch and recompute one symbol. Raises on failure."""
        await self.analyzer.invalidate(symbol, timeframe)
        return await self.analyzer.recompute(symbol, timeframe, force_refresh=True)

    async def refresh_symbols(
        self,
        symbols: Iterable[str],
        timeframe: str,
        batch_size: Optional[int] = None,
        inter_batch_delay_ms: Optional[float] = None,
        per_symbol_delay_ms: Optional[float] = None,
    ) -> RefreshReport:
        """
        Refresh every symbol and report what succeeded and what failed.

        Args:
            symbols: Symbols to refresh (duplicates are refreshed once)
            timeframe: Bar timeframe
            batch_size: Symbols per batch (default from config)
            inter_batch_delay_ms: Pause between batches (default from config)
            per_symbol_delay_ms: Pause between symbols of a batch (default from config)

        Raises:
            ValueError: If batch_size < 1
        """
        config = self.analyzer.config
        batch_size = config.batch_size if batch_size is None else batch_size
        inter_batch_delay_ms = config.inter_batch_delay_ms if inter_batch_delay_ms is None else inter_batch_delay_ms
        per_symbol_delay_ms = config.per_symbol_delay_ms if per_symbol_delay_ms is None else per_symbol_delay_ms

        symbols = dedupe_symbols(symbols)
        batches = make_batches(symbols, batch_size)
        report = RefreshReport(timeframe=timeframe, started_at=int(self.clock()))
        logger.info(f"Refreshing {len(symbols)} symbols ({timeframe}) in {len(batches)} batches of {batch_size}")

        completed = 0
        for b, batch in enumerate(batches):
            if b > 0 and inter_batch_delay_ms > 0:
                await self.sleep(inter_batch_delay_ms / 1000.0)

            logger.debug(f"Batch {b + 1}/{len(batches)}: {', '.join(batch)}")
            for s, symbol in enumerate(batch):
                if s > 0 and per_symbol_delay_ms > 0:
                    await self.sleep(per_symbol_delay_ms / 1000.0)

                try:
                    report.succeeded[symbol] = await self.refresh_symbol(symbol, timeframe)
                    success = True
                except Exception as e:
                    logger.error(f"Refresh failed for {symbol} ({timeframe}): {e}")
                    report.failed[symbol] = str(e) or e.__class__.__name__
                    success = False

                completed += 1
                await publish_optional(self.dispatcher, RefreshProgress(
                    symbol=symbol, completed=completed, total=len(symbols), success=success,
                ))

        report.finished_at = int(self.clock())
        logger.info(report.summary())
        await publish_optional(self.dispatcher, RefreshFinished(
            timeframe=timeframe,
            succeeded=tuple(report.succeeded),
            failed=tuple(report.failed),
        ))
        return report
