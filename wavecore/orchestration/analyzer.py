"""
The analysis entry point: cache lookup plus on-miss pipeline execution.

Pipeline (pure, synchronous, no I/O):
    series -> pivots -> wave labeling -> Fibonacci targets -> result

WaveAnalyzer wraps it with the async parts: fetching the series, reading and
writing the AnalysisCache, coalescing concurrent misses for the same key and
publishing lifecycle events.
"""
import asyncio
import dataclasses
import logging
import time
from typing import Callable, Dict, Optional, Sequence, Tuple

from ..data.provider import CachedSeriesProvider, SeriesProvider, create_provider
from ..indicators.elliott_types import Wave
from ..indicators.elliott_wave import WaveLabeling, label_waves
from ..indicators.pivots import extract_pivots_adaptive
from ..shared.config import EngineConfig
from ..shared.errors import InsufficientDataError, SeriesFetchError, WaveAnalysisError
from ..shared.types import PricePoint, Trend, WaveAnalysisResult
from ..signals.target_calculator import TargetCalculator
from .cache import AnalysisCache, SeriesCache, create_store
from .events import (
    AnalysisCompleted, AnalysisFailed, AnalysisStarted, EventDispatcher, publish_optional,
)


logger = logging.getLogger(__name__)


def trend_of(labeling: WaveLabeling) -> Trend:
    """Bullish when the most recent wave 1 rises, bearish when it falls."""
    anchor = labeling.last_wave_one or labeling.current_wave
    return Trend.BEARISH if anchor.direction == "down" else Trend.BULLISH


def extend_to_last_bar(waves: Tuple[Wave, ...], last_bar: PricePoint) -> Tuple[Wave, ...]:
    """
    Stretch the open wave to the most recent bar.

    The live pivot is the running extreme; bars after it that did not confirm
    a reversal still belong to the current wave, which ends at the latest close.
    """
    if not waves or waves[-1].end_timestamp is None or last_bar.timestamp <= waves[-1].end_timestamp:
        return waves
    current = dataclasses.replace(waves[-1], end_timestamp=last_bar.timestamp, end_price=last_bar.close)
    return waves[:-1] + (current,)


def analyze_series(
    symbol: str,
    timeframe: str,
    series: Sequence[PricePoint],
    config: Optional[EngineConfig] = None,
    computed_at: Optional[int] = None,
) -> WaveAnalysisResult:
    """
    Run the full pipeline over an already prepared series.

    Args:
        symbol: Instrument symbol
        timeframe: Bar timeframe ("1d", "1wk", ...)
        series: Validated, timestamp-sorted bars
        config: Engine configuration (defaults if None)
        computed_at: Epoch seconds stamped on the result (now if None)

    Returns:
        WaveAnalysisResult

    Raises:
        InsufficientDataError: If the series yields fewer than 2 pivots
        InvalidSeriesError: If the series is not strictly timestamp-sorted
    """
    config = config or EngineConfig()
    if len(series) < 2:
        raise InsufficientDataError(f"{symbol} ({timeframe}): {len(series)} bars, need at least 2")

    pivots = extract_pivots_adaptive(
        series,
        config.min_swing_percent,
        fallback_swing_percent=config.fallback_swing_percent,
        min_pivots=config.min_pivots,
    )
    if len(pivots) < 2:
        raise InsufficientDataError(
            f"{symbol} ({timeframe}): no swing of {config.min_swing_percent}% in {len(series)} bars"
        )

    labeling = label_waves(pivots)
    waves = extend_to_last_bar(labeling.waves, series[-1])
    targets = TargetCalculator().compute_fib_targets(waves, waves[-1])

    return WaveAnalysisResult(
        symbol=symbol,
        timeframe=timeframe,
        waves=waves,
        current_wave=waves[-1],
        fib_targets=tuple(targets),
        trend=trend_of(labeling),
        computed_at=int(time.time()) if computed_at is None else int(computed_at),
        last_price=series[-1].close,
        pivot_count=len(pivots),
    )


class WaveAnalyzer:
    """
    Combines the series provider, the analysis cache and the pipeline.

    At most one computation per (symbol, timeframe) is in flight; concurrent
    callers that miss the cache for the same key await the same task.
    """

    def __init__(
        self,
        provider: SeriesProvider,
        cache: Optional[AnalysisCache] = None,
        config: Optional[EngineConfig] = None,
        dispatcher: Optional[EventDispatcher] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.config = config or EngineConfig()
        self.cache = cache or AnalysisCache(ttl_seconds=self.config.analysis_ttl_seconds, clock=clock)
        self.dispatcher = dispatcher
        self.clock = clock
        self._inflight: Dict[Tuple[str, str], asyncio.Task] = {}

    async def analyze(self, symbol: str, timeframe: str, force_refresh: bool = False) -> Optional[WaveAnalysisResult]:
        """
        Return the analysis for a key, computing it on a cache miss.

        Returns:
            WaveAnalysisResult, or None when no analysis is possible (fetch
            failure, empty or malformed series, no swings)
        """
        symbol = symbol.upper()
        cached = await self.cache.get(symbol, timeframe, force_refresh=force_refresh)
        if cached is not None:
            logger.debug(f"Cache hit for {symbol} ({timeframe})")
            await publish_optional(self.dispatcher, AnalysisCompleted(
                symbol=symbol, timeframe=timeframe, result=cached, from_cache=True,
            ))
            return cached

        key = (symbol, timeframe)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._compute(symbol, timeframe, force_refresh))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.debug(f"Joining in-flight analysis for {symbol} ({timeframe})")

        # A cancelled caller must not cancel the computation other callers share
        return await asyncio.shield(task)

    def _forget(self, key: Tuple[str, str], task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _compute(self, symbol: str, timeframe: str, force_refresh: bool) -> Optional[WaveAnalysisResult]:
        await publish_optional(self.dispatcher, AnalysisStarted(
            symbol=symbol, timeframe=timeframe, force_refresh=force_refresh,
        ))
        try:
            result = await self.recompute(symbol, timeframe, force_refresh=force_refresh)
        except WaveAnalysisError as e:
            logger.warning(f"No analysis for {symbol} ({timeframe}): {e}")
            await publish_optional(self.dispatcher, AnalysisFailed(
                symbol=symbol, timeframe=timeframe, reason=str(e),
            ))
            return None

        await publish_optional(self.dispatcher, AnalysisCompleted(
            symbol=symbol, timeframe=timeframe, result=result,
        ))
        return result

    async def recompute(self, symbol: str, timeframe: str, force_refresh: bool = True) -> WaveAnalysisResult:
        """
        Fetch, analyze and store one key, bypassing the analysis cache.

        The result is returned even when storing it fails.

        Raises:
            SeriesFetchError: If the provider fails
            InsufficientDataError: If the series is empty or has no swings
            InvalidSeriesError: If the series is malformed
        """
        symbol = symbol.upper()
        if force_refresh:
            await self.provider.invalidate(symbol, timeframe)

        try:
            series = await self.provider.fetch_series(symbol, timeframe)
        except WaveAnalysisError:
            raise
        except Exception as e:
            raise SeriesFetchError(symbol, timeframe, str(e)) from e

        result = analyze_series(symbol, timeframe, series, self.config, computed_at=int(self.clock()))
        logger.info(
            f"Analyzed {symbol} ({timeframe}): {len(result.waves)} waves, "
            f"current wave {result.current_wave.label.value}, trend {result.trend.value}"
        )

        if not await self.cache.put(symbol, timeframe, result):
            logger.warning(f"Result for {symbol} ({timeframe}) could not be cached")
        return result

    async def invalidate(self, symbol: str, timeframe: str) -> bool:
        return await self.cache.invalidate(symbol.upper(), timeframe)

    async def invalidate_all(self) -> int:
        return await self.cache.invalidate_all()

    @classmethod
    def from_config(cls, config: EngineConfig, dispatcher: Optional[EventDispatcher] = None,
                    clock: Callable[[], float] = time.time) -> "WaveAnalyzer":
        """Wire provider, series cache and analysis cache from configuration."""
        store = create_store(config.cache_backend, config.cache_dir, config.chunk_size)
        provider = CachedSeriesProvider(
            create_provider(config.provider, config.data_dir),
            SeriesCache(store, ttl_seconds=config.series_ttl_seconds, clock=clock),
        )
        cache = AnalysisCache(store, ttl_seconds=config.analysis_ttl_seconds, clock=clock)
        return cls(provider, cache=cache, config=config, dispatcher=dispatcher, clock=clock)
