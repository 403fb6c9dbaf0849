"""
Engine configuration.

All knobs are plain values with no behavior attached. Validation runs at
construction time (fail fast with clear errors).
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .defaults import (
    MIN_SWING_PERCENT, FALLBACK_SWING_PERCENT, MIN_PIVOTS,
    SERIES_TTL_SECONDS, ANALYSIS_TTL_SECONDS,
    CACHE_DIR, CHUNK_SIZE,
    BATCH_SIZE, INTER_BATCH_DELAY_MS, PER_SYMBOL_DELAY_MS,
    REFRESH_INTERVAL_SECONDS, SCHEDULE_TIMEZONE,
    DEFAULT_TIMEFRAME, DEFAULT_SYMBOLS,
)


CACHE_BACKENDS = ("memory", "file")
PROVIDERS = ("yahoo", "csv")


def _validate_config(
    *,
    min_swing_percent: float,
    fallback_swing_percent: Optional[float],
    min_pivots: int,
    analysis_ttl_seconds: float,
    series_ttl_seconds: float,
    batch_size: int,
    inter_batch_delay_ms: float,
    per_symbol_delay_ms: float,
    refresh_interval_seconds: float,
    chunk_size: int,
    cache_backend: str,
    provider: str,
) -> None:
    """Validate engine parameters. Raises ValueError with clear message on failure."""
    if min_swing_percent <= 0:
        raise ValueError(f"min_swing_percent must be > 0, got {min_swing_percent}")
    # A fallback at or above the primary threshold disables the retry
    if fallback_swing_percent is not None and fallback_swing_percent <= 0:
        raise ValueError(f"fallback_swing_percent must be > 0, got {fallback_swing_percent}")
    if min_pivots < 2:
        raise ValueError(f"min_pivots must be >= 2, got {min_pivots}")
    if analysis_ttl_seconds < 0 or series_ttl_seconds < 0:
        raise ValueError(
            f"TTLs must be >= 0, got analysis={analysis_ttl_seconds}, series={series_ttl_seconds}"
        )
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    if inter_batch_delay_ms < 0 or per_symbol_delay_ms < 0:
        raise ValueError(
            f"Delays must be >= 0, got inter_batch={inter_batch_delay_ms}, per_symbol={per_symbol_delay_ms}"
        )
    if refresh_interval_seconds <= 0:
        raise ValueError(f"refresh_interval_seconds must be > 0, got {refresh_interval_seconds}")
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    if cache_backend not in CACHE_BACKENDS:
        raise ValueError(f"cache_backend must be one of {CACHE_BACKENDS}, got '{cache_backend}'")
    if provider not in PROVIDERS:
        raise ValueError(f"provider must be one of {PROVIDERS}, got '{provider}'")


@dataclass
class EngineConfig:
    """Configuration for pivot extraction, caching and batch refresh."""

    # Pivot extraction
    min_swing_percent: float = MIN_SWING_PERCENT
    fallback_swing_percent: Optional[float] = FALLBACK_SWING_PERCENT
    min_pivots: int = MIN_PIVOTS

    # Cache
    analysis_ttl_seconds: float = ANALYSIS_TTL_SECONDS
    series_ttl_seconds: float = SERIES_TTL_SECONDS
    cache_backend: str = "memory"
    cache_dir: str = CACHE_DIR
    chunk_size: int = CHUNK_SIZE

    # Batch refresh
    batch_size: int = BATCH_SIZE
    inter_batch_delay_ms: float = INTER_BATCH_DELAY_MS
    per_symbol_delay_ms: float = PER_SYMBOL_DELAY_MS

    # Schedule
    refresh_interval_seconds: float = REFRESH_INTERVAL_SECONDS
    schedule_timezone: str = SCHEDULE_TIMEZONE
    state_file: Optional[str] = None

    # Data
    provider: str = "yahoo"
    data_dir: Optional[str] = None
    timeframe: str = DEFAULT_TIMEFRAME
    symbols: Tuple[str, ...] = field(default_factory=lambda: tuple(DEFAULT_SYMBOLS))

    def __post_init__(self):
        self.symbols = tuple(str(s).upper() for s in self.symbols)
        _validate_config(
            min_swing_percent=self.min_swing_percent,
            fallback_swing_percent=self.fallback_swing_percent,
            min_pivots=self.min_pivots,
            analysis_ttl_seconds=self.analysis_ttl_seconds,
            series_ttl_seconds=self.series_ttl_seconds,
            batch_size=self.batch_size,
            inter_batch_delay_ms=self.inter_batch_delay_ms,
            per_symbol_delay_ms=self.per_symbol_delay_ms,
            refresh_interval_seconds=self.refresh_interval_seconds,
            chunk_size=self.chunk_size,
            cache_backend=self.cache_backend,
            provider=self.provider,
        )
