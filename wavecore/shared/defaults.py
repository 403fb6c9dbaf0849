"""
Centralized default values for the wave analysis engine.

This is the SINGLE SOURCE OF TRUTH for all engine defaults.
All modules should import from here to ensure consistency.
"""

# Pivot extraction (zig-zag filter)
MIN_SWING_PERCENT = 3.0  # Reversals smaller than 3% are treated as noise
FALLBACK_SWING_PERCENT = 2.0  # Retry threshold when the primary one finds too few pivots
MIN_PIVOTS = 5  # Fewer pivots than this triggers the fallback threshold

# Fibonacci ratios
RETRACEMENT_RATIOS = (0.236, 0.382, 0.5, 0.618, 0.786)
EXTENSION_RATIOS = (1.0, 1.272, 1.618, 2.0, 2.618)

# Cache TTLs (seconds)
SERIES_TTL_SECONDS = 6 * 60 * 60  # Historical series
ANALYSIS_TTL_SECONDS = 24 * 60 * 60  # Computed wave analyses

# Persistent store
CACHE_DIR = "~/.cache/wavecore"
CHUNK_SIZE = 512 * 1024  # Characters per chunk file for large payloads

# Batch refresh (rate limiting towards the upstream data source)
BATCH_SIZE = 5
INTER_BATCH_DELAY_MS = 2000
PER_SYMBOL_DELAY_MS = 1000

# Scheduled refresh
REFRESH_INTERVAL_SECONDS = 24 * 60 * 60
SCHEDULE_TIMEZONE = "UTC"

# Default working set
DEFAULT_TIMEFRAME = "1d"
DEFAULT_SYMBOLS = ("SPY", "QQQ", "AAPL", "MSFT", "AMZN")

# Timestamps above this are milliseconds, not seconds (year 5138 in seconds)
MS_TIMESTAMP_THRESHOLD = 100_000_000_000
