"""
Wave analysis engine.

Provides unified interfaces for:
- Series ingestion (timestamp normalization, OHLCV providers)
- Pivot extraction (zig-zag filter)
- Elliott Wave labeling (impulse 1-5, correction A-B-C)
- Fibonacci retracement/extension targets
- TTL caching, on-demand analysis and batched refresh
"""

__version__ = "0.3.0"
