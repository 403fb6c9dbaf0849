"""
Exception hierarchy for the wave analysis engine.

Input and fetch errors are reported as "no analysis available" at the
public entry points; these types let the batch layer record *why*.
"""


class WaveAnalysisError(Exception):
    """Base class for analysis failures that are scoped to one symbol."""


class InvalidSeriesError(WaveAnalysisError, ValueError):
    """Raised when a price series is malformed (unsorted or duplicate timestamps, bad values)."""


class InsufficientDataError(WaveAnalysisError):
    """Raised when a series is too short or too flat to produce any wave."""


class SeriesFetchError(WaveAnalysisError):
    """Raised when the series provider fails to deliver data."""

    def __init__(self, symbol: str, timeframe: str, reason: str):
        super().__init__(f"Failed to fetch {symbol} ({timeframe}): {reason}")
        self.symbol = symbol
        self.timeframe = timeframe
        self.reason = reason


class CacheStoreError(Exception):
    """Raised by cache store backends on read/write failures."""
