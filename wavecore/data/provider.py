"""
Series providers: where OHLCV data comes from.

A provider returns a validated, timestamp-sorted PricePoint list (possibly
empty) or raises SeriesFetchError. Everything it returns has already passed
through data.preparation.
"""
import asyncio
import logging
import warnings
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd
import yfinance as yf

from ..orchestration.cache import SeriesCache
from ..shared.errors import SeriesFetchError
from ..shared.types import PricePoint
from .preparation import prepare_series


# Suppress yfinance's pandas deprecation warnings
warnings.filterwarnings('ignore', message='.*Timestamp.utcnow.*')

logger = logging.getLogger(__name__)

# Timeframe -> days of history requested
TIMEFRAME_LOOKBACK_DAYS: Dict[str, int] = {
    "1d": 365,
    "1wk": 365 * 2,
    "1mo": 365 * 3,
}


class SeriesProvider(ABC):
    """Source of OHLCV series per (symbol, timeframe)."""

    @abstractmethod
    async def fetch_series(self, symbol: str, timeframe: str) -> List[PricePoint]:
        """
        Fetch the series for a symbol.

        Raises:
            SeriesFetchError: On network, file or parse failures
            InvalidSeriesError: If the data is malformed
        """

    async def invalidate(self, symbol: str, timeframe: str) -> None:
        """Drop any cached copy of the series. No-op for uncached providers."""
        return None


class YahooSeriesProvider(SeriesProvider):
    """Downloads daily/weekly/monthly bars from Yahoo Finance."""

    def __init__(self, lookback_days: Optional[Dict[str, int]] = None):
        self.lookback_days = dict(lookback_days or TIMEFRAME_LOOKBACK_DAYS)

    async def fetch_series(self, symbol: str, timeframe: str) -> List[PricePoint]:
        if timeframe not in self.lookback_days:
            raise SeriesFetchError(symbol, timeframe, f"unsupported timeframe, use one of {sorted(self.lookback_days)}")

        start = datetime.now(timezone.utc) - timedelta(days=self.lookback_days[timeframe])
        logger.debug(f"Downloading {symbol} ({timeframe}) from {start.date()}")
        try:
            df = await asyncio.to_thread(
                yf.download, symbol, start=start.strftime('%Y-%m-%d'), interval=timeframe,
                progress=False, auto_adjust=False,
            )
        except Exception as e:
            raise SeriesFetchError(symbol, timeframe, str(e)) from e

        if df is None or df.empty:
            logger.warning(f"No data returned for {symbol} ({timeframe})")
            return []
        return prepare_series(df)


class CsvSeriesProvider(SeriesProvider):
    """
    Reads series from CSV files in a directory.

    Looks for ``<symbol>_<timeframe>.csv`` first, then ``<symbol>.csv``
    (the layout written by yfinance's DataFrame.to_csv).
    """

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)

    def _find_file(self, symbol: str, timeframe: str) -> Optional[Path]:
        for name in (f"{symbol}_{timeframe}.csv", f"{symbol}.csv"):
            for candidate in (name, name.lower()):
                path = self.data_dir / candidate
                if path.exists():
                    return path
        return None

    async def fetch_series(self, symbol: str, timeframe: str) -> List[PricePoint]:
        path = self._find_file(symbol, timeframe)
        if path is None:
            raise SeriesFetchError(symbol, timeframe, f"no CSV file in {self.data_dir}")

        try:
            df = await asyncio.to_thread(pd.read_csv, path)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise SeriesFetchError(symbol, timeframe, f"unreadable CSV {path.name}: {e}") from e
        return prepare_series(df)


class CachedSeriesProvider(SeriesProvider):
    """Wraps a provider with the historical-series TTL cache (6h by default)."""

    def __init__(self, inner: SeriesProvider, cache: Optional[SeriesCache] = None):
        self.inner = inner
        self.cache = cache or SeriesCache()

    async def fetch_series(self, symbol: str, timeframe: str) -> List[PricePoint]:
        cached = await self.cache.get(symbol, timeframe)
        if cached is not None:
            logger.debug(f"Series cache hit for {symbol} ({timeframe})")
            return cached

        series = await self.inner.fetch_series(symbol, timeframe)
        if series:
            await self.cache.put(symbol, timeframe, series)
        return series

    async def invalidate(self, symbol: str, timeframe: str) -> None:
        await self.cache.invalidate(symbol, timeframe)
        await self.inner.invalidate(symbol, timeframe)


def create_provider(kind: str, data_dir: Optional[str] = None) -> SeriesProvider:
    """Build an uncached provider from config values ("yahoo" or "csv")."""
    if kind == "yahoo":
        return YahooSeriesProvider()
    if kind == "csv":
        if not data_dir:
            raise ValueError("csv provider requires a data directory")
        return CsvSeriesProvider(data_dir)
    raise ValueError(f"Unknown provider: '{kind}'")
