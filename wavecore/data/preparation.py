"""
Series preparation: the single normalization boundary of the engine.

Everything that enters the engine goes through here:
- Timestamps (epoch s/ms, ISO strings, datetime, pandas/numpy types) become
  integer epoch seconds
- DataFrames (yfinance or CSV layout) and plain records become PricePoint lists
- Series are validated (strictly ascending timestamps, finite prices)

Downstream stages never see another timestamp representation.
"""
import math
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Union

import numpy as np
import pandas as pd

from ..shared.defaults import MS_TIMESTAMP_THRESHOLD
from ..shared.errors import InvalidSeriesError
from ..shared.types import PricePoint


TimestampLike = Union[int, float, str, datetime, pd.Timestamp, np.datetime64]

# Accepted column spellings -> canonical field
_COLUMN_ALIASES = {
    "timestamp": "timestamp",
    "time": "timestamp",
    "date": "timestamp",
    "datetime": "timestamp",
    "open": "open",
    "high": "high",
    "low": "low",
    "close": "close",
    "adj close": None,  # Ignored, close is used as-is
    "volume": "volume",
}


def normalize_timestamp(value: TimestampLike) -> int:
    """
    Convert any supported timestamp representation to integer epoch seconds.

    Accepted inputs:
      * int/float epoch seconds, or milliseconds (values above 1e11)
      * numeric strings (same rule as numbers)
      * ISO 8601 strings (naive values are UTC)
      * datetime / pandas.Timestamp / numpy.datetime64 (naive values are UTC)

    Raises:
        InvalidSeriesError: If the value cannot be interpreted as a timestamp
    """
    if isinstance(value, bool) or value is None:
        raise InvalidSeriesError(f"Invalid timestamp: {value!r}")

    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
        if not math.isfinite(number):
            raise InvalidSeriesError(f"Invalid timestamp: {value!r}")
        if abs(number) > MS_TIMESTAMP_THRESHOLD:
            number /= 1000.0
        return int(number)

    if isinstance(value, str):
        s = value.strip()
        if not s:
            raise InvalidSeriesError("Empty timestamp string")
        if s.replace(".", "", 1).lstrip("-").isdigit():
            return normalize_timestamp(float(s))

    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError) as e:
        raise InvalidSeriesError(f"Invalid timestamp: {value!r} ({e})") from e
    if ts is pd.NaT:
        raise InvalidSeriesError(f"Invalid timestamp: {value!r}")

    if ts.tzinfo is None:
        ts = ts.tz_localize(timezone.utc)
    return int(ts.timestamp())


def validate_series(series: List[PricePoint]) -> List[PricePoint]:
    """
    Check that a series is timestamp-sorted, unique and has finite prices.

    Returns:
        The same list, for chaining

    Raises:
        InvalidSeriesError: On the first violation found
    """
    previous = None
    for i, point in enumerate(series):
        prices = (point.open, point.high, point.low, point.close)
        if not all(math.isfinite(p) for p in prices):
            raise InvalidSeriesError(f"Non-finite price at bar {i} ({point.timestamp})")
        if point.high < point.low:
            raise InvalidSeriesError(f"High below low at bar {i} ({point.timestamp})")
        if previous is not None and point.timestamp <= previous:
            raise InvalidSeriesError(
                f"Timestamps must be strictly ascending: bar {i} ({point.timestamp}) "
                f"follows {previous}"
            )
        previous = point.timestamp
    return series


def record_to_point(record: Mapping[str, Any]) -> PricePoint:
    """Build a PricePoint from a mapping with any of the accepted column spellings."""
    fields = {}
    for key, value in record.items():
        canonical = _COLUMN_ALIASES.get(str(key).strip().lower())
        if canonical is not None and canonical not in fields:
            fields[canonical] = value

    missing = {"timestamp", "open", "high", "low", "close"} - fields.keys()
    if missing:
        raise InvalidSeriesError(f"Record is missing fields: {sorted(missing)}")

    volume = fields.get("volume")
    if volume is None or (isinstance(volume, float) and math.isnan(volume)):
        volume = 0

    return PricePoint(
        timestamp=normalize_timestamp(fields["timestamp"]),
        open=float(fields["open"]),
        high=float(fields["high"]),
        low=float(fields["low"]),
        close=float(fields["close"]),
        volume=int(volume),
    )


def records_to_series(records: Iterable[Mapping[str, Any]]) -> List[PricePoint]:
    """Convert an iterable of mappings into a validated PricePoint list."""
    return validate_series([record_to_point(r) for r in records])


def frame_to_series(df: pd.DataFrame) -> List[PricePoint]:
    """
    Convert an OHLCV DataFrame into a validated PricePoint list.

    Handles the yfinance layout (DatetimeIndex, possibly MultiIndex columns)
    and plain CSV layouts with a Date/Timestamp column. Rows with missing
    prices are dropped; missing volume becomes 0. Rows are sorted by time and
    duplicate timestamps keep the last row.
    """
    if df is None or df.empty:
        return []

    df = df.copy()

    # Flatten multi-level columns (yfinance returns (field, ticker) pairs)
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = df.columns.get_level_values(0)

    df.columns = [str(c).strip().lower() for c in df.columns]

    time_col = next((c for c in ("timestamp", "time", "date", "datetime") if c in df.columns), None)
    if time_col is None:
        df = df.reset_index()
        df.columns = [str(c).strip().lower() for c in df.columns]
        time_col = df.columns[0]

    missing = {"open", "high", "low", "close"} - set(df.columns)
    if missing:
        raise InvalidSeriesError(f"DataFrame is missing columns: {sorted(missing)}")

    df = df.dropna(subset=["open", "high", "low", "close"])
    if "volume" not in df.columns:
        df["volume"] = 0
    df["volume"] = df["volume"].fillna(0)

    df["epoch"] = [normalize_timestamp(v) for v in df[time_col]]
    df = df.sort_values("epoch", kind="stable").drop_duplicates(subset="epoch", keep="last")

    series = [
        PricePoint(
            timestamp=int(row.epoch),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=int(row.volume),
        )
        for row in df.itertuples(index=False)
    ]
    return validate_series(series)


def prepare_series(data: Any) -> List[PricePoint]:
    """
    Normalize whatever a provider returned into a validated PricePoint list.

    Accepts a DataFrame, a list of PricePoint, or an iterable of mappings.
    None becomes an empty list.
    """
    if data is None:
        return []
    if isinstance(data, pd.DataFrame):
        return frame_to_series(data)

    items = list(data)
    if all(isinstance(item, PricePoint) for item in items):
        return validate_series(items)
    return records_to_series(items)
