"""
Zig-zag pivot extraction.

Reduces an OHLCV series to its significant turning points. A reversal is
only confirmed once price moves at least ``min_swing_percent`` away from the
running extreme; smaller moves are noise.

Guarantees on the output:
- strictly alternating HIGH/LOW kinds
- chronological, one pivot per bar at most
- pivot prices are the bar's high (HIGH) or low (LOW), never the close
- the last pivot is the running extreme of the still-forming leg
"""
import logging
from typing import List, Optional, Sequence

from ..shared.errors import InvalidSeriesError
from ..shared.types import Pivot, PivotKind, PricePoint


logger = logging.getLogger(__name__)


def _swing_pct(from_price: float, to_price: float) -> float:
    """Percentage move from from_price to to_price (absolute)."""
    if from_price == 0:
        return 0.0
    return abs(to_price - from_price) / abs(from_price) * 100.0


def _check_sorted(series: Sequence[PricePoint]) -> None:
    for i in range(1, len(series)):
        if series[i].timestamp <= series[i - 1].timestamp:
            raise InvalidSeriesError(
                f"Series must be sorted by unique timestamp (bar {i}: "
                f"{series[i].timestamp} after {series[i - 1].timestamp})"
            )


def _pivot(series: Sequence[PricePoint], idx: int, kind: PivotKind) -> Pivot:
    bar = series[idx]
    price = bar.high if kind is PivotKind.HIGH else bar.low
    return Pivot(timestamp=bar.timestamp, price=price, kind=kind, index=idx)


def extract_pivots(series: Sequence[PricePoint], min_swing_percent: float) -> List[Pivot]:
    """
    Extract alternating high/low pivots with a zig-zag filter.

    Args:
        series: Timestamp-sorted OHLCV bars
        min_swing_percent: Minimum reversal in percent (2.0 = 2%) that confirms a pivot

    Returns:
        List of pivots. Empty for series shorter than 2 bars and for series
        that never move min_swing_percent in either direction.

    Raises:
        ValueError: If min_swing_percent is not positive
        InvalidSeriesError: If timestamps are not strictly ascending
    """
    if min_swing_percent <= 0:
        raise ValueError(f"min_swing_percent must be > 0, got {min_swing_percent}")
    if len(series) < 2:
        return []
    _check_sorted(series)

    pivots: List[Pivot] = []

    # Phase 1: no direction yet. Track the extremes seen so far until one bar
    # moves far enough away from the opposite extreme.
    high_idx = 0
    low_idx = 0
    direction: Optional[PivotKind] = None  # Kind of the extreme being tracked
    extreme_idx = 0

    i = 1
    while i < len(series) and direction is None:
        bar = series[i]
        up_move = _swing_pct(series[low_idx].low, bar.high)
        down_move = _swing_pct(series[high_idx].high, bar.low)
        rises = bar.high > series[low_idx].low and up_move >= min_swing_percent
        falls = bar.low < series[high_idx].high and down_move >= min_swing_percent

        if rises and (not falls or up_move >= down_move):
            pivots.append(_pivot(series, low_idx, PivotKind.LOW))
            direction, extreme_idx = PivotKind.HIGH, i
        elif falls:
            pivots.append(_pivot(series, high_idx, PivotKind.HIGH))
            direction, extreme_idx = PivotKind.LOW, i
        else:
            if bar.high > series[high_idx].high:
                high_idx = i
            if bar.low < series[low_idx].low:
                low_idx = i
        i += 1

    if direction is None:
        logger.debug(f"No swing of {min_swing_percent}% in {len(series)} bars, no pivots")
        return []

    # Phase 2: follow the running extreme and flip on confirmed reversals.
    for j in range(i, len(series)):
        bar = series[j]
        if direction is PivotKind.HIGH:
            extreme = series[extreme_idx].high
            if bar.high > extreme:
                extreme_idx = j
            elif _swing_pct(extreme, bar.low) >= min_swing_percent:
                pivots.append(_pivot(series, extreme_idx, PivotKind.HIGH))
                direction, extreme_idx = PivotKind.LOW, j
        else:
            extreme = series[extreme_idx].low
            if bar.low < extreme:
                extreme_idx = j
            elif _swing_pct(extreme, bar.high) >= min_swing_percent:
                pivots.append(_pivot(series, extreme_idx, PivotKind.LOW))
                direction, extreme_idx = PivotKind.HIGH, j

    # The running extreme is the live end of the current leg
    pivots.append(_pivot(series, extreme_idx, direction))
    return pivots


def extract_pivots_adaptive(
    series: Sequence[PricePoint],
    min_swing_percent: float,
    fallback_swing_percent: Optional[float] = None,
    min_pivots: int = 5,
) -> List[Pivot]:
    """
    Extract pivots, retrying with a lower threshold when too few are found.

    The fallback result is used only if it contains more pivots than the
    primary one.
    """
    pivots = extract_pivots(series, min_swing_percent)
    if (
        fallback_swing_percent is None
        or fallback_swing_percent >= min_swing_percent
        or len(pivots) >= min_pivots
    ):
        return pivots

    retry = extract_pivots(series, fallback_swing_percent)
    if len(retry) > len(pivots):
        logger.debug(
            f"Threshold {min_swing_percent}% gave {len(pivots)} pivots, "
            f"using {fallback_swing_percent}% ({len(retry)} pivots)"
        )
        return retry
    return pivots
