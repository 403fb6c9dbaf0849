"""Shared fixtures: synthetic bars and pivots."""
import pytest

from wavecore.shared.types import Pivot, PivotKind, PricePoint


DAY = 86400
START = 1_704_067_200  # 2024-01-01 00:00:00 UTC

# Zig-zag closes that produce a 1-2-3-4-5 impulse and an open wave A at 3%
ZIGZAG_PRICES = [100, 104, 110, 107, 105, 112, 118, 114, 109, 116, 124, 120]

# Canonical 5-up/3-down pivot prices
CANONICAL_PIVOT_PRICES = [100, 120, 110, 130, 115, 140, 125, 110, 118]


def bars(prices, start=START, step=DAY):
    """One flat bar (open=high=low=close) per price."""
    return [
        PricePoint(timestamp=start + i * step, open=p, high=p, low=p, close=p, volume=1000)
        for i, p in enumerate(prices)
    ]


def pivots(prices, start=START, step=DAY):
    """Pivots at the given prices; kind follows the direction of the next move."""
    result = []
    for i, p in enumerate(prices):
        if i + 1 < len(prices):
            kind = PivotKind.LOW if prices[i + 1] > p else PivotKind.HIGH
        else:
            kind = PivotKind.HIGH if p > prices[i - 1] else PivotKind.LOW
        result.append(Pivot(timestamp=start + i * step, price=float(p), kind=kind, index=i))
    return result


@pytest.fixture
def make_bars():
    return bars


@pytest.fixture
def make_pivots():
    return pivots


@pytest.fixture
def zigzag_bars():
    return bars(ZIGZAG_PRICES)


@pytest.fixture
def rising_bars():
    """10 bars, each 2% above the previous one."""
    return bars([100 * 1.02 ** i for i in range(10)])


@pytest.fixture
def canonical_pivots():
    return pivots(CANONICAL_PIVOT_PRICES)


class FakeClock:
    """Callable clock returning a settable epoch time."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
