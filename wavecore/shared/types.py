"""
Shared types for the wave analysis engine.

PricePoint and Pivot are the inputs of the pure stages; FibTarget and
WaveAnalysisResult are what the cache stores and consumers read. All of them
are frozen dataclasses holding tuples, so a result handed out by the cache
cannot be mutated in place.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..indicators.elliott_types import Wave, WaveLabel


class PivotKind(Enum):
    """Kind of turning point."""
    HIGH = "high"
    LOW = "low"

    @property
    def opposite(self) -> "PivotKind":
        return PivotKind.LOW if self is PivotKind.HIGH else PivotKind.HIGH


class Trend(Enum):
    """Direction of the impulse the current wave belongs to."""
    BULLISH = "bullish"
    BEARISH = "bearish"


@dataclass(frozen=True)
class PricePoint:
    """
    Represents a single OHLCV bar.

    Attributes:
        timestamp: Epoch seconds (normalized at ingestion, see data.preparation)
        open: Opening price
        high: Highest price during period
        low: Lowest price during period
        close: Closing price
        volume: Traded volume (0 if unavailable)
    """
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


@dataclass(frozen=True)
class Pivot:
    """A confirmed local high or low; ``index`` is the bar that produced it."""
    timestamp: int
    price: float
    kind: PivotKind
    index: int = -1


@dataclass(frozen=True)
class FibTarget:
    """A candidate price target derived from a Fibonacci ratio."""
    label: str
    price: float
    is_extension: bool
    ratio: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "price": self.price,
            "is_extension": self.is_extension,
            "ratio": self.ratio,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FibTarget":
        return cls(
            label=str(data["label"]),
            price=float(data["price"]),
            is_extension=bool(data["is_extension"]),
            ratio=float(data.get("ratio", 0.0)),
        )


@dataclass(frozen=True)
class WaveAnalysisResult:
    """
    Output of one full pipeline run for a (symbol, timeframe) key.

    Superseded (never mutated) by the next run for the same key.
    """
    symbol: str
    timeframe: str
    waves: Tuple[Wave, ...]
    current_wave: Wave
    fib_targets: Tuple[FibTarget, ...]
    trend: Trend
    computed_at: int
    last_price: Optional[float] = None
    pivot_count: int = field(default=0, compare=False)

    @property
    def impulse_pattern(self) -> bool:
        """True when the labeling contains a wave 5."""
        return any(w.label == WaveLabel.WAVE_5 for w in self.waves)

    @property
    def corrective_pattern(self) -> bool:
        """True when the labeling contains a wave C."""
        return any(w.label == WaveLabel.WAVE_C for w in self.waves)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary (cache payload format)."""
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "waves": [w.to_dict() for w in self.waves],
            "current_wave": self.current_wave.to_dict(),
            "fib_targets": [t.to_dict() for t in self.fib_targets],
            "trend": self.trend.value,
            "computed_at": self.computed_at,
            "last_price": self.last_price,
            "pivot_count": self.pivot_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WaveAnalysisResult":
        """Create from dictionary (inverse of to_dict)."""
        return cls(
            symbol=data["symbol"],
            timeframe=data["timeframe"],
            waves=tuple(Wave.from_dict(w) for w in data["waves"]),
            current_wave=Wave.from_dict(data["current_wave"]),
            fib_targets=tuple(FibTarget.from_dict(t) for t in data["fib_targets"]),
            trend=Trend(data["trend"]),
            computed_at=int(data["computed_at"]),
            last_price=data.get("last_price"),
            pivot_count=int(data.get("pivot_count", 0)),
        )
