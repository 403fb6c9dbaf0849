"""
Elliott Wave types: wave type, label, and Wave dataclass.

Kept separate from the labeler so the cache, target calculator and CLI can use
Wave/WaveType/WaveLabel without pulling in the labeling walk.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class WaveType(Enum):
    """Type of Elliott Wave."""
    IMPULSE = "impulse"  # Waves 1, 3, 5, A, C
    CORRECTIVE = "corrective"  # Waves 2, 4, B


class WaveLabel(Enum):
    """Labels for Elliott Waves."""
    WAVE_1 = "1"
    WAVE_2 = "2"
    WAVE_3 = "3"
    WAVE_4 = "4"
    WAVE_5 = "5"
    WAVE_A = "A"
    WAVE_B = "B"
    WAVE_C = "C"

    @property
    def wave_type(self) -> WaveType:
        """Odd numbers and A/C are impulse-like; even numbers and B are corrective."""
        if self in (WaveLabel.WAVE_2, WaveLabel.WAVE_4, WaveLabel.WAVE_B):
            return WaveType.CORRECTIVE
        return WaveType.IMPULSE

    @property
    def number(self) -> Union[int, str]:
        """Display form: 1-5 as integers, A-C as letters."""
        return int(self.value) if self.value.isdigit() else self.value

    def next(self) -> "WaveLabel":
        """Label expected after this one (C wraps around to a fresh wave 1)."""
        idx = LABEL_SEQUENCE.index(self)
        return LABEL_SEQUENCE[(idx + 1) % len(LABEL_SEQUENCE)]

    @classmethod
    def parse(cls, value: Union[int, str, "WaveLabel"]) -> "WaveLabel":
        """Accept 1, "1", "a", "A" or a WaveLabel."""
        if isinstance(value, WaveLabel):
            return value
        return cls(str(value).strip().upper())


LABEL_SEQUENCE = (
    WaveLabel.WAVE_1,
    WaveLabel.WAVE_2,
    WaveLabel.WAVE_3,
    WaveLabel.WAVE_4,
    WaveLabel.WAVE_5,
    WaveLabel.WAVE_A,
    WaveLabel.WAVE_B,
    WaveLabel.WAVE_C,
)


@dataclass(frozen=True)
class Wave:
    """
    Represents a single labeled Elliott Wave leg.

    ``wave_type`` is redundant with ``label`` and is derived from it when
    omitted; passing a contradicting type raises ValueError.
    ``end_timestamp``/``end_price`` may only be absent on the current wave.
    """
    label: WaveLabel
    start_timestamp: int
    start_price: float
    end_timestamp: Optional[int] = None
    end_price: Optional[float] = None
    is_complete: bool = True
    wave_type: Optional[WaveType] = None

    def __post_init__(self):
        expected = self.label.wave_type
        if self.wave_type is None:
            object.__setattr__(self, "wave_type", expected)
        elif self.wave_type != expected:
            raise ValueError(
                f"Wave {self.label.value} must be {expected.value}, got {self.wave_type.value}"
            )
        if self.is_complete and (self.end_timestamp is None or self.end_price is None):
            raise ValueError(f"Complete wave {self.label.value} needs an end timestamp and price")

    @property
    def number(self) -> Union[int, str]:
        return self.label.number

    @property
    def direction(self) -> Optional[str]:
        """Return "up" or "down"; None while the wave has no end price."""
        if self.end_price is None:
            return None
        return "up" if self.end_price >= self.start_price else "down"

    @property
    def magnitude(self) -> float:
        if self.end_price is None:
            return 0.0
        return abs(self.end_price - self.start_price)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "number": self.label.value,
            "type": self.wave_type.value,
            "start_timestamp": self.start_timestamp,
            "start_price": self.start_price,
            "end_timestamp": self.end_timestamp,
            "end_price": self.end_price,
            "is_complete": self.is_complete,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Wave":
        """Create from dictionary (inverse of to_dict)."""
        return cls(
            label=WaveLabel.parse(data["number"]),
            wave_type=WaveType(data["type"]) if data.get("type") else None,
            start_timestamp=int(data["start_timestamp"]),
            start_price=float(data["start_price"]),
            end_timestamp=None if data.get("end_timestamp") is None else int(data["end_timestamp"]),
            end_price=None if data.get("end_price") is None else float(data["end_price"]),
            is_complete=bool(data.get("is_complete", True)),
        )
