"""
Tests for shared types and their cache serialization.
"""
import json

import pytest

from wavecore.indicators.elliott_types import Wave, WaveLabel
from wavecore.shared.types import FibTarget, PivotKind, PricePoint, Trend, WaveAnalysisResult


def _waves(labels):
    waves = []
    price = 100.0
    for i, label in enumerate(labels):
        end = price + (10 if i % 2 == 0 else -5)
        waves.append(Wave(label=WaveLabel.parse(label), start_timestamp=i, start_price=price,
                          end_timestamp=i + 1, end_price=end, is_complete=i < len(labels) - 1))
        price = end
    return tuple(waves)


def _result(labels):
    waves = _waves(labels)
    return WaveAnalysisResult(
        symbol="SPY",
        timeframe="1d",
        waves=waves,
        current_wave=waves[-1],
        fib_targets=(FibTarget(label="1.618", price=140.0, is_extension=True, ratio=1.618),),
        trend=Trend.BULLISH,
        computed_at=1_704_067_200,
        last_price=131.5,
        pivot_count=len(waves) + 1,
    )


class TestPivotKind:
    def test_opposite(self):
        assert PivotKind.HIGH.opposite == PivotKind.LOW
        assert PivotKind.LOW.opposite == PivotKind.HIGH


class TestPricePoint:
    def test_frozen(self):
        point = PricePoint(timestamp=1, open=1, high=2, low=0.5, close=1.5)
        assert point.volume == 0
        with pytest.raises(AttributeError):
            point.close = 3


class TestWaveAnalysisResult:
    """Test pattern flags and serialization."""

    def test_pattern_flags(self):
        assert not _result(["1", "2", "3"]).impulse_pattern
        assert _result(["1", "2", "3", "4", "5"]).impulse_pattern
        assert not _result(["1", "2", "3", "4", "5"]).corrective_pattern
        assert _result(["1", "2", "3", "4", "5", "A", "B", "C"]).corrective_pattern

    def test_dict_is_json_safe(self):
        result = _result(["1", "2", "3"])
        restored = WaveAnalysisResult.from_dict(json.loads(json.dumps(result.to_dict())))

        assert restored == result
        assert restored.pivot_count == 4
        assert restored.trend == Trend.BULLISH

    def test_waves_serialize_with_number_and_type(self):
        data = _result(["1", "2"]).to_dict()

        assert [w["number"] for w in data["waves"]] == ["1", "2"]
        assert [w["type"] for w in data["waves"]] == ["impulse", "corrective"]
        assert data["current_wave"]["is_complete"] is False
