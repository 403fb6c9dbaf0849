"""
Tests for Fibonacci target calculation.
"""
import pytest

from wavecore.indicators.elliott_types import Wave, WaveLabel
from wavecore.indicators.elliott_wave import label_waves
from wavecore.shared.types import FibTarget, Trend, WaveAnalysisResult
from wavecore.signals.target_calculator import (
    TargetCalculator,
    compute_fib_targets,
    fib_extensions,
    fib_retracements,
    is_reversal_candidate,
    reversal_candidates,
    targets_ahead,
)


def _wave(label, start, end, t=0, complete=True):
    return Wave(
        label=WaveLabel.parse(label),
        start_timestamp=t,
        start_price=start,
        end_timestamp=t + 1,
        end_price=end,
        is_complete=complete,
    )


def _result(symbol, waves, targets, start=0):
    return WaveAnalysisResult(
        symbol=symbol,
        timeframe="1d",
        waves=tuple(waves),
        current_wave=waves[-1],
        fib_targets=tuple(targets),
        trend=Trend.BULLISH,
        computed_at=start,
    )


class TestFibLevels:
    """Test raw retracement/extension math."""

    def test_retracements_of_up_leg(self):
        levels = fib_retracements(100.0, 120.0)

        assert [t.label for t in levels] == ["0.236", "0.382", "0.5", "0.618", "0.786"]
        assert [t.price for t in levels] == pytest.approx([115.28, 112.36, 110.0, 107.64, 104.28])
        assert not any(t.is_extension for t in levels)

    def test_retracements_of_down_leg(self):
        levels = fib_retracements(120.0, 100.0, ratios=(0.5,))
        assert levels[0].price == pytest.approx(110.0)

    def test_extensions_of_up_leg(self):
        levels = fib_extensions(100.0, 120.0)

        assert [t.label for t in levels] == ["1.0", "1.272", "1.618", "2.0", "2.618"]
        assert [t.price for t in levels] == pytest.approx([120.0, 125.44, 132.36, 140.0, 152.36])
        assert all(t.is_extension for t in levels)

    def test_extensions_of_down_leg(self):
        levels = fib_extensions(125.0, 110.0, ratios=(1.0, 1.618))
        assert [t.price for t in levels] == pytest.approx([110.0, 100.73])


class TestTargetCalculator:
    """Test target selection by current wave type."""

    def test_corrective_wave_uses_retracements(self):
        waves = [_wave(1, 100, 120, 0), _wave(2, 120, 112, 1, complete=False)]
        targets = compute_fib_targets(waves, waves[-1])

        assert len(targets) == 5
        assert not any(t.is_extension for t in targets)
        assert targets[1].price == pytest.approx(112.36)

    def test_impulse_wave_uses_extensions(self, canonical_pivots):
        labeling = label_waves(canonical_pivots)
        targets = compute_fib_targets(labeling.waves, labeling.current_wave)

        # Current wave C, preceding wave B from 125 to 110
        assert all(t.is_extension for t in targets)
        assert [t.price for t in targets] == pytest.approx([110.0, 105.92, 100.73, 95.0, 85.73])

    def test_first_wave_has_no_targets(self):
        waves = [_wave(1, 100, 120, complete=False)]
        assert compute_fib_targets(waves, waves[0]) == []

    def test_no_current_wave(self):
        assert compute_fib_targets([], None) == []

    def test_custom_ratios(self):
        calculator = TargetCalculator(retracement_ratios=(0.5,), extension_ratios=(2.0,))
        waves = [_wave(1, 100, 120, 0), _wave(2, 120, 110, 1), _wave(3, 110, 130, 2, complete=False)]

        targets = calculator.compute_fib_targets(waves, waves[-1])
        assert targets == [FibTarget(label="2.0", price=100.0, is_extension=True, ratio=2.0)]


class TestPresentationHelpers:
    """Test targets_ahead and reversal candidates."""

    def test_targets_ahead_for_rising_wave(self):
        targets = fib_extensions(100.0, 120.0)
        current = _wave(3, 110, 130, complete=False)

        ahead = targets_ahead(targets, current, 130.0)
        assert [t.label for t in ahead] == ["1.618", "2.0", "2.618"]

    def test_targets_ahead_for_falling_wave(self):
        targets = fib_retracements(100.0, 120.0)
        current = _wave(2, 120, 111, complete=False)

        ahead = targets_ahead(targets, current, 111.0)
        assert [t.label for t in ahead] == ["0.5", "0.618", "0.786"]

    def test_reversal_candidate_when_all_targets_reached(self):
        waves = [_wave(1, 100, 120, 0), _wave(2, 120, 110, 1), _wave(3, 110, 160, 2, complete=False)]
        reached = _result("HIT", waves, fib_extensions(120.0, 110.0))
        assert is_reversal_candidate(reached)

        waves = [_wave(1, 100, 120, 0), _wave(2, 120, 110, 1), _wave(3, 110, 115, 2, complete=False)]
        pending = _result("PEND", waves, fib_extensions(100.0, 120.0))
        assert not is_reversal_candidate(pending)

    def test_no_targets_is_not_a_candidate(self):
        waves = [_wave(1, 100, 120, complete=False)]
        assert not is_reversal_candidate(_result("X", waves, []))

    def test_reversal_candidates_newest_first(self):
        def candidate(symbol, t):
            waves = [_wave(1, 100, 120, t), _wave(2, 120, 110, t + 1, complete=False)]
            return _result(symbol, waves, fib_retracements(130.0, 140.0))

        results = [candidate("OLD", 10), candidate("NEW", 50), candidate("MID", 30)]
        ranked = reversal_candidates(results, limit=2)

        assert [r.symbol for r in ranked] == ["NEW", "MID"]
