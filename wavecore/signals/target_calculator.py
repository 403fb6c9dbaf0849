"""
Calculates Fibonacci price targets for the currently forming wave.

Uses the leg immediately preceding the current wave:
- Corrective current wave (2, 4, B): retracements of the preceding leg
- Impulse current wave (1, 3, 5, A, C): extensions projected from the preceding leg

The calculator always returns the full candidate set. Deciding which targets
are still "ahead" of price is a presentation concern handled by
targets_ahead() and the reversal-candidate helpers below.
"""
from typing import Iterable, List, Optional, Sequence

from ..indicators.elliott_types import Wave, WaveType
from ..shared.defaults import EXTENSION_RATIOS, RETRACEMENT_RATIOS
from ..shared.types import FibTarget, WaveAnalysisResult


def _ratio_label(ratio: float) -> str:
    return str(ratio)


def _preceding_wave(waves: Sequence[Wave], current_wave: Wave) -> Optional[Wave]:
    """Wave right before current_wave in the labeled sequence."""
    for i in range(len(waves) - 1, -1, -1):
        if waves[i] == current_wave:
            return waves[i - 1] if i > 0 else None
    return None


def fib_retracements(leg_start: float, leg_end: float, ratios: Iterable[float] = RETRACEMENT_RATIOS) -> List[FibTarget]:
    """Retracement levels of a leg: leg_end - ratio * (leg_end - leg_start)."""
    diff = leg_end - leg_start
    return [
        FibTarget(label=_ratio_label(r), price=leg_end - r * diff, is_extension=False, ratio=r)
        for r in ratios
    ]


def fib_extensions(leg_start: float, leg_end: float, ratios: Iterable[float] = EXTENSION_RATIOS) -> List[FibTarget]:
    """Extension levels projected from a leg: leg_start + ratio * (leg_end - leg_start)."""
    diff = leg_end - leg_start
    return [
        FibTarget(label=_ratio_label(r), price=leg_start + r * diff, is_extension=True, ratio=r)
        for r in ratios
    ]


class TargetCalculator:
    """Calculates Fibonacci targets for the current wave of a labeling."""

    def __init__(
        self,
        retracement_ratios: Sequence[float] = RETRACEMENT_RATIOS,
        extension_ratios: Sequence[float] = EXTENSION_RATIOS,
    ):
        """
        Initialize the target calculator.

        Args:
            retracement_ratios: Ratios used for corrective current waves
            extension_ratios: Ratios used for impulse current waves
        """
        self.retracement_ratios = tuple(retracement_ratios)
        self.extension_ratios = tuple(extension_ratios)

    def compute_fib_targets(self, waves: Sequence[Wave], current_wave: Optional[Wave]) -> List[FibTarget]:
        """
        Compute candidate targets for the current wave.

        Args:
            waves: Labeled waves in chronological order
            current_wave: The still-open wave (normally waves[-1])

        Returns:
            Unfiltered targets; empty when there is no preceding leg
        """
        if current_wave is None:
            return []

        previous = _preceding_wave(waves, current_wave)
        if previous is None or previous.end_price is None:
            return []

        if current_wave.wave_type == WaveType.CORRECTIVE:
            return fib_retracements(previous.start_price, previous.end_price, self.retracement_ratios)
        return fib_extensions(previous.start_price, previous.end_price, self.extension_ratios)


def compute_fib_targets(waves: Sequence[Wave], current_wave: Optional[Wave]) -> List[FibTarget]:
    """Compute targets with the default ratio sets."""
    return TargetCalculator().compute_fib_targets(waves, current_wave)


def targets_ahead(targets: Iterable[FibTarget], current_wave: Wave, price: float) -> List[FibTarget]:
    """
    Targets not yet reached by price, in the direction the current wave is moving.

    A rising wave keeps targets above price, a falling wave keeps targets below.
    """
    rising = current_wave.direction != "down"
    if rising:
        return [t for t in targets if t.price > price]
    return [t for t in targets if t.price < price]


def is_reversal_candidate(result: WaveAnalysisResult) -> bool:
    """
    True when the current wave has already met every Fibonacci target.

    Uses the current wave's end price (the latest close) as the price.
    """
    wave = result.current_wave
    if not result.fib_targets or wave.end_price is None:
        return False
    return not targets_ahead(result.fib_targets, wave, wave.end_price)


def reversal_candidates(results: Iterable[WaveAnalysisResult], limit: int = 5) -> List[WaveAnalysisResult]:
    """Reversal candidates, most recently started current wave first."""
    candidates = [r for r in results if is_reversal_candidate(r)]
    candidates.sort(key=lambda r: r.current_wave.start_timestamp, reverse=True)
    return candidates[:limit]
