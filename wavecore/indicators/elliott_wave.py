"""
Elliott Wave labeling over a pivot sequence.

Elliott Wave Theory identifies recurring patterns in price movements:
- Impulse: 5 legs in the direction of the trend (1, 2, 3, 4, 5)
- Correction: 3 legs against it (A, B, C)

Each pair of adjacent pivots is one leg. The labeler walks the legs forward,
expecting 1-2-3-4-5-A-B-C and starting a fresh impulse after C. Rules
enforced while walking:
- Waves 2 and 4 move against wave 1, waves 3 and 5 with it
- Wave 2 cannot retrace beyond the start of wave 1
- Wave 4 cannot retrace beyond the start of wave 1
- Wave 3 cannot be strictly shorter than both wave 1 and wave 5

A leg that breaks the wave 2/3/4/5 rules starts a new impulse as wave 1; the
aborted partial impulse keeps its labels. A wave 3 that turns out to be the
shortest invalidates its whole impulse: labels from that wave 1 on are
dropped and the walk restarts at the following leg.

With no completed impulse the result is simply the in-progress impulse
starting at the earliest pivots.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..shared.types import Pivot, PivotKind
from .elliott_types import Wave, WaveLabel


logger = logging.getLogger(__name__)

# (leg index, label) pairs; the walk's append-only arena
_Entry = Tuple[int, WaveLabel]


@dataclass(frozen=True)
class WaveLabeling:
    """
    Result of labeling a pivot sequence.

    Attributes:
        waves: Labeled legs in chronological order (the current wave is last)
        current_wave: The still-open last leg, None with fewer than 2 pivots
        last_wave_one_index: Index into ``waves`` of the most recent wave 1
        pivots: The pivots that were labeled
        leg_indices: Leg index (start pivot index) of each wave
        resume_leg: Leg of the wave 1 anchoring the walk when it first reached
            the live leg; relabeling from here reproduces a full walk
    """
    waves: Tuple[Wave, ...]
    current_wave: Optional[Wave]
    last_wave_one_index: Optional[int]
    pivots: Tuple[Pivot, ...] = ()
    leg_indices: Tuple[int, ...] = ()
    resume_leg: Optional[int] = None

    @property
    def last_wave_one(self) -> Optional[Wave]:
        if self.last_wave_one_index is None:
            return None
        return self.waves[self.last_wave_one_index]


def find_last_wave_one(waves: Sequence[Wave]) -> Optional[int]:
    """Scan backward for the most recent wave labeled 1; returns its index."""
    for i in range(len(waves) - 1, -1, -1):
        if waves[i].label == WaveLabel.WAVE_1:
            return i
    return None


def validate_impulse(waves: Sequence[Wave]) -> List[str]:
    """
    Check every complete 1-2-3-4-5 run against the structural rules.

    Returns:
        Human-readable violations (empty when all impulses are valid)
    """
    violations = []
    labels = [w.label for w in waves]
    impulse = [WaveLabel.WAVE_1, WaveLabel.WAVE_2, WaveLabel.WAVE_3, WaveLabel.WAVE_4, WaveLabel.WAVE_5]

    for i in range(len(waves) - 4):
        if labels[i:i + 5] != impulse:
            continue
        w1, w2, w3, w4, w5 = waves[i:i + 5]
        up = w1.end_price >= w1.start_price

        if up and w2.end_price <= w1.start_price or not up and w2.end_price >= w1.start_price:
            violations.append(f"wave 2 at {w2.start_timestamp} retraces beyond wave 1 start")
        if up and w4.end_price <= w1.start_price or not up and w4.end_price >= w1.start_price:
            violations.append(f"wave 4 at {w4.start_timestamp} overlaps wave 1 origin")
        if w3.magnitude < w1.magnitude and w3.magnitude < w5.magnitude:
            violations.append(f"wave 3 at {w3.start_timestamp} is the shortest impulse leg")

    return violations


class WaveLabeler:
    """Assigns Elliott Wave labels to the legs of a pivot sequence."""

    def label(self, pivots: Sequence[Pivot]) -> WaveLabeling:
        """
        Label all legs of a pivot sequence.

        Args:
            pivots: Chronological pivots (normally from extract_pivots)

        Returns:
            WaveLabeling; empty waves and current_wave=None with fewer than 2 pivots
        """
        pivots = tuple(pivots)
        if len(pivots) < 2:
            return WaveLabeling(waves=(), current_wave=None, last_wave_one_index=None, pivots=pivots)

        arena, resume_leg = self._walk(pivots, [], 0)
        return self._build(pivots, arena, resume_leg)

    def resume(self, previous: WaveLabeling, pivots: Sequence[Pivot]) -> WaveLabeling:
        """
        Relabel after new pivots arrived, reusing the stable part of a previous labeling.

        Every wave before the previous anchor wave 1 is kept and the walk
        resumes from that anchor. Falls back to a full label() when the new
        pivots do not extend the previous confirmed pivots.
        """
        pivots = tuple(pivots)
        if not self._extends(previous, pivots):
            logger.debug("Pivots do not extend previous labeling, relabeling from scratch")
            return self.label(pivots)

        prefix = [
            (leg, wave.label)
            for leg, wave in zip(previous.leg_indices, previous.waves)
            if leg < previous.resume_leg
        ]
        arena, resume_leg = self._walk(pivots, prefix, previous.resume_leg)
        return self._build(pivots, arena, resume_leg)

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    def _walk(
        self,
        pivots: Tuple[Pivot, ...],
        arena: List[_Entry],
        start_leg: int,
    ) -> Tuple[List[_Entry], Optional[int]]:
        """Forward walk from start_leg, expecting a wave 1 there."""
        n_legs = len(pivots) - 1
        last_leg = n_legs - 1
        anchor: Optional[int] = None  # Arena index of the current wave 1
        resume_leg: Optional[int] = None
        expected = WaveLabel.WAVE_1
        k = start_leg

        while k < n_legs:
            if expected is WaveLabel.WAVE_1:
                arena.append((k, WaveLabel.WAVE_1))
                anchor = len(arena) - 1
                expected = WaveLabel.WAVE_2
                if k == last_leg and resume_leg is None:
                    resume_leg = k
                k += 1
                continue

            if k == last_leg and resume_leg is None:
                resume_leg = arena[anchor][0]

            w1_leg = arena[anchor][0]
            if not self._fits(pivots, w1_leg, k, expected):
                logger.debug(f"Leg {k} breaks wave {expected.value}, starting new impulse")
                expected = WaveLabel.WAVE_1
                continue

            arena.append((k, expected))

            if expected is WaveLabel.WAVE_5 and self._wave3_shortest(pivots, arena[anchor:]):
                logger.debug(f"Wave 3 shortest in impulse from leg {w1_leg}, restarting at leg {w1_leg + 1}")
                del arena[anchor:]
                anchor = None
                expected = WaveLabel.WAVE_1
                k = w1_leg + 1
                continue

            expected = expected.next()
            k += 1

        return arena, resume_leg

    def _fits(self, pivots: Tuple[Pivot, ...], w1_leg: int, k: int, expected: WaveLabel) -> bool:
        """Check whether leg k may carry the expected label in the impulse anchored at w1_leg."""
        if expected in (WaveLabel.WAVE_A, WaveLabel.WAVE_B, WaveLabel.WAVE_C):
            return True

        impulse_up = self._is_up(pivots, w1_leg)
        leg_up = self._is_up(pivots, k)

        if expected in (WaveLabel.WAVE_3, WaveLabel.WAVE_5):
            return leg_up == impulse_up

        # Waves 2 and 4: counter-trend and never beyond wave 1's origin
        if leg_up == impulse_up:
            return False
        origin = pivots[w1_leg].price
        end = pivots[k + 1].price
        return end > origin if impulse_up else end < origin

    @staticmethod
    def _is_up(pivots: Tuple[Pivot, ...], leg: int) -> bool:
        start, end = pivots[leg].price, pivots[leg + 1].price
        if end != start:
            return end > start
        return pivots[leg].kind is PivotKind.LOW

    @staticmethod
    def _wave3_shortest(pivots: Tuple[Pivot, ...], impulse: List[_Entry]) -> bool:
        def size(leg: int) -> float:
            return abs(pivots[leg + 1].price - pivots[leg].price)

        w1, w3, w5 = size(impulse[0][0]), size(impulse[2][0]), size(impulse[4][0])
        return w3 < w1 and w3 < w5

    # ------------------------------------------------------------------
    # Result assembly
    # ------------------------------------------------------------------

    def _build(
        self,
        pivots: Tuple[Pivot, ...],
        arena: List[_Entry],
        resume_leg: Optional[int],
    ) -> WaveLabeling:
        last_leg = len(pivots) - 2
        waves = tuple(
            Wave(
                label=label,
                start_timestamp=pivots[leg].timestamp,
                start_price=pivots[leg].price,
                end_timestamp=pivots[leg + 1].timestamp,
                end_price=pivots[leg + 1].price,
                is_complete=leg != last_leg,
            )
            for leg, label in arena
        )

        violations = validate_impulse(waves)
        if violations:
            logger.warning(f"Labeling produced invalid impulses: {violations}")

        return WaveLabeling(
            waves=waves,
            current_wave=waves[-1] if waves else None,
            last_wave_one_index=find_last_wave_one(waves),
            pivots=pivots,
            leg_indices=tuple(leg for leg, _ in arena),
            resume_leg=resume_leg,
        )

    @staticmethod
    def _extends(previous: WaveLabeling, pivots: Tuple[Pivot, ...]) -> bool:
        """True when pivots repeat every confirmed pivot of previous (all but its live end)."""
        if previous.resume_leg is None or len(previous.pivots) < 2:
            return False
        confirmed = previous.pivots[:-1]
        if len(pivots) < len(confirmed) + 1:
            return False
        return all(
            (a.timestamp, a.price, a.kind) == (b.timestamp, b.price, b.kind)
            for a, b in zip(confirmed, pivots)
        )


def label_waves(pivots: Sequence[Pivot]) -> WaveLabeling:
    """Label a pivot sequence with a default WaveLabeler."""
    return WaveLabeler().label(pivots)
