"""
Movement Pattern Analyzers

Deterministic detection of synthetic pointer movement and machine-regular
input timing. No learning, no drift.

Architecture:
    MovementAggregator -> PatternAnalyzer battery -> AnalyzerResult list
                       -> MovementPatternModel.combine -> mouse_patterns factor

Analyzers:
    straight_line          - share of collinear sample triples
    velocity_consistency   - CV of velocity over a trailing sub-window
    timing_consistency     - CV of inter-arrival times (per input category)
    cardinal_angles        - share of movement along the screen axes
    consecutive_run        - long, long-distance, fast straight runs

Every analyzer reports "insufficient data" (applicable=False) below its
minimum sample count instead of guessing.
"""

import math
from collections import Counter
from typing import Dict, List, Optional, Sequence

import numpy as np

from sessionguard.config import DEFAULT_CONFIG, DetectionConfig, MovementThresholds, TimingThresholds
from sessionguard.processors.movement import MovementAggregator, Segment
from sessionguard.processors.timing import InputTimingProcessor
from sessionguard.schemas.inputs import InputCategory
from sessionguard.schemas.outputs import AnalyzerResult


# =============================================================================
# Helpers
# =============================================================================

def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def _ramp_up(value: float, start: float, end: float = 1.0) -> float:
    """0 at start, 1 at end, linear in between."""
    if end <= start:
        return 1.0 if value >= end else 0.0
    return _clamp((value - start) / (end - start))


def _ramp_down(value: float, flag: float, natural: float) -> float:
    """1 at or below flag, 0 at or above natural."""
    if value <= flag:
        return 1.0
    if value >= natural:
        return 0.0
    return (natural - value) / (natural - flag)


def coefficient_of_variation(values: Sequence[float]) -> Optional[float]:
    """Population std / mean, or None when the mean is not positive."""
    if len(values) < 2:
        return None
    arr = np.asarray(values, dtype=np.float64)
    mean = float(np.mean(arr))
    if mean <= 0.0:
        return None
    return float(np.std(arr)) / mean


def _angle_diff(a: float, b: float) -> float:
    """Smallest absolute difference between two angles in degrees."""
    diff = abs(a - b) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


# =============================================================================
# Analyzers
# =============================================================================

class PatternAnalyzer:
    """Base class for one movement analyzer."""

    name: str = "pattern"

    def __init__(self, thresholds: Optional[MovementThresholds] = None) -> None:
        self.thresholds = thresholds or DEFAULT_CONFIG.movement

    def analyze(self, aggregator: MovementAggregator) -> AnalyzerResult:
        raise NotImplementedError


class StraightLineAnalyzer(PatternAnalyzer):
    """
    Share of consecutive sample triples that are collinear.

    A triple counts as collinear when its triangle area is below
    collinear_area_factor times its longest side. Triples whose end points
    are closer than min_movement_px are excluded entirely so sub-pixel
    noise and stationary pauses do not count either way.
    """

    name = "straight_line"

    def analyze(self, aggregator: MovementAggregator) -> AnalyzerResult:
        t = self.thresholds
        samples = aggregator.samples
        total = 0
        collinear = 0

        for p1, p2, p3 in zip(samples, samples[1:], samples[2:]):
            span = math.hypot(p3.x - p1.x, p3.y - p1.y)
            if span <= t.min_movement_px:
                continue
            d12 = math.hypot(p2.x - p1.x, p2.y - p1.y)
            d23 = math.hypot(p3.x - p2.x, p3.y - p2.y)
            area = abs((p2.x - p1.x) * (p3.y - p1.y) - (p3.x - p1.x) * (p2.y - p1.y)) / 2.0
            total += 1
            if area < t.collinear_area_factor * max(d12, d23):
                collinear += 1

        if total < t.straight_line_min_triples:
            return AnalyzerResult.insufficient(self.name)

        ratio = collinear / total
        reasons = []
        if ratio > t.straight_line_flag_ratio:
            reasons.append(f"{ratio:.0%} of movement is perfectly straight")

        return AnalyzerResult(
            name=self.name,
            score=_ramp_up(ratio, t.straight_line_baseline),
            reasons=reasons,
            detail={"collinearity": ratio, "triples": float(total)},
        )


class VelocityConsistencyAnalyzer(PatternAnalyzer):
    """Flags movement whose speed barely varies."""

    name = "velocity_consistency"

    def analyze(self, aggregator: MovementAggregator) -> AnalyzerResult:
        t = self.thresholds
        velocities = aggregator.velocities()[-t.velocity_window:]
        if len(velocities) < t.velocity_min_samples:
            return AnalyzerResult.insufficient(self.name)

        cv = coefficient_of_variation(velocities)
        if cv is None:
            # No movement at all across the sub-window
            return AnalyzerResult.insufficient(self.name, "no movement in window")

        stats = aggregator.stats["velocity"]
        minmax_ratio = (stats.min / stats.max) if stats.max else 0.0

        score = _ramp_down(cv, t.velocity_cv_flag, t.velocity_cv_natural)
        reasons = []
        if minmax_ratio > t.velocity_minmax_ratio and stats.min > 0:
            score = 1.0
            reasons.append(f"Velocity range is nearly constant (min/max {minmax_ratio:.2f})")
        elif cv <= t.velocity_cv_flag:
            reasons.append(f"Unnaturally consistent velocity (CV {cv:.3f})")

        return AnalyzerResult(
            name=self.name,
            score=score,
            reasons=reasons,
            detail={"velocity_cv": cv, "minmax_ratio": minmax_ratio},
        )


class TimingConsistencyAnalyzer:
    """
    Coefficient of variation of inter-arrival times for one input category.

    Also flags a single rounded interval dominating the window, which is
    how fixed-rate event injection shows up even with a little jitter.
    """

    def __init__(self, category: InputCategory, thresholds: TimingThresholds, name: Optional[str] = None) -> None:
        self.category = category
        self.thresholds = thresholds
        self.name = name or f"{category.value.lower()}_timing"

    def analyze(self, aggregator: MovementAggregator) -> AnalyzerResult:
        return self.score_intervals(aggregator.intervals())

    def score_intervals(self, intervals: Sequence[float]) -> AnalyzerResult:
        t = self.thresholds
        if len(intervals) < t.min_samples:
            return AnalyzerResult.insufficient(self.name)

        cv = coefficient_of_variation(intervals)
        if cv is None:
            return AnalyzerResult.insufficient(self.name, "no elapsed time between events")

        score = _ramp_down(cv, t.cv_flag, t.cv_natural)
        reasons = []
        if cv <= t.cv_flag:
            reasons.append(f"Regular {self.category.value.lower()} timing (CV {cv:.1%})")

        rounded = Counter(round(i) for i in intervals)
        repeat_ratio = rounded.most_common(1)[0][1] / len(intervals)
        if repeat_ratio > t.repeat_ratio:
            score = max(score, 0.8)
            reasons.append(f"{repeat_ratio:.0%} of {self.category.value.lower()} intervals are identical")

        return AnalyzerResult(
            name=self.name,
            score=score,
            reasons=reasons,
            detail={"timing_cv": cv, "repeat_ratio": repeat_ratio},
        )


class CardinalAngleAnalyzer(PatternAnalyzer):
    """Share of movement directions within a tolerance of 0/90/180/270 degrees."""

    name = "cardinal_angles"

    def analyze(self, aggregator: MovementAggregator) -> AnalyzerResult:
        t = self.thresholds
        angles = aggregator.angles()
        if len(angles) < t.cardinal_min_angles:
            return AnalyzerResult.insufficient(self.name)

        cardinal = 0
        for angle in angles:
            offset = angle % 90.0
            if min(offset, 90.0 - offset) <= t.cardinal_tolerance_deg:
                cardinal += 1
        ratio = cardinal / len(angles)

        reasons = []
        if ratio > t.cardinal_flag_ratio:
            reasons.append(f"{ratio:.0%} of movement is axis-aligned")

        return AnalyzerResult(
            name=self.name,
            score=_ramp_up(ratio, t.cardinal_baseline),
            reasons=reasons,
            detail={"cardinal_ratio": ratio},
        )


class ConsecutiveRunAnalyzer(PatternAnalyzer):
    """
    Longest runs of same-direction segments.

    A run only flags when its length, covered distance and average speed
    all exceed one tier, so a fast straight human drag on its own stays
    below the bar.
    """

    name = "consecutive_run"

    def analyze(self, aggregator: MovementAggregator) -> AnalyzerResult:
        t = self.thresholds
        segments = aggregator.segments
        if len(segments) < t.run_min_segments:
            return AnalyzerResult.insufficient(self.name)

        runs = self._find_runs(segments)
        longest = max((len(run) for run in runs), default=0)

        score = 0.0
        reasons: List[str] = []
        for run in runs:
            length = len(run)
            distance = sum(s.distance for s in run)
            elapsed = sum(s.time_diff for s in run)
            speed = distance / elapsed if elapsed > 0 else 0.0
            for tier in t.run_tiers:
                if length >= tier.min_length and distance > tier.min_distance_px and speed > tier.min_speed:
                    if tier.score > score:
                        score = tier.score
                        reasons = [
                            f"Straight run of {length} segments over {distance:.0f}px "
                            f"at {speed:.2f}px/ms"
                        ]
                    break

        return AnalyzerResult(
            name=self.name,
            score=score,
            reasons=reasons,
            detail={"longest_run": float(longest)},
        )

    def _find_runs(self, segments: List[Segment]) -> List[List[Segment]]:
        t = self.thresholds
        runs: List[List[Segment]] = []
        current: List[Segment] = []

        for segment in segments:
            if segment.angle is None or segment.distance <= t.run_min_segment_px:
                if current:
                    runs.append(current)
                current = []
                continue
            if current and _angle_diff(segment.angle, current[-1].angle) >= t.run_angle_tolerance_deg:
                runs.append(current)
                current = []
            current.append(segment)

        if current:
            runs.append(current)
        return runs


# =============================================================================
# Factor Models
# =============================================================================

class MovementPatternModel:
    """Runs the movement analyzer battery and folds it into mouse_patterns."""

    factor_name = "mouse_patterns"

    def __init__(self, config: Optional[DetectionConfig] = None) -> None:
        config = config or DEFAULT_CONFIG
        movement = config.movement
        self.analyzers = [
            StraightLineAnalyzer(movement),
            VelocityConsistencyAnalyzer(movement),
            TimingConsistencyAnalyzer(
                InputCategory.POINTER,
                config.timing[InputCategory.POINTER.value],
                name="timing_consistency",
            ),
            CardinalAngleAnalyzer(movement),
            ConsecutiveRunAnalyzer(movement),
        ]

    def analyze(self, aggregator: MovementAggregator) -> List[AnalyzerResult]:
        return [analyzer.analyze(aggregator) for analyzer in self.analyzers]

    def combine(self, results: List[AnalyzerResult]) -> Optional[AnalyzerResult]:
        """Mean of the applicable analyzer scores; None when nothing applies."""
        applicable = [r for r in results if r.applicable]
        if not applicable:
            return None
        score = math.fsum(r.score for r in applicable) / len(applicable)
        reasons = [reason for r in applicable for reason in r.reasons]
        detail: Dict[str, float] = {r.name: r.score for r in applicable}
        return AnalyzerResult(name=self.factor_name, score=_clamp(score), reasons=reasons, detail=detail)


class EventTimingModel:
    """Keyboard and click timing regularity, folded into event_timing."""

    factor_name = "event_timing"

    def __init__(self, config: Optional[DetectionConfig] = None) -> None:
        config = config or DEFAULT_CONFIG
        self.analyzers = [
            TimingConsistencyAnalyzer(category, config.timing[category.value])
            for category in (InputCategory.KEYBOARD, InputCategory.CLICK)
        ]

    def analyze(self, processor: InputTimingProcessor) -> List[AnalyzerResult]:
        return [analyzer.score_intervals(processor.intervals(analyzer.category)) for analyzer in self.analyzers]

    def combine(self, results: List[AnalyzerResult]) -> Optional[AnalyzerResult]:
        """Highest applicable category score; one robotic modality is enough."""
        applicable = [r for r in results if r.applicable]
        if not applicable:
            return None
        worst = max(applicable, key=lambda r: r.score)
        reasons = [reason for r in applicable for reason in r.reasons]
        return AnalyzerResult(
            name=self.factor_name,
            score=worst.score,
            reasons=reasons,
            detail={r.name: r.score for r in applicable},
        )
