"""
Movement Aggregator - Streaming Pointer Statistics

Maintains a bounded window of pointer samples and incrementally updated
running statistics over the metrics derived from consecutive samples.

Architecture:
- Fixed-capacity FIFO window (oldest sample evicted first)
- One Segment per consecutive sample pair with a positive time delta
- RunningStats (min/max/sum/count) per tracked metric, O(1) per update
- Malformed samples are dropped without touching any counter

Tracked metrics:
- x, y: raw positions
- velocity: px/ms
- interval: inter-arrival time (ms)
- angle: movement direction in degrees (-180, 180]
"""

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

from sessionguard.config import DEFAULT_CONFIG, MovementThresholds
from sessionguard.schemas.inputs import MovementSample

logger = logging.getLogger(__name__)

TRACKED_METRICS = ("x", "y", "velocity", "interval", "angle")


# =============================================================================
# Exceptions
# =============================================================================

class MalformedSampleError(Exception):
    """Raised when a sample cannot be placed in the window."""
    pass


# =============================================================================
# Internal Data Structures
# =============================================================================

@dataclass
class Segment:
    """Metrics derived from two consecutive accepted samples."""
    dx: float
    dy: float
    distance: float
    time_diff: float
    velocity: float
    angle: Optional[float]  # None for a zero displacement
    start_time: float
    end_time: float


class RunningStats:
    """Incremental min/max/sum/count for one metric."""

    __slots__ = ("min", "max", "sum", "count")

    def __init__(self) -> None:
        self.reset()

    def update(self, value: float) -> None:
        if self.count == 0:
            self.min = value
            self.max = value
        else:
            if value < self.min:
                self.min = value
            if value > self.max:
                self.max = value
        self.sum += value
        self.count += 1

    @property
    def mean(self) -> Optional[float]:
        if self.count == 0:
            return None
        return self.sum / self.count

    def reset(self) -> None:
        self.min: Optional[float] = None
        self.max: Optional[float] = None
        self.sum: float = 0.0
        self.count: int = 0

    def as_dict(self) -> Dict[str, Optional[float]]:
        return {"min": self.min, "max": self.max, "sum": self.sum, "count": self.count, "mean": self.mean}


# =============================================================================
# Movement Aggregator
# =============================================================================

class MovementAggregator:
    """
    Streaming statistics over a bounded window of pointer samples.

    The window never exceeds its capacity. Derived metrics are only computed
    when a previous sample exists and the time delta is positive; the first
    sample and equal-timestamp samples yield nothing (never a zero-filled
    metric).
    """

    def __init__(self, thresholds: Optional[MovementThresholds] = None) -> None:
        self._thresholds = thresholds or DEFAULT_CONFIG.movement
        capacity = self._thresholds.window_capacity
        self._samples: Deque[MovementSample] = deque(maxlen=capacity)
        self._segments: Deque[Segment] = deque(maxlen=capacity - 1)
        self._stats: Dict[str, RunningStats] = {name: RunningStats() for name in TRACKED_METRICS}
        self._last: Optional[MovementSample] = None
        self._accepted: int = 0
        self._dropped: int = 0

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest(self, sample: MovementSample) -> bool:
        """
        Add one sample to the window.

        Returns:
            True if the sample was accepted, False if it was dropped.
        """
        try:
            self._validate(sample)
        except MalformedSampleError as e:
            self._dropped += 1
            logger.debug(f"Dropped movement sample: {e}")
            return False

        previous = self._last
        self._samples.append(sample)
        self._last = sample
        self._accepted += 1
        self._stats["x"].update(sample.x)
        self._stats["y"].update(sample.y)

        if previous is not None:
            segment = self._derive(previous, sample)
            if segment is not None:
                self._segments.append(segment)
                self._stats["velocity"].update(segment.velocity)
                self._stats["interval"].update(segment.time_diff)
                if segment.angle is not None:
                    self._stats["angle"].update(segment.angle)
        return True

    def _validate(self, sample: MovementSample) -> None:
        if not (math.isfinite(sample.x) and math.isfinite(sample.y)):
            raise MalformedSampleError(f"non-finite position ({sample.x}, {sample.y})")
        if not math.isfinite(sample.t):
            raise MalformedSampleError(f"non-finite timestamp {sample.t}")
        if self._last is not None and sample.t < self._last.t:
            raise MalformedSampleError(
                f"timestamp {sample.t} precedes previous sample at {self._last.t}"
            )

    def _derive(self, p1: MovementSample, p2: MovementSample) -> Optional[Segment]:
        time_diff = p2.t - p1.t
        if time_diff <= 0:
            return None

        dx = p2.x - p1.x
        dy = p2.y - p1.y
        distance = math.hypot(dx, dy)
        angle = math.degrees(math.atan2(dy, dx)) if distance > 0 else None

        return Segment(
            dx=dx,
            dy=dy,
            distance=distance,
            time_diff=time_diff,
            velocity=distance / time_diff,
            angle=angle,
            start_time=p1.t,
            end_time=p2.t,
        )

    def reset(self) -> None:
        """Clear the window and every running statistic."""
        self._samples.clear()
        self._segments.clear()
        for stats in self._stats.values():
            stats.reset()
        self._last = None
        self._accepted = 0
        self._dropped = 0

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def thresholds(self) -> MovementThresholds:
        return self._thresholds

    @property
    def samples(self) -> List[MovementSample]:
        return list(self._samples)

    @property
    def segments(self) -> List[Segment]:
        return list(self._segments)

    @property
    def window_size(self) -> int:
        return len(self._samples)

    @property
    def sample_count(self) -> int:
        """Samples accepted since creation or the last reset."""
        return self._accepted

    @property
    def dropped_count(self) -> int:
        return self._dropped

    @property
    def stats(self) -> Dict[str, RunningStats]:
        return self._stats

    def velocities(self) -> List[float]:
        return [s.velocity for s in self._segments]

    def intervals(self) -> List[float]:
        return [s.time_diff for s in self._segments]

    def angles(self) -> List[float]:
        return [s.angle for s in self._segments if s.angle is not None]
