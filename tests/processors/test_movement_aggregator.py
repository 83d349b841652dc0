"""
Movement Aggregator Unit Tests

Tests for the bounded movement window and incremental running statistics.
Validates derived-metric rules, malformed-sample dropping and reset.
"""

import math

import pytest

from sessionguard.config import MovementThresholds
from sessionguard.processors.movement import MovementAggregator, RunningStats

from tests.conftest import collinear_samples, fill, make_sample


# =============================================================================
# Running Statistics
# =============================================================================

class TestRunningStats:
    """Incremental min/max/sum/count."""

    def test_empty_stats_have_no_mean(self):
        stats = RunningStats()
        assert stats.count == 0
        assert stats.mean is None
        assert stats.min is None

    def test_updates_track_extremes(self):
        stats = RunningStats()
        for value in (3.0, -1.0, 7.0, 2.0):
            stats.update(value)
        assert stats.min == -1.0
        assert stats.max == 7.0
        assert stats.sum == 11.0
        assert stats.count == 4
        assert stats.mean == pytest.approx(2.75)


# =============================================================================
# Window Behaviour
# =============================================================================

class TestWindow:
    """FIFO window bounded by capacity."""

    def test_window_never_exceeds_capacity(self):
        aggregator = MovementAggregator(MovementThresholds(window_capacity=20))
        for i, sample in enumerate(collinear_samples(n=100)):
            aggregator.ingest(sample)
            assert aggregator.window_size <= 20
        assert aggregator.window_size == 20
        assert aggregator.sample_count == 100

    def test_oldest_sample_is_evicted_first(self):
        aggregator = MovementAggregator(MovementThresholds(window_capacity=5))
        fill(aggregator, collinear_samples(n=8))
        assert [s.t for s in aggregator.samples] == [48.0, 64.0, 80.0, 96.0, 112.0]

    def test_segments_stay_bounded(self):
        aggregator = MovementAggregator(MovementThresholds(window_capacity=10))
        fill(aggregator, collinear_samples(n=50))
        assert len(aggregator.segments) == 9


# =============================================================================
# Derived Metrics
# =============================================================================

class TestDerivedMetrics:
    """Velocity, angle and interval derivation."""

    def test_first_sample_yields_no_metric(self, aggregator):
        aggregator.ingest(make_sample(10, 10, 0.0))
        assert aggregator.segments == []
        assert aggregator.stats["velocity"].count == 0
        assert aggregator.stats["x"].count == 1

    def test_segment_metrics(self, aggregator):
        aggregator.ingest(make_sample(0, 0, 0.0))
        aggregator.ingest(make_sample(30, 40, 10.0))
        segment = aggregator.segments[0]
        assert segment.distance == pytest.approx(50.0)
        assert segment.velocity == pytest.approx(5.0)
        assert segment.time_diff == 10.0
        assert segment.angle == pytest.approx(math.degrees(math.atan2(40, 30)))

    def test_equal_timestamp_is_accepted_without_metric(self, aggregator):
        aggregator.ingest(make_sample(0, 0, 5.0))
        assert aggregator.ingest(make_sample(10, 0, 5.0)) is True
        assert aggregator.sample_count == 2
        assert aggregator.segments == []
        assert aggregator.stats["interval"].count == 0

    def test_stationary_sample_has_interval_but_no_angle(self, aggregator):
        aggregator.ingest(make_sample(50, 50, 0.0))
        aggregator.ingest(make_sample(50, 50, 16.0))
        assert aggregator.stats["interval"].count == 1
        assert aggregator.stats["velocity"].max == 0.0
        assert aggregator.stats["angle"].count == 0
        assert aggregator.angles() == []

    def test_running_stats_follow_segments(self, aggregator):
        fill(aggregator, collinear_samples(n=30, step=12.0, interval=16.0))
        velocity = aggregator.stats["velocity"]
        assert velocity.count == 29
        assert velocity.min == pytest.approx(0.75)
        assert velocity.max == pytest.approx(0.75)
        assert aggregator.stats["interval"].mean == pytest.approx(16.0)


# =============================================================================
# Malformed Samples
# =============================================================================

class TestMalformedSamples:
    """Dropped samples leave every counter untouched."""

    @pytest.mark.parametrize("x, y, t", [
        (float("nan"), 0.0, 10.0),
        (0.0, float("inf"), 10.0),
        (0.0, 0.0, float("nan")),
    ])
    def test_non_finite_values_are_dropped(self, aggregator, x, y, t):
        aggregator.ingest(make_sample(0, 0, 0.0))
        assert aggregator.ingest(make_sample(x, y, t)) is False
        assert aggregator.sample_count == 1
        assert aggregator.dropped_count == 1
        assert aggregator.stats["x"].count == 1

    def test_backwards_timestamp_is_dropped(self, aggregator):
        aggregator.ingest(make_sample(0, 0, 100.0))
        assert aggregator.ingest(make_sample(10, 10, 50.0)) is False
        assert aggregator.window_size == 1
        assert aggregator.segments == []
        assert aggregator.sample_count == 1
        assert aggregator.dropped_count == 1
        assert {name: s.count for name, s in aggregator.stats.items()} == {
            "x": 1, "y": 1, "velocity": 0, "interval": 0, "angle": 0,
        }

    def test_stream_continues_after_drop(self, aggregator):
        aggregator.ingest(make_sample(0, 0, 100.0))
        aggregator.ingest(make_sample(10, 10, 50.0))
        aggregator.ingest(make_sample(10, 0, 110.0))
        assert aggregator.segments[0].velocity == pytest.approx(1.0)


class TestReset:
    """Window reset clears everything."""

    def test_reset(self, aggregator):
        fill(aggregator, collinear_samples(n=40))
        aggregator.reset()
        assert aggregator.window_size == 0
        assert aggregator.sample_count == 0
        assert aggregator.segments == []
        assert all(stats.count == 0 for stats in aggregator.stats.values())
