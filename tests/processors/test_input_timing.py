"""
Input Timing Processor Unit Tests

Tests press/release pairing, per-category intervals and click latency.
"""

import pytest

from sessionguard.processors.timing import MAX_INTERVAL_MS, MAX_PENDING_PRESSES, InputTimingProcessor
from sessionguard.schemas.inputs import InputAction, InputCategory

from tests.conftest import make_input

PRESS = InputAction.PRESS
RELEASE = InputAction.RELEASE


class TestPairing:
    """PRESS/RELEASE pairing per source."""

    def test_click_latency_is_recorded(self):
        processor = InputTimingProcessor()
        processor.process_event(make_input(InputCategory.CLICK, PRESS, 100.0))
        processor.process_event(make_input(InputCategory.CLICK, RELEASE, 180.0))
        assert processor.latencies() == [80.0]
        assert processor.average_latency() == pytest.approx(80.0)

    def test_keyboard_hold_is_not_a_latency(self):
        processor = InputTimingProcessor()
        processor.process_event(make_input(InputCategory.KEYBOARD, PRESS, 0.0, source="a"))
        processor.process_event(make_input(InputCategory.KEYBOARD, RELEASE, 90.0, source="a"))
        assert processor.latencies() == []

    def test_unmatched_release_is_ignored(self):
        processor = InputTimingProcessor()
        processor.process_event(make_input(InputCategory.CLICK, RELEASE, 10.0))
        assert processor.latencies() == []
        assert processor.average_latency() is None

    def test_pairs_match_earliest_press_per_source(self):
        processor = InputTimingProcessor()
        processor.process_event(make_input(InputCategory.CLICK, PRESS, 0.0, source="left"))
        processor.process_event(make_input(InputCategory.CLICK, PRESS, 5.0, source="right"))
        processor.process_event(make_input(InputCategory.CLICK, RELEASE, 40.0, source="right"))
        processor.process_event(make_input(InputCategory.CLICK, RELEASE, 60.0, source="left"))
        assert processor.latencies() == [35.0, 60.0]

    def test_latency_window_is_bounded(self):
        processor = InputTimingProcessor(latency_window=3)
        for i in range(6):
            processor.process_event(make_input(InputCategory.CLICK, PRESS, i * 1000.0))
            processor.process_event(make_input(InputCategory.CLICK, RELEASE, i * 1000.0 + i))
        assert processor.latencies() == [3.0, 4.0, 5.0]

    def test_unreleased_presses_are_bounded(self):
        processor = InputTimingProcessor()
        for i in range(100):
            processor.process_event(make_input(InputCategory.CLICK, PRESS, i * 1000.0))
        processor.process_event(make_input(InputCategory.CLICK, RELEASE, 100000.0))
        oldest_kept = (100 - MAX_PENDING_PRESSES) * 1000.0
        assert processor.latencies() == [100000.0 - oldest_kept]

    def test_key_auto_repeat_pairs_with_retained_press(self):
        processor = InputTimingProcessor()
        for i in range(40):
            processor.process_event(make_input(InputCategory.KEYBOARD, PRESS, i * 30.0, source="a"))
        for i in range(MAX_PENDING_PRESSES + 5):
            processor.process_event(make_input(InputCategory.KEYBOARD, RELEASE, 2000.0 + i, source="a"))
        processor.process_event(make_input(InputCategory.CLICK, PRESS, 3000.0, source="a"))
        processor.process_event(make_input(InputCategory.CLICK, RELEASE, 3040.0, source="a"))
        assert processor.latencies() == [40.0]
        assert processor.event_count == 40 + MAX_PENDING_PRESSES + 5 + 2


class TestIntervals:
    """Inter-arrival intervals between presses."""

    def test_intervals_per_category(self):
        processor = InputTimingProcessor()
        for t in (0.0, 120.0, 250.0):
            processor.process_event(make_input(InputCategory.KEYBOARD, PRESS, t, source="k"))
        processor.process_event(make_input(InputCategory.CLICK, PRESS, 300.0))
        assert processor.intervals(InputCategory.KEYBOARD) == [120.0, 130.0]
        assert processor.intervals(InputCategory.CLICK) == []

    def test_long_pause_is_not_an_interval(self):
        processor = InputTimingProcessor()
        processor.process_event(make_input(InputCategory.KEYBOARD, PRESS, 0.0))
        processor.process_event(make_input(InputCategory.KEYBOARD, PRESS, MAX_INTERVAL_MS + 1.0))
        assert processor.intervals(InputCategory.KEYBOARD) == []

    def test_reset(self):
        processor = InputTimingProcessor()
        processor.process_event(make_input(InputCategory.KEYBOARD, PRESS, 0.0))
        processor.process_event(make_input(InputCategory.KEYBOARD, PRESS, 100.0))
        processor.reset()
        assert processor.intervals(InputCategory.KEYBOARD) == []
        assert processor.event_count == 0
