"""
Input Timing Processor

Stateful pairing of discrete press/release edges into timing features:
- Inter-arrival intervals between presses, per input category
- Press-to-release latency for pointer buttons (remote input lag indicator)

Windows are bounded; an unmatched RELEASE is ignored and only the most
recent unreleased presses per key or button are kept.
"""

import logging
import math
from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional, Tuple

from sessionguard.schemas.inputs import InputAction, InputCategory, InputEvent

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Intervals kept per category
INTERVAL_WINDOW = 50

# Press/release latencies kept
LATENCY_WINDOW = 10

# Gap beyond which a press starts a new burst (coffee break rule)
MAX_INTERVAL_MS = 2000.0

# Unreleased presses kept per key or button (lost releases, key auto-repeat)
MAX_PENDING_PRESSES = 16


class InputTimingProcessor:
    """
    Pairs PRESS/RELEASE events per (category, source) and tracks intervals.

    Pairing follows FIFO order per source: a RELEASE matches the earliest
    pending PRESS of the same key or button that is still retained.
    """

    def __init__(self, latency_window: int = LATENCY_WINDOW) -> None:
        self._pending: Dict[Tuple[InputCategory, str], Deque[float]] = defaultdict(
            lambda: deque(maxlen=MAX_PENDING_PRESSES)
        )
        self._last_press: Dict[InputCategory, float] = {}
        self._intervals: Dict[InputCategory, Deque[float]] = {
            category: deque(maxlen=INTERVAL_WINDOW) for category in InputCategory
        }
        self._latencies: Deque[float] = deque(maxlen=latency_window)
        self._event_count: int = 0

    def process_event(self, event: InputEvent) -> None:
        """Consume one input edge."""
        if not math.isfinite(event.t):
            logger.debug(f"Dropped input event with non-finite timestamp: {event}")
            return
        self._event_count += 1
        key = (event.category, event.source)

        if event.action == InputAction.PRESS:
            self._pending[key].append(event.t)
            last = self._last_press.get(event.category)
            if last is not None:
                interval = event.t - last
                if 0 < interval <= MAX_INTERVAL_MS:
                    self._intervals[event.category].append(interval)
            self._last_press[event.category] = event.t
            return

        pending = self._pending.get(key)
        if not pending:
            return
        press_time = pending.popleft()
        latency = event.t - press_time
        if latency >= 0 and event.category == InputCategory.CLICK:
            self._latencies.append(latency)

    def intervals(self, category: InputCategory) -> List[float]:
        return list(self._intervals[category])

    def latencies(self) -> List[float]:
        return list(self._latencies)

    def average_latency(self) -> Optional[float]:
        if not self._latencies:
            return None
        return sum(self._latencies) / len(self._latencies)

    @property
    def event_count(self) -> int:
        return self._event_count

    def reset(self) -> None:
        self._pending.clear()
        self._last_press.clear()
        for window in self._intervals.values():
            window.clear()
        self._latencies.clear()
        self._event_count = 0
