"""
SessionGuard Replay

Replays a recorded pointer capture through a DetectionSession and prints the
final RiskAssessment as JSON.

Usage:
    python main.py mouse_recording.csv                  # Movement only
    python main.py mouse_recording.csv environment.json # With environment attributes

Input CSV format (as written by the mouse recorder):
    timestamp,x,y,event_type
    1712345678123.456,512,384,MOVE
    1712345678150.789,520,390,CLICK

An optional release_timestamp column gives the button-up time of CLICK rows.
Without it a click is replayed as an instantaneous press and release.
"""

import csv
import json
import logging
import os
import sys
from typing import Iterator, List, Optional, Union

from dotenv import load_dotenv

from sessionguard import DetectionSession
from sessionguard.processors.capabilities import StaticCapabilityProvider
from sessionguard.schemas.inputs import (
    EnvironmentAttributes,
    InputAction,
    InputCategory,
    InputEvent,
    MovementSample,
)
from sessionguard.schemas.outputs import RiskAssessment

load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Loading
# =============================================================================

def read_recording(path: str) -> Iterator[Union[MovementSample, InputEvent]]:
    """Yield samples and click events from a recorder CSV."""
    with open(path, "r", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            t = float(row["timestamp"])
            yield MovementSample(x=float(row["x"]), y=float(row["y"]), t=t)
            if row.get("event_type", "MOVE") == "CLICK":
                released = row.get("release_timestamp") or ""
                yield InputEvent(category=InputCategory.CLICK, action=InputAction.PRESS, t=t)
                yield InputEvent(
                    category=InputCategory.CLICK,
                    action=InputAction.RELEASE,
                    t=float(released) if released.strip() else t,
                )


def read_environment(path: Optional[str]) -> EnvironmentAttributes:
    if path is None:
        return EnvironmentAttributes()
    with open(path, "r") as f:
        return EnvironmentAttributes.model_validate(json.load(f))


# =============================================================================
# Replay
# =============================================================================

class ReplayClock:
    """Clock driven by recording timestamps instead of wall time."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def replay(items: List[Union[MovementSample, InputEvent]], environment: EnvironmentAttributes) -> RiskAssessment:
    clock = ReplayClock()
    session = DetectionSession(capabilities=StaticCapabilityProvider(environment), clock=clock)
    try:
        for item in items:
            clock.now = item.t / 1000.0
            session.submit(item)
            session.pump()
            if session.due():
                assessment = session.evaluate()
                logger.info(
                    f"t={clock.now:.2f}s samples={assessment.sample_count} "
                    f"score={assessment.overall_score:.3f} ({assessment.label})"
                )
        return session.evaluate()
    finally:
        session.close()


def main(argv: List[str]) -> int:
    if len(argv) < 2:
        print(__doc__)
        return 2

    items = list(read_recording(argv[1]))
    environment = read_environment(argv[2] if len(argv) > 2 else None)
    logger.info(f"Replaying {len(items)} events from {argv[1]}")

    assessment = replay(items, environment)
    print(json.dumps(assessment.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
