"""
SessionGuard Test Suite - Shared Pytest Fixtures

This conftest.py provides:
- Sample generators for synthetic and human-like pointer traces
- Environment attribute presets
- Aggregator, session and evaluator instances

Usage:
    pytest tests/ -v
"""

import random
from typing import Iterable, List, Sequence, Tuple

import pytest

from sessionguard.config import DEFAULT_CONFIG
from sessionguard.models.environment import EnvironmentSnapshot
from sessionguard.processors.movement import MovementAggregator
from sessionguard.schemas.inputs import (
    EnvironmentAttributes,
    InputAction,
    InputCategory,
    InputEvent,
    MovementSample,
)
from sessionguard.session import DetectionSession


# =============================================================================
# User Agents
# =============================================================================

UA_CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
UA_FIREFOX_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
)
UA_SAFARI_MAC = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Safari/605.1.15"
)
UA_HEADLESS_CHROME = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) HeadlessChrome/120.0.0.0 Safari/537.36"
)


# =============================================================================
# Sample Helpers
# =============================================================================

def make_sample(x: float, y: float, t: float) -> MovementSample:
    """Create a MovementSample for testing."""
    return MovementSample(x=x, y=y, t=t)


def make_input(
    category: InputCategory,
    action: InputAction,
    t: float,
    source: str = "primary",
) -> InputEvent:
    """Create an InputEvent for testing."""
    return InputEvent(category=category, action=action, source=source, t=t)


def path_from_steps(
    steps: Sequence[Tuple[float, float]],
    interval: float = 16.0,
    start: Tuple[float, float] = (100.0, 300.0),
) -> List[MovementSample]:
    """Samples visiting start, then start + each cumulative step, at a fixed interval."""
    x, y = start
    samples = [make_sample(x, y, 0.0)]
    for i, (dx, dy) in enumerate(steps, start=1):
        x += dx
        y += dy
        samples.append(make_sample(x, y, i * interval))
    return samples


def collinear_samples(n: int = 200, step: float = 12.0, interval: float = 16.0) -> List[MovementSample]:
    """Perfectly straight horizontal movement at a uniform rate."""
    return path_from_steps([(step, 0.0)] * (n - 1), interval=interval)


# Irregular inter-arrival pattern, CV ~0.77
IRREGULAR_INTERVALS = (6.0, 10.0, 45.0, 14.0, 30.0, 8.0, 60.0, 18.0)


def jittered_samples(n: int = 50, sigma: float = 15.0, seed: int = 7) -> List[MovementSample]:
    """Drifting movement with gaussian positional jitter and irregular timing."""
    rng = random.Random(seed)
    samples = []
    t = 0.0
    for i in range(n):
        if i > 0:
            t += IRREGULAR_INTERVALS[i % len(IRREGULAR_INTERVALS)]
        x = 200.0 + 8.0 * i + rng.gauss(0.0, sigma)
        y = 300.0 + rng.gauss(0.0, sigma)
        samples.append(make_sample(round(x, 1), round(y, 1), t))
    return samples


def fill(aggregator: MovementAggregator, samples: Iterable[MovementSample]) -> MovementAggregator:
    for sample in samples:
        aggregator.ingest(sample)
    return aggregator


def snapshot(**attributes) -> EnvironmentSnapshot:
    """EnvironmentSnapshot from keyword attributes."""
    latencies = attributes.pop("input_latencies", ())
    return EnvironmentSnapshot(
        attributes=EnvironmentAttributes(**attributes),
        input_latencies=tuple(latencies),
    )


# =============================================================================
# Environment Presets
# =============================================================================

CLEAN_DESKTOP = dict(
    user_agent=UA_CHROME_WINDOWS,
    platform="Win32",
    screen_width=2560,
    screen_height=1440,
    color_depth=30,
    device_pixel_ratio=1.0,
    outer_width=2560,
    outer_height=1400,
    css_bits_per_color=10,
    webgl_available=True,
    webgl_vendor="Google Inc. (NVIDIA)",
    webgl_renderer="ANGLE (NVIDIA, NVIDIA GeForce RTX 3070 Direct3D11 vs_5_0 ps_5_0, D3D11)",
    webgl_hash="b1946ac92492d2347c6235b4d2611184",
    display_adapters=["NVIDIA GeForce RTX 3070"],
    webdriver=False,
    has_chrome_object=True,
    plugins_count=5,
    plugin_names=["PDF Viewer", "Chrome PDF Viewer"],
    notification_permission="default",
    notification_query_state="prompt",
    canvas_available=True,
    canvas_readable=True,
    canvas_data_length=4812,
    canvas_api_modified=False,
    canvas_hash="591785b794601e212b260e25925636fd",
    navigator_tampered_props=[],
    audio_sample_rate=48000,
    hardware_concurrency=16,
    benchmark_ms=12.0,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def aggregator() -> MovementAggregator:
    """Fresh MovementAggregator with default thresholds."""
    return MovementAggregator(DEFAULT_CONFIG.movement)


@pytest.fixture
def session():
    """DetectionSession with no environment attributes; closed on teardown."""
    s = DetectionSession()
    yield s
    s.close()


@pytest.fixture
def clean_attributes() -> EnvironmentAttributes:
    return EnvironmentAttributes(**CLEAN_DESKTOP)
