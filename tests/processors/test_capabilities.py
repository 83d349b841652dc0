"""
Capability Probe Tests

Tests ProbeRunner timeouts and failures, and attribute merging.
"""

import asyncio

from sessionguard.processors.capabilities import (
    ProbeRunner,
    StaticCapabilityProvider,
    merge_attributes,
    validate_update,
)
from sessionguard.schemas.inputs import EnvironmentAttributes


class StaticProbe:
    def __init__(self, name, result, delay=0.0):
        self.name = name
        self._result = result
        self._delay = delay

    async def run(self):
        if self._delay:
            await asyncio.sleep(self._delay)
        return self._result


class HangingProbe:
    name = "hanging"

    async def run(self):
        await asyncio.Event().wait()


class FailingProbe:
    name = "failing"

    async def run(self):
        raise RuntimeError("permission query rejected")


class TestProbeRunner:
    """Concurrent probes bounded by a timeout."""

    def test_results_are_merged(self):
        runner = ProbeRunner(timeout_s=1.0)
        probes = [
            StaticProbe("a", {"notification_query_state": "denied"}),
            StaticProbe("b", {"audio_sample_rate": 48000}),
        ]
        result = asyncio.run(runner.collect(probes))
        assert result == {"notification_query_state": "denied", "audio_sample_rate": 48000}

    def test_hanging_probe_yields_no_data(self):
        runner = ProbeRunner(timeout_s=0.05)
        probes = [HangingProbe(), StaticProbe("ok", {"hardware_concurrency": 8})]
        result = asyncio.run(runner.collect(probes))
        assert result == {"hardware_concurrency": 8}

    def test_failing_probe_yields_no_data(self):
        runner = ProbeRunner(timeout_s=1.0)
        result = asyncio.run(runner.collect([FailingProbe()]))
        assert result == {}

    def test_no_probes(self):
        assert asyncio.run(ProbeRunner(timeout_s=1.0).collect([])) == {}

    def test_invalid_values_are_dropped(self):
        runner = ProbeRunner(timeout_s=1.0)
        probes = [
            StaticProbe("screen", {"screen_width": "wide", "screen_height": 1080}),
            StaticProbe("text", "online"),
        ]
        result = asyncio.run(runner.collect(probes))
        assert result == {"screen_height": 1080}


class TestValidateUpdate:
    """Probe results are checked one attribute at a time."""

    def test_values_are_coerced(self):
        assert validate_update("gpu", {"hardware_concurrency": "8"}) == {"hardware_concurrency": 8}

    def test_unknown_and_invalid_keys(self):
        update = {"ice_candidates": 4, "plugins_count": [1], "webdriver": True}
        assert validate_update("mixed", update) == {"webdriver": True}

    def test_non_mapping_results(self):
        assert validate_update("none", None) == {}
        assert validate_update("list", ["webdriver"]) == {}


class TestMergeAttributes:
    """Probe results applied to a copy of the base attributes."""

    def test_known_fields_are_applied(self):
        base = EnvironmentAttributes(user_agent="ua", plugins_count=3)
        merged = merge_attributes(base, {"plugins_count": 0, "webdriver": True})
        assert merged.plugins_count == 0
        assert merged.webdriver is True
        assert merged.user_agent == "ua"
        assert base.plugins_count == 3

    def test_unknown_fields_are_ignored(self):
        base = EnvironmentAttributes(user_agent="ua")
        merged = merge_attributes(base, {"ice_candidates": 4})
        assert merged == base

    def test_static_provider(self):
        attributes = EnvironmentAttributes(color_depth=24)
        assert StaticCapabilityProvider(attributes).query() is attributes
        assert StaticCapabilityProvider().query() == EnvironmentAttributes()
