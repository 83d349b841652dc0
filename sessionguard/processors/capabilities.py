"""
Capability Queries and Asynchronous Probes

Environment attributes come from two places:
- A CapabilityProvider, queried once per evaluation cycle (synchronous)
- AsyncProbes (permission queries, network checks, ...) that may take a
  while or never finish; each one is bounded by a timeout

A probe that times out or fails yields no data. Its attributes stay None and
the evaluator tests that need them simply do not run.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional, Protocol

from pydantic import ValidationError

from sessionguard.schemas.inputs import EnvironmentAttributes

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class ProbeTimeout(Exception):
    """Raised when a probe does not resolve within its timeout."""
    pass


# =============================================================================
# Interfaces
# =============================================================================

class CapabilityProvider(Protocol):
    """Synchronous source of environment attributes."""

    def query(self) -> EnvironmentAttributes:
        ...


class AsyncProbe(Protocol):
    """Asynchronous source of a partial attribute update."""

    name: str

    async def run(self) -> Dict[str, Any]:
        ...


class StaticCapabilityProvider:
    """Provider backed by a fixed set of attributes (replays, tests)."""

    def __init__(self, attributes: Optional[EnvironmentAttributes] = None) -> None:
        self._attributes = attributes or EnvironmentAttributes()

    def query(self) -> EnvironmentAttributes:
        return self._attributes


# =============================================================================
# Probe Runner
# =============================================================================

class ProbeRunner:
    """Runs probes concurrently, each bounded by the same timeout."""

    def __init__(self, timeout_s: float) -> None:
        self.timeout_s = timeout_s

    async def _run_one(self, probe: AsyncProbe) -> Dict[str, Any]:
        try:
            return await asyncio.wait_for(probe.run(), timeout=self.timeout_s)
        except asyncio.TimeoutError as e:
            raise ProbeTimeout(f"probe '{probe.name}' exceeded {self.timeout_s}s") from e

    async def collect(self, probes: Iterable[AsyncProbe]) -> Dict[str, Any]:
        """
        Run all probes and merge their results.

        Returns:
            Attribute updates from the probes that resolved in time. Later
            probes win on conflicting keys.
        """
        probes = list(probes)
        if not probes:
            return {}

        outcomes = await asyncio.gather(*(self._run_one(p) for p in probes), return_exceptions=True)
        merged: Dict[str, Any] = {}
        for probe, outcome in zip(probes, outcomes):
            if isinstance(outcome, ProbeTimeout):
                logger.info(f"No data from probe: {outcome}")
                continue
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"Probe '{probe.name}' failed: {outcome!r}")
                continue
            merged.update(validate_update(probe.name, outcome))
        return merged


def merge_attributes(base: EnvironmentAttributes, updates: Dict[str, Any]) -> EnvironmentAttributes:
    """New attributes with known fields from updates applied; base is untouched."""
    known = {k: v for k, v in updates.items() if k in EnvironmentAttributes.model_fields}
    unknown = sorted(set(updates) - set(known))
    if unknown:
        logger.debug(f"Ignoring unknown probe attributes: {unknown}")
    if not known:
        return base
    return EnvironmentAttributes.model_validate({**base.model_dump(), **known})


def validate_update(probe_name: str, update: Any) -> Dict[str, Any]:
    """
    Keep only the attributes of a probe result that validate.

    Each key is checked on its own so one badly typed value does not discard
    the rest of the probe's data. Unknown keys and rejected values are dropped.
    """
    if update is None:
        return {}
    if not isinstance(update, dict):
        logger.warning(f"Probe '{probe_name}' returned {type(update).__name__}, expected a mapping")
        return {}

    valid: Dict[str, Any] = {}
    for key, value in update.items():
        if key not in EnvironmentAttributes.model_fields:
            logger.debug(f"Probe '{probe_name}' reported unknown attribute '{key}'")
            continue
        try:
            checked = EnvironmentAttributes.model_validate({key: value})
        except ValidationError as e:
            logger.warning(f"Probe '{probe_name}' returned an invalid {key}: {e.errors()[0]['msg']}")
            continue
        valid[key] = getattr(checked, key)
    return valid
