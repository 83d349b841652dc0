"""
SessionGuard Processors

Public exports for streaming aggregation and capability collection.
"""

from sessionguard.processors.capabilities import (
    ProbeRunner,
    ProbeTimeout,
    StaticCapabilityProvider,
)
from sessionguard.processors.movement import MalformedSampleError, MovementAggregator, RunningStats
from sessionguard.processors.timing import InputTimingProcessor

__all__ = [
    "InputTimingProcessor",
    "MalformedSampleError",
    "MovementAggregator",
    "ProbeRunner",
    "ProbeTimeout",
    "RunningStats",
    "StaticCapabilityProvider",
]
