"""
SessionGuard Models

Pattern analyzers, environment evaluators, score fusion and verdicts.
"""

from sessionguard.models.classifier import VerdictClassifier
from sessionguard.models.environment import EnvironmentSnapshot, MissingCapability, build_evaluators
from sessionguard.models.fusion import WeightedScoreAggregator
from sessionguard.models.patterns import EventTimingModel, MovementPatternModel

__all__ = [
    "EnvironmentSnapshot",
    "EventTimingModel",
    "MissingCapability",
    "MovementPatternModel",
    "VerdictClassifier",
    "WeightedScoreAggregator",
    "build_evaluators",
]
