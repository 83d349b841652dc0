"""
SessionGuard Schemas

Public exports for input and output Pydantic models.
"""

from sessionguard.schemas.inputs import (
    EnvironmentAttributes,
    InputAction,
    InputCategory,
    InputEvent,
    MovementSample,
)
from sessionguard.schemas.outputs import (
    CLASSIFICATION_LABELS,
    AnalyzerResult,
    Classification,
    RiskAssessment,
    SessionPhase,
    SpecialVerdict,
    SuspicionFactor,
)

__all__ = [
    # Input
    "InputCategory",
    "InputAction",
    "MovementSample",
    "InputEvent",
    "EnvironmentAttributes",
    # Output
    "SessionPhase",
    "Classification",
    "SpecialVerdict",
    "CLASSIFICATION_LABELS",
    "AnalyzerResult",
    "SuspicionFactor",
    "RiskAssessment",
]
