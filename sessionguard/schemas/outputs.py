"""
SessionGuard Output Schemas

This module defines Pydantic V2 models that enforce the RiskAssessment
contract handed to presentation adapters.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


# =============================================================================
# Enums
# =============================================================================

class SessionPhase(str, Enum):
    """Classifier state."""
    COLLECTING = "COLLECTING"
    EVALUATING = "EVALUATING"


class Classification(str, Enum):
    """Risk bucket derived from the overall score."""
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    LIKELY_HUMAN = "LIKELY_HUMAN"
    UNUSUAL = "UNUSUAL"
    SUSPICIOUS = "SUSPICIOUS"
    LIKELY_AUTOMATED = "LIKELY_AUTOMATED"


class SpecialVerdict(str, Enum):
    """Tags reported independently of the overall score."""
    REMOTE_DESKTOP = "REMOTE_DESKTOP"
    VIRTUALIZED = "VIRTUALIZED"
    REMOTE_ACCESS_SOFTWARE = "REMOTE_ACCESS_SOFTWARE"
    AUTOMATION_FRAMEWORK = "AUTOMATION_FRAMEWORK"


CLASSIFICATION_LABELS: Dict[Classification, str] = {
    Classification.INSUFFICIENT_DATA: "Insufficient data",
    Classification.LIKELY_HUMAN: "Likely human",
    Classification.UNUSUAL: "Some unusual patterns",
    Classification.SUSPICIOUS: "Suspicious patterns detected",
    Classification.LIKELY_AUTOMATED: "Highly likely to be a bot",
}


# =============================================================================
# Analyzer Output
# =============================================================================

class AnalyzerResult(BaseModel):
    """
    Output of one pattern analyzer or one evaluator test battery.

    applicable=False means the unit had too little data (or no readable
    capability) and must not contribute to the overall score.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Analyzer or factor name")
    score: float = Field(0.0, ge=0.0, le=1.0, description="Suspicion score")
    applicable: bool = Field(True, description="False when there was insufficient data")
    reasons: List[str] = Field(default_factory=list, description="Human-readable triggers")
    detail: Dict[str, float] = Field(default_factory=dict, description="Intermediate measurements")
    matches: List[str] = Field(default_factory=list, description="Named items matched (e.g. software products)")

    @classmethod
    def insufficient(cls, name: str, reason: str = "insufficient data") -> "AnalyzerResult":
        return cls(name=name, score=0.0, applicable=False, reasons=[reason])


class SuspicionFactor(BaseModel):
    """One weighted contribution to the overall score."""
    model_config = ConfigDict(frozen=True)

    name: str
    score: float = Field(..., ge=0.0, le=1.0)
    weight: float = Field(..., ge=0.0)
    reasons: List[str] = Field(default_factory=list)


# =============================================================================
# Risk Assessment
# =============================================================================

class RiskAssessment(BaseModel):
    """
    Terminal output of one evaluation cycle.

    Built fresh every cycle and swapped in as a whole. Carries no wall-clock
    data, so evaluating an unchanged window yields an equal assessment.
    """
    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(0.0, ge=0.0, le=1.0)
    classification: Classification = Field(Classification.INSUFFICIENT_DATA)
    label: str = Field(CLASSIFICATION_LABELS[Classification.INSUFFICIENT_DATA])
    phase: SessionPhase = Field(SessionPhase.COLLECTING)
    factors: List[SuspicionFactor] = Field(default_factory=list)
    analyzer_scores: Dict[str, float] = Field(default_factory=dict)
    reasons: List[str] = Field(default_factory=list)
    special_verdicts: List[SpecialVerdict] = Field(default_factory=list)
    detected_software: List[str] = Field(default_factory=list)
    sample_count: int = Field(0, ge=0)
    config_version: str = Field(...)

    @field_validator("overall_score")
    @classmethod
    def _round_score(cls, v: float) -> float:
        return round(v, 6)

    @computed_field
    @property
    def per_factor_scores(self) -> Dict[str, float]:
        return {factor.name: factor.score for factor in self.factors}

    def factor(self, name: str) -> Optional[SuspicionFactor]:
        for factor in self.factors:
            if factor.name == name:
                return factor
        return None
