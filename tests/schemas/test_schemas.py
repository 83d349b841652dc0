"""
Pydantic Schema Validation Tests

Tests for input and output schemas to ensure proper validation,
immutability and serialization.
"""

import pytest
from pydantic import ValidationError

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
    SuspicionFactor,
)


# =============================================================================
# Input Schemas
# =============================================================================

class TestInputSchemas:

    def test_enum_values(self):
        assert InputCategory.POINTER == "POINTER"
        assert InputAction.PRESS == "PRESS"

    def test_movement_sample_is_frozen(self):
        sample = MovementSample(x=1, y=2, t=3.0)
        with pytest.raises(ValidationError):
            sample.x = 5

    def test_movement_sample_requires_fields(self):
        with pytest.raises(ValidationError):
            MovementSample(x=1, y=2)

    def test_input_event_parses_strings(self):
        event = InputEvent(category="CLICK", action="RELEASE", t=10.0)
        assert event.category == InputCategory.CLICK
        assert event.source == "primary"

    def test_environment_attributes_default_to_unknown(self):
        attrs = EnvironmentAttributes()
        assert all(value is None for value in attrs.model_dump().values())


# =============================================================================
# Output Schemas
# =============================================================================

class TestOutputSchemas:

    def test_analyzer_score_is_bounded(self):
        with pytest.raises(ValidationError):
            AnalyzerResult(name="x", score=1.5)

    def test_insufficient_result(self):
        result = AnalyzerResult.insufficient("straight_line")
        assert result.applicable is False
        assert result.reasons == ["insufficient data"]

    def test_default_assessment(self):
        assessment = RiskAssessment(config_version="1.0.0")
        assert assessment.phase == SessionPhase.COLLECTING
        assert assessment.classification == Classification.INSUFFICIENT_DATA
        assert assessment.label == "Insufficient data"
        assert assessment.overall_score == 0.0

    def test_per_factor_scores(self):
        assessment = RiskAssessment(
            config_version="1.0.0",
            factors=[
                SuspicionFactor(name="mouse_patterns", score=0.4, weight=0.25),
                SuspicionFactor(name="virtualization", score=1.0, weight=0.1),
            ],
        )
        assert assessment.per_factor_scores == {"mouse_patterns": 0.4, "virtualization": 1.0}
        assert assessment.factor("virtualization").weight == 0.1
        assert assessment.factor("remote_desktop") is None

    def test_per_factor_scores_are_serialized(self):
        assessment = RiskAssessment(
            config_version="1.0.0",
            factors=[SuspicionFactor(name="remote_desktop", score=0.6, weight=0.1)],
        )
        dumped = assessment.model_dump(mode="json")
        assert dumped["per_factor_scores"] == {"remote_desktop": 0.6}

    def test_assessment_is_frozen(self):
        assessment = RiskAssessment(config_version="1.0.0")
        with pytest.raises(ValidationError):
            assessment.overall_score = 0.5

    def test_json_round_trip(self):
        assessment = RiskAssessment(config_version="1.0.0", overall_score=0.25)
        restored = RiskAssessment.model_validate_json(assessment.model_dump_json())
        assert restored == assessment

    def test_every_classification_has_a_label(self):
        assert set(CLASSIFICATION_LABELS) == set(Classification)
