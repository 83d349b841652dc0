"""
SessionGuard Detection Configuration

Centralized, versioned thresholds for every analyzer, evaluator and the
score aggregator. A configuration is immutable once built; a session keeps
the instance it was created with for its whole lifetime.

Defaults mirror the values the browser detector shipped with. They are
empirical and meant to be tuned against recorded human/automated traces.
"""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


CONFIG_VERSION = "1.0.0"


# =============================================================================
# Movement Analysis
# =============================================================================

class RunTier(BaseModel):
    """One tier of the consecutive-run detector. All three limits must be exceeded."""
    model_config = ConfigDict(frozen=True)

    min_length: int = Field(..., gt=0, description="Minimum run length in segments")
    min_distance_px: float = Field(..., ge=0.0, description="Minimum distance covered by the run")
    min_speed: float = Field(..., ge=0.0, description="Minimum average run speed (px/ms)")
    score: float = Field(..., ge=0.0, le=1.0, description="Score emitted when the tier matches")


class MovementThresholds(BaseModel):
    """Window sizing and pattern-analyzer thresholds for pointer movement."""
    model_config = ConfigDict(frozen=True)

    window_capacity: int = Field(200, ge=3, description="Max samples kept in the movement window")

    # Straight-line detector
    collinear_area_factor: float = Field(1.0, gt=0.0)     # area < factor * longest side
    min_movement_px: float = Field(1.0, ge=0.0)           # p1->p3 displacement floor
    straight_line_min_triples: int = Field(30, gt=0)
    straight_line_baseline: float = Field(0.5, ge=0.0, lt=1.0)
    straight_line_flag_ratio: float = Field(0.8, ge=0.0, le=1.0)

    # Velocity consistency
    velocity_window: int = Field(50, gt=1)
    velocity_min_samples: int = Field(20, gt=1)
    velocity_cv_flag: float = Field(0.05, ge=0.0)
    velocity_cv_natural: float = Field(0.5, gt=0.0)
    velocity_minmax_ratio: float = Field(0.97, gt=0.0, le=1.0)

    # Angular cardinality
    cardinal_tolerance_deg: float = Field(5.0, ge=0.0, lt=45.0)
    cardinal_min_angles: int = Field(10, gt=0)
    cardinal_baseline: float = Field(0.25, ge=0.0, lt=1.0)
    cardinal_flag_ratio: float = Field(0.4, ge=0.0, le=1.0)

    # Consecutive-run detector
    run_angle_tolerance_deg: float = Field(8.0, ge=0.0)
    run_min_segment_px: float = Field(10.0, ge=0.0)
    run_min_segments: int = Field(20, gt=0)
    run_tiers: List[RunTier] = Field(
        default_factory=lambda: [
            RunTier(min_length=20, min_distance_px=500.0, min_speed=0.5, score=0.9),
            RunTier(min_length=15, min_distance_px=300.0, min_speed=0.5, score=0.6),
        ]
    )

    @model_validator(mode="after")
    def _check_velocity_band(self) -> "MovementThresholds":
        if self.velocity_cv_natural <= self.velocity_cv_flag:
            raise ValueError("velocity_cv_natural must be greater than velocity_cv_flag")
        return self


# =============================================================================
# Input Timing
# =============================================================================

class TimingThresholds(BaseModel):
    """Coefficient-of-variation band for one input category."""
    model_config = ConfigDict(frozen=True)

    min_samples: int = Field(..., gt=1)
    cv_flag: float = Field(..., ge=0.0, description="CV at or below which timing is machine-regular")
    cv_natural: float = Field(..., gt=0.0, description="CV at or above which timing is natural")
    repeat_ratio: float = Field(1.0, ge=0.0, le=1.0, description="Share of one rounded interval that flags")

    @model_validator(mode="after")
    def _check_band(self) -> "TimingThresholds":
        if self.cv_natural <= self.cv_flag:
            raise ValueError("cv_natural must be greater than cv_flag")
        return self


def _default_timing() -> Dict[str, TimingThresholds]:
    return {
        "POINTER": TimingThresholds(min_samples=20, cv_flag=0.03, cv_natural=0.35, repeat_ratio=0.8),
        "KEYBOARD": TimingThresholds(min_samples=15, cv_flag=0.10, cv_natural=0.5),
        "CLICK": TimingThresholds(min_samples=6, cv_flag=0.05, cv_natural=0.5, repeat_ratio=0.9),
    }


# =============================================================================
# Environment Evaluators
# =============================================================================

class EvaluatorThresholds(BaseModel):
    """Limits used by the environment evaluators."""
    model_config = ConfigDict(frozen=True)

    max_screen_dimension: int = Field(8000, gt=0)
    min_aspect_ratio: float = Field(0.5, gt=0.0)
    max_aspect_ratio: float = Field(3.0, gt=0.0)
    min_canvas_data_length: int = Field(100, ge=0)
    input_latency_ms: float = Field(50.0, gt=0.0)
    input_latency_min_samples: int = Field(3, gt=0)
    input_latency_window: int = Field(10, gt=0)
    slow_benchmark_ms: float = Field(50.0, gt=0.0)
    remote_desktop_tag_threshold: float = Field(0.5, ge=0.0, le=1.0)
    virtualization_tag_threshold: float = Field(0.5, ge=0.0, le=1.0)


# =============================================================================
# Classification + Scheduling
# =============================================================================

class ClassificationThresholds(BaseModel):
    """Ordered cut points between the classification buckets."""
    model_config = ConfigDict(frozen=True)

    min_samples: int = Field(10, gt=0, description="Samples required before leaving COLLECTING")
    unusual: float = Field(0.3, ge=0.0, le=1.0)
    suspicious: float = Field(0.5, ge=0.0, le=1.0)
    automated: float = Field(0.7, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_order(self) -> "ClassificationThresholds":
        if not (self.unusual <= self.suspicious <= self.automated):
            raise ValueError(
                f"classification thresholds must be ordered: "
                f"{self.unusual} <= {self.suspicious} <= {self.automated}"
            )
        return self


class ScheduleConfig(BaseModel):
    """When an evaluation cycle is due."""
    model_config = ConfigDict(frozen=True)

    evaluation_interval_s: float = Field(2.0, gt=0.0)
    evaluate_every_samples: int = Field(25, ge=0, description="0 disables sample-count triggering")
    probe_timeout_s: float = Field(5.0, gt=0.0)


DEFAULT_WEIGHTS: Dict[str, float] = {
    "mouse_patterns": 0.25,
    "headless_indicator": 0.15,
    "user_agent_inconsistency": 0.15,
    "unusual_resolution": 0.10,
    "remote_desktop": 0.10,
    "fingerprint_anomalies": 0.15,
    "virtualization": 0.10,
    "remote_access_software": 0.10,
    "event_timing": 0.15,
}


class DetectionConfig(BaseModel):
    """Top-level, versioned detection configuration."""
    model_config = ConfigDict(frozen=True)

    version: str = Field(CONFIG_VERSION)
    movement: MovementThresholds = Field(default_factory=MovementThresholds)
    timing: Dict[str, TimingThresholds] = Field(default_factory=_default_timing)
    evaluators: EvaluatorThresholds = Field(default_factory=EvaluatorThresholds)
    classification: ClassificationThresholds = Field(default_factory=ClassificationThresholds)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    weights: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    @field_validator("weights")
    @classmethod
    def _check_weights(cls, v: Dict[str, float]) -> Dict[str, float]:
        for name, weight in v.items():
            if weight < 0.0:
                raise ValueError(f"weight for '{name}' must be non-negative, got {weight}")
        return v

    @field_validator("timing")
    @classmethod
    def _check_timing_categories(cls, v: Dict[str, TimingThresholds]) -> Dict[str, TimingThresholds]:
        missing = {"POINTER", "KEYBOARD", "CLICK"} - set(v)
        if missing:
            raise ValueError(f"timing thresholds missing categories: {sorted(missing)}")
        return v


DEFAULT_CONFIG = DetectionConfig()
