"""
Verdict Classifier

Maps an overall score onto a classification bucket and derives the special
verdict tags that are reported independently of the score.

States:
    COLLECTING  - fewer accepted samples than min_samples; no numeric verdict
    EVALUATING  - classification from ordered thresholds

Buckets (defaults):
    score < 0.3         LIKELY_HUMAN
    0.3 <= score < 0.5  UNUSUAL
    0.5 <= score < 0.7  SUSPICIOUS
    score >= 0.7        LIKELY_AUTOMATED
"""

from typing import Dict, List, Optional

from sessionguard.config import DEFAULT_CONFIG, DetectionConfig
from sessionguard.schemas.outputs import AnalyzerResult, Classification, SessionPhase, SpecialVerdict


class VerdictClassifier:
    """Stateless, deterministic mapping from scores to verdicts."""

    def __init__(self, config: Optional[DetectionConfig] = None) -> None:
        config = config or DEFAULT_CONFIG
        self._thresholds = config.classification
        self._evaluators = config.evaluators

    def phase(self, sample_count: int) -> SessionPhase:
        if sample_count < self._thresholds.min_samples:
            return SessionPhase.COLLECTING
        return SessionPhase.EVALUATING

    def classify(self, overall_score: float, phase: SessionPhase) -> Classification:
        if phase == SessionPhase.COLLECTING:
            return Classification.INSUFFICIENT_DATA

        t = self._thresholds
        if overall_score >= t.automated:
            return Classification.LIKELY_AUTOMATED
        if overall_score >= t.suspicious:
            return Classification.SUSPICIOUS
        if overall_score >= t.unusual:
            return Classification.UNUSUAL
        return Classification.LIKELY_HUMAN

    def special_verdicts(self, results: Dict[str, AnalyzerResult]) -> List[SpecialVerdict]:
        """
        Tags derived from individual evaluator outcomes.

        Args:
            results: evaluator name -> applicable AnalyzerResult
        """
        verdicts: List[SpecialVerdict] = []

        remote = results.get("remote_desktop")
        if remote is not None:
            low_color = remote.detail.get("color_depth", 0.0) >= 0.7
            if low_color or remote.score >= self._evaluators.remote_desktop_tag_threshold:
                verdicts.append(SpecialVerdict.REMOTE_DESKTOP)

        virtual = results.get("virtualization")
        if virtual is not None:
            if "virtual_gpu" in virtual.detail or virtual.score >= self._evaluators.virtualization_tag_threshold:
                verdicts.append(SpecialVerdict.VIRTUALIZED)

        software = results.get("remote_access_software")
        if software is not None and software.matches:
            verdicts.append(SpecialVerdict.REMOTE_ACCESS_SOFTWARE)

        headless = results.get("headless_indicator")
        if headless is not None:
            if "webdriver" in headless.detail or "headless_user_agent" in headless.detail:
                verdicts.append(SpecialVerdict.AUTOMATION_FRAMEWORK)

        return verdicts
