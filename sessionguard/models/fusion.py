"""
Weighted Score Aggregator

Combines whichever factor scores are present into one overall risk score:

    overall = sum(score_i * weight_i) / sum(weight_i)   over present factors

Absent factors are excluded from both sums; they are never treated as 0.
Accumulation runs in sorted factor-name order with math.fsum, so the result
does not depend on insertion order.
"""

import logging
import math
from typing import Dict, Mapping, Optional

from sessionguard.config import DEFAULT_WEIGHTS

logger = logging.getLogger(__name__)


class WeightedScoreAggregator:
    """Stateless apart from its weight configuration."""

    def __init__(self, weights: Optional[Mapping[str, float]] = None) -> None:
        self._weights: Dict[str, float] = dict(weights if weights is not None else DEFAULT_WEIGHTS)

    @property
    def weights(self) -> Dict[str, float]:
        return dict(self._weights)

    def evaluate(self, factor_scores: Mapping[str, Optional[float]]) -> float:
        """
        Normalized weighted mean of the present factor scores.

        Args:
            factor_scores: factor name -> score in [0, 1]. None marks an
                absent factor. Scores outside [0, 1] are clamped.

        Returns:
            Overall score in [0, 1]; 0.0 when no weighted factor is present.
        """
        numerators = []
        denominators = []

        for name in sorted(factor_scores):
            score = factor_scores[name]
            if score is None:
                continue
            weight = self._weights.get(name)
            if weight is None:
                logger.debug(f"Ignoring factor without configured weight: {name}")
                continue
            if not math.isfinite(score):
                logger.warning(f"Ignoring non-finite score for factor {name}: {score}")
                continue
            if weight <= 0.0:
                continue
            numerators.append(min(max(score, 0.0), 1.0) * weight)
            denominators.append(weight)

        total_weight = math.fsum(denominators)
        if total_weight <= 0.0:
            return 0.0
        return min(max(math.fsum(numerators) / total_weight, 0.0), 1.0)
