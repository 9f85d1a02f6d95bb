"""Composite deal health from the six dimension scores.

Weighted sum normalized by the total weight of the dimensions present, then
grade, risk level and trend bands from the policy. Band tables are validated
as monotonic at policy construction, so a higher composite score can never
produce a lower grade or a higher risk level.

Known simplifications carried from the production rules:
- trend is a threshold on the composite score, not derived from the six
  dimension trends or from prior snapshots
- confidence is a fixed policy placeholder, not a data-completeness measure
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from src.deal_health.dimensions import clamp_score
from src.deal_health.policy import DEFAULT_POLICY, HealthScoringPolicy
from src.deal_health.schemas import OverallHealth


class HealthAggregator:
    """Combine dimension scores into an OverallHealth."""

    def __init__(self, policy: HealthScoringPolicy = DEFAULT_POLICY) -> None:
        self._policy = policy.aggregation

    def composite_score(self, dimension_scores: Mapping[str, float]) -> int:
        """Weighted mean over the known dimensions present in ``dimension_scores``.

        Dimensions without a configured weight are ignored. With no known
        dimension at all the result is 0.
        """
        weights = self._policy.weights
        total_score = 0.0
        total_weight = 0.0
        for name, score in dimension_scores.items():
            weight = weights.get(name)
            if weight is None:
                continue
            total_score += score * weight
            total_weight += weight
        if total_weight == 0:
            return 0
        return clamp_score(total_score / total_weight)

    def grade(self, score: float) -> str:
        return self._policy.grades.lookup(score)

    def risk_level(self, score: float) -> str:
        return self._policy.risk_levels.lookup(score)

    def trend(self, score: float) -> str:
        return self._policy.trends.lookup(score)

    def aggregate(
        self,
        dimension_scores: Mapping[str, float],
        previous_score: Optional[float] = None,
    ) -> OverallHealth:
        """Build the composite OverallHealth.

        Args:
            dimension_scores: Dimension name -> 0-100 score.
            previous_score: Last persisted composite score, if the caller has one.
                Reported as-is; it does not influence the trend label.
        """
        current = self.composite_score(dimension_scores)
        return OverallHealth(
            current_score=current,
            previous_score=previous_score,
            trend=self.trend(current),
            grade=self.grade(current),
            risk_level=self.risk_level(current),
            confidence=self._policy.confidence,
        )


__all__ = ["HealthAggregator"]
