"""Injectable scoring policy for the deal health engine.

Every weight, bucket boundary, stage table and placeholder constant used by
the scorers, aggregator, predictor, benchmarker and action planner lives here
with its production value as the default. Tuning a deployment means building
a different HealthScoringPolicy, not editing scorer code.

Policies validate themselves on construction:
- each weight set covers exactly its sub-metrics and sums to 1.0
- each band table has strictly monotonic thresholds in lookup order
- grade and risk bands list labels best-first, so a higher composite score
  can never map to a lower grade or a higher risk level

Invalid policies raise pydantic.ValidationError.

Exports:
    ScoreBands: Ordered (threshold, score) lookup table.
    LabelBands: Ordered (threshold, label) lookup table.
    HealthScoringPolicy: Root policy object passed to the engine.
"""

from __future__ import annotations

import operator
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.deal_health.config import Settings

_OPS = {
    "le": operator.le,
    "lt": operator.lt,
    "ge": operator.ge,
    "gt": operator.gt,
}

GRADE_ORDER: tuple[str, ...] = ("A+", "A", "B+", "B", "C+", "C", "D", "F")
RISK_ORDER: tuple[str, ...] = ("low", "medium", "high", "critical")

_WEIGHT_TOLERANCE = 1e-6


class _PolicyModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


def _check_thresholds(op: str, thresholds: list[float]) -> None:
    ascending = op in ("le", "lt")
    for prev, nxt in zip(thresholds, thresholds[1:]):
        if ascending and not nxt > prev:
            raise ValueError(
                f"'{op}' band thresholds must be strictly ascending, got {thresholds}"
            )
        if not ascending and not nxt < prev:
            raise ValueError(
                f"'{op}' band thresholds must be strictly descending, got {thresholds}"
            )


def _check_weights(weights: dict[str, float], expected: set[str]) -> None:
    if set(weights) != expected:
        raise ValueError(
            f"weights must cover exactly {sorted(expected)}, got {sorted(weights)}"
        )
    total = sum(weights.values())
    if abs(total - 1.0) > _WEIGHT_TOLERANCE:
        raise ValueError(f"weights must sum to 1.0, got {total}")


def _check_label_order(labels: list[str], ranking: tuple[str, ...]) -> None:
    unknown = [label for label in labels if label not in ranking]
    if unknown:
        raise ValueError(f"unknown labels {unknown}; expected members of {ranking}")
    ranks = [ranking.index(label) for label in labels]
    if any(nxt <= prev for prev, nxt in zip(ranks, ranks[1:])):
        raise ValueError(f"labels must be ordered best-first per {ranking}, got {labels}")


class ScoreBands(_PolicyModel):
    """Bucketed lookup: first band whose threshold satisfies ``value <op> threshold``.

    ``scale`` multiplies every threshold at lookup time, which lets ratio
    bands (velocity, benchmark percentile) be expressed relative to a
    per-call reference value.
    """

    op: Literal["le", "lt", "ge", "gt"]
    bands: tuple[tuple[float, float], ...]
    default: float

    @model_validator(mode="after")
    def _validate_order(self) -> ScoreBands:
        _check_thresholds(self.op, [threshold for threshold, _ in self.bands])
        return self

    def lookup(self, value: float, scale: float = 1.0) -> float:
        compare = _OPS[self.op]
        for threshold, score in self.bands:
            if compare(value, threshold * scale):
                return score
        return self.default


class LabelBands(_PolicyModel):
    """Descending ``value >= threshold`` lookup yielding a label."""

    bands: tuple[tuple[float, str], ...]
    default: str

    @model_validator(mode="after")
    def _validate_order(self) -> LabelBands:
        _check_thresholds("ge", [threshold for threshold, _ in self.bands])
        return self

    @property
    def labels(self) -> list[str]:
        return [label for _, label in self.bands] + [self.default]

    def lookup(self, value: float) -> str:
        for threshold, label in self.bands:
            if value >= threshold:
                return label
        return self.default


# ── Dimension Policies ──────────────────────────────────────────────────────


class EngagementPolicy(_PolicyModel):
    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "recency": 0.30,
            "frequency": 0.25,
            "quality": 0.25,
            "duration": 0.20,
        }
    )
    recency_days: ScoreBands = ScoreBands(
        op="le",
        bands=((1, 100), (3, 80), (7, 60), (14, 40), (30, 20)),
        default=10,
    )
    frequency_count: ScoreBands = ScoreBands(
        op="ge",
        bands=((10, 100), (7, 80), (5, 60), (3, 40), (1, 20)),
        default=10,
    )
    duration_minutes: ScoreBands = ScoreBands(
        op="ge",
        bands=((60, 100), (45, 80), (30, 60), (15, 40)),
        default=20,
    )
    high_value_types: tuple[str, ...] = ("meeting", "demo", "presentation", "negotiation")
    high_value_min_duration: float = 30.0
    frequency_window_days: int = Field(default=30, gt=0)
    trend_window_days: int = Field(default=14, gt=0)
    improving_ratio: float = 1.2
    declining_ratio: float = 0.8
    unknown_recency: float = 50.0

    @model_validator(mode="after")
    def _validate_weights(self) -> EngagementPolicy:
        _check_weights(self.weights, {"recency", "frequency", "quality", "duration"})
        return self


class MomentumPolicy(_PolicyModel):
    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "stageProgress": 0.30,
            "probability": 0.30,
            "velocity": 0.25,
            "nextSteps": 0.15,
        }
    )
    stage_progress: dict[str, float] = Field(
        default_factory=lambda: {
            "prospecting": 20,
            "qualification": 40,
            "consideration": 60,
            "proposal": 80,
            "negotiation": 90,
            "closing": 95,
        }
    )
    unknown_stage_progress: float = 50.0
    expected_age_by_stage: dict[str, float] = Field(
        default_factory=lambda: {
            "prospecting": 30,
            "qualification": 45,
            "consideration": 60,
            "proposal": 75,
            "negotiation": 90,
            "closing": 105,
        }
    )
    unknown_expected_age: float = 60.0
    # Thresholds are multiples of the stage's expected age.
    velocity: ScoreBands = ScoreBands(
        op="le",
        bands=((0.8, 100), (1.0, 80), (1.2, 60), (1.5, 40)),
        default=20,
    )
    points_per_next_step: float = 20.0
    no_next_steps: float = 10.0
    unknown_probability: float = 50.0
    unknown_velocity: float = 50.0

    @model_validator(mode="after")
    def _validate_weights(self) -> MomentumPolicy:
        _check_weights(
            self.weights, {"stageProgress", "probability", "velocity", "nextSteps"}
        )
        return self


class CompetitionPolicy(_PolicyModel):
    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "competitorCount": 0.40,
            "competitivePosition": 0.30,
            "differentiation": 0.20,
            "marketPosition": 0.10,
        }
    )
    competitor_count: ScoreBands = ScoreBands(
        op="le",
        bands=((0, 100), (1, 80), (2, 60), (3, 40)),
        default=20,
    )
    # Larger deals draw more competition.
    deal_value: ScoreBands = ScoreBands(
        op="gt",
        bands=((500_000, 70), (100_000, 80)),
        default=90,
    )
    unknown_value_position: float = 50.0
    differentiation: float = 75.0
    market_position: float = 70.0

    @model_validator(mode="after")
    def _validate_weights(self) -> CompetitionPolicy:
        _check_weights(
            self.weights,
            {"competitorCount", "competitivePosition", "differentiation", "marketPosition"},
        )
        return self


class StakeholderPolicy(_PolicyModel):
    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "championStrength": 0.30,
            "stakeholderCoverage": 0.25,
            "influenceBalance": 0.25,
            "sentimentScore": 0.20,
        }
    )
    unmapped_score: int = Field(default=20, ge=0, le=100)
    champion_strength: dict[str, float] = Field(
        default_factory=lambda: {"high": 100, "medium": 80, "low": 60}
    )
    no_champion: float = 20.0
    role_coverage: dict[str, float] = Field(
        default_factory=lambda: {"decision_maker": 40, "influencer": 30, "end_user": 30}
    )
    positive_sentiments: tuple[str, ...] = ("champion", "supporter")

    @model_validator(mode="after")
    def _validate_weights(self) -> StakeholderPolicy:
        _check_weights(
            self.weights,
            {"championStrength", "stakeholderCoverage", "influenceBalance", "sentimentScore"},
        )
        return self


class QualificationPolicy(_PolicyModel):
    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "budgetFit": 0.30,
            "companyFit": 0.25,
            "needFit": 0.25,
            "riskLevel": 0.20,
        }
    )
    # Deal value divided by company size.
    budget_ratio: ScoreBands = ScoreBands(
        op="lt",
        bands=((0.001, 90), (0.01, 100), (0.05, 80), (0.1, 60)),
        default=40,
    )
    unknown_budget_fit: float = 50.0
    company_size: ScoreBands = ScoreBands(
        op="gt",
        bands=((1000, 80), (200, 90), (50, 100)),
        default=70,
    )
    need_fit: float = 75.0
    risk_factor_penalty: float = 20.0
    well_qualified_ratio: float = 0.05
    over_qualified_ratio: float = 0.2

    @model_validator(mode="after")
    def _validate_weights(self) -> QualificationPolicy:
        _check_weights(self.weights, {"budgetFit", "companyFit", "needFit", "riskLevel"})
        return self


class RiskPolicy(_PolicyModel):
    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "ageRisk": 0.30,
            "stageRisk": 0.25,
            "objectionRisk": 0.25,
            "externalRisk": 0.20,
        }
    )
    age_days: ScoreBands = ScoreBands(
        op="lt",
        bands=((30, 100), (60, 80), (90, 60), (120, 40)),
        default=20,
    )
    unknown_age: float = 50.0
    stage_risk: dict[str, float] = Field(
        default_factory=lambda: {
            "prospecting": 60,
            "qualification": 70,
            "consideration": 80,
            "proposal": 85,
            "negotiation": 90,
            "closing": 95,
        }
    )
    unknown_stage_risk: float = 50.0
    objection_penalty: float = 25.0
    risk_factor_penalty: float = 15.0

    @model_validator(mode="after")
    def _validate_weights(self) -> RiskPolicy:
        _check_weights(
            self.weights, {"ageRisk", "stageRisk", "objectionRisk", "externalRisk"}
        )
        return self


# ── Composite, Predictive, Comparative & Action Policies ────────────────────


class AggregationPolicy(_PolicyModel):
    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "engagement": 0.20,
            "momentum": 0.25,
            "competition": 0.15,
            "stakeholder": 0.20,
            "qualification": 0.10,
            "risk": 0.10,
        }
    )
    grades: LabelBands = LabelBands(
        bands=((95, "A+"), (90, "A"), (85, "B+"), (80, "B"), (75, "C+"), (70, "C"), (60, "D")),
        default="F",
    )
    risk_levels: LabelBands = LabelBands(
        bands=((80, "low"), (70, "medium"), (60, "high")),
        default="critical",
    )
    trends: LabelBands = LabelBands(
        bands=((80, "improving"), (60, "stable")),
        default="declining",
    )
    # Placeholder until a data-completeness measure exists.
    confidence: float = Field(default=0.85, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _validate_bands(self) -> AggregationPolicy:
        _check_weights(
            self.weights,
            {"engagement", "momentum", "competition", "stakeholder", "qualification", "risk"},
        )
        _check_label_order(self.grades.labels, GRADE_ORDER)
        _check_label_order(self.risk_levels.labels, RISK_ORDER)
        _check_label_order(
            self.trends.labels, ("improving", "stable", "declining", "critical")
        )
        return self


class PredictorPolicy(_PolicyModel):
    periods: int = Field(default=4, ge=1)
    weeks_per_period: int = Field(default=1, ge=1)
    # Width of the seeded variance band around the current score.
    variance: float = Field(default=20.0, ge=0.0)
    confidence_step: float = Field(default=0.1, ge=0.0)
    confidence_floor: float = Field(default=0.5, ge=0.0, le=1.0)
    seed: Optional[int] = None
    history_damping: float = Field(default=0.8, gt=0.0, le=1.0)
    near_term_weeks: int = 2
    warning_score: float = 70.0
    critical_warning_score: float = 50.0
    inactivity_warning_days: int = 14
    stakeholder_silence_days: int = 21
    milestone_interval_days: int = Field(default=7, ge=1)


class BenchmarkPolicy(_PolicyModel):
    # Thresholds are multiples of the benchmark value.
    percentile: ScoreBands = ScoreBands(
        op="ge",
        bands=((1.2, 90), (1.0, 60), (0.8, 40)),
        default=10,
    )
    statuses: LabelBands = LabelBands(
        bands=((75, "above_average"), (25, "average")),
        default="below_average",
    )
    supported_metrics: tuple[str, ...] = (
        "deal_size",
        "deal_age",
        "engagement_count",
        "health_score",
        "win_rate",
    )
    peer_similarity_floor: float = Field(default=0.5, ge=0.0, le=1.0)
    max_peers: int = Field(default=5, ge=0)


class ActionPolicy(_PolicyModel):
    review_score: float = 60.0
    weak_dimension_score: float = 70.0
    high_priority_score: float = 50.0
    recommendations_per_dimension: int = Field(default=2, ge=1)
    review_impact: int = 20
    dimension_impact: int = 10
    recency_target_days: float = 7.0
    score_target: float = 80.0
    escalation_score: float = 60.0
    checkpoint_interval_days: int = Field(default=7, ge=1)


# ── Root Policy ─────────────────────────────────────────────────────────────


class HealthScoringPolicy(_PolicyModel):
    """Complete, immutable scoring policy.

    Defaults reproduce the production scoring rules. Build a variant with
    ``HealthScoringPolicy.model_validate({...})`` or ``model_copy(update=...)``
    (the latter skips validation; prefer model_validate for tuned values).
    """

    engagement: EngagementPolicy = Field(default_factory=EngagementPolicy)
    momentum: MomentumPolicy = Field(default_factory=MomentumPolicy)
    competition: CompetitionPolicy = Field(default_factory=CompetitionPolicy)
    stakeholder: StakeholderPolicy = Field(default_factory=StakeholderPolicy)
    qualification: QualificationPolicy = Field(default_factory=QualificationPolicy)
    risk: RiskPolicy = Field(default_factory=RiskPolicy)
    aggregation: AggregationPolicy = Field(default_factory=AggregationPolicy)
    predictor: PredictorPolicy = Field(default_factory=PredictorPolicy)
    benchmark: BenchmarkPolicy = Field(default_factory=BenchmarkPolicy)
    action: ActionPolicy = Field(default_factory=ActionPolicy)

    @classmethod
    def from_settings(cls, settings: Settings) -> HealthScoringPolicy:
        """Default policy with environment-level predictor overrides applied."""
        return cls(
            predictor=PredictorPolicy(
                seed=settings.HEALTH_TRAJECTORY_SEED,
                periods=settings.HEALTH_TRAJECTORY_PERIODS,
            )
        )


DEFAULT_POLICY = HealthScoringPolicy()


__all__ = [
    "DEFAULT_POLICY",
    "GRADE_ORDER",
    "RISK_ORDER",
    "ActionPolicy",
    "AggregationPolicy",
    "BenchmarkPolicy",
    "CompetitionPolicy",
    "EngagementPolicy",
    "HealthScoringPolicy",
    "LabelBands",
    "MomentumPolicy",
    "PredictorPolicy",
    "QualificationPolicy",
    "RiskPolicy",
    "ScoreBands",
    "StakeholderPolicy",
]
