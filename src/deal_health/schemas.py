"""Pydantic data models for the deal health engine.

Defines every structured type the engine consumes or produces:
- Input: Deal (with engagement, stakeholder and objection records),
  BenchmarkData, AnalysisPreferences, HealthSnapshot
- Dimension output: DimensionScore, HealthDimensions
- Composite output: OverallHealth
- Predictive output: TrajectoryPoint, WarningSignal, Milestone, PredictiveInsights
- Comparative output: BenchmarkResult, PeerComparison, HistoricalDealSummary,
  HistoricalComparison, ComparativeAnalysis
- Action output: ImmediateAction, PlanPhase, LongTermStrategy, ActionPlan
- Monitoring output: KeyMetric, HealthCheckpoint, EscalationTrigger, HealthMonitoring
- DealHealthAnalysis: the top-level result

Input models are lenient: absent collections become empty lists and absent
numbers stay None so scorers can apply their neutral defaults. Known stage
names are folded to their DealStage value; unknown stages pass through.

Output models are frozen all the way down: collections are tuples, metric
maps are read-only, and nothing in a DealHealthAnalysis shares state with the
caller's input objects.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Literal, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)


# ── Enums & Literals ────────────────────────────────────────────────────────


class DealStage(str, Enum):
    """Pipeline stages recognized by the stage tables."""

    PROSPECTING = "prospecting"
    QUALIFICATION = "qualification"
    CONSIDERATION = "consideration"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSING = "closing"


_STAGE_VALUES = frozenset(stage.value for stage in DealStage)


def normalize_stage(value: Any) -> Any:
    """Fold a known stage to its DealStage value; leave anything else as given.

    " Proposal " and DealStage.PROPOSAL both become "proposal". None becomes
    the empty string. Unrecognized stages are returned unchanged so they score
    with the neutral unknown-stage defaults.
    """
    if value is None:
        return ""
    if isinstance(value, DealStage):
        return value.value
    if isinstance(value, str):
        folded = value.strip().lower()
        if folded in _STAGE_VALUES:
            return folded
    return value


DimensionName = Literal[
    "engagement", "momentum", "competition", "stakeholder", "qualification", "risk"
]

DIMENSION_NAMES: tuple[str, ...] = (
    "engagement",
    "momentum",
    "competition",
    "stakeholder",
    "qualification",
    "risk",
)

Grade = Literal["A+", "A", "B+", "B", "C+", "C", "D", "F"]
RiskLevel = Literal["low", "medium", "high", "critical"]
HealthTrend = Literal["improving", "stable", "declining", "critical"]
Severity = Literal["low", "medium", "high", "critical"]
Priority = Literal["high", "medium", "low"]
BenchmarkSource = Literal["industry", "company_size", "historical"]
BenchmarkStatus = Literal["above_average", "average", "below_average"]


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# Read-only name -> value mapping; serializes as a plain dict.
FrozenMetrics = Annotated[
    Mapping[str, float],
    AfterValidator(lambda value: MappingProxyType(dict(value))),
    PlainSerializer(dict, return_type=dict[str, float]),
]


# ── Deal Input ──────────────────────────────────────────────────────────────


class EngagementEvent(BaseModel):
    """A single recorded touchpoint with the buyer.

    Attributes:
        type: Activity type (meeting, demo, email, call, ...).
        timestamp: When the engagement happened. Naive values are UTC.
        duration: Length of the interaction in minutes, if known.
        sentiment: Buyer sentiment observed during the engagement.
        key_points: Free-text notes.
    """

    type: str = ""
    timestamp: datetime
    duration: Optional[float] = Field(default=None, ge=0.0)
    sentiment: Optional[Literal["positive", "neutral", "negative"]] = None
    key_points: list[str] = Field(default_factory=list)


class StakeholderEntry(BaseModel):
    """One person on the buying committee and where they stand."""

    name: str
    role: str = ""
    influence: Literal["high", "medium", "low"] = "medium"
    sentiment: Literal["champion", "supporter", "neutral", "skeptic", "blocker"] = "neutral"
    last_interaction: Optional[datetime] = None


class Objection(BaseModel):
    """A buyer objection and its resolution state."""

    objection: str
    status: Literal["resolved", "addressed", "outstanding"] = "outstanding"
    resolution: Optional[str] = None
    date_raised: Optional[datetime] = None


class Deal(BaseModel):
    """Opportunity record as supplied by the owning CRM layer.

    Read-only to the engine. Every field except the collections is optional;
    scorers substitute documented neutral values for anything absent.

    Attributes:
        name: Deal display name.
        value: Deal amount in account currency.
        stage: Pipeline stage (see DealStage). Unknown stages score neutrally.
        probability: Win probability (0.0 to 1.0).
        age: Days the deal has been in the pipeline.
        last_activity: Timestamp of the most recent activity.
        owner: Deal owner.
        industry: Buyer industry.
        company_size: Buyer employee count.
        competitors: Named competitors in the evaluation.
        risk_factors: Free-text risk factors.
        next_steps: Ordered next steps.
        engagement_history: Recorded engagements.
        stakeholder_map: Known stakeholders.
        objections: Raised objections.
    """

    name: str = ""
    value: Optional[float] = Field(default=None, ge=0.0)
    stage: str = ""
    probability: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    age: Optional[int] = Field(default=None, ge=0)
    last_activity: Optional[datetime] = None
    owner: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[int] = Field(default=None, ge=0)
    competitors: list[str] = Field(default_factory=list)
    risk_factors: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)
    engagement_history: list[EngagementEvent] = Field(default_factory=list)
    stakeholder_map: list[StakeholderEntry] = Field(default_factory=list)
    objections: list[Objection] = Field(default_factory=list)

    @field_validator("stage", mode="before")
    @classmethod
    def _fold_stage(cls, value: Any) -> Any:
        return normalize_stage(value)

    @field_validator(
        "competitors",
        "risk_factors",
        "next_steps",
        "engagement_history",
        "stakeholder_map",
        "objections",
        mode="before",
    )
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def outstanding_objections(self) -> list[Objection]:
        return [o for o in self.objections if o.status == "outstanding"]


# ── Benchmark & Preference Input ────────────────────────────────────────────


class HistoricalPeriod(BaseModel):
    """Aggregate pipeline performance for one past period."""

    period: str
    average_health_score: float
    win_rate: float = Field(ge=0.0, le=1.0)
    average_deal_age: float = Field(ge=0.0)


class PeerDeal(BaseModel):
    """A currently open deal offered for side-by-side comparison."""

    deal_id: str
    deal_name: str = ""
    health_score: float = Field(ge=0.0, le=100.0)
    stage: str = ""
    value: Optional[float] = Field(default=None, ge=0.0)
    lessons_learned: list[str] = Field(default_factory=list)

    @field_validator("stage", mode="before")
    @classmethod
    def _fold_stage(cls, value: Any) -> Any:
        return normalize_stage(value)


class HistoricalDeal(BaseModel):
    """A closed deal similar to the one being analyzed."""

    deal_id: str
    outcome: Literal["won", "lost"]
    final_health_score: float = Field(ge=0.0, le=100.0)
    time_to_close: int = Field(ge=0)
    key_factors: list[str] = Field(default_factory=list)


class BenchmarkData(BaseModel):
    """Comparison data supplied by the caller. The engine never fabricates it."""

    industry_averages: dict[str, float] = Field(default_factory=dict)
    company_size_benchmarks: dict[str, float] = Field(default_factory=dict)
    historical_performance: list[HistoricalPeriod] = Field(default_factory=list)
    peer_deals: list[PeerDeal] = Field(default_factory=list)
    similar_deals: list[HistoricalDeal] = Field(default_factory=list)


class AnalysisPreferences(BaseModel):
    """Flags gating optional output sections. Core scoring is unaffected."""

    include_trend_analysis: bool = True
    include_competitive_analysis: bool = True
    include_stakeholder_analysis: bool = True
    benchmark_against: Literal["industry", "company_size", "historical", "all"] = "industry"


class HealthSnapshot(BaseModel):
    """A previously persisted composite score for the same deal."""

    recorded_at: datetime
    score: float = Field(ge=0.0, le=100.0)


# ── Dimension & Composite Output ────────────────────────────────────────────


class DimensionScore(_FrozenModel):
    """Score for one deal-health facet.

    Attributes:
        score: Weighted 0-100 score.
        metrics: Named sub-metric values that fed the score.
        trend: Dimension-specific trend label.
        recommendations: Ordered remediation suggestions.
    """

    score: int = Field(ge=0, le=100)
    metrics: FrozenMetrics = Field(default_factory=dict, validate_default=True)
    trend: str
    recommendations: tuple[str, ...] = ()


class HealthDimensions(_FrozenModel):
    """All six dimension scores. Every dimension is always present."""

    engagement: DimensionScore
    momentum: DimensionScore
    competition: DimensionScore
    stakeholder: DimensionScore
    qualification: DimensionScore
    risk: DimensionScore

    def items(self) -> list[tuple[str, DimensionScore]]:
        """Dimensions in canonical order."""
        return [(name, getattr(self, name)) for name in DIMENSION_NAMES]

    def scores(self) -> dict[str, int]:
        return {name: dim.score for name, dim in self.items()}


class OverallHealth(_FrozenModel):
    """Composite health with derived grade, risk level and trend."""

    current_score: int = Field(ge=0, le=100)
    previous_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    trend: HealthTrend
    grade: Grade
    risk_level: RiskLevel
    confidence: float = Field(ge=0.0, le=1.0)


# ── Predictive Output ───────────────────────────────────────────────────────


class TrajectoryPoint(_FrozenModel):
    """Projected composite score at a future period."""

    period: str
    weeks_ahead: int = Field(ge=1)
    predicted_score: int = Field(ge=0, le=100)
    confidence: float = Field(ge=0.0, le=1.0)
    key_factors: tuple[str, ...] = ()


class WarningSignal(_FrozenModel):
    """Early indicator that the deal is deteriorating."""

    signal: str
    severity: Severity
    probability: float = Field(ge=0.0, le=1.0)
    time_to_impact: str
    mitigation_steps: tuple[str, ...] = ()


class Milestone(_FrozenModel):
    """A declared next step scheduled as a dated milestone."""

    milestone: str
    due_date: date
    importance: Severity
    status: Literal["upcoming", "overdue", "completed"] = "upcoming"
    impact: str


class PredictiveInsights(_FrozenModel):
    health_trajectory: tuple[TrajectoryPoint, ...] = ()
    early_warning_signals: tuple[WarningSignal, ...] = ()
    critical_milestones: tuple[Milestone, ...] = ()


# ── Comparative Output ──────────────────────────────────────────────────────


class BenchmarkResult(_FrozenModel):
    """One deal metric compared with a benchmark value.

    ``mapped`` is False when the engine has no extractor for ``metric`` or the
deal lacks the field it reads;
    ``current`` is then 0 by convention and must not be read as a real zero.
    """

    metric: str
    source: BenchmarkSource
    current: float
    benchmark: float
    delta: float
    percentile: int = Field(ge=0, le=100)
    status: BenchmarkStatus
    mapped: bool = True


class PeerComparison(_FrozenModel):
    deal_id: str
    deal_name: str = ""
    similarity: float = Field(ge=0.0, le=1.0)
    health_score: float
    stage: str = ""
    lessons_learned: tuple[str, ...] = ()


class HistoricalDealSummary(_FrozenModel):
    """Read-only copy of a caller-supplied HistoricalDeal."""

    deal_id: str
    outcome: Literal["won", "lost"]
    final_health_score: float = Field(ge=0.0, le=100.0)
    time_to_close: int = Field(ge=0)
    key_factors: tuple[str, ...] = ()


class HistoricalComparison(_FrozenModel):
    similar_deals: tuple[HistoricalDealSummary, ...] = ()
    success_patterns: tuple[str, ...] = ()
    failure_patterns: tuple[str, ...] = ()


class ComparativeAnalysis(_FrozenModel):
    benchmark_comparison: tuple[BenchmarkResult, ...] = ()
    peer_comparison: tuple[PeerComparison, ...] = ()
    historical_comparison: HistoricalComparison = Field(default_factory=HistoricalComparison)

    def by_metric(self, source: BenchmarkSource = "industry") -> dict[str, BenchmarkResult]:
        """Benchmark results for one source keyed by metric name."""
        return {r.metric: r for r in self.benchmark_comparison if r.source == source}


# ── Action Plan Output ──────────────────────────────────────────────────────


class ImmediateAction(_FrozenModel):
    """A remediation step to take now.

    Attributes:
        action: What to do.
        priority: Urgency.
        timeframe: Deadline label (within_24_hours, within_1_week).
        expected_impact: Expected composite score lift in points.
        owner: Role responsible.
        success_metrics: How completion is judged.
        dimension: Dimension that produced the action, None for deal-level actions.
    """

    action: str
    priority: Priority
    timeframe: str
    expected_impact: int
    owner: str
    success_metrics: tuple[str, ...] = ()
    dimension: Optional[DimensionName] = None


class PlanPhase(_FrozenModel):
    objective: str
    actions: tuple[str, ...] = ()
    timeline: str
    success_criteria: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()


class LongTermStrategy(_FrozenModel):
    strategic_objectives: tuple[str, ...] = ()
    capability_building: tuple[str, ...] = ()
    process_improvements: tuple[str, ...] = ()
    risk_mitigation: tuple[str, ...] = ()


class ActionPlan(_FrozenModel):
    immediate_actions: tuple[ImmediateAction, ...] = ()
    short_term_plan: tuple[PlanPhase, ...] = ()
    long_term_strategy: LongTermStrategy = Field(default_factory=LongTermStrategy)
    resource_notes: tuple[str, ...] = ()


# ── Monitoring Output ───────────────────────────────────────────────────────


class KeyMetric(_FrozenModel):
    """A metric to track with its target. ``current_value`` is None when unknown."""

    metric: str
    current_value: Optional[float] = None
    target_value: float
    trend: str
    frequency: str


class HealthCheckpoint(_FrozenModel):
    checkpoint: str
    scheduled_date: date
    criteria: tuple[str, ...] = ()
    actions: tuple[str, ...] = ()


class EscalationTrigger(_FrozenModel):
    trigger: str
    threshold: float
    action: str
    responsible_party: str


class HealthMonitoring(_FrozenModel):
    key_metrics: tuple[KeyMetric, ...] = ()
    health_checkpoints: tuple[HealthCheckpoint, ...] = ()
    escalation_triggers: tuple[EscalationTrigger, ...] = ()


# ── Analysis Result ─────────────────────────────────────────────────────────


class DealHealthAnalysis(_FrozenModel):
    """Complete health analysis for one deal at one instant.

    Attributes:
        deal_id: Analyzed deal.
        overall_health: Composite score, grade, risk level and trend.
        health_dimensions: The six dimension scores.
        predictive_insights: Trajectory, early warnings, milestones.
        comparative_analysis: Benchmark, peer and historical comparison.
        action_plan: Immediate actions and phased plan.
        health_monitoring: Metrics, checkpoints, escalation triggers.
        analyzed_at: Reference instant the analysis was computed for.
    """

    deal_id: str
    overall_health: OverallHealth
    health_dimensions: HealthDimensions
    predictive_insights: PredictiveInsights
    comparative_analysis: ComparativeAnalysis
    action_plan: ActionPlan
    health_monitoring: HealthMonitoring
    analyzed_at: datetime


__all__ = [
    "DIMENSION_NAMES",
    "ActionPlan",
    "AnalysisPreferences",
    "BenchmarkData",
    "BenchmarkResult",
    "ComparativeAnalysis",
    "Deal",
    "DealHealthAnalysis",
    "DealStage",
    "DimensionName",
    "DimensionScore",
    "EngagementEvent",
    "EscalationTrigger",
    "HealthCheckpoint",
    "HealthDimensions",
    "HealthMonitoring",
    "HealthSnapshot",
    "HistoricalComparison",
    "HistoricalDeal",
    "HistoricalDealSummary",
    "HistoricalPeriod",
    "ImmediateAction",
    "KeyMetric",
    "LongTermStrategy",
    "Milestone",
    "Objection",
    "normalize_stage",
    "OverallHealth",
    "PeerComparison",
    "PeerDeal",
    "PlanPhase",
    "PredictiveInsights",
    "StakeholderEntry",
    "TrajectoryPoint",
    "WarningSignal",
]
