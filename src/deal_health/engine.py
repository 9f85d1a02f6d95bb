"""Deal health scoring and predictive risk engine.

Composes the six dimension scorers, the aggregator, the predictor, the
benchmarker and the action planner into a single DealHealthAnalysis.

Control flow:
1. Validate deal_id and deal_data (the only place errors are raised).
2. Score all six dimensions (independent, any order).
3. Aggregate into OverallHealth.
4. Predict trajectory, early warnings and milestones.
5. Compare against caller-supplied benchmarks.
6. Plan actions and monitoring.

The engine performs no I/O beyond logging and holds no state between calls.
External collaborators (benchmark data, persisted history) are passed in
explicitly; nothing is read from the environment.

Exports:
    DealHealthEngine: Reusable engine bound to one scoring policy.
    DealHealthValidationError: Raised for missing or malformed input.
    analyze_deal_health: Convenience entry point using a fresh engine.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from src.deal_health.action_planner import ActionPlanner
from src.deal_health.aggregator import HealthAggregator
from src.deal_health.benchmarker import Benchmarker
from src.deal_health.dimensions import DimensionScorer, as_utc
from src.deal_health.policy import DEFAULT_POLICY, HealthScoringPolicy
from src.deal_health.predictor import HealthPredictor
from src.deal_health.schemas import (
    AnalysisPreferences,
    BenchmarkData,
    Deal,
    DealHealthAnalysis,
    HealthSnapshot,
)

logger = structlog.get_logger(__name__)

DealInput = Union[Deal, Mapping[str, Any]]
BenchmarkInput = Union[BenchmarkData, Mapping[str, Any]]
PreferencesInput = Union[AnalysisPreferences, Mapping[str, Any]]
HistoryInput = Sequence[Union[HealthSnapshot, Mapping[str, Any]]]


class DealHealthValidationError(ValueError):
    """Raised when required analysis input is missing or malformed."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"Invalid {field}: {message}")


def _coerce(model: type, value: Any, field: str) -> Any:
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as exc:
        raise DealHealthValidationError(field, str(exc)) from exc


class DealHealthEngine:
    """Deterministic deal health analysis bound to a scoring policy.

    Instances are immutable and safe to share across threads.

    Args:
        policy: Scoring policy. Defaults to the production rules.
    """

    def __init__(self, policy: HealthScoringPolicy = DEFAULT_POLICY) -> None:
        self.policy = policy
        self._scorer = DimensionScorer(policy)
        self._aggregator = HealthAggregator(policy)
        self._predictor = HealthPredictor(policy)
        self._benchmarker = Benchmarker(policy)
        self._planner = ActionPlanner(policy)

    def _validate(
        self,
        deal_id: Optional[str],
        deal_data: Optional[DealInput],
        benchmark_data: Optional[BenchmarkInput],
        preferences: Optional[PreferencesInput],
        history: Optional[HistoryInput],
    ) -> tuple[Deal, Optional[BenchmarkData], AnalysisPreferences, list[HealthSnapshot]]:
        if not isinstance(deal_id, str) or not deal_id.strip():
            raise DealHealthValidationError("deal_id", "deal ID is required")
        if deal_data is None:
            raise DealHealthValidationError("deal_data", "deal data is required")

        deal = _coerce(Deal, deal_data, "deal_data")
        benchmarks = (
            None
            if benchmark_data is None
            else _coerce(BenchmarkData, benchmark_data, "benchmark_data")
        )
        prefs = (
            AnalysisPreferences()
            if preferences is None
            else _coerce(AnalysisPreferences, preferences, "preferences")
        )
        snapshots = [_coerce(HealthSnapshot, s, "history") for s in history or ()]
        return deal, benchmarks, prefs, snapshots

    def analyze(
        self,
        deal_id: str,
        deal_data: DealInput,
        benchmark_data: Optional[BenchmarkInput] = None,
        preferences: Optional[PreferencesInput] = None,
        *,
        history: Optional[HistoryInput] = None,
        as_of: Optional[datetime] = None,
    ) -> DealHealthAnalysis:
        """Produce a complete health analysis for one deal.

        Args:
            deal_id: Identifier of the deal being analyzed.
            deal_data: Deal record (model or plain mapping).
            benchmark_data: Optional comparison data. Absent -> empty comparison.
            preferences: Optional flags gating trajectory, peer comparison,
                stakeholder warnings and benchmark sources.
            history: Persisted composite snapshots for this deal, oldest first
                or in any order. The newest becomes previous_score; two or more
                switch the trajectory to history mode.
            as_of: Reference instant for all time-relative metrics. Defaults
                to now (UTC). Pass it explicitly for reproducible output.

        Returns:
            Frozen DealHealthAnalysis.

        Raises:
            DealHealthValidationError: Missing deal_id/deal_data or input that
                fails schema validation. Raised before any scoring.
        """
        try:
            deal, benchmarks, prefs, snapshots = self._validate(
                deal_id, deal_data, benchmark_data, preferences, history
            )
        except DealHealthValidationError as exc:
            logger.warning(
                "deal_health.validation_failed", deal_id=deal_id, field=exc.field
            )
            raise

        reference = as_utc(as_of) if as_of is not None else datetime.now(timezone.utc)
        logger.info(
            "deal_health.analysis_started",
            deal_id=deal_id,
            stage=deal.stage,
            history_points=len(snapshots),
        )

        dimensions = self._scorer.score_all(deal, reference)

        previous_score = (
            max(snapshots, key=lambda s: as_utc(s.recorded_at)).score if snapshots else None
        )
        overall = self._aggregator.aggregate(dimensions.scores(), previous_score)

        predictive = self._predictor.predict(
            deal_id,
            deal,
            overall,
            reference,
            history=snapshots,
            include_trend=prefs.include_trend_analysis,
            include_stakeholders=prefs.include_stakeholder_analysis,
        )
        comparative = self._benchmarker.compare(deal, overall, reference, benchmarks, prefs)
        action_plan = self._planner.plan(deal, overall, dimensions)
        monitoring = self._planner.monitoring(deal, overall, reference, predictive)

        analysis = DealHealthAnalysis(
            deal_id=deal_id,
            overall_health=overall,
            health_dimensions=dimensions,
            predictive_insights=predictive,
            comparative_analysis=comparative,
            action_plan=action_plan,
            health_monitoring=monitoring,
            analyzed_at=reference,
        )

        logger.info(
            "deal_health.analysis_completed",
            deal_id=deal_id,
            score=overall.current_score,
            grade=overall.grade,
            risk_level=overall.risk_level,
            warnings=len(predictive.early_warning_signals),
            immediate_actions=len(action_plan.immediate_actions),
        )
        return analysis


def analyze_deal_health(
    deal_id: str,
    deal_data: DealInput,
    benchmark_data: Optional[BenchmarkInput] = None,
    preferences: Optional[PreferencesInput] = None,
    *,
    history: Optional[HistoryInput] = None,
    policy: Optional[HealthScoringPolicy] = None,
    as_of: Optional[datetime] = None,
) -> DealHealthAnalysis:
    """Analyze one deal with the given (or default) policy.

    See DealHealthEngine.analyze for argument semantics.
    """
    engine = DealHealthEngine(policy or DEFAULT_POLICY)
    return engine.analyze(
        deal_id,
        deal_data,
        benchmark_data,
        preferences,
        history=history,
        as_of=as_of,
    )


__all__ = ["DealHealthEngine", "DealHealthValidationError", "analyze_deal_health"]
