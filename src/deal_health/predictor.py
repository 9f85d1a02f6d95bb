"""Forward-looking health projection, early warnings and milestones.

The trajectory projects the composite score over the next few weekly periods.
Two deterministic modes:

- History mode (two or more persisted snapshots): weekly drift is the
  least-squares slope of snapshot score against elapsed weeks, damped
  geometrically per projected week.
- Seeded mode (otherwise): a random.Random seeded from the policy seed, or
  from a SHA-256 digest of the deal id when no seed is configured, draws a
  symmetric variance band around the current score.

Both modes clamp every projected score to [0, 100]. Point confidence decays
monotonically with distance. Identical inputs always yield identical output.
"""

from __future__ import annotations

import hashlib
import random
from collections.abc import Sequence
from datetime import datetime, timedelta

import structlog

from src.deal_health.dimensions import as_utc, clamp_score, days_since
from src.deal_health.policy import DEFAULT_POLICY, HealthScoringPolicy
from src.deal_health.schemas import (
    Deal,
    HealthSnapshot,
    Milestone,
    OverallHealth,
    PredictiveInsights,
    TrajectoryPoint,
    WarningSignal,
)

logger = structlog.get_logger(__name__)

_NEAR_TERM_FACTORS = ["Current engagement momentum", "Stakeholder sentiment"]
_LONG_TERM_FACTORS = ["Competitive positioning", "Market conditions", "Internal readiness"]


def seed_for_deal(deal_id: str) -> int:
    """Stable 64-bit seed derived from the deal id (independent of PYTHONHASHSEED)."""
    digest = hashlib.sha256(deal_id.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def history_drift(snapshots: Sequence[HealthSnapshot]) -> float:
    """Least-squares weekly score change across ``snapshots``.

    Returns 0.0 for fewer than two snapshots or when all share one timestamp.
    """
    if len(snapshots) < 2:
        return 0.0
    ordered = sorted(snapshots, key=lambda s: as_utc(s.recorded_at))
    origin = as_utc(ordered[0].recorded_at)
    xs = [(as_utc(s.recorded_at) - origin).total_seconds() / (7 * 86400) for s in ordered]
    ys = [s.score for s in ordered]
    mean_x = sum(xs) / len(xs)
    mean_y = sum(ys) / len(ys)
    denominator = sum((x - mean_x) ** 2 for x in xs)
    if denominator == 0:
        return 0.0
    return sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys)) / denominator


class HealthPredictor:
    """Project composite health forward and surface early warnings."""

    def __init__(self, policy: HealthScoringPolicy = DEFAULT_POLICY) -> None:
        self._policy = policy.predictor

    # ── Trajectory ──────────────────────────────────────────────────────

    def trajectory(
        self,
        deal_id: str,
        current_score: float,
        history: Sequence[HealthSnapshot] = (),
    ) -> list[TrajectoryPoint]:
        p = self._policy
        use_history = len(history) >= 2
        drift = history_drift(history) if use_history else 0.0
        rng = random.Random(p.seed if p.seed is not None else seed_for_deal(deal_id))

        points: list[TrajectoryPoint] = []
        for i in range(1, p.periods + 1):
            weeks = i * p.weeks_per_period
            if use_history:
                projected = current_score + drift * sum(
                    p.history_damping**k for k in range(weeks)
                )
            else:
                projected = current_score + (rng.random() - 0.5) * p.variance

            points.append(
                TrajectoryPoint(
                    period=f"{weeks} week" if weeks == 1 else f"{weeks} weeks",
                    weeks_ahead=weeks,
                    predicted_score=clamp_score(projected),
                    confidence=round(max(p.confidence_floor, 1 - i * p.confidence_step), 4),
                    key_factors=list(
                        _NEAR_TERM_FACTORS if weeks <= p.near_term_weeks else _LONG_TERM_FACTORS
                    ),
                )
            )

        logger.debug(
            "deal_health.trajectory_projected",
            deal_id=deal_id,
            mode="history" if use_history else "seeded",
            drift=drift,
        )
        return points

    # ── Early Warnings ──────────────────────────────────────────────────

    def warning_signals(
        self,
        deal: Deal,
        overall: OverallHealth,
        as_of: datetime,
        include_stakeholders: bool = True,
    ) -> list[WarningSignal]:
        p = self._policy
        signals: list[WarningSignal] = []

        if overall.current_score < p.warning_score:
            signals.append(
                WarningSignal(
                    signal="Overall health score declining",
                    severity=(
                        "critical"
                        if overall.current_score < p.critical_warning_score
                        else "high"
                    ),
                    probability=0.8,
                    time_to_impact="immediate",
                    mitigation_steps=[
                        "Immediate action plan review",
                        "Stakeholder re-engagement",
                    ],
                )
            )

        inactive_days = days_since(deal.last_activity, as_of)
        if inactive_days is not None and inactive_days > p.inactivity_warning_days:
            signals.append(
                WarningSignal(
                    signal="Extended period without engagement",
                    severity="medium",
                    probability=0.7,
                    time_to_impact="1-2 weeks",
                    mitigation_steps=[
                        "Schedule follow-up activity",
                        "Re-establish communication cadence",
                    ],
                )
            )

        if include_stakeholders:
            for stakeholder in deal.stakeholder_map:
                if stakeholder.sentiment != "champion" and stakeholder.role != "decision_maker":
                    continue
                silent_days = days_since(stakeholder.last_interaction, as_of)
                if silent_days is None or silent_days <= p.stakeholder_silence_days:
                    continue
                signals.append(
                    WarningSignal(
                        signal=f"Key stakeholder disengaged: {stakeholder.name}",
                        severity="medium",
                        probability=0.6,
                        time_to_impact="2-3 weeks",
                        mitigation_steps=[
                            f"Re-engage {stakeholder.name} directly",
                            f"Confirm {stakeholder.name}'s position on the deal",
                        ],
                    )
                )

        return signals

    # ── Milestones ──────────────────────────────────────────────────────

    def milestones(self, deal: Deal, as_of: datetime) -> list[Milestone]:
        """Schedule declared next steps at successive weekly due dates."""
        interval = self._policy.milestone_interval_days
        return [
            Milestone(
                milestone=step,
                due_date=(as_of + timedelta(days=(index + 1) * interval)).date(),
                importance="high" if index == 0 else "medium",
                status="upcoming",
                impact="Critical for deal progression",
            )
            for index, step in enumerate(deal.next_steps)
        ]

    # ── Combined ────────────────────────────────────────────────────────

    def predict(
        self,
        deal_id: str,
        deal: Deal,
        overall: OverallHealth,
        as_of: datetime,
        *,
        history: Sequence[HealthSnapshot] = (),
        include_trend: bool = True,
        include_stakeholders: bool = True,
    ) -> PredictiveInsights:
        return PredictiveInsights(
            health_trajectory=(
                self.trajectory(deal_id, overall.current_score, history)
                if include_trend
                else []
            ),
            early_warning_signals=self.warning_signals(
                deal, overall, as_of, include_stakeholders=include_stakeholders
            ),
            critical_milestones=self.milestones(deal, as_of),
        )


__all__ = ["HealthPredictor", "history_drift", "seed_for_deal"]
