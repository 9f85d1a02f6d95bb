"""Remediation plan and monitoring configuration for a scored deal.

Turns weak dimensions and the overall risk level into:
- immediate actions (an emergency review for critical deals, plus the top
  recommendations of every weak dimension)
- a short-term plan with one objective per weak dimension
- a long-term strategy listing the deal's open risks
- a monitoring configuration: key metrics with targets, a weekly checkpoint
  and a score-based escalation trigger
"""

from __future__ import annotations

from datetime import datetime, timedelta

from src.deal_health.dimensions import days_since
from src.deal_health.policy import DEFAULT_POLICY, HealthScoringPolicy
from src.deal_health.schemas import (
    ActionPlan,
    Deal,
    EscalationTrigger,
    HealthCheckpoint,
    HealthDimensions,
    HealthMonitoring,
    ImmediateAction,
    KeyMetric,
    LongTermStrategy,
    OverallHealth,
    PlanPhase,
    PredictiveInsights,
)

_MANAGER = "Sales Manager"
_REP = "Sales Rep"


class ActionPlanner:
    """Build the action plan and monitoring config for one analysis."""

    def __init__(self, policy: HealthScoringPolicy = DEFAULT_POLICY) -> None:
        self._policy = policy.action

    def needs_review(self, overall: OverallHealth) -> bool:
        return overall.risk_level == "critical" or overall.current_score < self._policy.review_score

    def immediate_actions(
        self, overall: OverallHealth, dimensions: HealthDimensions
    ) -> list[ImmediateAction]:
        p = self._policy
        actions: list[ImmediateAction] = []

        if self.needs_review(overall):
            actions.append(
                ImmediateAction(
                    action="Schedule emergency deal review meeting",
                    priority="high",
                    timeframe="within_24_hours",
                    expected_impact=p.review_impact,
                    owner=_MANAGER,
                    success_metrics=[
                        "Deal health score improvement",
                        "Clear action plan established",
                    ],
                )
            )

        for name, dimension in dimensions.items():
            if dimension.score >= p.weak_dimension_score:
                continue
            priority = "high" if dimension.score < p.high_priority_score else "medium"
            for recommendation in dimension.recommendations[: p.recommendations_per_dimension]:
                actions.append(
                    ImmediateAction(
                        action=recommendation,
                        priority=priority,
                        timeframe="within_1_week",
                        expected_impact=p.dimension_impact,
                        owner=_REP,
                        success_metrics=[f"{name} health score improvement"],
                        dimension=name,
                    )
                )

        return actions

    def short_term_plan(self, dimensions: HealthDimensions) -> list[PlanPhase]:
        target = self._policy.weak_dimension_score
        return [
            PlanPhase(
                objective=f"Raise {name} health to {target:g}+",
                actions=list(dimension.recommendations),
                timeline="2-4 weeks",
                success_criteria=[f"{name} score >= {target:g}"],
            )
            for name, dimension in dimensions.items()
            if dimension.score < target and dimension.recommendations
        ]

    def long_term_strategy(self, deal: Deal) -> LongTermStrategy:
        mitigation = list(deal.risk_factors) + [
            f"Resolve objection: {o.objection}" for o in deal.outstanding_objections
        ]
        return LongTermStrategy(
            strategic_objectives=[
                f"Reach and hold an overall health score of {self._policy.score_target:g}+"
            ],
            risk_mitigation=mitigation,
        )

    def plan(
        self, deal: Deal, overall: OverallHealth, dimensions: HealthDimensions
    ) -> ActionPlan:
        actions = self.immediate_actions(overall, dimensions)
        owners = sorted({a.owner for a in actions})
        resource_notes = [
            f"{owner}: {sum(a.owner == owner for a in actions)} action(s)" for owner in owners
        ]
        resource_notes.append(f"Escalation owner: {_MANAGER}")
        return ActionPlan(
            immediate_actions=actions,
            short_term_plan=self.short_term_plan(dimensions),
            long_term_strategy=self.long_term_strategy(deal),
            resource_notes=resource_notes,
        )

    # ── Monitoring ──────────────────────────────────────────────────────

    def monitoring(
        self,
        deal: Deal,
        overall: OverallHealth,
        as_of: datetime,
        predictive: PredictiveInsights | None = None,
    ) -> HealthMonitoring:
        p = self._policy
        recency = days_since(deal.last_activity, as_of)

        checkpoint_actions = ["Update action plan", "Schedule next steps"]
        if predictive is not None and predictive.early_warning_signals:
            checkpoint_actions.append("Review open early-warning signals")

        return HealthMonitoring(
            key_metrics=[
                KeyMetric(
                    metric="Engagement Recency",
                    current_value=None if recency is None else float(recency),
                    target_value=p.recency_target_days,
                    trend="stable",
                    frequency="daily",
                ),
                KeyMetric(
                    metric="Overall Health Score",
                    current_value=float(overall.current_score),
                    target_value=p.score_target,
                    trend=overall.trend,
                    frequency="weekly",
                ),
            ],
            health_checkpoints=[
                HealthCheckpoint(
                    checkpoint="Weekly Health Review",
                    scheduled_date=(as_of + timedelta(days=p.checkpoint_interval_days)).date(),
                    criteria=[
                        f"All health dimensions >= {p.weak_dimension_score:g}",
                        "No outstanding objections",
                    ],
                    actions=checkpoint_actions,
                )
            ],
            escalation_triggers=[
                EscalationTrigger(
                    trigger=f"Health score drops below {p.escalation_score:g}",
                    threshold=p.escalation_score,
                    action="Immediate management review required",
                    responsible_party=_MANAGER,
                )
            ],
        )


__all__ = ["ActionPlanner"]
