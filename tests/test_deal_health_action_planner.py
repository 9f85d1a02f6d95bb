"""Tests for the action plan and monitoring configuration.

Covers:
    - Emergency review action for low-scoring or critical deals
    - Per-dimension actions: weak threshold, priority split, recommendation cap
    - Short-term objectives for weak dimensions
    - Long-term risk mitigation from risk factors and open objections
    - Resource notes per owner
    - Key metrics, weekly checkpoint and escalation trigger
"""

from __future__ import annotations

from datetime import date

import pytest

from src.deal_health.action_planner import ActionPlanner
from src.deal_health.policy import HealthScoringPolicy
from src.deal_health.schemas import (
    Objection,
    OverallHealth,
    PredictiveInsights,
    WarningSignal,
)
from tests.health_builders import AS_OF, make_deal, make_dimension, make_dimensions


def _overall(score: int, risk_level: str = "medium") -> OverallHealth:
    return OverallHealth(
        current_score=score,
        trend="stable",
        grade="C",
        risk_level=risk_level,
        confidence=0.85,
    )


@pytest.fixture
def planner() -> ActionPlanner:
    return ActionPlanner()


class TestImmediateActions:
    def test_healthy_deal_needs_nothing(self, planner: ActionPlanner) -> None:
        assert planner.immediate_actions(_overall(82, "low"), make_dimensions()) == []

    def test_low_score_schedules_emergency_review(self, planner: ActionPlanner) -> None:
        [action] = planner.immediate_actions(_overall(59, "critical"), make_dimensions())

        assert action.action == "Schedule emergency deal review meeting"
        assert action.priority == "high"
        assert action.timeframe == "within_24_hours"
        assert action.owner == "Sales Manager"
        assert action.expected_impact == 20
        assert action.dimension is None

    def test_critical_risk_alone_triggers_review(self) -> None:
        policy = HealthScoringPolicy.model_validate({"action": {"review_score": 10}})
        planner = ActionPlanner(policy)
        assert planner.needs_review(_overall(65, "critical"))
        assert not planner.needs_review(_overall(65, "high"))

    def test_weak_dimensions_contribute_top_recommendations(
        self, planner: ActionPlanner
    ) -> None:
        dimensions = make_dimensions(engagement=45, momentum=65, risk=70)
        actions = planner.immediate_actions(_overall(72), dimensions)

        assert [(a.dimension, a.action, a.priority) for a in actions] == [
            ("engagement", "Improve engagement (a)", "high"),
            ("engagement", "Improve engagement (b)", "high"),
            ("momentum", "Improve momentum (a)", "medium"),
            ("momentum", "Improve momentum (b)", "medium"),
        ]
        assert all(a.owner == "Sales Rep" for a in actions)
        assert all(a.timeframe == "within_1_week" for a in actions)
        assert actions[0].success_metrics == ("engagement health score improvement",)

    def test_score_of_50_is_medium_priority(self, planner: ActionPlanner) -> None:
        actions = planner.immediate_actions(_overall(72), make_dimensions(competition=50))
        assert {a.priority for a in actions} == {"medium"}

    def test_recommendation_cap_is_configurable(self) -> None:
        policy = HealthScoringPolicy.model_validate(
            {"action": {"recommendations_per_dimension": 3}}
        )
        actions = ActionPlanner(policy).immediate_actions(
            _overall(72), make_dimensions(stakeholder=30)
        )
        assert len(actions) == 3

    def test_emergency_review_comes_first(self, planner: ActionPlanner) -> None:
        actions = planner.immediate_actions(_overall(40, "critical"), make_dimensions(risk=20))
        assert actions[0].action == "Schedule emergency deal review meeting"
        assert [a.dimension for a in actions[1:]] == ["risk", "risk"]


class TestPlan:
    def test_short_term_plan_targets_weak_dimensions(self, planner: ActionPlanner) -> None:
        dimensions = make_dimensions(stakeholder=60).model_copy(
            update={"risk": make_dimension(40)}
        )
        [phase] = planner.short_term_plan(dimensions)

        assert phase.objective == "Raise stakeholder health to 70+"
        assert phase.actions == (
            "Improve stakeholder (a)",
            "Improve stakeholder (b)",
            "Improve stakeholder (c)",
        )
        assert phase.timeline == "2-4 weeks"
        assert phase.success_criteria == ("stakeholder score >= 70",)

    def test_long_term_strategy_lists_open_risks(self, planner: ActionPlanner) -> None:
        deal = make_deal(
            risk_factors=["Budget freeze"],
            objections=[
                Objection(objection="Price"),
                Objection(objection="Timeline", status="resolved"),
            ],
        )
        strategy = planner.long_term_strategy(deal)

        assert strategy.risk_mitigation == ("Budget freeze", "Resolve objection: Price")
        assert strategy.strategic_objectives == (
            "Reach and hold an overall health score of 80+",
        )

    def test_resource_notes_count_actions_per_owner(self, planner: ActionPlanner) -> None:
        plan = planner.plan(make_deal(), _overall(55, "high"), make_dimensions(engagement=45))

        assert len(plan.immediate_actions) == 3
        assert plan.resource_notes == (
            "Sales Manager: 1 action(s)",
            "Sales Rep: 2 action(s)",
            "Escalation owner: Sales Manager",
        )

    def test_healthy_plan_is_minimal(self, planner: ActionPlanner) -> None:
        plan = planner.plan(make_deal(), _overall(85, "low"), make_dimensions())

        assert plan.immediate_actions == ()
        assert plan.short_term_plan == ()
        assert plan.resource_notes == ("Escalation owner: Sales Manager",)


class TestMonitoring:
    def test_key_metrics(self, planner: ActionPlanner) -> None:
        monitoring = planner.monitoring(make_deal(), _overall(82, "low"), AS_OF)
        recency, score = monitoring.key_metrics

        assert recency.metric == "Engagement Recency"
        assert recency.current_value == 2
        assert recency.target_value == 7
        assert recency.frequency == "daily"
        assert score.metric == "Overall Health Score"
        assert score.current_value == 82
        assert score.target_value == 80
        assert score.frequency == "weekly"

    def test_unknown_recency_has_no_current_value(self, planner: ActionPlanner) -> None:
        monitoring = planner.monitoring(make_deal(last_activity=None), _overall(82), AS_OF)
        assert monitoring.key_metrics[0].current_value is None

    def test_weekly_checkpoint_and_escalation(self, planner: ActionPlanner) -> None:
        monitoring = planner.monitoring(make_deal(), _overall(82), AS_OF)
        [checkpoint] = monitoring.health_checkpoints
        [trigger] = monitoring.escalation_triggers

        assert checkpoint.checkpoint == "Weekly Health Review"
        assert checkpoint.scheduled_date == date(2026, 3, 9)
        assert checkpoint.criteria == (
            "All health dimensions >= 70",
            "No outstanding objections",
        )
        assert checkpoint.actions == ("Update action plan", "Schedule next steps")
        assert trigger.trigger == "Health score drops below 60"
        assert trigger.threshold == 60
        assert trigger.responsible_party == "Sales Manager"

    def test_open_warnings_add_checkpoint_action(self, planner: ActionPlanner) -> None:
        predictive = PredictiveInsights(
            early_warning_signals=[
                WarningSignal(
                    signal="Extended period without engagement",
                    severity="medium",
                    probability=0.7,
                    time_to_impact="1-2 weeks",
                )
            ]
        )
        monitoring = planner.monitoring(make_deal(), _overall(82), AS_OF, predictive)
        assert monitoring.health_checkpoints[0].actions[-1] == (
            "Review open early-warning signals"
        )
