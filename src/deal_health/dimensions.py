"""Pure Python scorers for the six deal-health dimensions.

Each scorer reads one slice of a Deal and returns a DimensionScore: 3-4 named
sub-metrics from bucketed lookups or ratios, a weighted 0-100 score, a trend
label from a separate heuristic, and recommendations from threshold checks on
the sub-metrics. Scorers are independent and share no mutable state, so they
can run in any order.

IMPORTANT: Do NOT use LLM for score computation. The score is a deterministic
numeric calculation. LLM adds latency, cost, and non-determinism for zero benefit.

Missing data never raises. Absent collections are empty and absent numbers
take the neutral value configured on the policy.

Exports:
    DimensionScorer: Policy-driven scorer for all six dimensions.
    round_half_up: Integer rounding used for every published score.
    days_since: Whole days elapsed between a timestamp and a reference instant.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from src.deal_health.policy import DEFAULT_POLICY, HealthScoringPolicy
from src.deal_health.schemas import (
    Deal,
    DimensionScore,
    EngagementEvent,
    HealthDimensions,
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def as_utc(moment: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def days_since(moment: datetime | None, as_of: datetime) -> int | None:
    """Floored whole days from ``moment`` to ``as_of``; None when unknown."""
    if moment is None:
        return None
    elapsed = as_of - as_utc(moment)
    return math.floor(elapsed.total_seconds() / 86400)


def _weighted(metrics: dict[str, float], weights: dict[str, float]) -> int:
    return clamp_score(sum(metrics[name] * weight for name, weight in weights.items()))


class DimensionScorer:
    """Compute the six dimension scores for a deal.

    Args:
        policy: Scoring policy supplying weights, bands and neutral defaults.
    """

    def __init__(self, policy: HealthScoringPolicy = DEFAULT_POLICY) -> None:
        self._policy = policy

    # ── Engagement ──────────────────────────────────────────────────────

    def score_engagement(self, deal: Deal, as_of: datetime) -> DimensionScore:
        """Recency, frequency, quality and duration of buyer engagement."""
        p = self._policy.engagement
        history = deal.engagement_history

        days = days_since(deal.last_activity, as_of)
        recency = p.unknown_recency if days is None else p.recency_days.lookup(days)

        window_start = as_of - timedelta(days=p.frequency_window_days)
        recent_count = sum(1 for e in history if as_utc(e.timestamp) > window_start)
        frequency = p.frequency_count.lookup(recent_count)

        # High-value engagements are counted across the full history.
        high_value = sum(1 for e in history if self._is_high_value(e))
        quality = min(100.0, high_value / max(1, recent_count) * 100)

        durations = [e.duration for e in history if e.duration]
        avg_duration = sum(durations) / len(durations) if durations else 0.0
        duration = p.duration_minutes.lookup(avg_duration)

        metrics = {
            "recency": recency,
            "frequency": frequency,
            "quality": quality,
            "duration": duration,
        }
        trend = self._engagement_trend(history, as_of)

        recommendations: list[str] = []
        if recency < 60:
            recommendations.append("Schedule follow-up activity within 24 hours")
        if frequency < 60:
            recommendations.append("Increase engagement frequency to at least weekly")
        if quality < 70:
            recommendations.append(
                "Focus on higher-quality engagement activities (meetings, demos)"
            )
        if trend == "declining":
            recommendations.append("Re-engage with personalized outreach")

        return DimensionScore(
            score=_weighted(metrics, p.weights),
            metrics=metrics,
            trend=trend,
            recommendations=recommendations,
        )

    def _is_high_value(self, event: EngagementEvent) -> bool:
        p = self._policy.engagement
        return (
            event.type in p.high_value_types
            or event.sentiment == "positive"
            or bool(event.duration and event.duration > p.high_value_min_duration)
        )

    def _engagement_trend(self, history: list[EngagementEvent], as_of: datetime) -> str:
        """Compare activity in the latest window with the window before it."""
        p = self._policy.engagement
        window = timedelta(days=p.trend_window_days)
        recent_start = as_of - window
        previous_start = as_of - 2 * window

        recent = 0
        previous = 0
        for event in history:
            ts = as_utc(event.timestamp)
            if ts > recent_start:
                recent += 1
            elif ts > previous_start:
                previous += 1

        if recent > previous * p.improving_ratio:
            return "improving"
        if recent < previous * p.declining_ratio:
            return "declining"
        return "stable"

    # ── Momentum ────────────────────────────────────────────────────────

    def score_momentum(self, deal: Deal) -> DimensionScore:
        """Stage progress, stated probability, velocity and next-step coverage."""
        p = self._policy.momentum

        stage_progress = p.stage_progress.get(deal.stage, p.unknown_stage_progress)
        probability = (
            p.unknown_probability if deal.probability is None else deal.probability * 100
        )

        if deal.age is None:
            velocity = p.unknown_velocity
        else:
            expected = p.expected_age_by_stage.get(deal.stage, p.unknown_expected_age)
            velocity = p.velocity.lookup(deal.age, scale=expected)

        if deal.next_steps:
            next_steps = min(100.0, len(deal.next_steps) * p.points_per_next_step)
        else:
            next_steps = p.no_next_steps

        metrics = {
            "stageProgress": stage_progress,
            "probability": probability,
            "velocity": velocity,
            "nextSteps": next_steps,
        }
        trend = self._momentum_trend(deal)

        recommendations: list[str] = []
        if velocity < 60:
            recommendations.append(
                "Accelerate deal progression with more frequent touchpoints"
            )
        if next_steps < 50:
            recommendations.append("Define clear next steps and action items")
        if trend == "concerning":
            recommendations.append("Address blocking issues and re-establish momentum")

        return DimensionScore(
            score=_weighted(metrics, p.weights),
            metrics=metrics,
            trend=trend,
            recommendations=recommendations,
        )

    @staticmethod
    def _momentum_trend(deal: Deal) -> str:
        if deal.probability is None or deal.age is None:
            return "stable"
        if deal.probability > 0.7 and deal.age < 45:
            return "strong_positive"
        if deal.probability > 0.5 and deal.age < 75:
            return "positive"
        if deal.probability < 0.3 or deal.age > 90:
            return "concerning"
        return "stable"

    # ── Competition ─────────────────────────────────────────────────────

    def score_competition(self, deal: Deal) -> DimensionScore:
        """Competitive field size and position.

        differentiation and marketPosition are fixed policy baselines until
        the deal record carries competitive intelligence.
        """
        p = self._policy.competition
        count = len(deal.competitors)

        metrics = {
            "competitorCount": p.competitor_count.lookup(count),
            "competitivePosition": (
                p.unknown_value_position
                if deal.value is None
                else p.deal_value.lookup(deal.value)
            ),
            "differentiation": p.differentiation,
            "marketPosition": p.market_position,
        }

        if count == 0:
            trend = "favorable"
        elif count <= 2:
            trend = "manageable"
        else:
            trend = "challenging"

        recommendations: list[str] = []
        if trend == "challenging":
            recommendations.append("Develop competitive differentiation strategy")
            recommendations.append("Gather intelligence on competitor positioning")
        if metrics["competitorCount"] > 60:
            recommendations.append(
                "Accelerate timeline to reduce competitor evaluation time"
            )

        return DimensionScore(
            score=_weighted(metrics, p.weights),
            metrics=metrics,
            trend=trend,
            recommendations=recommendations,
        )

    # ── Stakeholder ─────────────────────────────────────────────────────

    def score_stakeholder(self, deal: Deal) -> DimensionScore:
        """Champion strength, role coverage, influence mix and sentiment."""
        p = self._policy.stakeholder
        stakeholders = deal.stakeholder_map

        if not stakeholders:
            return DimensionScore(
                score=p.unmapped_score,
                metrics={
                    "championStrength": 0,
                    "stakeholderCoverage": 0,
                    "influenceBalance": 0,
                    "sentimentScore": 0,
                },
                trend="unknown",
                recommendations=[
                    "Identify and map key stakeholders",
                    "Establish relationships with decision makers",
                ],
            )

        total = len(stakeholders)
        champion = next((s for s in stakeholders if s.sentiment == "champion"), None)
        champion_strength = (
            p.champion_strength.get(champion.influence, p.no_champion)
            if champion is not None
            else p.no_champion
        )

        roles = {s.role for s in stakeholders}
        coverage = sum(points for role, points in p.role_coverage.items() if role in roles)

        high_influence = sum(1 for s in stakeholders if s.influence == "high")
        influence_balance = min(100.0, high_influence / total * 100)

        positive = sum(1 for s in stakeholders if s.sentiment in p.positive_sentiments)
        positive_ratio = positive / total

        metrics = {
            "championStrength": champion_strength,
            "stakeholderCoverage": coverage,
            "influenceBalance": influence_balance,
            "sentimentScore": positive_ratio * 100,
        }

        if positive_ratio > 0.7:
            trend = "strong_support"
        elif positive_ratio > 0.5:
            trend = "good_support"
        elif positive_ratio < 0.3:
            trend = "concerning"
        else:
            trend = "neutral"

        recommendations: list[str] = []
        if champion_strength < 60:
            recommendations.append("Identify and develop internal champion")
        if coverage < 70:
            recommendations.append(
                "Expand stakeholder engagement to include influencers and end users"
            )
        if trend == "concerning":
            recommendations.append("Address stakeholder concerns and rebuild support")

        return DimensionScore(
            score=_weighted(metrics, p.weights),
            metrics=metrics,
            trend=trend,
            recommendations=recommendations,
        )

    # ── Qualification ───────────────────────────────────────────────────

    def score_qualification(self, deal: Deal) -> DimensionScore:
        """Budget fit, company fit, need fit and declared risk factors."""
        p = self._policy.qualification

        if deal.company_size and deal.value:
            budget_fit = p.budget_ratio.lookup(deal.value / deal.company_size)
        else:
            budget_fit = p.unknown_budget_fit

        metrics = {
            "budgetFit": budget_fit,
            "companyFit": p.company_size.lookup(deal.company_size or 0),
            "needFit": p.need_fit,
            "riskLevel": max(0.0, 100 - len(deal.risk_factors) * p.risk_factor_penalty),
        }

        trend = "appropriately_qualified"
        if deal.company_size and deal.value is not None:
            ratio = deal.value / deal.company_size
            if ratio < p.well_qualified_ratio:
                trend = "well_qualified"
            elif ratio > p.over_qualified_ratio:
                trend = "over_qualified"

        recommendations: list[str] = []
        if trend == "over_qualified":
            recommendations.append("Validate budget authority and approval process")
        if metrics["riskLevel"] < 60:
            recommendations.append("Address identified risk factors")

        return DimensionScore(
            score=_weighted(metrics, p.weights),
            metrics=metrics,
            trend=trend,
            recommendations=recommendations,
        )

    # ── Risk ────────────────────────────────────────────────────────────

    def score_risk(self, deal: Deal) -> DimensionScore:
        """Pipeline age, stage, outstanding objections and external risks.

        Higher is safer: every sub-metric starts at 100 and loses points
        as risk accumulates.
        """
        p = self._policy.risk
        outstanding = len(deal.outstanding_objections)

        metrics = {
            "ageRisk": p.unknown_age if deal.age is None else p.age_days.lookup(deal.age),
            "stageRisk": p.stage_risk.get(deal.stage, p.unknown_stage_risk),
            "objectionRisk": max(0.0, 100 - outstanding * p.objection_penalty),
            "externalRisk": max(0.0, 100 - len(deal.risk_factors) * p.risk_factor_penalty),
        }

        if deal.age is not None and deal.age > 90 and outstanding > 0:
            trend = "increasing"
        elif deal.age is not None and deal.age < 45 and outstanding == 0:
            trend = "decreasing"
        else:
            trend = "stable"

        recommendations: list[str] = []
        if metrics["ageRisk"] < 60:
            recommendations.append("Accelerate deal progression to reduce aging risk")
        if metrics["objectionRisk"] < 70:
            recommendations.append("Address outstanding objections")
        if trend == "increasing":
            recommendations.append("Implement risk mitigation strategies")

        return DimensionScore(
            score=_weighted(metrics, p.weights),
            metrics=metrics,
            trend=trend,
            recommendations=recommendations,
        )

    # ── All Dimensions ──────────────────────────────────────────────────

    def score_all(self, deal: Deal, as_of: datetime) -> HealthDimensions:
        """Run all six scorers. Order is irrelevant; none depends on another."""
        return HealthDimensions(
            engagement=self.score_engagement(deal, as_of),
            momentum=self.score_momentum(deal),
            competition=self.score_competition(deal),
            stakeholder=self.score_stakeholder(deal),
            qualification=self.score_qualification(deal),
            risk=self.score_risk(deal),
        )


__all__ = ["DimensionScorer", "as_utc", "clamp_score", "days_since", "round_half_up"]
