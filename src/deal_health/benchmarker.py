"""Comparison of a deal against caller-supplied benchmark data.

Benchmarks come only from the caller (industry averages, company-size
benchmarks, historical pipeline performance, peer and closed deals). When
none are supplied the comparative section is empty -- nothing is fabricated.

Metric extraction goes through a registry of named extractors. The policy
chooses which of them are enabled. An extractor returns None when the deal lacks the
source field. A requested metric with no enabled extractor, or whose extractor
finds no data, is reported with ``current=0`` and ``mapped=False`` so it can be
told apart from a genuine zero.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Optional

import structlog

from src.deal_health.dimensions import days_since
from src.deal_health.policy import DEFAULT_POLICY, HealthScoringPolicy
from src.deal_health.schemas import (
    AnalysisPreferences,
    BenchmarkData,
    BenchmarkResult,
    ComparativeAnalysis,
    Deal,
    HistoricalComparison,
    HistoricalDealSummary,
    OverallHealth,
    PeerComparison,
    PeerDeal,
)

logger = structlog.get_logger(__name__)

MetricExtractor = Callable[[Deal, OverallHealth, datetime], Optional[float]]


def _optional_float(value: Optional[float]) -> Optional[float]:
    return None if value is None else float(value)


METRIC_EXTRACTORS: dict[str, MetricExtractor] = {
    "deal_size": lambda deal, overall, as_of: _optional_float(deal.value),
    "deal_age": lambda deal, overall, as_of: _optional_float(deal.age),
    "engagement_count": lambda deal, overall, as_of: float(len(deal.engagement_history)),
    "probability": lambda deal, overall, as_of: _optional_float(deal.probability),
    "win_rate": lambda deal, overall, as_of: _optional_float(deal.probability),
    "competitor_count": lambda deal, overall, as_of: float(len(deal.competitors)),
    "stakeholder_count": lambda deal, overall, as_of: float(len(deal.stakeholder_map)),
    "health_score": lambda deal, overall, as_of: float(overall.current_score),
    "days_since_last_activity": lambda deal, overall, as_of: _optional_float(
        days_since(deal.last_activity, as_of)
    ),
}

_SOURCES_BY_PREFERENCE: dict[str, tuple[str, ...]] = {
    "industry": ("industry",),
    "company_size": ("company_size",),
    "historical": ("historical",),
    "all": ("industry", "company_size", "historical"),
}


def _distinct(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


class Benchmarker:
    """Classify deal metrics against benchmarks and rank comparable deals."""

    def __init__(self, policy: HealthScoringPolicy = DEFAULT_POLICY) -> None:
        self._policy = policy.benchmark
        self._enabled = {
            name: METRIC_EXTRACTORS[name]
            for name in self._policy.supported_metrics
            if name in METRIC_EXTRACTORS
        }

    def percentile(self, current: float, benchmark: float) -> int:
        return int(self._policy.percentile.lookup(current, scale=benchmark))

    def status(self, percentile: float) -> str:
        return self._policy.statuses.lookup(percentile)

    def compare_metric(
        self,
        metric: str,
        benchmark: float,
        source: str,
        deal: Deal,
        overall: OverallHealth,
        as_of: datetime,
    ) -> BenchmarkResult:
        extractor = self._enabled.get(metric)
        current = None if extractor is None else extractor(deal, overall, as_of)
        mapped = current is not None
        if current is None:
            logger.warning(
                "deal_health.benchmark_metric_unmapped",
                metric=metric,
                source=source,
                reason="no_extractor" if extractor is None else "missing_data",
            )
            current = 0.0

        percentile = self.percentile(current, benchmark)
        return BenchmarkResult(
            metric=metric,
            source=source,
            current=current,
            benchmark=benchmark,
            delta=current - benchmark,
            percentile=percentile,
            status=self.status(percentile),
            mapped=mapped,
        )

    @staticmethod
    def _historical_benchmarks(data: BenchmarkData) -> dict[str, float]:
        periods = data.historical_performance
        if not periods:
            return {}
        count = len(periods)
        return {
            "health_score": sum(p.average_health_score for p in periods) / count,
            "win_rate": sum(p.win_rate for p in periods) / count,
            "deal_age": sum(p.average_deal_age for p in periods) / count,
        }

    def _benchmarks_for(self, source: str, data: BenchmarkData) -> dict[str, float]:
        if source == "industry":
            return data.industry_averages
        if source == "company_size":
            return data.company_size_benchmarks
        return self._historical_benchmarks(data)

    @staticmethod
    def similarity(deal: Deal, peer: PeerDeal) -> float:
        """Half for a shared stage, half scaled by how close the deal values are."""
        score = 0.0
        if deal.stage and deal.stage == peer.stage:
            score += 0.5
        if deal.value and peer.value:
            score += 0.5 * min(deal.value, peer.value) / max(deal.value, peer.value)
        return round(score, 4)

    def peers(self, deal: Deal, peer_deals: list[PeerDeal]) -> list[PeerComparison]:
        ranked = sorted(
            (
                (self.similarity(deal, peer), peer)
                for peer in peer_deals
            ),
            key=lambda pair: (-pair[0], pair[1].deal_id),
        )
        return [
            PeerComparison(
                deal_id=peer.deal_id,
                deal_name=peer.deal_name,
                similarity=similarity,
                health_score=peer.health_score,
                stage=peer.stage,
                lessons_learned=tuple(peer.lessons_learned),
            )
            for similarity, peer in ranked
            if similarity >= self._policy.peer_similarity_floor
        ][: self._policy.max_peers]

    @staticmethod
    def historical(data: BenchmarkData) -> HistoricalComparison:
        won = [f for d in data.similar_deals if d.outcome == "won" for f in d.key_factors]
        lost = [f for d in data.similar_deals if d.outcome == "lost" for f in d.key_factors]
        return HistoricalComparison(
            similar_deals=[
                HistoricalDealSummary.model_validate(d.model_dump())
                for d in data.similar_deals
            ],
            success_patterns=_distinct(won),
            failure_patterns=_distinct(lost),
        )

    def compare(
        self,
        deal: Deal,
        overall: OverallHealth,
        as_of: datetime,
        benchmark_data: Optional[BenchmarkData],
        preferences: AnalysisPreferences,
    ) -> ComparativeAnalysis:
        if benchmark_data is None:
            return ComparativeAnalysis()

        results: list[BenchmarkResult] = []
        for source in _SOURCES_BY_PREFERENCE[preferences.benchmark_against]:
            for metric, benchmark in self._benchmarks_for(source, benchmark_data).items():
                results.append(
                    self.compare_metric(metric, benchmark, source, deal, overall, as_of)
                )

        return ComparativeAnalysis(
            benchmark_comparison=results,
            peer_comparison=(
                self.peers(deal, benchmark_data.peer_deals)
                if preferences.include_competitive_analysis
                else []
            ),
            historical_comparison=self.historical(benchmark_data),
        )


__all__ = ["METRIC_EXTRACTORS", "Benchmarker"]
