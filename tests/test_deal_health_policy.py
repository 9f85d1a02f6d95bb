"""Tests for scoring policy validation and band lookups.

Covers:
    - ScoreBands lookup semantics for each comparison operator and scaling
    - Rejection of non-monotonic band thresholds
    - Rejection of weight sets that miss keys or do not sum to 1.0
    - Rejection of grade/risk bands that are not ordered best-first
    - Tuned policies flowing through to the scorers
    - Stage tables covering every DealStage, and stage-name folding
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.deal_health.aggregator import HealthAggregator
from src.deal_health.benchmarker import Benchmarker
from src.deal_health.dimensions import DimensionScorer
from src.deal_health.policy import (
    DEFAULT_POLICY,
    AggregationPolicy,
    EngagementPolicy,
    HealthScoringPolicy,
    LabelBands,
    ScoreBands,
)
from src.deal_health.schemas import DealStage, PeerDeal
from tests.health_builders import make_deal


class TestScoreBands:
    def test_le_returns_first_matching_band(self) -> None:
        bands = ScoreBands(op="le", bands=((1, 100), (3, 80)), default=10)
        assert bands.lookup(1) == 100
        assert bands.lookup(2) == 80
        assert bands.lookup(4) == 10

    def test_gt_is_strict(self) -> None:
        bands = ScoreBands(op="gt", bands=((100, 80),), default=90)
        assert bands.lookup(100) == 90
        assert bands.lookup(100.5) == 80

    def test_scale_multiplies_thresholds(self) -> None:
        bands = ScoreBands(op="ge", bands=((1.2, 90), (1.0, 60)), default=10)
        assert bands.lookup(120, scale=100) == 90
        assert bands.lookup(100, scale=100) == 60
        assert bands.lookup(99, scale=100) == 10

    def test_ascending_ops_reject_descending_thresholds(self) -> None:
        with pytest.raises(ValidationError, match="strictly ascending"):
            ScoreBands(op="le", bands=((7, 60), (3, 80)), default=10)

    def test_descending_ops_reject_ascending_thresholds(self) -> None:
        with pytest.raises(ValidationError, match="strictly descending"):
            ScoreBands(op="ge", bands=((5, 60), (10, 100)), default=10)

    def test_duplicate_thresholds_are_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScoreBands(op="lt", bands=((30, 100), (30, 80)), default=20)


class TestLabelBands:
    def test_labels_include_default_last(self) -> None:
        bands = LabelBands(bands=((80, "low"), (60, "high")), default="critical")
        assert bands.labels == ["low", "high", "critical"]
        assert bands.lookup(59.9) == "critical"


class TestWeights:
    def test_weights_must_sum_to_one(self) -> None:
        with pytest.raises(ValidationError, match="sum to 1.0"):
            EngagementPolicy(
                weights={"recency": 0.5, "frequency": 0.25, "quality": 0.25, "duration": 0.2}
            )

    def test_weights_must_cover_every_sub_metric(self) -> None:
        with pytest.raises(ValidationError, match="cover exactly"):
            EngagementPolicy(weights={"recency": 0.5, "frequency": 0.5})

    def test_composite_weights_are_validated(self) -> None:
        with pytest.raises(ValidationError):
            AggregationPolicy(weights={"engagement": 1.0})

    def test_default_policy_is_valid(self) -> None:
        assert HealthScoringPolicy() == DEFAULT_POLICY


class TestLabelOrder:
    def test_grades_must_be_best_first(self) -> None:
        with pytest.raises(ValidationError, match="best-first"):
            AggregationPolicy(
                grades=LabelBands(bands=((90, "B"), (80, "A")), default="F")
            )

    def test_unknown_risk_label_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="unknown labels"):
            AggregationPolicy(
                risk_levels=LabelBands(bands=((80, "fine"),), default="critical")
            )

    def test_nested_mapping_is_validated(self) -> None:
        with pytest.raises(ValidationError):
            HealthScoringPolicy.model_validate(
                {"risk": {"age_days": {"op": "lt", "bands": [[90, 60], [30, 100]], "default": 20}}}
            )


class TestTunedPolicy:
    def test_stricter_grades_change_aggregate(self) -> None:
        policy = HealthScoringPolicy.model_validate(
            {
                "aggregation": {
                    "grades": {
                        "bands": [[98, "A+"], [95, "A"], [90, "B"]],
                        "default": "F",
                    }
                }
            }
        )
        overall = HealthAggregator(policy).aggregate({"engagement": 92})
        assert overall.grade == "B"

    def test_custom_stage_table_reaches_scorer(self) -> None:
        policy = HealthScoringPolicy.model_validate(
            {"momentum": {"stage_progress": {"discovery": 35}}}
        )
        result = DimensionScorer(policy).score_momentum(make_deal(stage="discovery"))
        assert result.metrics["stageProgress"] == 35

    def test_policy_is_immutable(self) -> None:
        with pytest.raises(ValidationError):
            DEFAULT_POLICY.action = None  # type: ignore[misc]


class TestStageTables:
    def test_every_pipeline_stage_is_tabulated(self) -> None:
        stages = {stage.value for stage in DealStage}

        assert set(DEFAULT_POLICY.momentum.stage_progress) == stages
        assert set(DEFAULT_POLICY.momentum.expected_age_by_stage) == stages
        assert set(DEFAULT_POLICY.risk.stage_risk) == stages

    def test_stage_enum_is_accepted_as_deal_stage(self) -> None:
        deal = make_deal(stage=DealStage.NEGOTIATION)
        result = DimensionScorer().score_momentum(deal)
        assert result.metrics["stageProgress"] == 90

    @pytest.mark.parametrize("stage", [" Proposal ", "PROPOSAL", DealStage.PROPOSAL])
    def test_known_stage_spellings_are_folded(self, stage: object) -> None:
        deal = make_deal(stage=stage)

        assert deal.stage == "proposal"
        assert DimensionScorer().score_momentum(deal).metrics["stageProgress"] == 80

    def test_unknown_stage_passes_through_and_scores_neutrally(self) -> None:
        deal = make_deal(stage="Discovery")
        scorer = DimensionScorer()

        assert deal.stage == "Discovery"
        assert scorer.score_momentum(deal).metrics["stageProgress"] == (
            DEFAULT_POLICY.momentum.unknown_stage_progress
        )
        assert scorer.score_risk(deal).metrics["stageRisk"] == (
            DEFAULT_POLICY.risk.unknown_stage_risk
        )

    def test_missing_stage_is_empty(self) -> None:
        assert make_deal(stage=None).stage == ""

    def test_peer_stage_is_folded_for_similarity(self) -> None:
        peer = PeerDeal(deal_id="p1", stage="Proposal", health_score=70)

        assert peer.stage == "proposal"
        assert Benchmarker.similarity(make_deal(value=None), peer) == 0.5
