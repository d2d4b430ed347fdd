"""Unit tests for ingestkit_bpmn.complexity -- scoring and tiers."""

from __future__ import annotations

import itertools

import pytest

from ingestkit_bpmn.complexity import compute_complexity, score_factors, tier_for
from ingestkit_bpmn.config import ComplexityPolicy
from ingestkit_bpmn.models import ComplexityFactors, ComplexityTier


class TestScore:
    def test_weighted_sum(self):
        factors = ComplexityFactors(component_count=3, max_depth=4, binding_count=5, task_count=2)
        # 3*2 + 4*5 + 5*1 + 2*3
        assert score_factors(factors, ComplexityPolicy()) == 37

    def test_zero(self):
        result = compute_complexity(ComplexityFactors())
        assert result.score == 0
        assert result.tier == ComplexityTier.LOW

    def test_custom_policy(self):
        policy = ComplexityPolicy(component_weight=0, depth_weight=0, binding_weight=10, task_weight=0)
        result = compute_complexity(ComplexityFactors(binding_count=20, max_depth=99), policy)
        assert result.score == 200
        assert result.tier == ComplexityTier.HIGH


class TestTiers:
    @pytest.mark.parametrize(
        ("score", "tier"),
        [
            (0, ComplexityTier.LOW),
            (49.9, ComplexityTier.LOW),
            (50, ComplexityTier.MEDIUM),
            (149, ComplexityTier.MEDIUM),
            (150, ComplexityTier.HIGH),
            (299, ComplexityTier.HIGH),
            (300, ComplexityTier.VERY_HIGH),
            (10_000, ComplexityTier.VERY_HIGH),
        ],
    )
    def test_boundaries(self, score, tier):
        assert tier_for(score, ComplexityPolicy()) == tier

    def test_recommendation_names_tier(self):
        result = compute_complexity(ComplexityFactors(max_depth=70))
        assert result.tier == ComplexityTier.VERY_HIGH
        assert result.recommendation.startswith("VERY_HIGH:")


class TestMonotonicity:
    """Growing any single input never lowers the score or the tier."""

    FIELDS = ("component_count", "max_depth", "binding_count", "task_count")
    TIER_ORDER = list(ComplexityTier)

    @pytest.mark.parametrize("field", FIELDS)
    def test_each_factor_non_decreasing(self, field):
        for base in itertools.product((0, 3, 17), repeat=4):
            values = dict(zip(self.FIELDS, base))
            before = compute_complexity(ComplexityFactors(**values))
            values[field] += 7
            after = compute_complexity(ComplexityFactors(**values))
            assert after.score >= before.score
            assert self.TIER_ORDER.index(after.tier) >= self.TIER_ORDER.index(before.tier)
