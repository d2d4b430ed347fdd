"""Complexity scoring for analysed documents.

The score is a weighted linear combination of four counts taken from the
final walker state, bucketed into four recommendation tiers.  Weights and
thresholds come from ``ComplexityPolicy``; because the policy only admits
non-negative weights the score never decreases when one input grows.
"""

from __future__ import annotations

from ingestkit_bpmn.config import ComplexityPolicy
from ingestkit_bpmn.models import ComplexityFactors, ComplexityScore, ComplexityTier

RECOMMENDATIONS: dict[ComplexityTier, str] = {
    ComplexityTier.LOW: "Can be converted in a single pass",
    ComplexityTier.MEDIUM: "Recommend component-by-component conversion",
    ComplexityTier.HIGH: "Requires chunked processing and template generation",
    ComplexityTier.VERY_HIGH: "Requires incremental migration with multiple templates",
}

_TIERS_ASCENDING = (
    ComplexityTier.LOW,
    ComplexityTier.MEDIUM,
    ComplexityTier.HIGH,
)


def score_factors(factors: ComplexityFactors, policy: ComplexityPolicy) -> float:
    return (
        factors.component_count * policy.component_weight
        + factors.max_depth * policy.depth_weight
        + factors.binding_count * policy.binding_weight
        + factors.task_count * policy.task_weight
    )


def tier_for(score: float, policy: ComplexityPolicy) -> ComplexityTier:
    for tier, threshold in zip(_TIERS_ASCENDING, policy.tier_thresholds):
        if score < threshold:
            return tier
    return ComplexityTier.VERY_HIGH


def compute_complexity(
    factors: ComplexityFactors,
    policy: ComplexityPolicy | None = None,
) -> ComplexityScore:
    """Score *factors* under *policy* (defaults when *None*)."""
    policy = policy or ComplexityPolicy()
    score = score_factors(factors, policy)
    tier = tier_for(score, policy)
    return ComplexityScore(
        score=score,
        tier=tier,
        recommendation=f"{tier.value}: {RECOMMENDATIONS[tier]}",
        factors=factors,
    )
