from loguru import logger

from stylecheck.models.evaluation import (
    CapReason,
    ConfidenceTier,
    FeatureSignals,
    GateResult,
    HardFailReason,
    PairEvaluation,
)
from stylecheck.models.finalized import FinalTier
from stylecheck.models.item import Category, Item, Level
from stylecheck.services.scoring.config import ScoringConfig
from stylecheck.services.scoring.constants import (
    DEFAULT_WEIGHTS,
    FORBIDDEN_CONFIDENCE_TOO_LOW,
    FORBIDDEN_FEATURE_DISABLED,
    FORBIDDEN_SHOES_CONTENTIOUS,
    FORBIDDEN_STATEMENT_STATEMENT,
    FORBIDDEN_STYLE_OPPOSITION,
    FORBIDDEN_TEXTURE_CLASH,
    NEUTRAL_SCORE,
    PAIR_TYPE_WEIGHTS,
    STATEMENT_FORMALITY_LEVEL,
    STATEMENT_STYLE_FAMILIES,
    VALID_PAIR_TYPES,
)
from stylecheck.services.scoring.features import compute_features
from stylecheck.services.scoring.gates import evaluate_gates


def get_pair_type(category_a: Category, category_b: Category) -> str | None:
    """Canonical pair label, or None when the categories never pair.

    Labels are listed in a fixed order ("tops_bottoms"), so the sorted key is
    tried first and then its reverse.
    """
    first, second = sorted((category_a.value, category_b.value))
    for pair_type in (f"{first}_{second}", f"{second}_{first}"):
        if pair_type in VALID_PAIR_TYPES:
            return pair_type
    return None


def get_weights(pair_type: str | None) -> dict[str, float]:
    return dict(PAIR_TYPE_WEIGHTS.get(pair_type or "", DEFAULT_WEIGHTS))


def compute_raw_score(features: FeatureSignals, weights: dict[str, float]) -> tuple[float, dict[str, float]]:
    """
    Weighted sum of normalized facet values.

    Unknown facets get zero weight and the remaining weights are rescaled to
    sum to one. Returns the score and the weight vector actually applied.
    """
    facets = features.as_dict()
    known_total = sum(weights.get(name, 0.0) for name, result in facets.items() if result.known)
    if known_total <= 0:
        return NEUTRAL_SCORE, {name: 0.0 for name in facets}

    used: dict[str, float] = {}
    score = 0.0
    for name, result in facets.items():
        weight = weights.get(name, 0.0) / known_total if result.known else 0.0
        used[name] = round(weight, 4)
        score += weight * (result.value + 2) / 4
    return round(score, 4), used


def map_score_to_tier(
    raw_score: float, gate: GateResult, high_threshold: float, medium_threshold: float
) -> ConfidenceTier:
    if gate.forced_tier is not None:
        return gate.forced_tier

    if raw_score >= high_threshold:
        tier = ConfidenceTier.HIGH
    elif raw_score >= medium_threshold:
        tier = ConfidenceTier.MEDIUM
    else:
        tier = ConfidenceTier.LOW

    # cap reasons are a ceiling, never a floor
    if tier is ConfidenceTier.HIGH and gate.max_tier is ConfidenceTier.MEDIUM:
        return ConfidenceTier.MEDIUM
    return tier


def is_statement_piece(item: Item) -> bool:
    profile = item.color_profile
    if profile is not None and not profile.is_neutral and profile.saturation is Level.HIGH:
        return True
    if item.style_family in STATEMENT_STYLE_FAMILIES:
        return True
    return item.formality_level is not None and item.formality_level >= STATEMENT_FORMALITY_LEVEL


class ScoringEngine:
    """
    Deterministic pair scorer.

    Pure and side-effect free: the same target and candidate always produce an
    identical PairEvaluation, so it is safe to call from any thread.
    """

    def __init__(self, config: ScoringConfig | None = None):
        self.config = config or ScoringConfig.from_settings()

    def evaluate_candidates(self, target: Item, candidates: list[Item]) -> list[PairEvaluation]:
        """Score every candidate against the target, preserving input order."""
        if not candidates:
            logger.debug(f"No candidates to score for target {target.id}")
            return []
        return [self.evaluate_pair(target, candidate) for candidate in candidates]

    def evaluate_pair(self, target: Item, candidate: Item) -> PairEvaluation:
        pair_type = get_pair_type(target.category, candidate.category)
        is_shoes = Category.SHOES in (target.category, candidate.category)
        high_threshold = self.config.high_threshold_for(pair_type, is_shoes)

        if pair_type is None:
            return PairEvaluation(
                item_a_id=target.id,
                item_b_id=candidate.id,
                pair_type=None,
                raw_score=0.0,
                confidence_tier=ConfidenceTier.LOW,
                forced_tier=ConfidenceTier.LOW,
                hard_fail_reason=HardFailReason.CATEGORY_INCOMPATIBLE,
                high_threshold_used=high_threshold,
                is_shoes_involved=is_shoes,
                explanation_forbidden_reason=FORBIDDEN_CONFIDENCE_TOO_LOW,
            )

        features = compute_features(target, candidate, silhouette_enabled=self.config.silhouette_enabled)
        raw_score, weights_used = compute_raw_score(features, get_weights(pair_type))
        gate = evaluate_gates(features, is_shoes)
        tier = map_score_to_tier(raw_score, gate, high_threshold, self.config.medium_threshold)
        both_statement = is_statement_piece(target) and is_statement_piece(candidate)

        forbidden_reason = self._explanation_forbidden_reason(
            tier, gate.hard_fail_reason, gate.cap_reasons, is_shoes, both_statement
        )

        return PairEvaluation(
            item_a_id=target.id,
            item_b_id=candidate.id,
            pair_type=pair_type,
            raw_score=raw_score,
            confidence_tier=tier,
            forced_tier=gate.forced_tier,
            hard_fail_reason=gate.hard_fail_reason,
            cap_reasons=gate.cap_reasons,
            features=features,
            weights_used=weights_used,
            high_threshold_used=high_threshold,
            is_shoes_involved=is_shoes,
            both_statement=both_statement,
            explanation_allowed=forbidden_reason is None,
            explanation_forbidden_reason=forbidden_reason,
        )

    def _explanation_forbidden_reason(
        self,
        tier: ConfidenceTier,
        hard_fail: HardFailReason | None,
        cap_reasons: tuple[CapReason, ...],
        is_shoes: bool,
        both_statement: bool,
    ) -> str | None:
        if not self.config.explanations_enabled:
            return FORBIDDEN_FEATURE_DISABLED
        if tier is not ConfidenceTier.HIGH:
            return FORBIDDEN_CONFIDENCE_TOO_LOW
        if both_statement:
            return FORBIDDEN_STATEMENT_STATEMENT
        if is_shoes and not self.config.explanations_allow_shoes:
            return FORBIDDEN_SHOES_CONTENTIOUS
        if CapReason.TEXTURE_CLASH in cap_reasons:
            return FORBIDDEN_TEXTURE_CLASH
        if hard_fail is HardFailReason.STYLE_OPPOSITION_NO_OVERLAP:
            return FORBIDDEN_STYLE_OPPOSITION
        return None


def effective_evaluation(evaluation: PairEvaluation, final_tier: FinalTier) -> PairEvaluation:
    """
    View of an evaluation as finalised by the pipeline.

    A HIGH pair that ended up in NEAR reads as MEDIUM so consumers that look
    at ``confidence_tier`` agree with the finalized bucket.
    """
    if evaluation.confidence_tier is ConfidenceTier.HIGH and final_tier is FinalTier.NEAR:
        return evaluation.model_copy(
            update={"confidence_tier": ConfidenceTier.MEDIUM, "explanation_allowed": False}
        )
    return evaluation
