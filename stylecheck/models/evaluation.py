from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ConfidenceTier(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    # Below threshold: kept on the evaluation record, omitted by every consumer
    LOW = "LOW"


class HardFailReason(str, Enum):
    CATEGORY_INCOMPATIBLE = "CATEGORY_INCOMPATIBLE"
    FORMALITY_CLASH_WITH_USAGE = "FORMALITY_CLASH_WITH_USAGE"
    STYLE_OPPOSITION_NO_OVERLAP = "STYLE_OPPOSITION_NO_OVERLAP"
    SHOES_TEXTURE_FORMALITY_CLASH = "SHOES_TEXTURE_FORMALITY_CLASH"


class CapReason(str, Enum):
    FORMALITY_TENSION = "FORMALITY_TENSION"
    STYLE_TENSION = "STYLE_TENSION"
    COLOR_TENSION = "COLOR_TENSION"
    TEXTURE_CLASH = "TEXTURE_CLASH"
    USAGE_MISMATCH = "USAGE_MISMATCH"
    SHOES_CONFIDENCE_DAMPEN = "SHOES_CONFIDENCE_DAMPEN"
    MISSING_KEY_SIGNAL = "MISSING_KEY_SIGNAL"


class FeatureResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: int = Field(default=0, ge=-2, le=2)
    known: bool = False


UNKNOWN_FEATURE = FeatureResult(value=0, known=False)


class FeatureSignals(BaseModel):
    """Per-facet comparison results for one pair, each in -2..+2."""

    model_config = ConfigDict(frozen=True)

    color: FeatureResult = UNKNOWN_FEATURE
    style: FeatureResult = UNKNOWN_FEATURE
    formality: FeatureResult = UNKNOWN_FEATURE
    texture: FeatureResult = UNKNOWN_FEATURE
    usage: FeatureResult = UNKNOWN_FEATURE
    vibe: FeatureResult | None = None  # None when silhouette scoring is disabled

    def as_dict(self) -> dict[str, FeatureResult]:
        facets = {
            "color": self.color,
            "style": self.style,
            "formality": self.formality,
            "texture": self.texture,
            "usage": self.usage,
        }
        if self.vibe is not None:
            facets["vibe"] = self.vibe
        return facets


class GateResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    forced_tier: ConfidenceTier | None = None
    hard_fail_reason: HardFailReason | None = None
    max_tier: ConfidenceTier = ConfidenceTier.HIGH
    cap_reasons: tuple[CapReason, ...] = ()


class PairEvaluation(BaseModel):
    """
    Scoring result for one (target, candidate) pair.

    Never mutated after construction. When ``hard_fail_reason`` is set the tier
    is LOW and ``cap_reasons`` is empty.
    """

    model_config = ConfigDict(frozen=True)

    item_a_id: str
    item_b_id: str
    pair_type: str | None

    raw_score: float
    confidence_tier: ConfidenceTier

    forced_tier: ConfidenceTier | None = None
    hard_fail_reason: HardFailReason | None = None
    cap_reasons: tuple[CapReason, ...] = ()

    features: FeatureSignals = Field(default_factory=FeatureSignals)
    weights_used: dict[str, float] = Field(default_factory=dict)
    high_threshold_used: float

    is_shoes_involved: bool = False
    both_statement: bool = False
    explanation_allowed: bool = False
    explanation_forbidden_reason: str | None = None
