from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator

from stylecheck.core.config import settings
from stylecheck.models.item import Category
from stylecheck.models.signals import Archetype, FormalityBand, PatternLevel, SeasonHeaviness, StatementLevel
from stylecheck.models.trust_filter import ArchetypeDistance, TrustReason

CLOSE, MEDIUM, FAR = ArchetypeDistance.CLOSE, ArchetypeDistance.MEDIUM, ArchetypeDistance.FAR

DEFAULT_CLUSTERS: dict[str, tuple[Archetype, ...]] = {
    "tailored_core": (Archetype.CLASSIC, Archetype.MINIMALIST, Archetype.WORKWEAR, Archetype.PREPPY),
    "soft_feminine": (Archetype.ROMANTIC, Archetype.BOHO),
    "casual_urban": (Archetype.STREET, Archetype.SPORTY),
    "night_edge": (Archetype.GLAM, Archetype.EDGY),
    "western": (Archetype.WESTERN,),
    "utility": (Archetype.OUTDOOR_UTILITY,),
}

# Symmetric; only the upper triangle is listed here and mirrored below.
_CLUSTER_DISTANCE_PAIRS: dict[tuple[str, str], ArchetypeDistance] = {
    ("tailored_core", "soft_feminine"): MEDIUM,
    ("tailored_core", "casual_urban"): FAR,
    ("tailored_core", "night_edge"): MEDIUM,
    ("tailored_core", "western"): MEDIUM,
    ("tailored_core", "utility"): FAR,
    ("soft_feminine", "casual_urban"): MEDIUM,
    ("soft_feminine", "night_edge"): MEDIUM,
    ("soft_feminine", "western"): MEDIUM,
    ("soft_feminine", "utility"): FAR,
    ("casual_urban", "night_edge"): FAR,
    ("casual_urban", "western"): MEDIUM,
    ("casual_urban", "utility"): MEDIUM,
    ("night_edge", "western"): FAR,
    ("night_edge", "utility"): FAR,
    ("western", "utility"): MEDIUM,
}


def _build_cluster_matrix() -> dict[str, dict[str, ArchetypeDistance]]:
    matrix: dict[str, dict[str, ArchetypeDistance]] = {name: {name: CLOSE} for name in DEFAULT_CLUSTERS}
    for (left, right), distance in _CLUSTER_DISTANCE_PAIRS.items():
        matrix[left][right] = distance
        matrix[right][left] = distance
    return matrix


DEFAULT_PAIR_OVERRIDES: dict[str, ArchetypeDistance] = {
    "western:classic": CLOSE,
    "western:workwear": CLOSE,
    "glam:classic": CLOSE,
    "edgy:street": CLOSE,
    "sporty:street": CLOSE,
    "outdoor_utility:sporty": CLOSE,
}

HIDE_REASONS = frozenset({TrustReason.STYLE_ARCHETYPE_HARD_CLASH})
ARCHETYPE_REASONS = frozenset({TrustReason.STYLE_ARCHETYPE_HARD_CLASH, TrustReason.STYLE_ARCHETYPE_MISMATCH})

DEFAULT_DEMOTE_ORDER: tuple[TrustReason, ...] = (
    TrustReason.ATHLEISURE_VS_POLISHED_CLASH,
    TrustReason.FORMALITY_MISMATCH,
    TrustReason.STATEMENT_VS_STATEMENT_OVERLOAD,
    TrustReason.STATEMENT_CONTEXT_MISMATCH,
    TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR,
    TrustReason.STYLE_ARCHETYPE_MISMATCH,
    TrustReason.WEATHER_SEASON_MISMATCH,
    TrustReason.PATTERN_TEXTURE_OVERLOAD,
    TrustReason.LOW_CONFIDENCE_INPUTS,
)


class ConfidenceThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    aesthetic_primary_min: float = Field(default=0.55, ge=0.0, le=1.0)
    secondary_min: float = Field(default=0.35, ge=0.0, le=1.0)
    formality_min: float = Field(default=0.55, ge=0.0, le=1.0)
    statement_min: float = Field(default=0.5, ge=0.0, le=1.0)
    season_min: float = Field(default=0.55, ge=0.0, le=1.0)
    pattern_min: float = Field(default=0.5, ge=0.0, le=1.0)
    # Both primaries must reach this before an archetype clash may hide
    hard_clash_primary_min: float = Field(default=0.65, ge=0.0, le=1.0)


class AnchorRule(BaseModel):
    """
    Pairs that only work with an anchoring piece: an anchor-dependent category
    pair at the given archetype distance, formality close enough, and one side
    a high statement or a bold pattern.
    """

    model_config = ConfigDict(frozen=True)

    enabled: StrictBool = True
    pair_types: tuple[tuple[Category, Category], ...] = (
        (Category.SHOES, Category.TOPS),
        (Category.OUTERWEAR, Category.SHOES),
        (Category.OUTERWEAR, Category.TOPS),
    )
    archetype_distance: ArchetypeDistance = MEDIUM
    formality_gap_max: int = Field(default=1, ge=0, le=5)

    def applies_to(self, category_a: Category, category_b: Category) -> bool:
        return any({category_a, category_b} == set(pair) for pair in self.pair_types)


class TrustFilterConfig(BaseModel):
    """Tuning table for the trust filter. Only rule ordering is a hard contract; numbers are tunable."""

    model_config = ConfigDict(frozen=True)

    version: int = 1
    max_candidates: int = Field(default=10, ge=1, le=50)
    confidence: ConfidenceThresholds = Field(default_factory=ConfidenceThresholds)

    formality_levels: dict[FormalityBand, int] = Field(
        default_factory=lambda: {
            FormalityBand.ATHLEISURE: 0,
            FormalityBand.CASUAL: 1,
            FormalityBand.SMART_CASUAL: 2,
            FormalityBand.OFFICE: 3,
            FormalityBand.DRESSY: 4,
            FormalityBand.FORMAL: 4,
            FormalityBand.EVENING: 5,
        }
    )
    season_levels: dict[SeasonHeaviness, int] = Field(
        default_factory=lambda: {SeasonHeaviness.LIGHT: 0, SeasonHeaviness.MID: 1, SeasonHeaviness.HEAVY: 2}
    )
    statement_levels: dict[StatementLevel, int] = Field(
        default_factory=lambda: {StatementLevel.LOW: 0, StatementLevel.MEDIUM: 1, StatementLevel.HIGH: 2}
    )
    pattern_levels: dict[PatternLevel, int] = Field(
        default_factory=lambda: {PatternLevel.SOLID: 0, PatternLevel.SUBTLE: 1, PatternLevel.BOLD: 2}
    )

    clusters: dict[str, tuple[Archetype, ...]] = Field(default_factory=lambda: dict(DEFAULT_CLUSTERS))
    cluster_distances: dict[str, dict[str, ArchetypeDistance]] = Field(default_factory=_build_cluster_matrix)
    pair_overrides: dict[str, ArchetypeDistance] = Field(default_factory=lambda: dict(DEFAULT_PAIR_OVERRIDES))

    formality_gap_min: int = Field(default=2, ge=1, le=5)
    season_diff_min: int = Field(default=1, ge=1, le=2)
    anchor_rule: AnchorRule = Field(default_factory=AnchorRule)
    demote_order: tuple[TrustReason, ...] = DEFAULT_DEMOTE_ORDER

    @field_validator("demote_order")
    @classmethod
    def _demote_reasons_only(cls, value: tuple[TrustReason, ...]) -> tuple[TrustReason, ...]:
        not_demote = HIDE_REASONS | {TrustReason.INSUFFICIENT_INFO}
        invalid = [reason.value for reason in value if reason in not_demote]
        if invalid:
            raise ValueError(f"not demote reasons: {', '.join(invalid)}")
        if len(set(value)) != len(value):
            raise ValueError("duplicate reasons")
        return value

    def cluster_of(self, archetype: Archetype) -> str | None:
        for name, members in self.clusters.items():
            if archetype in members:
                return name
        return None

    @classmethod
    def from_settings(cls) -> "TrustFilterConfig":
        config, errors = merge_remote_config(cls(), settings.TRUST_FILTER_REMOTE_OVERRIDES)
        for error in errors:
            logger.warning(f"Trust filter override rejected: {error}")
        return config


REMOTE_OVERRIDE_ALLOWED_KEYS = frozenset(
    {
        "max_candidates",
        "confidence.aesthetic_primary_min",
        "confidence.secondary_min",
        "confidence.formality_min",
        "confidence.statement_min",
        "confidence.season_min",
        "confidence.pattern_min",
        "confidence.hard_clash_primary_min",
        "formality_gap_min",
        "season_diff_min",
        "demote_order",
        "pair_overrides",
        "anchor_rule.enabled",
        "anchor_rule.archetype_distance",
        "anchor_rule.formality_gap_max",
    }
)


def merge_remote_config(base: TrustFilterConfig, overrides: dict[str, Any]) -> tuple[TrustFilterConfig, list[str]]:
    """
    Apply remotely delivered overrides on top of ``base``.

    Keys are dotted paths and must be in the allow-list. Each override is
    validated on its own, so one bad value does not discard the others.
    Returns the merged config and a list of human-readable errors.
    """
    errors: list[str] = []
    merged = base
    for key, value in (overrides or {}).items():
        if key not in REMOTE_OVERRIDE_ALLOWED_KEYS:
            errors.append(f"Remote override key not allowed: {key}")
            continue

        data = merged.model_dump()
        target = data
        *parents, leaf = key.split(".")
        for part in parents:
            target = target[part]
        target[leaf] = value

        try:
            merged = TrustFilterConfig.model_validate(data)
        except ValidationError as exc:
            errors.append(f"Invalid value for {key}: {exc.errors()[0]['msg']}")
    return merged, errors
