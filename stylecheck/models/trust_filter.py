from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from stylecheck.models.item import Category
from stylecheck.models.signals import StyleSignals


class MatchAction(str, Enum):
    KEEP = "keep"
    DEMOTE = "demote"
    HIDE = "hide"


# Less confident actions rank higher; merges only ever move up this scale
ACTION_SEVERITY: dict[MatchAction, int] = {
    MatchAction.KEEP: 0,
    MatchAction.DEMOTE: 1,
    MatchAction.HIDE: 2,
}


class ArchetypeDistance(str, Enum):
    CLOSE = "close"
    MEDIUM = "medium"
    FAR = "far"


DISTANCE_RANK: dict[ArchetypeDistance, int] = {
    ArchetypeDistance.CLOSE: 0,
    ArchetypeDistance.MEDIUM: 1,
    ArchetypeDistance.FAR: 2,
}


class TrustReason(str, Enum):
    # hide
    STYLE_ARCHETYPE_HARD_CLASH = "style_archetype_hard_clash"
    # demote
    ATHLEISURE_VS_POLISHED_CLASH = "athleisure_vs_polished_clash"
    FORMALITY_MISMATCH = "formality_mismatch"
    STATEMENT_VS_STATEMENT_OVERLOAD = "statement_vs_statement_overload"
    STATEMENT_CONTEXT_MISMATCH = "statement_context_mismatch"
    CONTEXT_DEPENDENT_NEEDS_ANCHOR = "context_dependent_needs_anchor"
    STYLE_ARCHETYPE_MISMATCH = "style_archetype_mismatch"
    WEATHER_SEASON_MISMATCH = "weather_season_mismatch"
    PATTERN_TEXTURE_OVERLOAD = "pattern_texture_overload"
    LOW_CONFIDENCE_INPUTS = "low_confidence_inputs"
    # info
    INSUFFICIENT_INFO = "insufficient_info"


class TrustFilterDebug(BaseModel):
    model_config = ConfigDict(frozen=True)

    archetype_distance: ArchetypeDistance | None = None
    formality_gap: int | None = None
    season_diff: int | None = None
    used_secondary: bool = False
    confidence_gate_hit: bool = False


class TrustFilterDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: MatchAction
    primary_reason: TrustReason | None = None
    secondary_reasons: tuple[TrustReason, ...] = ()
    debug: TrustFilterDebug = Field(default_factory=TrustFilterDebug)


class TrustFilterCandidate(BaseModel):
    id: str
    signals: StyleSignals | None = None
    category: Category
    ce_score: float = 0.0


class TrustFilterStats(BaseModel):
    total_evaluated: int = 0
    skipped_count: int = 0
    hidden_count: int = 0
    demoted_count: int = 0
    reason_counts: dict[str, int] = Field(default_factory=dict)
    used_secondary_count: int = 0
    rejected_ids: list[str] = Field(default_factory=list)


class TrustFilterResult(BaseModel):
    high_final: list[str] = Field(default_factory=list)
    demoted: list[str] = Field(default_factory=list)
    hidden: list[str] = Field(default_factory=list)
    decisions: dict[str, TrustFilterDecision] = Field(default_factory=dict)
    stats: TrustFilterStats = Field(default_factory=TrustFilterStats)
