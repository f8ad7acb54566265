from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from stylecheck.core.constants import SAFETY_POLICY_VERSION
from stylecheck.models.signals import StyleSignals
from stylecheck.models.trust_filter import ArchetypeDistance, MatchAction


class VerdictReason(str, Enum):
    AI_APPROVED = "ai-approved"
    AI_VETOED = "ai-vetoed"
    AI_DEMOTED = "ai-demoted"
    TIMEOUT_FALLBACK = "timeout-fallback"
    ERROR_FALLBACK = "error-fallback"


REASON_FOR_ACTION: dict[MatchAction, VerdictReason] = {
    MatchAction.KEEP: VerdictReason.AI_APPROVED,
    MatchAction.DEMOTE: VerdictReason.AI_DEMOTED,
    MatchAction.HIDE: VerdictReason.AI_VETOED,
}


class VerdictSource(str, Enum):
    AI_CALL = "ai_call"
    CACHE_HIT = "cache_hit"


class AiSafetyVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    action: MatchAction
    reason_code: VerdictReason
    ai_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    ai_reason: str | None = None
    source: VerdictSource
    latency_ms: int | None = None
    cached: bool = False


class SafetyPair(BaseModel):
    """One candidate escalated to the safety check."""

    item_id: str
    pair_type: str
    archetype_distance: ArchetypeDistance | None = None
    candidate_signals: StyleSignals
    ce_score: float = 0.0


class SafetyTarget(BaseModel):
    input_hash: str
    signals: StyleSignals


class SafetyPairPayload(BaseModel):
    item_id: str
    match_input_hash: str
    pair_type: str
    trust_filter_distance: ArchetypeDistance | None = None
    match_signals: StyleSignals


class SafetyCheckRequest(BaseModel):
    """Wire body for the verdict service."""

    target: SafetyTarget
    pairs: list[SafetyPairPayload]
    dry_run: bool | None = None
    policy_version: int = SAFETY_POLICY_VERSION


class SafetyStats(BaseModel):
    total_pairs: int = 0
    cache_hits: int = 0
    ai_calls: int = 0
    ai_latency_ms: int | None = None
    total_latency_ms: int = 0
    rate_limit_remaining: int | None = None


class SafetyError(BaseModel):
    kind: str
    message: str


class SafetyCheckResponse(BaseModel):
    ok: bool
    verdicts: list[AiSafetyVerdict] = Field(default_factory=list)
    requested_dry_run: bool | None = None
    effective_dry_run: bool = False
    rate_limited: bool = False
    stats: SafetyStats = Field(default_factory=SafetyStats)
    error: SafetyError | None = None


class SafetyCheckOutcome(BaseModel):
    """
    What the client hands back to the pipeline.

    A failed batch carries no verdicts and an ``error``; callers treat that as
    "the safety check did not run this time".
    """

    verdicts: list[AiSafetyVerdict] = Field(default_factory=list)
    effective_dry_run: bool = False
    rate_limited: bool = False
    stats: SafetyStats | None = None
    error: SafetyError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, kind: str, message: str) -> "SafetyCheckOutcome":
        return cls(error=SafetyError(kind=kind, message=message))
