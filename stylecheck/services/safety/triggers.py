from collections.abc import Iterable

from stylecheck.models.safety import SafetyPair
from stylecheck.models.signals import FormalityBand, StatementLevel, StyleSignals
from stylecheck.models.trust_filter import ArchetypeDistance
from stylecheck.services.trust_filter import distance as dist
from stylecheck.services.trust_filter.config import TrustFilterConfig

DEFAULT_MAX_CANDIDATES = 5


def should_run_safety_check(
    target: StyleSignals | None,
    candidate: StyleSignals | None,
    distance: ArchetypeDistance | None,
    config: TrustFilterConfig | None = None,
) -> bool:
    """
    Only grey-zone pairs are escalated: archetype distance is medium and
    either side is low-confidence, or a high-statement piece meets athleisure.
    """
    if target is None or candidate is None or distance is not ArchetypeDistance.MEDIUM:
        return False
    config = config or TrustFilterConfig()

    low_confidence = dist.is_low_confidence(config, target) or dist.is_low_confidence(config, candidate)
    statement_high = StatementLevel.HIGH in (target.statement.level, candidate.statement.level)
    athleisure = dist.either_band(target, candidate, FormalityBand.ATHLEISURE)
    return low_confidence or (statement_high and athleisure)


def select_safety_candidates(
    target_signals: StyleSignals | None,
    kept: Iterable[SafetyPair],
    k: int = DEFAULT_MAX_CANDIDATES,
    config: TrustFilterConfig | None = None,
) -> list[SafetyPair]:
    """Pick at most ``k`` trust-filter keeps that meet the trigger, best score first."""
    if target_signals is None or k <= 0:
        return []
    triggered = [
        pair
        for pair in kept
        if should_run_safety_check(target_signals, pair.candidate_signals, pair.archetype_distance, config)
    ]
    triggered.sort(key=lambda pair: pair.ce_score, reverse=True)
    return triggered[:k]
