"""
Categorical distances between two style-signal records.

All helpers return ``None`` when an input is unknown or below its confidence
floor; callers treat ``None`` as "no evidence" rather than as a mismatch.
"""

from stylecheck.models.signals import Archetype, FormalityBand, StyleSignals
from stylecheck.models.trust_filter import DISTANCE_RANK, ArchetypeDistance
from stylecheck.services.trust_filter.config import TrustFilterConfig

_UNRESOLVED = (Archetype.UNKNOWN, Archetype.NONE)


def pair_override(config: TrustFilterConfig, left: Archetype, right: Archetype) -> ArchetypeDistance | None:
    overrides = config.pair_overrides
    return overrides.get(f"{left.value}:{right.value}") or overrides.get(f"{right.value}:{left.value}")


def base_distance(config: TrustFilterConfig, left: Archetype, right: Archetype) -> ArchetypeDistance | None:
    if left in _UNRESOLVED or right in _UNRESOLVED:
        return None
    if override := pair_override(config, left, right):
        return override
    left_cluster, right_cluster = config.cluster_of(left), config.cluster_of(right)
    if left_cluster is None or right_cluster is None:
        return None
    return config.cluster_distances.get(left_cluster, {}).get(right_cluster)


def archetype_distance(
    config: TrustFilterConfig, target: StyleSignals, candidate: StyleSignals
) -> tuple[ArchetypeDistance | None, bool]:
    """
    Distance between the two primary archetypes.

    A confident secondary archetype on either side may bring the distance
    closer, never further. Returns the distance and whether a secondary
    was what decided it.
    """
    target_aesthetic, candidate_aesthetic = target.aesthetic, candidate.aesthetic
    distance = base_distance(config, target_aesthetic.primary, candidate_aesthetic.primary)
    if distance is None:
        return None, False

    options: list[ArchetypeDistance] = []
    secondary_min = config.confidence.secondary_min
    if target_aesthetic.secondary not in _UNRESOLVED and target_aesthetic.secondary_confidence >= secondary_min:
        options.append(base_distance(config, target_aesthetic.secondary, candidate_aesthetic.primary))
    if candidate_aesthetic.secondary not in _UNRESOLVED and candidate_aesthetic.secondary_confidence >= secondary_min:
        options.append(base_distance(config, target_aesthetic.primary, candidate_aesthetic.secondary))

    closest = min((o for o in options if o is not None), key=DISTANCE_RANK.__getitem__, default=None)
    if closest is not None and DISTANCE_RANK[closest] < DISTANCE_RANK[distance]:
        return closest, True
    return distance, False


def formality_gap(config: TrustFilterConfig, target: StyleSignals, candidate: StyleSignals) -> int | None:
    floor = config.confidence.formality_min
    if target.formality.confidence < floor or candidate.formality.confidence < floor:
        return None
    left = config.formality_levels.get(target.formality.band)
    right = config.formality_levels.get(candidate.formality.band)
    if left is None or right is None:
        return None
    return abs(left - right)


def season_diff(config: TrustFilterConfig, target: StyleSignals, candidate: StyleSignals) -> int | None:
    floor = config.confidence.season_min
    if target.season.confidence < floor or candidate.season.confidence < floor:
        return None
    left = config.season_levels.get(target.season.heaviness)
    right = config.season_levels.get(candidate.season.heaviness)
    if left is None or right is None:
        return None
    return abs(left - right)


def statement_level(config: TrustFilterConfig, signals: StyleSignals) -> int | None:
    if signals.statement.confidence < config.confidence.statement_min:
        return None
    return config.statement_levels.get(signals.statement.level)


def pattern_level(config: TrustFilterConfig, signals: StyleSignals) -> int | None:
    if signals.pattern.confidence < config.confidence.pattern_min:
        return None
    return config.pattern_levels.get(signals.pattern.level)


def either_band(target: StyleSignals, candidate: StyleSignals, band: FormalityBand) -> bool:
    return target.formality.band is band or candidate.formality.band is band


def is_low_confidence(config: TrustFilterConfig, signals: StyleSignals) -> bool:
    """Known aesthetic or formality values reported below their confidence floor."""
    thresholds = config.confidence
    aesthetic_low = (
        signals.aesthetic.primary is not Archetype.UNKNOWN
        and signals.aesthetic.primary_confidence < thresholds.aesthetic_primary_min
    )
    formality_low = (
        signals.formality.band is not FormalityBand.UNKNOWN
        and signals.formality.confidence < thresholds.formality_min
    )
    return aesthetic_low or formality_low
