from collections import Counter
from collections.abc import Iterable

from loguru import logger

from stylecheck.models.item import Category
from stylecheck.models.signals import FormalityBand, PatternLevel, StatementLevel, StyleSignals
from stylecheck.models.trust_filter import (
    DISTANCE_RANK,
    ArchetypeDistance,
    MatchAction,
    TrustFilterCandidate,
    TrustFilterDebug,
    TrustFilterDecision,
    TrustFilterResult,
    TrustFilterStats,
    TrustReason,
)
from stylecheck.services.trust_filter import distance as dist
from stylecheck.services.trust_filter.config import ARCHETYPE_REASONS, TrustFilterConfig

_CARRIERS = frozenset({Category.BAGS, Category.ACCESSORIES})

DEFAULT_CONFIG = TrustFilterConfig()


def _collect_reasons(
    config: TrustFilterConfig,
    target: StyleSignals,
    candidate: StyleSignals,
    distance: ArchetypeDistance | None,
    used_secondary: bool,
    gap: int | None,
    season: int | None,
    categories: tuple[Category, Category],
) -> tuple[list[TrustReason], list[TrustReason], bool]:
    hide: list[TrustReason] = []
    demote: list[TrustReason] = []
    confidence_gate_hit = False

    if distance is ArchetypeDistance.FAR and gap is not None and gap >= config.formality_gap_min:
        clash_min = config.confidence.hard_clash_primary_min
        confident = (
            target.aesthetic.primary_confidence >= clash_min and candidate.aesthetic.primary_confidence >= clash_min
        )
        if not confident:
            confidence_gate_hit = True
        elif not used_secondary:
            hide.append(TrustReason.STYLE_ARCHETYPE_HARD_CLASH)

    if gap is not None and gap >= config.formality_gap_min:
        if dist.either_band(target, candidate, FormalityBand.ATHLEISURE):
            demote.append(TrustReason.ATHLEISURE_VS_POLISHED_CLASH)
        demote.append(TrustReason.FORMALITY_MISMATCH)

    if distance is not None:
        target_statement = dist.statement_level(config, target)
        candidate_statement = dist.statement_level(config, candidate)
        high = config.statement_levels[StatementLevel.HIGH]
        both_high = target_statement == high and candidate_statement == high
        one_high = target_statement == high or candidate_statement == high
        if both_high and distance is not ArchetypeDistance.CLOSE:
            demote.append(TrustReason.STATEMENT_VS_STATEMENT_OVERLOAD)
        if one_high and distance is ArchetypeDistance.FAR:
            demote.append(TrustReason.STATEMENT_CONTEXT_MISMATCH)
        if DISTANCE_RANK[distance] >= DISTANCE_RANK[ArchetypeDistance.MEDIUM]:
            demote.append(TrustReason.STYLE_ARCHETYPE_MISMATCH)

    if _needs_anchor(config, target, candidate, distance, gap, categories):
        demote.append(TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR)

    if season is not None and season >= config.season_diff_min:
        demote.append(TrustReason.WEATHER_SEASON_MISMATCH)

    bold = config.pattern_levels[PatternLevel.BOLD]
    if dist.pattern_level(config, target) == bold and dist.pattern_level(config, candidate) == bold:
        demote.append(TrustReason.PATTERN_TEXTURE_OVERLOAD)

    if dist.is_low_confidence(config, target) or dist.is_low_confidence(config, candidate):
        demote.append(TrustReason.LOW_CONFIDENCE_INPUTS)

    return hide, demote, confidence_gate_hit


def _needs_anchor(
    config: TrustFilterConfig,
    target: StyleSignals,
    candidate: StyleSignals,
    distance: ArchetypeDistance | None,
    gap: int | None,
    categories: tuple[Category, Category],
) -> bool:
    rule = config.anchor_rule
    if not rule.enabled or distance is not rule.archetype_distance or not rule.applies_to(*categories):
        return False
    if gap is not None and gap > rule.formality_gap_max:
        return False
    high = config.statement_levels[StatementLevel.HIGH]
    bold = config.pattern_levels[PatternLevel.BOLD]
    one_high = high in (dist.statement_level(config, target), dist.statement_level(config, candidate))
    one_bold = bold in (dist.pattern_level(config, target), dist.pattern_level(config, candidate))
    return one_high or one_bold


def _apply_category_policy(
    action: MatchAction,
    reasons: list[TrustReason],
    target_category: Category,
    candidate_category: Category,
) -> MatchAction:
    categories = {target_category, candidate_category}

    if categories & _CARRIERS:
        if action is MatchAction.HIDE:
            action = MatchAction.DEMOTE
        if action is MatchAction.DEMOTE and all(reason in ARCHETYPE_REASONS for reason in reasons):
            action = MatchAction.KEEP
        return action

    if categories == {Category.SHOES, Category.TOPS} and action is MatchAction.HIDE:
        if reasons and reasons[0] is TrustReason.STYLE_ARCHETYPE_HARD_CLASH:
            return MatchAction.DEMOTE
    return action


def evaluate_pair(
    target_signals: StyleSignals | None,
    candidate_signals: StyleSignals | None,
    target_category: Category,
    candidate_category: Category,
    config: TrustFilterConfig = DEFAULT_CONFIG,
) -> TrustFilterDecision:
    """
    Decide whether a HIGH match should be kept, demoted to near, or hidden.

    Hide rules are checked before demote rules, so a severe clash is never
    merely demoted. Missing signals on either side keep the match.
    """
    if target_signals is None or candidate_signals is None:
        return TrustFilterDecision(
            action=MatchAction.KEEP,
            primary_reason=TrustReason.INSUFFICIENT_INFO,
            debug=TrustFilterDebug(confidence_gate_hit=True),
        )

    distance, used_secondary = dist.archetype_distance(config, target_signals, candidate_signals)
    gap = dist.formality_gap(config, target_signals, candidate_signals)
    season = dist.season_diff(config, target_signals, candidate_signals)

    hide, demote, gate_hit = _collect_reasons(
        config,
        target_signals,
        candidate_signals,
        distance,
        used_secondary,
        gap,
        season,
        (target_category, candidate_category),
    )

    action = MatchAction.KEEP
    primary: TrustReason | None = None
    if hide:
        action, primary = MatchAction.HIDE, hide[0]
    else:
        ordered = [reason for reason in config.demote_order if reason in demote]
        if ordered:
            action, primary = MatchAction.DEMOTE, ordered[0]

    all_reasons = hide + demote
    secondary = tuple(reason for reason in all_reasons if reason is not primary)
    ranked = ([primary] if primary else []) + list(secondary)
    action = _apply_category_policy(action, ranked, target_category, candidate_category)
    # A downgraded archetype clash is reported as needing an anchor when that rule also fired
    if (
        action is MatchAction.DEMOTE
        and primary is TrustReason.STYLE_ARCHETYPE_HARD_CLASH
        and TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR in demote
    ):
        primary = TrustReason.CONTEXT_DEPENDENT_NEEDS_ANCHOR
        secondary = tuple(reason for reason in all_reasons if reason is not primary)

    return TrustFilterDecision(
        action=action,
        primary_reason=primary,
        secondary_reasons=secondary,
        debug=TrustFilterDebug(
            archetype_distance=distance,
            formality_gap=gap,
            season_diff=season,
            used_secondary=used_secondary,
            confidence_gate_hit=gate_hit,
        ),
    )


def evaluate_batch(
    target_signals: StyleSignals | None,
    target_category: Category,
    candidates: Iterable[TrustFilterCandidate],
    ce_high_ids: Iterable[str],
    config: TrustFilterConfig = DEFAULT_CONFIG,
) -> TrustFilterResult:
    """
    Run the trust filter over the HIGH-tier candidates of one target.

    Candidates outside ``ce_high_ids`` are rejected and logged. The
    ``max_candidates`` best by score are evaluated; the rest stay HIGH
    without a decision.
    """
    high_ids = set(ce_high_ids)
    eligible: list[TrustFilterCandidate] = []
    rejected: list[str] = []
    for candidate in candidates:
        if candidate.id in high_ids:
            eligible.append(candidate)
        else:
            rejected.append(candidate.id)
    if rejected:
        logger.error(f"Trust filter received {len(rejected)} candidate(s) outside the HIGH tier: {rejected}")

    eligible.sort(key=lambda c: c.ce_score, reverse=True)
    to_evaluate = eligible[: config.max_candidates]
    skipped = eligible[config.max_candidates :]

    result = TrustFilterResult()
    reason_counts: Counter[str] = Counter()
    used_secondary_count = 0

    for candidate in to_evaluate:
        decision = evaluate_pair(target_signals, candidate.signals, target_category, candidate.category, config)
        result.decisions[candidate.id] = decision
        if decision.primary_reason is not None:
            reason_counts[decision.primary_reason.value] += 1
        if decision.debug.used_secondary:
            used_secondary_count += 1

        if decision.action is MatchAction.HIDE:
            result.hidden.append(candidate.id)
        elif decision.action is MatchAction.DEMOTE:
            result.demoted.append(candidate.id)
        else:
            result.high_final.append(candidate.id)

    result.high_final.extend(candidate.id for candidate in skipped)
    result.stats = TrustFilterStats(
        total_evaluated=len(to_evaluate),
        skipped_count=len(skipped),
        hidden_count=len(result.hidden),
        demoted_count=len(result.demoted),
        reason_counts=dict(reason_counts),
        used_secondary_count=used_secondary_count,
        rejected_ids=rejected,
    )
    logger.debug(
        f"Trust filter: {len(to_evaluate)} evaluated, {len(result.hidden)} hidden, "
        f"{len(result.demoted)} demoted, {len(skipped)} skipped"
    )
    return result
