from collections.abc import Iterable, Mapping

from loguru import logger

from stylecheck.models.evaluation import ConfidenceTier, PairEvaluation
from stylecheck.models.finalized import FinalizedMatches, FinalizedMeta, FinalTier, MatchEntry
from stylecheck.models.item import Item
from stylecheck.models.safety import SafetyCheckOutcome
from stylecheck.models.trust_filter import ACTION_SEVERITY, MatchAction, TrustFilterResult
from stylecheck.services.scoring import effective_evaluation

TIER_FOR_ACTION: dict[MatchAction, FinalTier] = {
    MatchAction.KEEP: FinalTier.HIGH,
    MatchAction.DEMOTE: FinalTier.NEAR,
    MatchAction.HIDE: FinalTier.HIDDEN,
}


def merge_action(current: MatchAction, verdict: MatchAction) -> MatchAction:
    """Combine two actions; the result is never less severe than either input."""
    return verdict if ACTION_SEVERITY[verdict] > ACTION_SEVERITY[current] else current


def _by_score(evaluations: Iterable[PairEvaluation]) -> list[PairEvaluation]:
    return sorted(evaluations, key=lambda evaluation: evaluation.raw_score, reverse=True)


def _trust_actions(
    trust_result: TrustFilterResult, high_ids: set[str], violations: list[str]
) -> tuple[dict[str, MatchAction], set[str]]:
    """Map HIGH ids to their trust action. Ids listed in more than one bucket are returned separately."""
    actions: dict[str, MatchAction] = {}
    conflicted: set[str] = set()
    buckets = (
        (MatchAction.KEEP, trust_result.high_final),
        (MatchAction.DEMOTE, trust_result.demoted),
        (MatchAction.HIDE, trust_result.hidden),
    )
    for action, ids in buckets:
        for item_id in ids:
            if item_id not in high_ids:
                violations.append(f"ghost trust decision: {item_id} ({action.value}) is not a HIGH match")
                continue
            if item_id in actions and actions[item_id] is not action:
                violations.append(f"conflicting trust decisions for {item_id}")
                conflicted.add(item_id)
            actions[item_id] = action
    for item_id in conflicted:
        actions.pop(item_id, None)
    return actions, conflicted


def check_invariants(
    result: FinalizedMatches,
    high_ids: set[str],
    trust_actions: Mapping[str, MatchAction],
) -> tuple[list[str], set[str]]:
    """
    Verify bucket exclusivity, provenance of demotions and merge monotonicity.

    Returns the violation messages and the ids that must be excluded.
    """
    violations: list[str] = []
    offending: set[str] = set()
    seen: dict[str, str] = {}

    for bucket in ("high_final", "near_final", "hidden"):
        for item_id in result.ids(bucket):
            if item_id in seen:
                violations.append(f"{item_id} appears in both {seen[item_id]} and {bucket}")
                offending.add(item_id)
            seen[item_id] = bucket

    for item_id, action in result.action_by_id.items():
        if action is not MatchAction.KEEP and item_id not in high_ids:
            violations.append(f"{item_id} was {action.value}d without being a HIGH match")
            offending.add(item_id)
        before = trust_actions.get(item_id)
        if before is not None and ACTION_SEVERITY[action] < ACTION_SEVERITY[before]:
            violations.append(f"{item_id} moved from {before.value} back to {action.value}")
            offending.add(item_id)
    return violations, offending


def _exclude(result: FinalizedMatches, ids: set[str]) -> None:
    result.high_final = [entry for entry in result.high_final if entry.item.id not in ids]
    result.near_final = [entry for entry in result.near_final if entry.item.id not in ids]
    result.hidden = [entry for entry in result.hidden if entry.item.id not in ids]
    for item_id in ids:
        result.action_by_id.pop(item_id, None)
        result.final_tier_by_id.pop(item_id, None)


def finalize(
    evaluations: list[PairEvaluation],
    items: Mapping[str, Item],
    trust_result: TrustFilterResult | None,
    safety_outcome: SafetyCheckOutcome | None = None,
) -> FinalizedMatches:
    """
    Merge scoring, trust-filter and safety-check output into the final buckets.

    Precedence per HIGH match: trust-filter hide, then safety hide, then
    safety demote, then keep. Safety verdicts apply only when the service
    reported apply mode, and never make a match more confident. Native MEDIUM
    matches follow the demoted ones in ``near_final``.
    """
    violations: list[str] = []

    high = [e for e in _by_score(evaluations) if e.confidence_tier is ConfidenceTier.HIGH]
    medium = [e for e in _by_score(evaluations) if e.confidence_tier is ConfidenceTier.MEDIUM]
    high_ids = {e.item_b_id for e in high}

    conflicted: set[str] = set()
    tf_applied = trust_result is not None
    if trust_result is None:
        trust_actions = {item_id: MatchAction.KEEP for item_id in high_ids}
    else:
        trust_actions, conflicted = _trust_actions(trust_result, high_ids, violations)
        # Conflicted ids stay out of every bucket
        for item_id in high_ids - trust_actions.keys() - conflicted:
            trust_actions[item_id] = MatchAction.KEEP

    final_actions = dict(trust_actions)
    ai_demoted = ai_hidden = 0
    apply_safety = safety_outcome is not None and safety_outcome.ok and not safety_outcome.effective_dry_run
    if apply_safety:
        for verdict in safety_outcome.verdicts:
            if verdict.item_id not in final_actions:
                violations.append(f"ghost safety verdict: {verdict.item_id} is not a HIGH match")
                continue
            before = final_actions[verdict.item_id]
            after = merge_action(before, verdict.action)
            if after is not before:
                if after is MatchAction.HIDE:
                    ai_hidden += 1
                else:
                    ai_demoted += 1
            final_actions[verdict.item_id] = after
    elif safety_outcome is not None and safety_outcome.ok and safety_outcome.verdicts:
        logger.info(f"Safety check in dry-run mode: {len(safety_outcome.verdicts)} verdict(s) observed, not applied")

    result = FinalizedMatches(
        meta=FinalizedMeta(
            tf_demoted_count=sum(1 for a in trust_actions.values() if a is MatchAction.DEMOTE),
            tf_hidden_count=sum(1 for a in trust_actions.values() if a is MatchAction.HIDE),
            ai_demoted_count=ai_demoted,
            ai_hidden_count=ai_hidden,
            ai_dry_run=bool(safety_outcome and safety_outcome.ok and safety_outcome.effective_dry_run),
            tf_applied=tf_applied,
        )
    )

    placed: set[str] = set()

    def place(evaluation: PairEvaluation, action: MatchAction) -> None:
        item_id = evaluation.item_b_id
        item = items.get(item_id)
        if item is None:
            violations.append(f"no item record for evaluated candidate {item_id}")
            return
        tier = TIER_FOR_ACTION[action]
        entry = MatchEntry(evaluation=effective_evaluation(evaluation, tier), item=item)
        if tier is FinalTier.HIGH:
            result.high_final.append(entry)
        elif tier is FinalTier.NEAR:
            result.near_final.append(entry)
        else:
            result.hidden.append(entry)
        result.action_by_id[item_id] = action
        result.final_tier_by_id[item_id] = tier
        placed.add(item_id)

    demoted: list[PairEvaluation] = []
    for evaluation in high:
        item_id = evaluation.item_b_id
        if item_id in placed or item_id not in final_actions:
            continue
        action = final_actions[item_id]
        if action is MatchAction.DEMOTE:
            demoted.append(evaluation)
            continue
        place(evaluation, action)

    for evaluation in demoted:
        if evaluation.item_b_id not in placed:
            place(evaluation, MatchAction.DEMOTE)

    for evaluation in medium:
        item_id = evaluation.item_b_id
        if item_id in placed or item_id in high_ids:
            continue
        item = items.get(item_id)
        if item is None:
            violations.append(f"no item record for evaluated candidate {item_id}")
            continue
        result.near_final.append(MatchEntry(evaluation=evaluation, item=item))
        result.action_by_id[item_id] = MatchAction.KEEP
        result.final_tier_by_id[item_id] = FinalTier.NEAR
        placed.add(item_id)

    invariant_violations, offending = check_invariants(result, high_ids, trust_actions)
    violations.extend(invariant_violations)
    offending |= conflicted
    if offending:
        _exclude(result, offending)

    for violation in violations:
        logger.error(f"Finalizer invariant violation: {violation}")
    result.meta.violations = violations
    return result
