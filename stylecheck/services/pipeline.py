import asyncio
import itertools

from loguru import logger

from stylecheck.core.config import settings
from stylecheck.core.security import redact_identifier
from stylecheck.models.evaluation import ConfidenceTier, PairEvaluation
from stylecheck.models.finalized import FinalizedMatches
from stylecheck.models.item import Item
from stylecheck.models.safety import SafetyCheckOutcome, SafetyPair
from stylecheck.models.signals import StyleSignals
from stylecheck.models.trust_filter import MatchAction, TrustFilterCandidate, TrustFilterResult
from stylecheck.services.finalizer import finalize
from stylecheck.services.safety.client import SafetyCheckClient
from stylecheck.services.safety.rollout import in_rollout
from stylecheck.services.safety.triggers import select_safety_candidates
from stylecheck.services.scoring import ScoringEngine
from stylecheck.services.signals.provider import StyleSignalProvider
from stylecheck.services.trust_filter import TrustFilterConfig, evaluate_batch


class MatchPipeline:
    """
    Runs scoring, style signals, trust filter, safety check and finalization
    for one target item.

    Each run takes a generation number for its slot (``request_id``, or the
    target id). A run that is superseded by a newer run for the same slot
    before it finishes returns ``None`` instead of a result.
    """

    def __init__(
        self,
        scoring: ScoringEngine,
        signals: StyleSignalProvider,
        safety_client: SafetyCheckClient | None = None,
        trust_config: TrustFilterConfig | None = None,
        trust_filter_enabled: bool = settings.TRUST_FILTER_ENABLED,
        safety_enabled: bool = settings.AI_SAFETY_ENABLED,
        safety_rollout_pct: int = settings.AI_SAFETY_ROLLOUT_PCT,
        safety_max_candidates: int = settings.AI_SAFETY_MAX_CANDIDATES,
        requested_dry_run: bool | None = settings.AI_SAFETY_REQUESTED_DRY_RUN,
    ):
        self.scoring = scoring
        self.signals = signals
        self.safety_client = safety_client
        self.trust_config = trust_config or TrustFilterConfig.from_settings()
        self.trust_filter_enabled = trust_filter_enabled
        self.safety_enabled = safety_enabled
        self.safety_rollout_pct = safety_rollout_pct
        self.safety_max_candidates = safety_max_candidates
        self.requested_dry_run = requested_dry_run
        # Latest generation per slot; a slot is released once its current run ends
        self._generations: dict[str, int] = {}
        self._counter = itertools.count(1)

    def _begin(self, slot: str) -> int:
        generation = next(self._counter)
        self._generations[slot] = generation
        return generation

    def _release(self, slot: str, generation: int) -> None:
        if self.is_current(slot, generation):
            del self._generations[slot]

    def is_current(self, slot: str, generation: int) -> bool:
        return self._generations.get(slot) == generation

    async def run(
        self,
        target: Item,
        candidates: list[Item],
        user_id: str | None = None,
        request_id: str | None = None,
    ) -> FinalizedMatches | None:
        slot = request_id or target.id
        generation = self._begin(slot)
        try:
            return await self._run(target, candidates, user_id, slot, generation)
        finally:
            self._release(slot, generation)

    async def _run(
        self, target: Item, candidates: list[Item], user_id: str | None, slot: str, generation: int
    ) -> FinalizedMatches | None:
        evaluations = self.scoring.evaluate_candidates(target, candidates)
        items = {item.id: item for item in candidates}
        high = [e for e in evaluations if e.confidence_tier is ConfidenceTier.HIGH]

        trust_result: TrustFilterResult | None = None
        target_signals: StyleSignals | None = None
        resolved: dict[str, StyleSignals | None] = {}
        if self.trust_filter_enabled and high:
            target_signals, resolved = await self._resolve_signals(target, [items[e.item_b_id] for e in high])
            if target_signals is not None:
                trust_result = evaluate_batch(
                    target_signals,
                    target.category,
                    [
                        TrustFilterCandidate(
                            id=e.item_b_id,
                            signals=resolved.get(e.item_b_id),
                            category=items[e.item_b_id].category,
                            ce_score=e.raw_score,
                        )
                        for e in high
                    ],
                    [e.item_b_id for e in high],
                    self.trust_config,
                )
            else:
                logger.info(f"Target {target.id} has no style signals, skipping trust filter")

        if not self.is_current(slot, generation):
            logger.info(f"Discarding stale run for {slot} (generation {generation})")
            return None

        safety_outcome = None
        if trust_result is not None and self._safety_eligible(user_id):
            safety_outcome = await self._safety_check(target_signals, trust_result, high, resolved, user_id)

        if not self.is_current(slot, generation):
            logger.info(f"Discarding stale run for {slot} (generation {generation})")
            return None

        return finalize(evaluations, items, trust_result, safety_outcome)

    async def _resolve_signals(
        self, target: Item, candidates: list[Item]
    ) -> tuple[StyleSignals | None, dict[str, StyleSignals | None]]:
        target_result, candidate_results = await asyncio.gather(
            self.signals.resolve(target), self.signals.resolve_many(candidates)
        )
        return target_result.signals, {item_id: result.signals for item_id, result in candidate_results.items()}

    def _safety_eligible(self, user_id: str | None) -> bool:
        if self.safety_client is None or not self.safety_enabled:
            return False
        if not in_rollout(user_id, self.safety_rollout_pct):
            logger.debug(f"User {redact_identifier(user_id)} outside safety rollout")
            return False
        return True

    async def _safety_check(
        self,
        target_signals: StyleSignals,
        trust_result: TrustFilterResult,
        high: list[PairEvaluation],
        resolved: dict[str, StyleSignals | None],
        user_id: str | None,
    ) -> SafetyCheckOutcome | None:
        by_id = {e.item_b_id: e for e in high}
        kept = [
            SafetyPair(
                item_id=item_id,
                pair_type=by_id[item_id].pair_type or "",
                archetype_distance=decision.debug.archetype_distance,
                candidate_signals=resolved[item_id],
                ce_score=by_id[item_id].raw_score,
            )
            for item_id, decision in trust_result.decisions.items()
            if decision.action is MatchAction.KEEP and resolved.get(item_id) is not None
        ]
        pairs = select_safety_candidates(target_signals, kept, self.safety_max_candidates, self.trust_config)
        if not pairs:
            return None
        outcome = await self.safety_client.check_batch(target_signals, pairs, self.requested_dry_run, user_id)
        if not outcome.ok:
            logger.warning(f"Safety check unavailable this run: {outcome.error.kind}")
        return outcome
