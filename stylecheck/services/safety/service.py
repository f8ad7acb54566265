import asyncio
import json
import time
from typing import Any

import httpx
from google.genai import errors as genai_errors
from loguru import logger
from pydantic import BaseModel

from stylecheck.core.config import settings
from stylecheck.core.constants import SAFETY_POLICY_VERSION
from stylecheck.core.security import redact_identifier
from stylecheck.models.safety import (
    REASON_FOR_ACTION,
    AiSafetyVerdict,
    SafetyCheckRequest,
    SafetyCheckResponse,
    SafetyError,
    SafetyPairPayload,
    SafetyStats,
    VerdictReason,
    VerdictSource,
)
from stylecheck.models.signals import StyleSignals
from stylecheck.models.trust_filter import MatchAction
from stylecheck.services.gemini import GeminiNotConfiguredError, GeminiService, strip_markdown_fences
from stylecheck.services.safety.verdict_store import CachedVerdict, DailyCallLimiter, VerdictStore, verdict_key

ANONYMOUS_USER = "anonymous"
FALLBACK_REASONS = frozenset({VerdictReason.TIMEOUT_FALLBACK, VerdictReason.ERROR_FALLBACK})

SAFETY_PROMPT = """You check whether wardrobe pairings make visual and style sense.
You get one TARGET item (the piece the user just photographed) and a list of
MATCH candidates from their wardrobe, each described by categorical style
signals.

For every candidate return:
- action: "keep", "demote" or "hide"
- confidence: a number between 0 and 1
- reason: one short sentence

Use "hide" only for an obvious clash the user would be embarrassed by, for
example formal dress shoes with gym shorts. Use "demote" for a risky but
wearable pairing, for example statement western boots with an athletic
hoodie. Otherwise "keep". When unsure, keep.

Respond with a JSON array only, no markdown:
[{"item_id": "<id>", "action": "keep", "confidence": 0.9, "reason": "<sentence>"}]"""


class SafetyRequestError(ValueError):
    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class ParsedVerdict(BaseModel):
    action: MatchAction
    reason_code: VerdictReason
    confidence: float | None = None
    reason: str | None = None


def describe_signals(signals: StyleSignals) -> str:
    aesthetic = signals.aesthetic
    return (
        f"aesthetic={aesthetic.primary.value}({aesthetic.primary_confidence:.2f}), "
        f"formality={signals.formality.band.value}, statement={signals.statement.level.value}, "
        f"season={signals.season.heaviness.value}, material={signals.material.family.value}"
    )


def build_prompt_content(target: StyleSignals, pairs: list[SafetyPairPayload]) -> str:
    lines = [f"TARGET ITEM:\n{describe_signals(target)}", "", "MATCH CANDIDATES:"]
    for index, pair in enumerate(pairs, start=1):
        distance = pair.trust_filter_distance.value if pair.trust_filter_distance else "unknown"
        lines.append(f'{index}. item_id="{pair.item_id}", pair_type={pair.pair_type}, distance={distance}')
        lines.append(f"   Match: {describe_signals(pair.match_signals)}")
    lines += ["", "Evaluate each pair and respond with the JSON array."]
    return "\n".join(lines)


def _fallback(reason_code: VerdictReason, reason: str) -> ParsedVerdict:
    return ParsedVerdict(action=MatchAction.KEEP, reason_code=reason_code, confidence=0.0, reason=reason)


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.5
    return max(0.0, min(1.0, float(value)))


def parse_verdicts(text: str, expected_ids: list[str]) -> dict[str, ParsedVerdict]:
    """
    Parse the model's JSON array into one verdict per expected id.

    Entries with an unknown action become keep/error-fallback; ids the model
    skipped get the same fallback. Raises ValueError when the text is not a
    JSON array.
    """
    parsed = json.loads(strip_markdown_fences(text))
    if not isinstance(parsed, list):
        raise ValueError("Expected a JSON array of verdicts")

    expected = set(expected_ids)
    results: dict[str, ParsedVerdict] = {}
    for entry in parsed:
        if not isinstance(entry, dict):
            continue
        item_id = entry.get("item_id") or entry.get("itemId")
        if item_id not in expected:
            logger.warning(f"Ignoring verdict for unexpected item {item_id!r}")
            continue
        try:
            action = MatchAction(entry.get("action"))
        except ValueError:
            logger.warning(f"Invalid action {entry.get('action')!r} for {item_id}, defaulting to keep")
            results[item_id] = _fallback(VerdictReason.ERROR_FALLBACK, "Invalid action from model")
            continue
        reason = entry.get("reason")
        results[item_id] = ParsedVerdict(
            action=action,
            reason_code=REASON_FOR_ACTION[action],
            confidence=_confidence(entry.get("confidence")),
            reason=reason if isinstance(reason, str) else None,
        )

    for item_id in expected_ids:
        if item_id not in results:
            results[item_id] = _fallback(VerdictReason.ERROR_FALLBACK, "Item not evaluated by model")
    return results


class SafetyCheckService:
    """
    Server side of the safety check: verdict cache, daily cap and the model call.

    Only real model verdicts are written to the cache; fallbacks are
    recomputed on the next request.
    """

    def __init__(
        self,
        verdict_store: VerdictStore,
        limiter: DailyCallLimiter,
        gemini: GeminiService | None = None,
        enabled: bool = settings.AI_SAFETY_ENABLED,
        dry_run: bool = settings.AI_SAFETY_DRY_RUN,
        timeout_ms: int = settings.AI_SAFETY_TIMEOUT_MS,
        max_pairs: int = settings.AI_SAFETY_MAX_PAIRS,
    ):
        self.verdict_store = verdict_store
        self.limiter = limiter
        self.gemini = gemini or GeminiService(model=settings.AI_SAFETY_GEMINI_MODEL)
        self.enabled = enabled
        self.dry_run = dry_run
        self.timeout_ms = timeout_ms
        self.max_pairs = max_pairs

    def validate(self, request: SafetyCheckRequest) -> None:
        if not self.enabled:
            raise SafetyRequestError("feature_disabled", "Safety check is disabled")
        if not request.pairs:
            raise SafetyRequestError("bad_request", "Missing pairs")
        if len(request.pairs) > self.max_pairs:
            raise SafetyRequestError("bad_request", f"Max {self.max_pairs} pairs per request")

    async def check(self, request: SafetyCheckRequest, user_id: str | None = None) -> SafetyCheckResponse:
        started = time.perf_counter()
        try:
            self.validate(request)
        except SafetyRequestError as exc:
            return SafetyCheckResponse(
                ok=False,
                requested_dry_run=request.dry_run,
                effective_dry_run=self.dry_run,
                error=SafetyError(kind=exc.kind, message=exc.message),
            )

        if request.policy_version != SAFETY_POLICY_VERSION:
            logger.warning(
                f"Safety policy version mismatch: client=v{request.policy_version}, server=v{SAFETY_POLICY_VERSION}"
            )
        logger.info(
            f"Safety check request: user={redact_identifier(user_id)}, pairs={len(request.pairs)}, "
            f"requested_dry_run={request.dry_run}, effective_dry_run={self.dry_run}"
        )

        keys = [
            verdict_key(request.target.input_hash, pair.match_input_hash, SAFETY_POLICY_VERSION)
            for pair in request.pairs
        ]
        cached = await self.verdict_store.get_many(keys)

        verdicts: list[AiSafetyVerdict] = []
        uncached: list[tuple[SafetyPairPayload, str]] = []
        for pair, key in zip(request.pairs, keys):
            hit = cached.get(key)
            if hit is None:
                uncached.append((pair, key))
                continue
            verdicts.append(
                AiSafetyVerdict(
                    item_id=pair.item_id,
                    action=hit.action,
                    reason_code=hit.reason_code,
                    ai_confidence=hit.ai_confidence,
                    ai_reason=hit.ai_reason,
                    source=VerdictSource.CACHE_HIT,
                    cached=True,
                )
            )
        cache_hits = len(verdicts)
        logger.info(f"Safety check cache: {cache_hits}/{len(request.pairs)} hits")

        stats = SafetyStats(total_pairs=len(request.pairs), cache_hits=cache_hits)
        if not uncached:
            stats.total_latency_ms = _elapsed_ms(started)
            return self._response(request, verdicts, stats)

        allowed, remaining = await self.limiter.acquire(user_id or ANONYMOUS_USER)
        stats.rate_limit_remaining = remaining
        if not allowed:
            logger.warning(f"Safety check rate limited for user={redact_identifier(user_id)}")
            for pair, _ in uncached:
                verdicts.append(
                    AiSafetyVerdict(
                        item_id=pair.item_id,
                        action=MatchAction.KEEP,
                        reason_code=VerdictReason.ERROR_FALLBACK,
                        ai_reason="Rate limited",
                        source=VerdictSource.AI_CALL,
                    )
                )
            stats.total_latency_ms = _elapsed_ms(started)
            return self._response(request, verdicts, stats, rate_limited=True)

        pairs = [pair for pair, _ in uncached]
        parsed, latency_ms, called = await self._ask_model(request.target.signals, pairs)
        stats.ai_calls = 1 if called else 0
        stats.ai_latency_ms = latency_ms if called else None

        for pair, key in uncached:
            verdict = parsed[pair.item_id]
            verdicts.append(
                AiSafetyVerdict(
                    item_id=pair.item_id,
                    action=verdict.action,
                    reason_code=verdict.reason_code,
                    ai_confidence=verdict.confidence,
                    ai_reason=verdict.reason,
                    source=VerdictSource.AI_CALL,
                    latency_ms=latency_ms,
                )
            )
            if verdict.reason_code not in FALLBACK_REASONS:
                await self.verdict_store.put(
                    key,
                    CachedVerdict(
                        action=verdict.action,
                        reason_code=verdict.reason_code,
                        ai_confidence=verdict.confidence,
                        ai_reason=verdict.reason,
                        model_id=self.gemini.model,
                        latency_ms=latency_ms,
                    ),
                )

        stats.total_latency_ms = _elapsed_ms(started)
        counts = {action.value: sum(1 for v in verdicts if v.action is action) for action in MatchAction}
        logger.info(f"Safety check complete: {len(verdicts)} verdicts {counts}, {stats.total_latency_ms}ms")
        return self._response(request, verdicts, stats)

    async def _ask_model(
        self, target: StyleSignals, pairs: list[SafetyPairPayload]
    ) -> tuple[dict[str, ParsedVerdict], int, bool]:
        """Returns parsed verdicts, model latency and whether a model call was made."""
        expected_ids = [pair.item_id for pair in pairs]
        started = time.perf_counter()
        try:
            text = await self.gemini.generate_content_async(
                [build_prompt_content(target, pairs)],
                system_prompt=SAFETY_PROMPT,
                timeout=self.timeout_ms / 1000,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"Safety model timed out after {self.timeout_ms}ms")
            return _all(expected_ids, VerdictReason.TIMEOUT_FALLBACK, "Timeout"), _elapsed_ms(started), True
        except GeminiNotConfiguredError:
            logger.error("Safety model is not configured")
            return _all(expected_ids, VerdictReason.ERROR_FALLBACK, "AI service not configured"), 0, False
        except (genai_errors.APIError, httpx.HTTPError, OSError) as exc:
            logger.warning(f"Safety model call failed: {exc}")
            return _all(expected_ids, VerdictReason.ERROR_FALLBACK, str(exc)), _elapsed_ms(started), True

        latency_ms = _elapsed_ms(started)
        try:
            return parse_verdicts(text, expected_ids), latency_ms, True
        except ValueError as exc:
            logger.error(f"Failed to parse safety model response: {exc}")
            return _all(expected_ids, VerdictReason.ERROR_FALLBACK, "Failed to parse AI response"), latency_ms, True

    def _response(
        self,
        request: SafetyCheckRequest,
        verdicts: list[AiSafetyVerdict],
        stats: SafetyStats,
        rate_limited: bool = False,
    ) -> SafetyCheckResponse:
        return SafetyCheckResponse(
            ok=True,
            verdicts=verdicts,
            requested_dry_run=request.dry_run,
            effective_dry_run=self.dry_run,
            rate_limited=rate_limited,
            stats=stats,
        )


def _all(item_ids: list[str], reason_code: VerdictReason, reason: str) -> dict[str, ParsedVerdict]:
    return {item_id: _fallback(reason_code, reason) for item_id in item_ids}


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
