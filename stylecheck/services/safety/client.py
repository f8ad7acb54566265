import asyncio
from enum import Enum

import httpx
from loguru import logger

from stylecheck.core.base_client import BaseClient
from stylecheck.core.config import settings
from stylecheck.core.constants import SAFETY_POLICY_VERSION
from stylecheck.core.security import redact_identifier
from stylecheck.models.safety import (
    SafetyCheckOutcome,
    SafetyCheckRequest,
    SafetyCheckResponse,
    SafetyPair,
    SafetyPairPayload,
    SafetyTarget,
)
from stylecheck.models.signals import StyleSignals
from stylecheck.services.signals.hashing import signals_hash

CHECK_PATH = "/safety/check"
USER_ID_HEADER = "X-User-Id"


class SafetyErrorKind(str, Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP_ERROR = "http_error"
    MALFORMED = "malformed"
    REJECTED = "rejected"


def request_key(target_hash: str, pair_hashes: list[str], policy_version: int = SAFETY_POLICY_VERSION) -> str:
    return f"{target_hash}:{'|'.join(sorted(pair_hashes))}:v{policy_version}"


class SafetyCheckClient(BaseClient):
    """
    Client for the remote safety-check verdict service.

    Identical concurrent batches share one request. Every failure mode
    returns an outcome without verdicts, never an exception.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = settings.AI_SAFETY_CLIENT_TIMEOUT_SECONDS,
        max_retries: int = 2,
        inflight: dict[str, asyncio.Future] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url=base_url or settings.AI_SAFETY_URL,
            timeout=timeout,
            max_retries=max_retries,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        self._inflight: dict[str, asyncio.Future] = inflight if inflight is not None else {}

    @staticmethod
    def build_request(
        target_signals: StyleSignals, pairs: list[SafetyPair], requested_dry_run: bool | None = None
    ) -> SafetyCheckRequest:
        return SafetyCheckRequest(
            target=SafetyTarget(input_hash=signals_hash(target_signals), signals=target_signals),
            pairs=[
                SafetyPairPayload(
                    item_id=pair.item_id,
                    match_input_hash=signals_hash(pair.candidate_signals),
                    pair_type=pair.pair_type,
                    trust_filter_distance=pair.archetype_distance,
                    match_signals=pair.candidate_signals,
                )
                for pair in pairs
            ],
            dry_run=requested_dry_run,
            policy_version=SAFETY_POLICY_VERSION,
        )

    async def check_batch(
        self,
        target_signals: StyleSignals,
        pairs: list[SafetyPair],
        requested_dry_run: bool | None = None,
        user_id: str | None = None,
    ) -> SafetyCheckOutcome:
        if not pairs:
            return SafetyCheckOutcome()

        request = self.build_request(target_signals, pairs, requested_dry_run)
        key = request_key(request.target.input_hash, [pair.match_input_hash for pair in request.pairs])

        existing = self._inflight.get(key)
        if existing is not None:
            logger.debug(f"Reusing in-flight safety check {key[:20]}...")
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(self._send(request, user_id))
        self._inflight[key] = task
        try:
            return await asyncio.shield(task)
        finally:
            if self._inflight.get(key) is task:
                self._inflight.pop(key, None)

    async def _send(self, request: SafetyCheckRequest, user_id: str | None) -> SafetyCheckOutcome:
        headers = {USER_ID_HEADER: user_id} if user_id else None
        requested_ids = {pair.item_id for pair in request.pairs}
        logger.info(
            f"Safety check: user={redact_identifier(user_id)}, pairs={len(request.pairs)}, "
            f"requested_dry_run={request.dry_run}"
        )
        try:
            data = await self.post(CHECK_PATH, json=request.model_dump(mode="json"), headers=headers)
            response = SafetyCheckResponse.model_validate(data)
        except httpx.TimeoutException as exc:
            logger.warning(f"Safety check timed out: {exc}")
            return SafetyCheckOutcome.failed(SafetyErrorKind.TIMEOUT.value, "Safety check timed out")
        except httpx.HTTPStatusError as exc:
            logger.warning(f"Safety check returned {exc.response.status_code}")
            return SafetyCheckOutcome.failed(SafetyErrorKind.HTTP_ERROR.value, f"HTTP {exc.response.status_code}")
        except httpx.RequestError as exc:
            logger.warning(f"Safety check network error: {exc}")
            return SafetyCheckOutcome.failed(SafetyErrorKind.NETWORK.value, str(exc))
        except ValueError as exc:
            logger.warning(f"Safety check returned a malformed body: {exc}")
            return SafetyCheckOutcome.failed(SafetyErrorKind.MALFORMED.value, "Malformed safety check response")

        if not response.ok:
            error = response.error
            kind = error.kind if error else SafetyErrorKind.REJECTED.value
            message = error.message if error else "Safety check rejected the request"
            logger.warning(f"Safety check not ok ({kind}): {message}")
            return SafetyCheckOutcome.failed(kind, message)

        verdicts = [verdict for verdict in response.verdicts if verdict.item_id in requested_ids]
        if len(verdicts) != len(response.verdicts):
            logger.error(f"Safety check returned {len(response.verdicts) - len(verdicts)} verdict(s) for unknown items")

        return SafetyCheckOutcome(
            verdicts=verdicts,
            effective_dry_run=response.effective_dry_run,
            rate_limited=response.rate_limited,
            stats=response.stats,
        )
