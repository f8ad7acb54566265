import asyncio
from datetime import date, datetime, timezone

from cachetools import TTLCache
from loguru import logger
from pydantic import BaseModel, ValidationError

from stylecheck.core.config import settings
from stylecheck.models.safety import VerdictReason
from stylecheck.models.trust_filter import MatchAction
from stylecheck.services.redis_service import RedisService

SECONDS_PER_DAY = 24 * 60 * 60


def verdict_key(target_hash: str, match_hash: str, policy_version: int) -> str:
    return f"{target_hash}|{match_hash}|v{policy_version}"


class CachedVerdict(BaseModel):
    action: MatchAction
    reason_code: VerdictReason
    ai_confidence: float | None = None
    ai_reason: str | None = None
    model_id: str | None = None
    latency_ms: int | None = None


class VerdictStore:
    """Model verdicts keyed by confidence-free signal hashes, kept for a fixed number of days."""

    def __init__(self, redis_service: RedisService, ttl_days: int = settings.AI_SAFETY_CACHE_TTL_DAYS):
        self.redis = redis_service
        self.ttl_seconds = ttl_days * SECONDS_PER_DAY

    @staticmethod
    def _key(unique_key: str) -> str:
        return f"{settings.REDIS_KEY_PREFIX}safety:verdict:{unique_key}"

    async def get(self, unique_key: str) -> CachedVerdict | None:
        raw = await self.redis.get_json(self._key(unique_key))
        if raw is None:
            return None
        try:
            return CachedVerdict.model_validate(raw)
        except ValidationError:
            logger.warning(f"Discarding malformed cached verdict {unique_key}")
            return None

    async def get_many(self, unique_keys: list[str]) -> dict[str, CachedVerdict]:
        found = await asyncio.gather(*(self.get(key) for key in unique_keys))
        return {key: verdict for key, verdict in zip(unique_keys, found) if verdict is not None}

    async def put(self, unique_key: str, verdict: CachedVerdict) -> bool:
        return await self.redis.set(self._key(unique_key), verdict.model_dump_json(), ttl=self.ttl_seconds)


class DailyCallLimiter:
    """
    Per-user daily cap on live model calls.

    Counts in Redis; when Redis is unreachable, falls back to a process-local
    counter so the cap still roughly holds instead of blocking requests.
    """

    def __init__(self, redis_service: RedisService, daily_cap: int = settings.AI_SAFETY_DAILY_CAP):
        self.redis = redis_service
        self.daily_cap = daily_cap
        self._local: TTLCache = TTLCache(maxsize=10_000, ttl=SECONDS_PER_DAY)

    @staticmethod
    def _today() -> date:
        return datetime.now(timezone.utc).date()

    def _key(self, user_id: str) -> str:
        return f"{settings.REDIS_KEY_PREFIX}safety:daily:{user_id}:{self._today().isoformat()}"

    async def acquire(self, user_id: str) -> tuple[bool, int]:
        """Count one call for ``user_id``. Returns (allowed, remaining)."""
        key = self._key(user_id)
        count = await self.redis.incr(key, ttl=SECONDS_PER_DAY)
        if count is None:
            count = self._local.get(key, 0) + 1
            self._local[key] = count
        remaining = max(0, self.daily_cap - count)
        return count <= self.daily_cap, remaining
