from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from loguru import logger
from pydantic import BaseModel, ValidationError

from stylecheck.core.config import settings
from stylecheck.core.constants import SIGNAL_STATUS_READY
from stylecheck.models.signals import StyleSignals
from stylecheck.services.redis_service import RedisService


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SignalRow(BaseModel):
    status: str
    prompt_version: int
    signals: StyleSignals | None = None
    expires_at: datetime


class SignalStore:
    """
    Durable style-signal rows backed by Redis.

    A row is only usable when it is ``ready``, was produced by the current
    prompt version and has not passed ``expires_at``. Redis TTL is set as
    well, but the stored timestamp is what decides validity.
    """

    def __init__(
        self,
        redis_service: RedisService,
        ttl_seconds: int = settings.SIGNAL_STORE_TTL_SECONDS,
        prompt_version: int = settings.SIGNALS_PROMPT_VERSION,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.redis = redis_service
        self.ttl_seconds = ttl_seconds
        self.prompt_version = prompt_version
        self._now = now

    @staticmethod
    def _key(item_id: str) -> str:
        return f"{settings.REDIS_KEY_PREFIX}signals:{item_id}"

    async def get(self, item_id: str) -> StyleSignals | None:
        raw = await self.redis.get_json(self._key(item_id))
        if raw is None:
            return None
        try:
            row = SignalRow.model_validate(raw)
        except ValidationError as exc:
            logger.warning(f"Ignoring malformed signal row for {item_id}: {exc.error_count()} error(s)")
            return None

        if row.status != SIGNAL_STATUS_READY or row.signals is None:
            return None
        if row.prompt_version < self.prompt_version:
            logger.debug(f"Signal row for {item_id} is from prompt v{row.prompt_version}, need v{self.prompt_version}")
            return None
        if row.expires_at <= self._now():
            logger.debug(f"Signal row for {item_id} expired at {row.expires_at.isoformat()}")
            return None
        return row.signals

    async def put(self, item_id: str, signals: StyleSignals) -> bool:
        row = SignalRow(
            status=SIGNAL_STATUS_READY,
            prompt_version=self.prompt_version,
            signals=signals,
            expires_at=self._now() + timedelta(seconds=self.ttl_seconds),
        )
        return await self.redis.set(self._key(item_id), row.model_dump_json(), ttl=self.ttl_seconds)
