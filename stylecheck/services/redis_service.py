import json
from typing import Any

import redis.asyncio as redis
from loguru import logger

from stylecheck.core.config import settings


class RedisService:
    """Thin async Redis wrapper. Every operation degrades to a miss on Redis errors."""

    def __init__(self, url: str | None = None) -> None:
        self.url = url or settings.REDIS_URL
        self._client: redis.Redis | None = None
        if not self.url:
            logger.warning("REDIS_URL is not set. Redis operations will fail until configured.")

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            logger.info("Creating Redis client for RedisService")
            self._client = redis.from_url(
                self.url,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=5,
                socket_timeout=5,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                health_check_interval=30,
                socket_keepalive=True,
            )
        return self._client

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store a value in Redis with optional TTL.

        Args:
            key: The key to store the value under
            value: The value to store (will be converted to string)
            ttl: Optional time-to-live in seconds. If None, key never expires.

        Returns:
            True if successful, False otherwise
        """
        try:
            client = await self.get_client()
            str_value = str(value)
            if ttl is not None:
                result = await client.setex(key, ttl, str_value)
            else:
                result = await client.set(key, str_value)
            return bool(result)
        except (redis.RedisError, OSError) as exc:
            logger.error(f"Failed to set key '{key}' in Redis: {exc}")
            return False

    async def get(self, key: str) -> str | None:
        """Get a value from Redis by key.

        Args:
            key: The key to retrieve

        Returns:
            The value as a string, or None if key doesn't exist or error occurred
        """
        try:
            client = await self.get_client()
            return await client.get(key)
        except (redis.RedisError, OSError) as exc:
            logger.error(f"Failed to get key '{key}' from Redis: {exc}")
            return None

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning(f"Discarding undecodable JSON at '{key}': {exc}")
            return None

    async def incr(self, key: str, ttl: int | None = None) -> int | None:
        """Atomically increment a counter, setting its TTL on first use.

        Returns:
            The new counter value, or None if Redis is unavailable
        """
        try:
            client = await self.get_client()
            value = await client.incr(key)
            if ttl is not None and value == 1:
                await client.expire(key, ttl)
            return int(value)
        except (redis.RedisError, OSError) as exc:
            logger.error(f"Failed to increment key '{key}' in Redis: {exc}")
            return None

    async def close(self) -> None:
        """Close and disconnect the Redis client"""
        if self._client is not None:
            try:
                await self._client.aclose()
                logger.info("RedisService client closed")
            except Exception as exc:
                logger.warning(f"Failed to close RedisService client: {exc}")
            finally:
                self._client = None


redis_service = RedisService()
