import logging
from typing import List

import redis.asyncio as redis

from ..core.config import Settings

logger = logging.getLogger(__name__)


class RedisClient:
    def __init__(self, settings: Settings):
        self.use_fake = settings.use_fake_redis
        self.redis_url = settings.redis_url
        self.redis = None

        if self.use_fake:
            import fakeredis.aioredis

            logger.warning("⚠️ USING FAKE REDIS (IN-MEMORY) - FOR TESTING ONLY ⚠️")
            self.redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
        else:
            logger.info(f"🔌 Initializing Real Redis Client at {self.redis_url}")
            # Validate URL format implicitly by creating connection pool
            try:
                self.redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    health_check_interval=30,  # Keep-alive
                )
            except Exception as e:
                logger.critical(f"❌ Invalid REDIS_URL or configuration: {e}")
                raise

    async def check_connection(self) -> bool:
        """
        Verifies connection to Redis.
        Called on startup; the app still starts when Redis is down, audit writes are then logged as failures.
        """
        if self.use_fake:
            return True

        try:
            await self.redis.ping()
            logger.info("✅ Redis Connection Verified.")
            return True
        except Exception as e:
            logger.critical(f"❌ FAILED to connect to Real Redis at {self.redis_url}: {e}")
            logger.critical("👉 Please start Redis (e.g., `docker run -p 6379:6379 redis`) or set USE_FAKE_REDIS=true")
            return False

    async def push_capped(self, key: str, value: str, max_length: int) -> None:
        """Appends to a list and keeps only the newest max_length items."""
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.rpush(key, value)
            pipe.ltrim(key, -max_length, -1)
            await pipe.execute()

    async def read_list(self, key: str) -> List[str]:
        return await self.redis.lrange(key, 0, -1)

    async def delete(self, key: str) -> None:
        await self.redis.delete(key)

    async def close(self):
        if self.redis:
            await self.redis.aclose()
            logger.info("🔌 Redis Client Closed.")
