"""
Redis-backed request throttling.

Counters live in fixed one-hour windows keyed by scope and client IP
(``ratelimit:login:203.0.113.9:<window>``). Redis being unavailable never
blocks a request.
"""

import time
from typing import Optional, Tuple

import redis

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 3600

pool = redis.ConnectionPool(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    password=settings.REDIS_PASSWORD or None,
    decode_responses=True,
    max_connections=20,
    socket_timeout=2,
    socket_connect_timeout=2,
)

redis_client = redis.Redis(connection_pool=pool)


class RedisService:
    KEY_PREFIX = "ratelimit:"

    @staticmethod
    def window_key(key: str, now: Optional[float] = None) -> str:
        window = int((now if now is not None else time.time()) // WINDOW_SECONDS)
        return f"{RedisService.KEY_PREFIX}{key}:{window}"

    @staticmethod
    def check_rate_limit(key: str, limit: Optional[int] = None) -> Tuple[bool, int]:
        """
        Count one request against ``key`` in the current hour.
        Returns (allowed, remaining) where remaining is what is left after this request.
        """
        limit = limit or settings.RATE_LIMIT_PER_HOUR
        if not settings.REDIS_ENABLED:
            return True, limit - 1

        counter = RedisService.window_key(key)
        try:
            with redis_client.pipeline() as pipe:
                pipe.incr(counter)
                pipe.expire(counter, WINDOW_SECONDS)
                hits, _ = pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, letting {key} through: {e}")
            return True, limit

        hits = int(hits)
        if hits > limit:
            return False, 0
        return True, limit - hits

    @staticmethod
    def health_check() -> bool:
        if not settings.REDIS_ENABLED:
            return True
        try:
            return bool(redis_client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
