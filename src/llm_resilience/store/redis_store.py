"""
Redis-backed counter store with connection pooling.

Uses redis-py. Increments run as a MULTI/EXEC pipeline of
``SET key 0 EX ttl NX`` followed by ``INCRBYFLOAT``, so the expiry is
attached only when the key is created and concurrent writers never lose
updates.
"""

import math
from typing import TYPE_CHECKING, Any, Optional

import structlog
from redis import ConnectionPool, Redis

if TYPE_CHECKING:
    from llm_resilience.config import Settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """
    Process-wide Redis connection pool holder.

    All RedisCounterStore instances created from settings share one pool.
    """

    _pool: Optional[ConnectionPool] = None

    @classmethod
    def get_client(cls, settings: "Settings") -> Redis:
        """
        Get a Redis client backed by the shared connection pool.

        Args:
            settings: Application settings

        Returns:
            Redis client instance
        """
        if cls._pool is None:
            cls._pool = ConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
            )
            logger.info("Initialized Redis connection pool", max_connections=settings.REDIS_MAX_CONNECTIONS)

        return Redis(connection_pool=cls._pool)

    @classmethod
    def close_pool(cls) -> None:
        """Close the connection pool (cleanup on shutdown)."""
        if cls._pool is not None:
            cls._pool.disconnect()
            cls._pool = None
            logger.info("Closed Redis connection pool")


def _ttl_seconds(expires_in: Optional[float]) -> Optional[int]:
    if expires_in is None:
        return None
    return max(1, int(math.ceil(expires_in)))


class RedisCounterStore:
    """
    Counter store on top of a redis-py client.

    Values come back as strings (the pool uses ``decode_responses=True``);
    CounterStoreHelper converts them to numbers.
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RedisCounterStore":
        """Build a store on the shared connection pool."""
        return cls(RedisClient.get_client(settings))

    def read(self, key: str) -> Any:
        return self.redis.get(key)

    def write(self, key: str, value: Any, expires_in: Optional[float] = None) -> bool:
        return bool(self.redis.set(key, value, ex=_ttl_seconds(expires_in)))

    def delete(self, key: str) -> bool:
        return self.redis.delete(key) > 0

    def exists(self, key: str) -> bool:
        return self.redis.exists(key) > 0

    def increment(self, key: str, by: float = 1, expires_in: Optional[float] = None) -> float:
        ttl = _ttl_seconds(expires_in)
        pipe = self.redis.pipeline(transaction=True)
        if ttl is not None:
            pipe.set(key, 0, ex=ttl, nx=True)
        pipe.incrbyfloat(key, by)
        results = pipe.execute()
        return float(results[-1])
