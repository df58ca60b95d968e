import os
import logging
import redis
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class RedisConfig:
    """Connection settings for the available-slot cache.

    REDIS_URL wins when set; otherwise host/port/db are read separately.
    Timeouts are short because a slow cache must never hold up a booking.
    """

    def __init__(self):
        self.url = os.getenv("REDIS_URL")
        self.host = os.getenv("REDIS_HOST", "localhost")
        self.port = int(os.getenv("REDIS_PORT", 6379))
        self.password = os.getenv("REDIS_PASSWORD") or None
        self.db = int(os.getenv("REDIS_DB", 0))
        self.max_connections = int(os.getenv("REDIS_MAX_CONNECTIONS", 10))
        self.socket_timeout = float(os.getenv("REDIS_SOCKET_TIMEOUT", 0.5))

        self._pool: Optional[redis.ConnectionPool] = None

    def _build_pool(self) -> redis.ConnectionPool:
        options = {
            "max_connections": self.max_connections,
            "socket_timeout": self.socket_timeout,
            "socket_connect_timeout": self.socket_timeout,
            "decode_responses": True,
        }
        if self.url:
            return redis.ConnectionPool.from_url(self.url, **options)
        return redis.ConnectionPool(host=self.host, port=self.port, password=self.password, db=self.db, **options)

    def client(self) -> redis.Redis:
        if self._pool is None:
            self._pool = self._build_pool()
        return redis.Redis(connection_pool=self._pool)

    def reachable(self) -> bool:
        """Ping once; used at startup to decide whether slot caching is on"""
        try:
            self.client().ping()
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis unreachable, slot cache disabled: {e}")
            return False

    def close(self):
        if self._pool is not None:
            self._pool.disconnect()
            self._pool = None


redis_config = RedisConfig()


def get_redis_client() -> Optional[redis.Redis]:
    """Client for the slot cache, or None when Redis cannot be reached"""
    if not redis_config.reachable():
        return None
    return redis_config.client()
