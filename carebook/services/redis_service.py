# carebook/services/redis_service.py - short-lived cache for available-slot lookups

import json
import logging
from typing import Any, Dict, Optional

import redis

from carebook.config.database import settings
from carebook.config.redis_config import get_redis_client

logger = logging.getLogger("redis")

# Version counters outlive every cached entry they guard
VERSION_TTL_SECONDS = 24 * 60 * 60


class SlotCache:
    """Caches get_available_slots responses per doctor and date.

    Entries are keyed by a per-(doctor, date) version. ``invalidate`` bumps the
    version, so a lookup that read the database before a booking landed writes
    its result under the old version where nobody reads it again.

    Every Redis failure is logged and treated as a miss so bookings never
    depend on the cache being up.
    """

    def __init__(self, client: Optional[Any] = None, ttl: int = 30):
        self.redis_client = client
        self.ttl = ttl

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    def _version_key(self, doctor_id: str, day: str) -> str:
        return f"cache:slots:version:{doctor_id}:{day}"

    def _get_key(self, doctor_id: str, day: str, version: str) -> str:
        return f"cache:slots:{doctor_id}:{day}:v{version}"

    def version(self, doctor_id: str, day: str) -> Optional[str]:
        """Current version token; read it before querying the database"""
        if not self.enabled:
            return None
        try:
            return str(self.redis_client.get(self._version_key(doctor_id, day)) or 0)
        except redis.RedisError as e:
            logger.error(f"❌ Error reading slot cache version: {e}")
            return None

    def get(self, doctor_id: str, day: str, version: Optional[str]) -> Optional[Dict[str, Any]]:
        if version is None:
            return None
        try:
            data = self.redis_client.get(self._get_key(doctor_id, day, version))
            if data:
                logger.debug(f"✓ Slot cache hit: {doctor_id} {day}")
                return json.loads(data)
            return None
        except redis.RedisError as e:
            logger.error(f"❌ Error reading slot cache: {e}")
            return None

    def set(self, doctor_id: str, day: str, version: Optional[str], value: Dict[str, Any]) -> bool:
        if version is None:
            return False
        try:
            self.redis_client.setex(self._get_key(doctor_id, day, version), self.ttl, json.dumps(value, default=str))
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Error writing slot cache: {e}")
            return False

    def invalidate(self, doctor_id: str, day: str) -> bool:
        if not self.enabled:
            return False
        key = self._version_key(doctor_id, day)
        try:
            self.redis_client.incr(key)
            self.redis_client.expire(key, VERSION_TTL_SECONDS)
            return True
        except redis.RedisError as e:
            logger.error(f"❌ Error invalidating slot cache: {e}")
            return False


def build_slot_cache() -> SlotCache:
    if not settings.slot_cache_enabled:
        return SlotCache(client=None)
    return SlotCache(client=get_redis_client(), ttl=settings.slot_cache_ttl_seconds)


slot_cache = build_slot_cache()
