import json
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from redis.asyncio import Redis

from leadcrm.core.config import settings
from leadcrm.core.constants import TIMESLOT_CACHE_PREFIX

logger = logging.getLogger(__name__)


def day_key(day: date) -> str:
    return f"{TIMESLOT_CACHE_PREFIX}:{day.isoformat()}"


class TimeslotCache:
    """Availability listings of one business date, stored in Redis.

    An entry lives for ``REDIS_CACHE_TTL`` seconds and is dropped whenever
    a seat on its date is reserved or released.  Without a client reads
    miss and writes are skipped.
    """

    def __init__(self, redis_client: Optional[Redis] = None, ttl: Optional[int] = None) -> None:
        self._redis: Optional[Redis] = redis_client
        self._ttl = ttl if ttl is not None else settings.REDIS_CACHE_TTL

    async def get_day(self, day: date) -> Optional[List[Dict[str, Any]]]:
        if self._redis is None:
            return None
        key = day_key(day)
        try:
            raw = await self._redis.get(key)
        except Exception:
            logger.warning("Redis GET failed for key %s", key)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Invalid JSON in cache key %s", key)
            return None

    async def put_day(self, day: date, slots: List[Dict[str, Any]]) -> None:
        if self._redis is None:
            return
        key = day_key(day)
        try:
            await self._redis.setex(key, self._ttl, json.dumps(slots, default=str))
        except Exception:
            logger.warning("Redis SETEX failed for key %s", key)

    async def drop_days(self, days: Iterable[date]) -> None:
        """Forget the listings of *days*."""
        keys = sorted({day_key(day) for day in days})
        if self._redis is None or not keys:
            return
        try:
            await self._redis.delete(*keys)
        except Exception:
            logger.warning("Redis DELETE failed for keys %s", keys)
