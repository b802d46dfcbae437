"""
antiflood.py — антифлуд для входящих событий: скользящее окно в in-memory TTLCache.

Ключи в логах хешируются; TTLCache сам вычищает неактивных пользователей.
"""

import asyncio
import hashlib
import time
from typing import Any, Optional

import structlog
from cachetools import TTLCache

logger = structlog.get_logger("scenario_bot.antiflood")


class InMemoryFloodControl:
    def __init__(self, rate_limit: int = 5, interval_sec: float = 10, max_size: int = 10000):
        self.rate_limit = rate_limit
        self.interval_sec = interval_sec
        self._cache = TTLCache(maxsize=max_size, ttl=interval_sec * 2)
        self._lock = asyncio.Lock()

    def _user_hash(self, user_id: Any) -> str:
        return hashlib.sha3_256(str(user_id).encode()).hexdigest()[:16]

    async def is_flooding(self, user_id: Any, now: Optional[float] = None) -> bool:
        now = now if now is not None else time.monotonic()
        async with self._lock:
            timestamps = self._cache.get(user_id, [])
            timestamps = [t for t in timestamps if now - t < self.interval_sec]
            timestamps.append(now)
            self._cache[user_id] = timestamps
            if len(timestamps) > self.rate_limit:
                logger.info("antiflood_limit", user_hash=self._user_hash(user_id), count=len(timestamps))
                return True
            return False


class AntiFloodMiddleware:
    """Обёртка для хендлеров; rate_limit <= 0 отключает проверку."""

    def __init__(self, rate_limit: int = 5, interval_sec: float = 10, backend=None):
        self.enabled = rate_limit > 0
        self.backend = backend or InMemoryFloodControl(rate_limit, interval_sec)

    async def is_limited(self, user_id: Any) -> bool:
        if not self.enabled:
            return False
        return await self.backend.is_flooding(user_id)
