# slotsync/services/sync/sync_lock.py
"""
Single-flight guards for sync runs.

A lock only decides whether a run may start; it is released when the run
ends. Neither implementation blocks while a run is in progress: a second
caller is refused immediately.
"""
import threading
import uuid
from typing import Optional

from slotsync.config.redis import RedisKeys

# Delete the key only if it still holds our token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class InProcessSyncLock:
    """Flag guarded by a thread lock, for a single API process or tests"""

    def __init__(self):
        self._guard = threading.Lock()
        self._running = False

    async def try_acquire(self) -> bool:
        with self._guard:
            if self._running:
                return False
            self._running = True
            return True

    async def release(self) -> None:
        with self._guard:
            self._running = False

    @property
    def held(self) -> bool:
        return self._running


class RedisSyncLock:
    """Marker key shared by every API process and the Celery beat task.

    The TTL bounds how long a crashed run can block new ones.
    """

    def __init__(self, redis_client, ttl_seconds: int, scope: str = "default"):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.key = RedisKeys.CALENDAR_SYNC_LOCK.format(scope=scope)
        self._token: Optional[str] = None

    async def try_acquire(self) -> bool:
        token = uuid.uuid4().hex
        acquired = await self.redis.set(self.key, token, nx=True, ex=self.ttl_seconds)
        if acquired:
            self._token = token
            return True
        return False

    async def release(self) -> None:
        if self._token is None:
            return
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
