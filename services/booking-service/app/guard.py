import uuid
from contextlib import asynccontextmanager

from shared.idempotency import acquire_lease, release_lease

from .errors import ConcurrentModificationError
from .logger import logger


class InFlightGuard:
    """
    Per-key try-lock. A command holding a key makes any other command on the
    same key fail immediately instead of waiting. Unrelated keys never contend.
    """

    def __init__(self):
        self._in_flight: set[str] = set()

    def is_held(self, key: str) -> bool:
        return key in self._in_flight

    @asynccontextmanager
    async def hold(self, *keys: str):
        busy = [k for k in keys if k in self._in_flight]
        if busy:
            raise ConcurrentModificationError(
                "Another command is already in flight for this booking", keys=busy
            )
        self._in_flight.update(keys)
        try:
            yield
        finally:
            self._in_flight.difference_update(keys)


class RedisLeaseGuard:
    """
    Networked variant of InFlightGuard. Each key is a Redis lease with an
    expiry, so a crashed holder releases it after ``ttl_seconds``.
    """

    def __init__(self, redis_client, ttl_seconds: int = 30):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    @asynccontextmanager
    async def hold(self, *keys: str):
        token = str(uuid.uuid4())
        acquired: list[str] = []
        try:
            for key in keys:
                if not await acquire_lease(self.redis, key, token, self.ttl_seconds):
                    raise ConcurrentModificationError(
                        "Another command is already in flight for this booking", keys=[key]
                    )
                acquired.append(key)
            yield
        finally:
            for key in acquired:
                if not await release_lease(self.redis, key, token):
                    logger.warning(f"Lease for {key} expired before release")

    async def close(self):
        await self.redis.aclose()
