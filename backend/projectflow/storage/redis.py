"""Redis persistence: client factory, prefixed blob store and cross-process mutex.

Every key lives under ``settings.redis_key_prefix``:
- ``{prefix}{storage_key}`` holds the serialized project collection
- ``{prefix}lock:{storage_key}`` is held by whichever worker is mutating it
"""

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
import structlog

from projectflow.core.config import Settings, get_settings
from projectflow.core.exceptions import PersistenceFailure

logger = structlog.get_logger(__name__)


async def connect_redis(settings: Settings | None = None) -> redis.Redis:
    """Open a client for the project store and verify the server answers.

    Raises:
        PersistenceFailure: If Redis cannot be reached
    """
    settings = settings or get_settings()
    client = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    try:
        await client.ping()
    except redis.RedisError as e:
        await client.aclose()
        logger.error("redis_unreachable", url=settings.redis_url, error=str(e), error_type=type(e).__name__)
        raise PersistenceFailure(f"Redis is unreachable: {e}") from e
    logger.info("redis_connected", prefix=settings.redis_key_prefix)
    return client


class RedisBlobStore:
    """Stores each blob as a Redis string under ``{prefix}{key}``.

    Expects a client created with ``decode_responses=True``.
    """

    def __init__(self, client: redis.Redis, prefix: str = "projectflow:"):
        self.client = client
        self.prefix = prefix

    async def load(self, key: str) -> str | None:
        return await self.client.get(f"{self.prefix}{key}")

    async def save(self, key: str, data: str) -> None:
        await self.client.set(f"{self.prefix}{key}", data)


class RedisMutex:
    """Mutex on one Redis key, shared by every worker writing the same blob.

    Acquired with SET NX plus an expiry so a crashed holder cannot block
    the store for longer than ``ttl_seconds``. Released only by its owner.
    """

    def __init__(
        self,
        client: redis.Redis,
        key: str,
        ttl_seconds: int = 30,
        wait_seconds: float = 10.0,
        poll_interval: float = 0.05,
    ):
        self.client = client
        self.key = key
        self.ttl_seconds = ttl_seconds
        self.wait_seconds = wait_seconds
        self.poll_interval = poll_interval

    async def acquire(self, owner: str) -> bool:
        return bool(await self.client.set(self.key, owner, nx=True, ex=self.ttl_seconds))

    async def release(self, owner: str) -> bool:
        if await self.client.get(self.key) != owner:
            logger.warning("store_lock_lost", key=self.key)
            return False
        await self.client.delete(self.key)
        return True

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        """Wait up to ``wait_seconds`` for the mutex and hold it for the block.

        Raises:
            PersistenceFailure: If the mutex is not acquired in time or Redis fails
        """
        owner = str(uuid.uuid4())
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_seconds
        try:
            while not await self.acquire(owner):
                if loop.time() >= deadline:
                    logger.warning("store_lock_timeout", key=self.key, waited_seconds=self.wait_seconds)
                    raise PersistenceFailure("Timed out waiting for the project store lock")
                await asyncio.sleep(self.poll_interval)
        except redis.RedisError as e:
            raise PersistenceFailure(f"Could not lock the project store: {e}") from e

        try:
            yield
        finally:
            await self.release(owner)


def redis_storage(client: redis.Redis, settings: Settings | None = None) -> tuple[RedisBlobStore, RedisMutex]:
    """Blob store and mutex for ``settings.storage_key`` on one client."""
    settings = settings or get_settings()
    prefix = settings.redis_key_prefix
    mutex = RedisMutex(
        client,
        f"{prefix}lock:{settings.storage_key}",
        ttl_seconds=settings.store_lock_ttl_seconds,
        wait_seconds=settings.store_lock_wait_seconds,
    )
    return RedisBlobStore(client, prefix), mutex
