"""Storage package: blob-store port, in-memory and Redis implementations."""

from projectflow.storage.base import BlobStore, InMemoryBlobStore, StoreMutex
from projectflow.storage.redis import RedisBlobStore, RedisMutex, connect_redis, redis_storage

__all__ = [
    "BlobStore",
    "InMemoryBlobStore",
    "RedisBlobStore",
    "RedisMutex",
    "StoreMutex",
    "connect_redis",
    "redis_storage",
]
