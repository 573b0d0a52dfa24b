"""BlobStore Protocol: the persistence port behind ProjectStore.

The store persists its whole collection as one serialized blob under one
key. Implementations only need to load and save opaque strings.
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStore(Protocol):
    """Key-value port holding serialized blobs."""

    async def load(self, key: str) -> str | None:
        """Return the blob stored under ``key``, or None when absent."""
        ...

    async def save(self, key: str, data: str) -> None:
        """Replace the blob stored under ``key``."""
        ...


class InMemoryBlobStore:
    """Dict-backed BlobStore for local development.

    Holds only the latest blob per key; everything is lost on restart.
    """

    def __init__(self, initial: dict[str, str] | None = None):
        self._blobs: dict[str, str] = dict(initial or {})

    async def load(self, key: str) -> str | None:
        return self._blobs.get(key)

    async def save(self, key: str, data: str) -> None:
        self._blobs[key] = data


@runtime_checkable
class StoreMutex(Protocol):
    """Mutual exclusion shared by every process writing the same blob."""

    def hold(self) -> AbstractAsyncContextManager[None]:
        """Context manager held for the duration of one mutation."""
        ...
