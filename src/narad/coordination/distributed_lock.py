"""
Distributed Lock

Single-holder lock over the cache facade.

Algorithm:
    acquire: SET lock:<resource> <token> NX EX <ttl>
    release: compare-and-delete (Lua) so a holder whose lock expired and was
             re-acquired by someone else cannot delete the new holder's lock

Properties:
    - Never blocks and never retries; contention is reported immediately
    - The TTL bounds how long a crashed holder can keep the resource
    - Not fenced: a holder that outlives its TTL may overlap with the next
      holder. Pick a TTL well above the critical section's duration.

Author: System Architect
Date: 2026-02-13
"""

import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TypeVar

from narad.core.config.constants import lock_key
from narad.core.exceptions import LockContentionError, OperationSkippedError
from narad.core.logging.logger import get_logger
from narad.infrastructure.cache import RedisClient

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LockHandle:
    """Proof of ownership returned by a successful acquire."""

    resource: str
    token: str
    ttl: int


class DistributedLock:
    """
    Usage:
        lock = DistributedLock(cache)

        token = await lock.acquire("report:daily", ttl=30)
        if token:
            try:
                ...
            finally:
                await lock.release("report:daily", token)

        async with lock.hold("report:daily") as handle:
            ...

        result = await lock.with_lock("report:daily", 30, build_report)
    """

    def __init__(self, cache: RedisClient, default_ttl: int = 30):
        self._cache = cache
        self._default_ttl = default_ttl

    async def acquire(self, resource: str, ttl: int | None = None) -> str | None:
        """
        Try to take the lock once.

        STAGE-LOCK.1

        Returns:
            The ownership token, or None if held by someone else (or the
            cache is unavailable)
        """
        ttl = self._default_ttl if ttl is None else ttl
        token = uuid.uuid4().hex

        acquired = await self._cache.set(lock_key(resource), token, ttl=ttl, nx=True)
        if not acquired:
            logger.debug("Lock not acquired", stage="LOCK.1", resource=resource)
            return None

        logger.debug("Lock acquired", stage="LOCK.1", resource=resource, ttl=ttl)
        return token

    async def release(self, resource: str, token: str) -> bool:
        """
        Release the lock if `token` still owns it.

        STAGE-LOCK.2

        Returns:
            True if this token's lock was deleted; False if it had expired,
            is owned by another token, or the cache is unavailable
        """
        released = await self._cache.delete_if_equals(lock_key(resource), token)
        if not released:
            logger.warning("Lock release skipped: not the owner", stage="LOCK.2", resource=resource)
        return released

    @asynccontextmanager
    async def hold(self, resource: str, ttl: int | None = None) -> AsyncIterator[LockHandle]:
        """
        Hold the lock for the duration of the block.

        Raises:
            OperationSkippedError: Cache not connected, exclusion cannot be provided
            LockContentionError: Resource already locked
        """
        ttl = self._default_ttl if ttl is None else ttl

        if not self._cache.is_available:
            raise OperationSkippedError(
                f"Cannot lock {resource}: cache not connected",
                details={"resource": resource, "state": self._cache.state.value},
            )

        token = await self.acquire(resource, ttl)
        if token is None:
            raise LockContentionError(
                f"Resource {resource} is locked", details={"resource": resource, "ttl": ttl}
            )

        try:
            yield LockHandle(resource=resource, token=token, ttl=ttl)
        finally:
            await self.release(resource, token)

    async def with_lock(
        self, resource: str, ttl: int | None, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """
        Run `operation` while holding the lock; the lock is released on every
        exit path and the operation's result or exception is passed through.
        """
        async with self.hold(resource, ttl):
            return await operation()
