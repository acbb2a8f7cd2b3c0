"""
Rate Limiter

Distributed fixed-window rate limiting over the cache facade.

Algorithm (one atomic script per request):
1. INCR rate_limit:<identifier>
2. First request of a window (count == 1) sets EXPIRE <window>
3. count > limit -> rejected, reset_in = remaining TTL
   count <= limit -> allowed, remaining = limit - count

The increment happens before the comparison, so concurrent requests can
never both observe the last free slot. Rejected requests still count,
which keeps a client hammering the limit rejected until the window ends.

Degraded cache: fail open (allowed, logged). Availability of the calling
feature wins over strict limiting while Redis is down.
"""

from dataclasses import dataclass
from typing import Any

from narad.core.config.constants import rate_limit_key
from narad.core.exceptions import RateLimitExceededError
from narad.core.logging.logger import get_logger
from narad.infrastructure.cache import RedisClient

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    identifier: str
    allowed: bool
    count: int
    limit: int
    remaining: int
    reset_in: int

    def to_headers(self) -> dict[str, str]:
        """Conventional X-RateLimit-* headers for the HTTP front end."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_in)
        return headers


class FixedWindowRateLimiter:
    def __init__(self, cache: RedisClient, limit: int = 100, window: int = 3600):
        self._cache = cache
        self._limit = limit
        self._window = window

    async def check(
        self, identifier: str, limit: int | None = None, window: int | None = None
    ) -> RateLimitResult:
        """
        Count one request against `identifier` and decide.

        STAGE-RL.1
        """
        limit = self._limit if limit is None else limit
        window = self._window if window is None else window

        outcome = await self._cache.incr_window(rate_limit_key(identifier), window)
        if outcome is None:
            logger.warning(
                "Rate limiter failing open: cache unavailable",
                stage="RL.1.OPEN",
                identifier=identifier,
                state=self._cache.state.value,
            )
            return RateLimitResult(
                identifier=identifier, allowed=True, count=0, limit=limit, remaining=limit, reset_in=window
            )

        count, ttl = outcome
        reset_in = ttl if ttl > 0 else window

        if count > limit:
            logger.info(
                "Rate limit exceeded",
                stage="RL.1.REJECT",
                identifier=identifier,
                count=count,
                limit=limit,
                reset_in=reset_in,
            )
            return RateLimitResult(
                identifier=identifier, allowed=False, count=count, limit=limit, remaining=0, reset_in=reset_in
            )

        return RateLimitResult(
            identifier=identifier,
            allowed=True,
            count=count,
            limit=limit,
            remaining=limit - count,
            reset_in=reset_in,
        )

    async def enforce(
        self, identifier: str, limit: int | None = None, window: int | None = None
    ) -> RateLimitResult:
        """
        Like check(), but raise when the request is rejected.

        Raises:
            RateLimitExceededError: details carry retry_after and limit
        """
        result = await self.check(identifier, limit, window)
        if not result.allowed:
            raise RateLimitExceededError(
                f"Rate limit exceeded for {identifier}",
                details={
                    "identifier": identifier,
                    "limit": result.limit,
                    "retry_after": result.reset_in,
                },
            )
        return result

    async def reset(self, identifier: str) -> bool:
        """Clear the current window for `identifier`."""
        return await self._cache.delete(rate_limit_key(identifier))

    def status(self) -> dict[str, Any]:
        return {"limit": self._limit, "window": self._window}
