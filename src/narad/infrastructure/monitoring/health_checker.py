"""
Health Checker Module

Aggregates backend connection status into the health contract consumed by
the (external) HTTP front end:

    /health       -> check_health()
    /health/ready -> is_ready()
    /health/live  -> is_alive()

Overall status:
    healthy    every backend CONNECTED
    degraded   some backend unavailable, service keeps running (development,
               or only the broker is down)
    unhealthy  cache unavailable in production, or a check itself failed

Author: System Architect
Date: 2026-02-14
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from narad.core.config.constants import ConnectionState
from narad.core.config.settings import Settings
from narad.core.logging.logger import get_logger
from narad.infrastructure.cache import RedisClient
from narad.infrastructure.message_queue import KafkaBroker

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthChecker:
    """
    STAGE-H: Health check orchestration

    Usage:
        checker = HealthChecker(cache, broker, settings)

        report = await checker.check_health()
        ready = await checker.is_ready()
    """

    def __init__(self, cache: RedisClient, broker: KafkaBroker, settings: Settings):
        self._cache = cache
        self._broker = broker
        self._settings = settings

    async def check_health(self) -> dict[str, Any]:
        """
        STAGE-H.1: Aggregated health report
        """
        report = {
            "status": HealthStatus.HEALTHY.value,
            "timestamp": _timestamp(),
            "version": self._settings.APP_VERSION,
            "environment": self._settings.ENVIRONMENT,
            "components": {},
        }

        try:
            cache_health = await self._cache.health_check()
        except Exception as e:
            logger.error("Cache health check failed", stage="H.1", error=str(e))
            cache_health = {"status": "error", "error": str(e)}

        report["components"]["cache"] = cache_health
        report["components"]["broker_producer"] = {"status": self._broker.producer_state.value}
        report["components"]["broker_consumer"] = {"status": self._broker.consumer_state.value}

        report["status"] = self._overall_status(
            cache_ok=cache_health.get("status") == "connected",
            cache_errored=cache_health.get("status") == "error",
            broker_ok=(
                self._broker.producer_state is ConnectionState.CONNECTED
                and self._broker.consumer_state is ConnectionState.CONNECTED
            ),
        ).value

        if report["status"] != HealthStatus.HEALTHY.value:
            logger.warning("Service not fully healthy", stage="H.1", status=report["status"])

        return report

    def _overall_status(self, cache_ok: bool, cache_errored: bool, broker_ok: bool) -> HealthStatus:
        if cache_ok and broker_ok:
            return HealthStatus.HEALTHY
        if cache_errored or (not cache_ok and self._settings.is_production):
            return HealthStatus.UNHEALTHY
        return HealthStatus.DEGRADED

    async def is_ready(self) -> bool:
        """Ready to serve iff the cache answers."""
        health = await self._cache.health_check()
        return health.get("status") == "connected"

    async def is_alive(self) -> bool:
        """The process is running."""
        return True


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
