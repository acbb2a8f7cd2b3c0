"""
Service Container

Builds every component from one Settings instance and owns start/stop
ordering. The front end (HTTP routes, WebSocket handler) receives the
container, or individual services from it, instead of importing module-level
singletons.

Startup:
    1. Logging
    2. Cache connect        (production: raises on failure)
    3. Producer connect     (production: raises on failure)
    4. Consumer connect     (production: raises on failure)
    5. Analytics subscribes to the user events topic

Shutdown (reverse, every step runs):
    broker (loop, consumer, producer) -> cache

Author: System Architect
Date: 2026-02-14
"""

from collections.abc import Awaitable, Callable

from narad.application.services import (
    AnalyticsService,
    ResponseCache,
    RoomHistory,
    SessionService,
    UserPreferences,
)
from narad.coordination import DistributedLock, FixedWindowRateLimiter
from narad.core.config.settings import Settings
from narad.core.logging.logger import get_logger, setup_logging
from narad.infrastructure.cache import RedisClient
from narad.infrastructure.message_queue import KafkaBroker
from narad.infrastructure.monitoring import HealthChecker
from narad.realtime import RealtimeChannel

logger = get_logger(__name__)


class ServiceContainer:
    """
    Usage:
        async with ServiceContainer(Settings()) as services:
            session_id = await services.sessions.login("u1", {"ipAddress": "10.0.0.1"})
            health = await services.health.check_health()
    """

    def __init__(self, settings: Settings, configure_logging: bool = True):
        self.settings = settings
        self._configure_logging = configure_logging
        self._started = False

        self.cache = RedisClient(settings)
        self.broker = KafkaBroker(settings)

        self.lock = DistributedLock(self.cache, default_ttl=settings.LOCK_DEFAULT_TTL)
        self.rate_limiter = FixedWindowRateLimiter(
            self.cache, limit=settings.RATE_LIMIT_DEFAULT, window=settings.RATE_LIMIT_WINDOW
        )

        self.sessions = SessionService(self.cache, self.broker, settings)
        self.analytics = AnalyticsService(self.cache, self.broker, settings)
        self.health = HealthChecker(self.cache, self.broker, settings)

        self.responses = ResponseCache(self.cache)
        self.preferences = UserPreferences(self.cache)
        self.room_history = RoomHistory(self.cache)

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """
        Connect backends and start consumers.

        Raises:
            BackendConnectionError: A backend failed to connect in production mode
        """
        if self._started:
            return

        if self._configure_logging:
            setup_logging(log_level=self.settings.log_level, log_format=self.settings.log_format)

        logger.info(
            "Starting service layer",
            stage="APP.START",
            app=self.settings.APP_NAME,
            environment=self.settings.ENVIRONMENT,
            version=self.settings.APP_VERSION,
        )

        try:
            await self.cache.connect()
            await self.broker.connect_producer()
            await self.broker.connect_consumer()
            await self.analytics.start()
        except BaseException:
            logger.error("Service layer startup failed", stage="APP.START.ERR")
            await self.stop()
            raise

        self._started = True
        logger.info(
            "Service layer started",
            stage="APP.READY",
            cache=self.cache.state.value,
            producer=self.broker.producer_state.value,
            consumer=self.broker.consumer_state.value,
        )

    async def stop(self) -> None:
        logger.info("Stopping service layer", stage="APP.STOP")
        try:
            await self.broker.disconnect()
        finally:
            await self.cache.disconnect()
            self._started = False

    def realtime_channel(self, send: Callable[[str], Awaitable[None]]) -> RealtimeChannel:
        """Channel for one realtime connection, publishing to the websocket topic."""
        return RealtimeChannel(
            send,
            self.broker,
            interval=self.settings.HEARTBEAT_INTERVAL,
            topic=self.settings.WEBSOCKET_TOPIC,
        )

    async def __aenter__(self) -> "ServiceContainer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
