"""
Backend Connection Lifecycle

Architecture:
    BaseConnectionManager (state machine + retry policy)
        ├── RedisConnectionManager   (infrastructure.cache.redis_client)
        ├── ProducerManager          (infrastructure.message_queue.kafka_broker)
        └── ConsumerManager          (infrastructure.message_queue.kafka_broker)

State Machine:
    DISCONNECTED ──connect()──> CONNECTING ──probe ok──> CONNECTED
                                     │
                                     ├─ failure, development ──> DEGRADED
                                     └─ failure, production ───> DISCONNECTED (+ raise)
    any state ──disconnect()──> DISCONNECTED

Only the manager mutates its state. Facades read `state` / `is_available`
before every operation and never touch the client otherwise.

Author: System Architect
Date: 2026-02-12
"""

import asyncio
from typing import Any, Generic, TypeVar

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from narad.core.config.constants import Backend, ConnectionState
from narad.core.config.settings import ConnectionProfile
from narad.core.exceptions import BackendConnectionError
from narad.core.logging.logger import get_logger

logger = get_logger(__name__)

ClientT = TypeVar("ClientT")


class BaseConnectionManager(Generic[ClientT]):
    """
    Owns one backend client and its ConnectionState.

    Subclasses provide:
    - _create_client(): build an unconnected client
    - _open(client): start/connect the client
    - _probe(client): liveness check after open (ping or equivalent)
    - _close(client): release the client

    Connect Policy:
    - Each attempt (open + probe) races a timer of profile.timeout seconds
    - Attempts are retried with exponential backoff + jitter (tenacity)
    - After the last attempt: DEGRADED (development) or raise (production)
    """

    backend: Backend
    error_cls: type[BackendConnectionError] = BackendConnectionError

    # Failures that count as "backend unreachable" (retried, then degraded/raised)
    retry_on: tuple[type[BaseException], ...] = (OSError, asyncio.TimeoutError)

    def __init__(self, profile: ConnectionProfile, target: str):
        """
        Args:
            profile: Mode-dependent timeout/retry policy
            target: Human-readable endpoint description for logs
        """
        self._profile = profile
        self._target = target
        self._client: ClientT | None = None
        self._state = ConnectionState.DISCONNECTED
        self._last_error: str | None = None
        self._connect_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_available(self) -> bool:
        """True when operations may be sent to the backend."""
        return self._state is ConnectionState.CONNECTED and self._client is not None

    @property
    def client(self) -> ClientT | None:
        return self._client

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def profile(self) -> ConnectionProfile:
        return self._profile

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> ClientT | None:
        """
        Establish the backend connection.

        STAGE-CONN.1: Connection establishment

        Returns:
            The connected client, or None when the manager entered DEGRADED

        Raises:
            BackendConnectionError: Connection failed in production mode
        """
        # Serialized so concurrent callers never install two clients
        async with self._connect_lock:
            if self.is_available:
                return self._client
            return await self._connect()

    async def _connect(self) -> ClientT | None:
        self._state = ConnectionState.CONNECTING
        logger.info(
            "Connecting to backend",
            stage="CONN.1",
            backend=self.backend.value,
            target=self._target,
            timeout=self._profile.timeout,
            attempts=self._profile.attempts,
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._profile.attempts),
                wait=wait_exponential_jitter(
                    initial=self._profile.initial_backoff, max=self._profile.max_backoff
                ),
                retry=retry_if_exception_type(self.retry_on),
                reraise=True,
                before_sleep=lambda retry_state: logger.warning(
                    "Backend connect attempt failed, retrying",
                    stage="CONN.RETRY",
                    backend=self.backend.value,
                    attempt=retry_state.attempt_number,
                    delay=round(retry_state.idle_for, 3),
                    error=str(retry_state.outcome.exception()),
                ),
            ):
                with attempt:
                    await self._attempt()

        except self.retry_on as e:
            return self._handle_connect_failure(e)

        except BaseException:
            # Unexpected errors and cancellation leave no half-open client behind
            self._state = ConnectionState.DISCONNECTED
            raise

        self._last_error = None
        logger.info(
            "Backend connected",
            stage="CONN.2",
            backend=self.backend.value,
            target=self._target,
        )
        return self._client

    async def _attempt(self) -> None:
        """Single connect attempt: open + probe, both bounded by the profile timeout."""
        client = self._create_client()
        try:
            await asyncio.wait_for(self._open(client), timeout=self._profile.timeout)
            await asyncio.wait_for(self._probe(client), timeout=self._profile.timeout)
        except BaseException:
            await self._safe_close(client)
            raise

        self._client = client
        self._state = ConnectionState.CONNECTED

    def _handle_connect_failure(self, error: BaseException) -> None:
        """Apply the degraded-mode policy after the last failed attempt."""
        self._client = None
        self._last_error = str(error) or error.__class__.__name__

        if self._profile.fail_fast:
            self._state = ConnectionState.DISCONNECTED
            logger.error(
                "Backend connection failed",
                stage="CONN.ERR",
                backend=self.backend.value,
                target=self._target,
                error=self._last_error,
            )
            raise self.error_cls.from_exception(
                error,
                message=f"Failed to connect to {self.backend.value} at {self._target}: {self._last_error}",
                backend=self.backend.value,
                target=self._target,
                attempts=self._profile.attempts,
            ) from error

        self._state = ConnectionState.DEGRADED
        logger.warning(
            "Backend unavailable, continuing in degraded mode",
            stage="CONN.DEGRADED",
            backend=self.backend.value,
            target=self._target,
            error=self._last_error,
        )
        return None

    async def disconnect(self) -> None:
        """
        Release the backend connection.

        STAGE-CONN.3: Connection cleanup

        Idempotent, safe when never connected or after a failed connect.
        The state is DISCONNECTED afterwards whatever happens while closing.
        """
        client, self._client = self._client, None
        try:
            if client is not None:
                await self._safe_close(client)
                logger.info("Backend disconnected", stage="CONN.3", backend=self.backend.value)
        finally:
            self._state = ConnectionState.DISCONNECTED

    async def _safe_close(self, client: ClientT) -> None:
        try:
            await self._close(client)
        except Exception as e:
            logger.warning(
                "Error while closing backend client",
                stage="CONN.CLOSE",
                backend=self.backend.value,
                error=str(e),
            )

    def status(self) -> dict[str, Any]:
        """Snapshot of the connection for health reporting."""
        return {
            "backend": self.backend.value,
            "state": self._state.value,
            "target": self._target,
            "last_error": self._last_error,
        }

    # -------------------------------------------------------------------------
    # Backend hooks
    # -------------------------------------------------------------------------

    def _create_client(self) -> ClientT:
        raise NotImplementedError

    async def _open(self, client: ClientT) -> None:
        raise NotImplementedError

    async def _probe(self, client: ClientT) -> None:
        raise NotImplementedError

    async def _close(self, client: ClientT) -> None:
        raise NotImplementedError
