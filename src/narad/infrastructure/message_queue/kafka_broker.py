"""
Kafka Broker Dispatcher

Architecture:
    KafkaBroker (Public API)
        ├── ProducerManager (Producer lifecycle + ConnectionState)
        ├── ConsumerManager (Consumer lifecycle + ConnectionState)
        ├── MessageSerializer (Payload encoding/decoding)
        └── SubscriptionRegistry (topic -> ordered handler list)

Delivery Semantics:
    - publish() encodes every message independently; nothing is sent if any
      message fails to encode
    - One delivery loop per broker; handlers run sequentially per record, so
      order within a partition is preserved. No order across topics/partitions.
    - Payloads are JSON-decoded when possible, otherwise passed through raw
    - A failing handler is logged and skipped for that record only; the loop
      and the other handlers keep running
    - Offsets are auto-committed: a record is handled at most once per
      delivery, but the broker may redeliver after a crash (not deduplicated)

Degraded Mode:
    Producer not CONNECTED:
        development -> log the intended send, report success, no network
        production  -> BrokerConnectionError
    Consumer not CONNECTED:
        development -> handler registered, nothing consumed
        production  -> BrokerConnectionError

Author: System Architect
Date: 2026-02-13
"""

import asyncio
import contextlib
import ssl
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import ConsumerStoppedError, KafkaError
from aiokafka.helpers import create_ssl_context
from pydantic import BaseModel

from narad.core import serialization
from narad.core.config.constants import Backend, ConnectionState
from narad.core.config.settings import Settings
from narad.core.exceptions import BrokerConnectionError
from narad.core.logging.logger import get_logger
from narad.infrastructure.connection import BaseConnectionManager

logger = get_logger(__name__)


@dataclass(frozen=True)
class MessageContext:
    """Where a delivered message came from."""

    topic: str
    partition: int
    offset: int | None = None


MessageHandler = Callable[[Any, MessageContext], Awaitable[None]]


def build_client_options(settings: Settings) -> dict[str, Any]:
    """
    Common aiokafka client options (endpoints, client id, TLS, SASL).

    Development TLS does not verify the broker certificate or hostname, so
    self-signed local clusters work; production TLS verifies both.
    """
    options: dict[str, Any] = {
        "bootstrap_servers": settings.kafka_brokers,
        "client_id": settings.KAFKA_CLIENT_ID,
        "security_protocol": settings.kafka_security_protocol,
    }

    if settings.KAFKA_SSL:
        context = create_ssl_context()
        if settings.is_development:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        options["ssl_context"] = context

    if settings.KAFKA_SASL_USERNAME and settings.KAFKA_SASL_PASSWORD:
        options["sasl_mechanism"] = settings.KAFKA_SASL_MECHANISM.upper()
        options["sasl_plain_username"] = settings.KAFKA_SASL_USERNAME
        options["sasl_plain_password"] = settings.KAFKA_SASL_PASSWORD

    return options


# =============================================================================
# LAYER 1: PRODUCER MANAGEMENT
# =============================================================================


class ProducerManager(BaseConnectionManager[AIOKafkaProducer]):
    """
    Manages the Kafka producer lifecycle.

    Connect Sequence:
    1. Build producer from client options
    2. start() + metadata fetch, each bounded by the profile timeout
    3. Retry per profile, then CONNECTED / DEGRADED / raise
    """

    backend = Backend.BROKER_PRODUCER
    error_cls = BrokerConnectionError
    retry_on = (KafkaError, OSError, asyncio.TimeoutError)

    def __init__(self, settings: Settings):
        self._options = build_client_options(settings)
        super().__init__(
            profile=settings.connection_profile(Backend.BROKER_PRODUCER),
            target=settings.KAFKA_BROKERS,
        )

    def _create_client(self) -> AIOKafkaProducer:
        return AIOKafkaProducer(**self._options)

    async def _open(self, client: AIOKafkaProducer) -> None:
        await client.start()

    async def _probe(self, client: AIOKafkaProducer) -> None:
        await client.client.fetch_all_metadata()

    async def _close(self, client: AIOKafkaProducer) -> None:
        # stop() flushes pending messages
        await client.stop()

    async def send(self, topic: str, values: Sequence[bytes]) -> None:
        """Send encoded values in order and wait for broker acknowledgement."""
        for value in values:
            await self._client.send_and_wait(topic, value)


# =============================================================================
# LAYER 2: CONSUMER MANAGEMENT
# =============================================================================


class ConsumerManager(BaseConnectionManager[AIOKafkaConsumer]):
    """
    Manages the Kafka consumer lifecycle.

    The consumer joins its group with no topics; topics are subscribed as
    handlers are registered. New consumers start from the latest offset.
    """

    backend = Backend.BROKER_CONSUMER
    error_cls = BrokerConnectionError
    retry_on = (KafkaError, OSError, asyncio.TimeoutError)

    def __init__(self, settings: Settings, group_id: str):
        self._options = build_client_options(settings)
        self.group_id = group_id
        super().__init__(
            profile=settings.connection_profile(Backend.BROKER_CONSUMER),
            target=settings.KAFKA_BROKERS,
        )
        self._subscribed: tuple[str, ...] = ()

    def _create_client(self) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            group_id=self.group_id,
            auto_offset_reset="latest",
            enable_auto_commit=True,
            **self._options,
        )

    async def _open(self, client: AIOKafkaConsumer) -> None:
        self._subscribed = ()
        await client.start()

    async def _probe(self, client: AIOKafkaConsumer) -> None:
        await client.topics()

    async def _close(self, client: AIOKafkaConsumer) -> None:
        await client.stop()

    @property
    def subscription(self) -> tuple[str, ...]:
        """Topics the current client is subscribed to."""
        return self._subscribed

    def subscribe(self, topics: list[str]) -> None:
        self._client.subscribe(topics=topics)
        self._subscribed = tuple(topics)

    async def fetch(self, batch_size: int, timeout_ms: int) -> list[tuple[MessageContext, bytes | None]]:
        """
        Fetch a batch of records.

        Records of one partition keep their partition order.
        """
        results = await self._client.getmany(timeout_ms=timeout_ms, max_records=batch_size)

        records = []
        for _tp, partition_records in results.items():
            for record in partition_records:
                ctx = MessageContext(topic=record.topic, partition=record.partition, offset=record.offset)
                records.append((ctx, record.value))
        return records


# =============================================================================
# LAYER 3: MESSAGE SERIALIZATION
# =============================================================================


class MessageSerializer:
    """
    Encodes outgoing messages and decodes deliveries.

    Encoding:
    - Pydantic models are dumped by alias (wire schema keys)
    - Dict messages get an ISO-8601 `timestamp` when they have none
    - orjson encodes; failures raise SerializationError

    Decoding:
    - JSON when possible, else the raw text
    """

    @staticmethod
    def prepare(message: Any) -> Any:
        if isinstance(message, BaseModel):
            message = message.model_dump(mode="json", by_alias=True, exclude_none=True)
        if isinstance(message, dict) and "timestamp" not in message:
            message = {**message, "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}
        return message

    def encode(self, message: Any) -> bytes:
        return serialization.dumps_bytes(self.prepare(message))

    @staticmethod
    def decode(raw: bytes | None) -> Any:
        return serialization.try_loads(raw)


# =============================================================================
# LAYER 4: SUBSCRIPTION REGISTRY
# =============================================================================


class SubscriptionRegistry:
    """
    Explicit topic -> ordered handler list.

    Fan-out order is registration order. Handlers are compared by identity
    on removal.
    """

    def __init__(self):
        self._handlers: dict[str, list[MessageHandler]] = {}

    def add(self, topic: str, handler: MessageHandler) -> bool:
        """Register a handler. Returns True if the topic is new."""
        is_new = topic not in self._handlers
        self._handlers.setdefault(topic, []).append(handler)
        return is_new

    def remove(self, topic: str, handler: MessageHandler) -> bool:
        handlers = self._handlers.get(topic, [])
        for i, registered in enumerate(handlers):
            if registered is handler:
                del handlers[i]
                if not handlers:
                    del self._handlers[topic]
                return True
        return False

    def handlers_for(self, topic: str) -> tuple[MessageHandler, ...]:
        # Snapshot, so registrations during dispatch apply to the next record
        return tuple(self._handlers.get(topic, ()))

    def topics(self) -> list[str]:
        return list(self._handlers)

    def clear(self) -> None:
        self._handlers.clear()


# =============================================================================
# LAYER 5: PUBLIC API
# =============================================================================


class KafkaBroker:
    """
    Publish/subscribe dispatcher over one shared producer and consumer.

    Usage:
        broker = KafkaBroker(settings)
        await broker.connect()

        await broker.publish("user.events", {"type": "USER_LOGIN", "userId": "u1"})
        await broker.subscribe("user.events", handle_event)

        await broker.disconnect()
    """

    def __init__(
        self,
        settings: Settings,
        group_id: str | None = None,
        batch_size: int = 100,
        poll_timeout_ms: int = 1000,
    ):
        self._settings = settings
        self._producer_mgr = ProducerManager(settings)
        self._consumer_mgr = ConsumerManager(settings, group_id or settings.KAFKA_CONSUMER_GROUP)
        self._serializer = MessageSerializer()
        self._registry = SubscriptionRegistry()
        self._batch_size = batch_size
        self._poll_timeout_ms = poll_timeout_ms
        self._loop_task: asyncio.Task | None = None

        logger.info(
            "Kafka broker initialized",
            stage="BROKER.INIT",
            mode=settings.ENVIRONMENT,
            brokers=settings.KAFKA_BROKERS,
            client_id=settings.KAFKA_CLIENT_ID,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect_producer(self) -> None:
        """
        Raises:
            BrokerConnectionError: Connection failed in production mode
        """
        await self._producer_mgr.connect()

    async def connect_consumer(self, group_id: str | None = None) -> None:
        """
        Raises:
            BrokerConnectionError: Connection failed in production mode
        """
        if group_id and not self._consumer_mgr.is_available:
            self._consumer_mgr.group_id = group_id
        await self._consumer_mgr.connect()

        # Handlers registered while degraded are attached once the consumer is up
        if self._consumer_mgr.is_available and self._registry.topics():
            self._sync_subscription()
            self._ensure_loop()

    async def connect(self) -> None:
        await self.connect_producer()
        await self.connect_consumer()

    async def disconnect(self) -> None:
        """
        Stop the delivery loop, the consumer and the producer.

        Idempotent; every step runs even if an earlier one fails.
        """
        task, self._loop_task = self._loop_task, None
        try:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        finally:
            try:
                await self._consumer_mgr.disconnect()
            finally:
                await self._producer_mgr.disconnect()

    @property
    def producer_state(self) -> ConnectionState:
        return self._producer_mgr.state

    @property
    def consumer_state(self) -> ConnectionState:
        return self._consumer_mgr.state

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    def status(self) -> dict[str, Any]:
        return {
            "producer": self._producer_mgr.status(),
            "consumer": self._consumer_mgr.status(),
            "topics": self._registry.topics(),
        }

    # -------------------------------------------------------------------------
    # Publish
    # -------------------------------------------------------------------------

    async def publish(self, topic: str, messages: Any | Sequence[Any]) -> bool:
        """
        Publish one message or a sequence of messages.

        STAGE-BROKER.PUB

        Returns:
            True if sent (or, in development, intentionally skipped);
            False if the send failed in development mode

        Raises:
            SerializationError: A message could not be encoded
            BrokerConnectionError: Producer unusable in production mode
        """
        batch = list(messages) if isinstance(messages, (list, tuple)) else [messages]
        values = [self._serializer.encode(m) for m in batch]

        if not self._producer_mgr.is_available:
            if self._settings.is_production:
                raise BrokerConnectionError(
                    "Kafka producer not connected",
                    details={"topic": topic, "state": self._producer_mgr.state.value},
                )
            logger.info(
                "[DEV] Would send to topic",
                stage="BROKER.PUB.SKIP",
                topic=topic,
                count=len(values),
                messages=[self._serializer.prepare(m) for m in batch],
            )
            return True

        try:
            await self._producer_mgr.send(topic, values)
        except (KafkaError, OSError) as e:
            logger.error("Failed to publish to Kafka", stage="BROKER.PUB.ERR", topic=topic, error=str(e))
            if self._settings.is_production:
                raise BrokerConnectionError.from_exception(
                    e, message=f"Failed to publish to {topic}: {e}", topic=topic
                ) from e
            return False

        logger.debug("Published to Kafka", stage="BROKER.PUB", topic=topic, count=len(values))
        return True

    # -------------------------------------------------------------------------
    # Subscribe
    # -------------------------------------------------------------------------

    async def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """
        Attach a handler to a topic.

        STAGE-BROKER.SUB

        Raises:
            BrokerConnectionError: Consumer unusable in production mode
        """
        if not self._consumer_mgr.is_available:
            if self._settings.is_production:
                raise BrokerConnectionError(
                    "Kafka consumer not connected",
                    details={"topic": topic, "state": self._consumer_mgr.state.value},
                )
            self._registry.add(topic, handler)
            logger.info("[DEV] Would subscribe to topic", stage="BROKER.SUB.SKIP", topic=topic)
            return

        self._registry.add(topic, handler)
        self._sync_subscription()
        self._ensure_loop()

        logger.info("Subscribed to topic", stage="BROKER.SUB", topic=topic)

    def _sync_subscription(self) -> None:
        topics = self._registry.topics()
        if set(self._consumer_mgr.subscription) != set(topics):
            self._consumer_mgr.subscribe(topics)

    def _ensure_loop(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self._consume_loop(), name="narad-kafka-consume")

    def unsubscribe(self, topic: str, handler: MessageHandler) -> bool:
        return self._registry.remove(topic, handler)

    async def _consume_loop(self) -> None:
        """Fetch and dispatch until cancelled."""
        while True:
            try:
                records = await self._consumer_mgr.fetch(self._batch_size, self._poll_timeout_ms)
            except ConsumerStoppedError:
                logger.info("Kafka consumer stopped, delivery loop exiting", stage="BROKER.FETCH.STOP")
                return
            except KafkaError as e:
                logger.error("Kafka fetch failed", stage="BROKER.FETCH.ERR", error=str(e))
                await asyncio.sleep(self._poll_timeout_ms / 1000)
                continue

            for ctx, raw in records:
                await self.dispatch(ctx, raw)

    async def dispatch(self, ctx: MessageContext, raw: bytes | str | None) -> int:
        """
        Deliver one record to every handler registered for its topic.

        Returns:
            Number of handlers that completed without raising
        """
        payload = self._serializer.decode(raw)
        delivered = 0

        for handler in self._registry.handlers_for(ctx.topic):
            try:
                await handler(payload, ctx)
                delivered += 1
            except Exception as e:
                logger.error(
                    "Message handler failed",
                    stage="BROKER.HANDLER.ERR",
                    topic=ctx.topic,
                    partition=ctx.partition,
                    offset=ctx.offset,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                    exc_info=True,
                )

        return delivered
