"""
Message Queue Infrastructure

Kafka-backed publish/subscribe dispatcher with degraded-mode semantics.
"""

from narad.infrastructure.message_queue.kafka_broker import (
    ConsumerManager,
    KafkaBroker,
    MessageContext,
    MessageHandler,
    MessageSerializer,
    ProducerManager,
    SubscriptionRegistry,
)

__all__ = [
    "ConsumerManager",
    "KafkaBroker",
    "MessageContext",
    "MessageHandler",
    "MessageSerializer",
    "ProducerManager",
    "SubscriptionRegistry",
]
