"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from narad.core.config.constants import ConnectionState
from narad.core.config.settings import Settings
from narad.infrastructure.cache import RedisClient, RedisConnectionManager
from narad.infrastructure.message_queue import KafkaBroker
from tests.test_fixtures import InMemoryRedis

# ============================================================================
# Settings Fixtures
# ============================================================================

FAST_RETRIES = {
    "REDIS_INITIAL_RETRY_TIME_DEV": 0.01,
    "REDIS_INITIAL_RETRY_TIME_PROD": 0.01,
    "KAFKA_INITIAL_RETRY_TIME_DEV": 0.01,
    "KAFKA_INITIAL_RETRY_TIME_PROD": 0.01,
    "RETRY_MAX_DELAY": 0.02,
}


def make_settings(**overrides) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, **{**FAST_RETRIES, **overrides})


@pytest.fixture
def dev_settings():
    return make_settings(ENVIRONMENT="development")


@pytest.fixture
def prod_settings():
    return make_settings(ENVIRONMENT="production")


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest.fixture
def in_memory_redis():
    """
    In-memory Redis client stub for testing.

    Mimics Redis operations using in-memory storage with a manual clock.
    """
    return InMemoryRedis()


@pytest.fixture
async def cache(dev_settings, in_memory_redis):
    """Connected RedisClient backed by the in-memory stub."""
    with patch.object(RedisConnectionManager, "_create_client", return_value=in_memory_redis):
        client = RedisClient(dev_settings)
        await client.connect()
        assert client.state is ConnectionState.CONNECTED
        yield client
        await client.disconnect()


@pytest.fixture
async def degraded_cache(dev_settings):
    """RedisClient that failed to connect in development mode."""
    unreachable = InMemoryRedis()
    unreachable.fail_with = RedisConnectionError("Connection refused")

    with patch.object(RedisConnectionManager, "_create_client", return_value=unreachable):
        client = RedisClient(dev_settings)
        await client.connect()
        assert client.state is ConnectionState.DEGRADED
        yield client


# ============================================================================
# Broker Fixtures
# ============================================================================


@pytest.fixture
def mock_broker():
    """
    Mock KafkaBroker recording published messages.

    publish() succeeds; published[] holds (topic, message) pairs.
    """
    broker = AsyncMock(spec=KafkaBroker)
    broker.published = []

    async def publish(topic, message):
        broker.published.append((topic, message))
        return True

    broker.publish.side_effect = publish
    broker.producer_state = ConnectionState.CONNECTED
    broker.consumer_state = ConnectionState.CONNECTED
    return broker
