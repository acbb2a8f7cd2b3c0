"""
Backend Connection Exceptions

Exceptions raised by the connection managers and by facade operations when a
backend cannot be used.

Author: System Architect
Date: 2026-02-11
"""

from narad.core.exceptions.base import NaradError


class BackendConnectionError(NaradError):
    """
    Raised when a backend is unreachable or a connect attempt timed out.

    In production mode this aborts startup. In development mode the
    connection managers absorb it into the DEGRADED state instead.
    """
    pass


class CacheConnectionError(BackendConnectionError):
    """
    Raised when unable to connect to the cache (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port/TLS configuration
    - Authentication failure
    """
    pass


class BrokerConnectionError(BackendConnectionError):
    """
    Raised when the message broker (Kafka) producer or consumer is unusable.

    Common causes:
    - No reachable bootstrap server
    - SASL/TLS misconfiguration
    - Publishing in production mode while the producer is disconnected
    """
    pass


class OperationSkippedError(NaradError):
    """
    Raised when an operation is intentionally skipped because its backend is
    not connected (degraded mode).

    Facade operations catch this internally and return their empty/failure
    sentinel. It only reaches callers from operations that cannot offer a
    meaningful degraded result, such as running code under a distributed lock.
    """
    pass
