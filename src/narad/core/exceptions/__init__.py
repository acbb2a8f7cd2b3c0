"""
Exception Module

Structured exception hierarchy for the broker/cache service layer.
Exceptions are organized by theme.

Module Structure:
-----------------
- **base.py**: NaradError base class + ConfigurationError
- **connection.py**: Backend connection and degraded-mode exceptions
- **serialization.py**: Payload encode/decode exceptions
- **coordination.py**: Distributed lock exceptions
- **rate_limit.py**: Rate limiting exceptions
- **session.py**: Session exceptions

Usage:
------
```python
from narad.core.exceptions import CacheConnectionError, SessionNotFoundError
```
"""

# Base exception
from narad.core.exceptions.base import ConfigurationError, NaradError

# Connection exceptions
from narad.core.exceptions.connection import (
    BackendConnectionError,
    BrokerConnectionError,
    CacheConnectionError,
    OperationSkippedError,
)

# Coordination exceptions
from narad.core.exceptions.coordination import LockContentionError, LockError

# Rate limit exceptions
from narad.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError

# Serialization exceptions
from narad.core.exceptions.serialization import SerializationError

# Session exceptions
from narad.core.exceptions.session import SessionError, SessionNotFoundError

__all__ = [
    # Base
    "NaradError",
    "ConfigurationError",
    # Connection
    "BackendConnectionError",
    "CacheConnectionError",
    "BrokerConnectionError",
    "OperationSkippedError",
    # Serialization
    "SerializationError",
    # Coordination
    "LockError",
    "LockContentionError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
    # Session
    "SessionError",
    "SessionNotFoundError",
]
