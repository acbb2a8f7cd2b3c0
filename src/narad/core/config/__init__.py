"""
Configuration Module

Centralized, type-safe configuration for the broker/cache service layer.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
  and mode-dependent connection profiles
- **constants.py**: Enums (ConnectionState, EventType, ...), topics and the
  Redis key namespace

Usage:
------
```python
from narad.core.config import Settings, get_settings
from narad.core.config.constants import Backend, ConnectionState

settings = Settings(ENVIRONMENT="production")
profile = settings.connection_profile(Backend.CACHE)
```

Environment Variables:
---------------------
```bash
ENVIRONMENT=production
KAFKA_BROKERS=kafka-1:9092,kafka-2:9092
KAFKA_SASL_USERNAME=narad
KAFKA_SASL_PASSWORD=...
REDIS_HOST=redis
REDIS_TLS=true
```
"""

from narad.core.config.constants import Backend, ConnectionState, EventType
from narad.core.config.settings import (
    ConnectionProfile,
    Settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "Backend",
    "ConnectionProfile",
    "ConnectionState",
    "EventType",
    "Settings",
    "get_settings",
    "reload_settings",
]
