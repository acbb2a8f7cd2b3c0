"""
narad

Resilient service layer over Kafka (publish/subscribe) and Redis (cache,
locks, rate limits) with a development-friendly degraded mode.

Usage:
    from narad import ServiceContainer, Settings

    async with ServiceContainer(Settings()) as services:
        await services.sessions.login("u1")
"""

from narad.application.container import ServiceContainer
from narad.core.config.settings import Settings, get_settings

__version__ = "1.0.0"

__all__ = ["ServiceContainer", "Settings", "get_settings", "__version__"]
