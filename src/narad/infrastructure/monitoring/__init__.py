"""Health reporting over the backend connections."""

from narad.infrastructure.monitoring.health_checker import HealthChecker, HealthStatus

__all__ = ["HealthChecker", "HealthStatus"]
