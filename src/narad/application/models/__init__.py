"""Pydantic models for sessions, user events and analytics aggregates."""

from narad.application.models.analytics import ActivityRecord, LoginStats, SystemStats
from narad.application.models.events import UserEvent
from narad.application.models.session import LoginMetadata, Session, utc_now, utc_today

__all__ = [
    "ActivityRecord",
    "LoginMetadata",
    "LoginStats",
    "Session",
    "SystemStats",
    "UserEvent",
    "utc_now",
    "utc_today",
]
