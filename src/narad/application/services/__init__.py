"""Session write path, analytics consumer and cache-backed stores."""

from narad.application.services.analytics_service import AnalyticsService
from narad.application.services.data_store import ResponseCache, RoomHistory, UserPreferences
from narad.application.services.session_service import SessionService

__all__ = ["AnalyticsService", "ResponseCache", "RoomHistory", "SessionService", "UserPreferences"]
