"""
System Constants and Enumerations

This module defines system-wide constants and enumerations shared by the
connection managers, the cache facade, the broker dispatcher and the
session/analytics engine.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for key namespaces and topic names
- Type-safe enums for connection and event state
- Key builders keep the cache namespace compatible with existing deployments

Author: System Architect
Date: 2026-02-11
"""

from enum import Enum

# ============================================================================
# Connection State
# ============================================================================


class ConnectionState(str, Enum):
    """
    Connection state of a single backend connection.

    DISCONNECTED: No client, or client released
    CONNECTING: Connect attempt in flight
    CONNECTED: Liveness probe succeeded, operations go to the backend
    DEGRADED: Connect failed in development mode, operations are no-op'd
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"


class Backend(str, Enum):
    """Backends whose connections are managed by this service layer."""

    CACHE = "cache"
    BROKER_PRODUCER = "broker_producer"
    BROKER_CONSUMER = "broker_consumer"


class Environment(str, Enum):
    """Recognized runtime modes."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


# ============================================================================
# Domain Events
# ============================================================================


class EventType(str, Enum):
    """Event types published on the user events topic."""

    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    USER_ACTIVITY = "USER_ACTIVITY"


class RealtimeEventType(str, Enum):
    """Event types published by realtime channels."""

    HEARTBEAT = "heartbeat"
    USER_MESSAGE = "user-message"


# ============================================================================
# Topics
# ============================================================================

TOPIC_USER_EVENTS = "user.events"
TOPIC_WEBSOCKET = "websocket"

# ============================================================================
# Session / Activity Limits
# ============================================================================

SESSION_TTL_SECONDS = 86400  # 24 hours
POST_LOGOUT_TTL_SECONDS = 3600  # Keep closed sessions for 1 hour
RECENT_ACTIVITY_MAX_ENTRIES = 50
RECENT_ACTIVITY_TTL_SECONDS = 86400
STATS_RETENTION_DAYS = 30
API_RESPONSE_TTL_SECONDS = 300
ROOM_HISTORY_MAX_ENTRIES = 100

# ============================================================================
# Redis Key Prefixes
# ============================================================================

REDIS_KEY_SESSION = "session"
REDIS_KEY_USER = "user"
REDIS_KEY_DAILY_ACTIVE_USERS = "daily_active_users"
REDIS_KEY_LOGIN_COUNT = "login_count"
REDIS_KEY_ACTIVITY_COUNT = "activity_count"
REDIS_KEY_LOCK = "lock"
REDIS_KEY_RATE_LIMIT = "rate_limit"
REDIS_KEY_API_RESPONSE = "api"
REDIS_KEY_ROOM = "websocket"


def session_key(session_id: str) -> str:
    return f"{REDIS_KEY_SESSION}:{session_id}"


def active_session_key(user_id: str) -> str:
    return f"{REDIS_KEY_USER}:{user_id}:active_session"


def recent_activity_key(user_id: str) -> str:
    return f"{REDIS_KEY_USER}:{user_id}:recent_activity"


def login_stats_key(user_id: str) -> str:
    return f"{REDIS_KEY_USER}:{user_id}:login_stats"


def daily_active_users_key(date: str) -> str:
    return f"{REDIS_KEY_DAILY_ACTIVE_USERS}:{date}"


def login_count_key(date: str) -> str:
    return f"{REDIS_KEY_LOGIN_COUNT}:{date}"


def activity_count_key(date: str, activity: str) -> str:
    return f"{REDIS_KEY_ACTIVITY_COUNT}:{date}:{activity}"


def lock_key(resource: str) -> str:
    return f"{REDIS_KEY_LOCK}:{resource}"


def rate_limit_key(identifier: str) -> str:
    return f"{REDIS_KEY_RATE_LIMIT}:{identifier}"


def api_response_key(endpoint: str) -> str:
    return f"{REDIS_KEY_API_RESPONSE}:{endpoint}"


def user_preferences_key(user_id: str) -> str:
    return f"{REDIS_KEY_USER}:{user_id}:prefs"


def room_messages_key(room_id: str) -> str:
    return f"{REDIS_KEY_ROOM}:{room_id}:messages"
