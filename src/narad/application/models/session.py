"""
Session Models

Sessions are stored JSON-encoded under session:<sessionId> using the camelCase
wire keys, so documents written by other services on the same namespace stay
readable.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> str:
    """Calendar date (UTC) used in daily stats keys, e.g. 2026-02-13."""
    return utc_now().strftime("%Y-%m-%d")


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginMetadata(WireModel):
    """Client details captured at login."""

    ip_address: str | None = None
    user_agent: str | None = None


class Session(WireModel):
    """
    A user session.

    Lifecycle: created on login (active), refreshed by activity, closed by
    logout (inactive, short TTL) or expired by TTL.
    """

    session_id: str
    user_id: str
    created_at: datetime = Field(default_factory=utc_now)
    last_activity_at: datetime = Field(default_factory=utc_now)
    is_active: bool = True
    ip_address: str | None = None
    user_agent: str | None = None
    logout_at: datetime | None = None
    session_duration: int | None = Field(default=None, ge=0, description="Milliseconds")

    def touched(self, at: datetime | None = None) -> "Session":
        return self.model_copy(update={"last_activity_at": at or utc_now()})

    def closed(self, at: datetime | None = None) -> "Session":
        """Inactive copy with logoutAt and a non-negative sessionDuration (ms)."""
        at = at or utc_now()
        duration_ms = int((at - self.created_at).total_seconds() * 1000)
        return self.model_copy(
            update={
                "is_active": False,
                "logout_at": at,
                "session_duration": max(duration_ms, 0),
            }
        )
