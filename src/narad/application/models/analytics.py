"""Analytics read models."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from narad.application.models.session import WireModel


class ActivityRecord(BaseModel):
    """Entry of the bounded user:<id>:recent_activity list."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: str
    activity: str
    timestamp: str
    session_id: str


class SystemStats(WireModel):
    date: str
    active_users: int = 0
    total_logins: int = 0


class LoginStats(WireModel):
    """
    Per-user login aggregates kept in the user:<id>:login_stats hash.

    avg_session_time is the running mean (ms) over completed_sessions.
    """

    last_login: str | None = None
    total_logins: int = Field(default=0, ge=0)
    completed_sessions: int = Field(default=0, ge=0)
    avg_session_time: int = Field(default=0, ge=0)

    @classmethod
    def from_hash(cls, raw: dict[str, str]) -> "LoginStats":
        """Parse the stored hash; missing or malformed counters read as 0."""

        def as_int(field: str) -> int:
            try:
                return max(int(raw.get(field, 0)), 0)
            except (TypeError, ValueError):
                return 0

        return cls(
            last_login=raw.get("lastLogin"),
            total_logins=as_int("totalLogins"),
            completed_sessions=as_int("completedSessions"),
            avg_session_time=as_int("avgSessionTime"),
        )
