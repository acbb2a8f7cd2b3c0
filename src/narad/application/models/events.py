"""
Event Models

Flat JSON documents published on the user events topic:

    {"type": "USER_LOGIN", "userId": "u1", "sessionId": "...",
     "timestamp": "2026-02-13T09:30:00Z", "metadata": {...}}

Events are immutable once built. Unknown fields are kept (extra="allow") so
newer producers do not break older consumers.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from narad.application.models.session import LoginMetadata, utc_now
from narad.core.config.constants import EventType


class UserEvent(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow"
    )

    type: str
    user_id: str | None = None
    session_id: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)

    # USER_LOGIN
    metadata: LoginMetadata | None = None
    # USER_LOGOUT
    session_duration: int | None = Field(default=None, ge=0)
    # USER_ACTIVITY
    activity: str | None = None

    @classmethod
    def login(cls, user_id: str, session_id: str, metadata: LoginMetadata) -> "UserEvent":
        return cls(
            type=EventType.USER_LOGIN.value, user_id=user_id, session_id=session_id, metadata=metadata
        )

    @classmethod
    def logout(cls, user_id: str, session_id: str, session_duration: int) -> "UserEvent":
        return cls(
            type=EventType.USER_LOGOUT.value,
            user_id=user_id,
            session_id=session_id,
            session_duration=session_duration,
        )

    @classmethod
    def user_activity(cls, user_id: str, session_id: str, activity: str) -> "UserEvent":
        return cls(
            type=EventType.USER_ACTIVITY.value, user_id=user_id, session_id=session_id, activity=activity
        )

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
