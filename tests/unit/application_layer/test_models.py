"""
Unit Tests for Session and Event Models
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from narad.application.models import LoginMetadata, LoginStats, Session, UserEvent


@pytest.mark.unit
class TestSession:
    def test_closed_session_duration_in_milliseconds(self):
        created = datetime(2026, 2, 13, 9, 0, tzinfo=timezone.utc)
        session = Session(session_id="s1", user_id="u1", created_at=created)

        closed = session.closed(at=created + timedelta(seconds=90, milliseconds=250))

        assert closed.is_active is False
        assert closed.session_duration == 90250
        assert closed.logout_at == created + timedelta(seconds=90, milliseconds=250)
        assert session.is_active is True  # original untouched

    def test_duration_never_negative(self):
        created = datetime(2026, 2, 13, 9, 0, tzinfo=timezone.utc)
        session = Session(session_id="s1", user_id="u1", created_at=created)

        assert session.closed(at=created - timedelta(seconds=5)).session_duration == 0

    def test_wire_keys_are_camel_case(self):
        session = Session(session_id="s1", user_id="u1", ip_address="10.0.0.1")
        data = session.model_dump(mode="json", by_alias=True, exclude_none=True)

        assert {"sessionId", "userId", "createdAt", "lastActivityAt", "isActive", "ipAddress"} <= data.keys()


@pytest.mark.unit
class TestUserEvent:
    def test_login_event_message(self):
        event = UserEvent.login("u1", "s1", LoginMetadata(ip_address="10.0.0.1", user_agent="curl"))

        message = event.to_message()

        assert message["type"] == "USER_LOGIN"
        assert message["userId"] == "u1"
        assert message["metadata"] == {"ipAddress": "10.0.0.1", "userAgent": "curl"}
        assert message["timestamp"].endswith("Z")

    def test_events_are_immutable(self):
        event = UserEvent.user_activity("u1", "s1", "click")
        with pytest.raises(ValidationError):
            event.activity = "scroll"

    def test_unknown_fields_are_kept(self):
        event = UserEvent.model_validate({"type": "USER_LOGIN", "userId": "u1", "region": "eu"})
        assert event.model_extra == {"region": "eu"}


@pytest.mark.unit
class TestLoginStats:
    def test_from_hash_tolerates_missing_and_malformed(self):
        stats = LoginStats.from_hash({"totalLogins": "4", "avgSessionTime": "abc"})

        assert stats.total_logins == 4
        assert stats.avg_session_time == 0
        assert stats.completed_sessions == 0
        assert stats.last_login is None
