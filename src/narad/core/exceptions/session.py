"""
Session Exceptions

Author: System Architect
Date: 2026-02-11
"""

from narad.core.exceptions.base import NaradError


class SessionError(NaradError):
    """Base exception for session errors."""
    pass


class SessionNotFoundError(SessionError):
    """Raised when a session does not exist or has expired."""
    pass
