"""
Rate Limiting Exceptions

All exceptions related to rate limiting operations

Author: System Architect
Date: 2026-02-11
"""

from narad.core.exceptions.base import NaradError


class RateLimitError(NaradError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when an identifier has exhausted its quota for the current window.

    details carries:
    - limit: Maximum requests allowed in the window
    - retry_after: Seconds until the window resets
    """
    pass
