"""
Coordination Exceptions

Exceptions related to distributed locking.

Author: System Architect
Date: 2026-02-11
"""

from narad.core.exceptions.base import NaradError


class LockError(NaradError):
    """Base exception for distributed lock errors."""
    pass


class LockContentionError(LockError):
    """
    Raised when a resource is already locked by another holder.

    The lock never blocks or retries; the caller decides whether and when
    to try again.
    """
    pass
