"""
Serialization Exceptions

Author: System Architect
Date: 2026-02-11
"""

from narad.core.exceptions.base import NaradError


class SerializationError(NaradError):
    """
    Raised when a payload cannot be encoded or decoded.

    Common causes:
    - Object graph contains values orjson cannot encode
    - Cached value is not valid JSON
    - Cached JSON does not match the expected model
    """
    pass
