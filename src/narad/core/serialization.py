"""
Payload Serialization

orjson-based encode/decode helpers used at the edges of the cache facade and
the broker dispatcher. The facade itself only stores opaque strings; callers
encode before writing and decode after reading through these helpers, which
report failures as SerializationError instead of swallowing them.
"""

from typing import Any, TypeVar

import orjson
from pydantic import BaseModel, ValidationError

from narad.core.exceptions import SerializationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _default(value: Any) -> Any:
    """orjson hook for values it does not encode natively."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def dumps(value: Any) -> str:
    """
    Encode a value as a JSON string.

    Pydantic models, top-level or nested, are dumped by alias in JSON mode so
    the stored document matches the wire schema (camelCase keys, ISO-8601
    timestamps). Datetimes and enums are encoded natively by orjson.

    Raises:
        SerializationError: If the value cannot be encoded
    """
    try:
        return orjson.dumps(value, default=_default).decode("utf-8")
    except TypeError as e:
        raise SerializationError.from_exception(
            e, message=f"Failed to encode payload: {e}", value_type=type(value).__name__
        ) from e


def dumps_bytes(value: Any) -> bytes:
    """Encode a value as JSON bytes (Kafka record values)."""
    return dumps(value).encode("utf-8")


def loads(raw: str | bytes) -> Any:
    """
    Decode a JSON document.

    Raises:
        SerializationError: If raw is not valid JSON
    """
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise SerializationError.from_exception(e, message=f"Failed to decode payload: {e}") from e


def loads_model(raw: str | bytes, model: type[ModelT]) -> ModelT:
    """
    Decode a JSON document into a pydantic model.

    Raises:
        SerializationError: If raw is not valid JSON or does not match the model
    """
    data = loads(raw)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise SerializationError.from_exception(
            e, message=f"Payload does not match {model.__name__}", model=model.__name__
        ) from e


def try_loads(raw: str | bytes | None) -> Any:
    """
    Decode JSON if possible, otherwise return the payload unchanged.

    Bytes that are not JSON are returned as text (undecodable bytes are
    replaced). Used for broker deliveries, where a non-JSON payload is passed
    through to handlers rather than dropped.
    """
    if raw is None:
        return None
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        if isinstance(raw, bytes):
            return raw.decode("utf-8", errors="replace")
        return raw
