"""JSON codec for records and resource payloads."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from fragments.errors import CodecError

T = TypeVar("T")


def marshal(record: BaseModel | None) -> str:
    """Serialize a record to compact JSON, omitting unset optional fields."""
    if record is None:
        raise CodecError("record is None")
    try:
        return record.model_dump_json(exclude_none=True)
    except PydanticSerializationError as exc:
        raise CodecError(f"could not marshal {type(record).__name__}") from exc


def unmarshal(raw: str | bytes | None, cls: type[T]) -> T:
    """Parse *raw* JSON into *cls*."""
    if cls is None:
        raise CodecError("target type is None")
    if not raw:
        raise CodecError(f"no data to unmarshal into {getattr(cls, '__name__', cls)}")
    try:
        return TypeAdapter(cls).validate_json(raw)
    except PydanticValidationError as exc:
        raise CodecError(f"could not unmarshal {getattr(cls, '__name__', cls)}") from exc


def to_json_value(payload: Any) -> Any:
    """Convert a payload (model, dict from an SDK, ...) to plain JSON data.

    SDK responses carry ``datetime`` and ``bytes`` values; both are
    rendered the way pydantic renders them in JSON mode.
    """
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", exclude_none=True)
    try:
        return to_jsonable_python(payload)
    except PydanticSerializationError as exc:
        raise CodecError(f"could not marshal {type(payload).__name__}") from exc


def from_json_value(value: Any, cls: type[T]) -> T:
    """Validate plain JSON data into *cls*."""
    try:
        return TypeAdapter(cls).validate_python(value)
    except PydanticValidationError as exc:
        raise CodecError(f"could not unmarshal {getattr(cls, '__name__', cls)}") from exc
