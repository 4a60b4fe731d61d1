"""RecordSerializer — UTF-8 JSON roundtrip for typed domain records."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from .exceptions import MessagingSerializationError

T = TypeVar("T", bound=BaseModel)


class RecordSerializer(Generic[T]):
    """Serialize/deserialize domain records to/from envelope payloads.

    The payload is the record's fields as UTF-8 JSON under their aliases
    where the model declares them, with no framing beyond what the broker
    provides. Records are validated on the way out, so a record that violates
    its required-field constraints never reaches the broker.
    """

    def __init__(self, record_type: type[T]) -> None:
        self._record_type = record_type

    @property
    def record_type(self) -> type[T]:
        return self._record_type

    def encode(self, record: T | dict[str, Any]) -> bytes:
        """Encode record (model instance or plain dict) to JSON bytes."""
        try:
            if isinstance(record, BaseModel):
                record = record.model_dump()
            model = self._record_type.model_validate(record)
            return model.model_dump_json(by_alias=True).encode("utf-8")
        except (TypeError, ValueError, AttributeError) as e:
            raise MessagingSerializationError(str(e)) from e

    def decode(self, raw: bytes) -> T:
        """Decode JSON bytes to a validated record."""
        try:
            return self._record_type.model_validate_json(raw)
        except (TypeError, ValueError) as e:
            raise MessagingSerializationError(str(e)) from e
