"""Response envelopes, result shapes and body (de)serialization."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Mapping, Protocol

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from .exceptions import DecodeError, error_from_response


class Serializer(Protocol):
    """Converts request bodies to JSON bytes and JSON bytes to typed values."""

    def dumps(self, value: Any) -> bytes: ...

    def loads(self, data: bytes, target: Any) -> Any: ...


@lru_cache(maxsize=128)
def _adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


class PydanticSerializer:
    """Default serializer backed by pydantic.

    Models are dumped by alias with unset optional fields left out, matching
    the field names the storage service expects.
    """

    def dumps(self, value: Any) -> bytes:
        if isinstance(value, BaseModel):
            return value.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
        return _adapter(type(value)).dump_json(value, by_alias=True, exclude_none=True)

    def loads(self, data: bytes, target: Any) -> Any:
        return _adapter(target).validate_json(data)


class ResponseKind(str, enum.Enum):
    JSON = "json"
    BYTES = "bytes"
    EMPTY = "empty"


@dataclass(frozen=True)
class ResultShape:
    """What the caller expects back from a successful response."""

    kind: ResponseKind
    target: Any = Any

    @classmethod
    def json(cls, target: Any = Any) -> "ResultShape":
        return cls(ResponseKind.JSON, target)


RAW_BYTES = ResultShape(ResponseKind.BYTES, bytes)
NO_CONTENT = ResultShape(ResponseKind.EMPTY, None)


@dataclass(frozen=True)
class ResponseEnvelope:
    """Status, headers and body of one attempt."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    raw_body: bytes = b""

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "ResponseEnvelope":
        return cls(response.status_code, dict(response.headers), response.content)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.raw_body.decode("utf-8", errors="replace")


def decode_response(envelope: ResponseEnvelope, shape: ResultShape, serializer: Serializer) -> Any:
    """Return the decoded value or raise the matching typed error.

    Raises
    ------
    ApiError
        For non-2xx statuses, carrying the raw body text
    DecodeError
        When a 2xx JSON body does not parse into ``shape.target``
    """
    if not envelope.is_success:
        raise error_from_response(envelope.status_code, envelope.text)

    if shape.kind is ResponseKind.EMPTY:
        return None
    if shape.kind is ResponseKind.BYTES:
        return envelope.raw_body

    try:
        return serializer.loads(envelope.raw_body, shape.target)
    except (ValidationError, ValueError) as exc:
        raise DecodeError(envelope.status_code, envelope.text, str(exc)) from exc
