"""Request descriptors and their translation into ``httpx.Request`` objects."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Union

import httpx

from ._multipart import MultipartEncoder

if TYPE_CHECKING:
    from ._decoding import Serializer
    from .config import ClientConfig

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class JsonBody:
    """A request body serialized as UTF-8 JSON."""

    value: Any


@dataclass(frozen=True)
class FilePayload:
    """A file sent as a multipart/form-data upload."""

    path: Path
    field_name: str = "file"
    filename: str | None = None

    def __post_init__(self) -> None:
        if not Path(self.path).is_file():
            raise FileNotFoundError(f"Upload source not found: {self.path}")

    def encoder(self) -> MultipartEncoder:
        return MultipartEncoder(self.path, field_name=self.field_name, filename=self.filename)


RequestBody = Union[JsonBody, FilePayload, None]


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to perform one logical call, independent of transport.

    Query parameters and headers are stored as tuples of pairs so the
    descriptor stays immutable and query order is preserved.
    """

    method: str
    path: str
    query: tuple[tuple[str, str], ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    body: RequestBody = None

    def __post_init__(self) -> None:
        method = self.method.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method!r}")
        object.__setattr__(self, "method", method)
        if not self.path.startswith("/"):
            object.__setattr__(self, "path", "/" + self.path)

    @classmethod
    def create(
        cls,
        method: str,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        file: str | os.PathLike[str] | None = None,
    ) -> "RequestDescriptor":
        """Build a descriptor from plain mappings.

        ``json`` and ``file`` are mutually exclusive. Query values of None are
        dropped; everything else is converted with ``str``.
        """
        if json is not None and file is not None:
            raise ValueError("A request can carry a JSON body or a file, not both")
        body: RequestBody = None
        if json is not None:
            body = JsonBody(json)
        elif file is not None:
            body = FilePayload(Path(file))
        return cls(
            method=method,
            path=path,
            query=tuple((k, str(v)) for k, v in (query or {}).items() if v is not None),
            headers=tuple((headers or {}).items()),
            body=body,
        )

    @property
    def is_upload(self) -> bool:
        return isinstance(self.body, FilePayload)


class RequestBuilder:
    """Turn descriptors into wire-ready requests for one client config."""

    def __init__(self, config: ClientConfig, serializer: Serializer, timeout: httpx.Timeout | None = None):
        self.base = config.base_url.rstrip("/")
        self._timeout = timeout or httpx.Timeout(config.timeout_seconds)
        self._api_key = config.api_key if config.has_api_key else None
        self._serializer = serializer

    def url_for(self, descriptor: RequestDescriptor) -> str:
        return f"{self.base}{descriptor.path}"

    def build(self, descriptor: RequestDescriptor, *, asynchronous: bool = False) -> httpx.Request:
        """Build a fresh request; file bodies are re-opened on every call."""
        # httpx.Headers replaces case variants on assignment, so the SDK's
        # own values are the only ones sent.
        headers = httpx.Headers({"Accept": "application/json"})
        for name, value in descriptor.headers:
            headers[name] = value
        if self._api_key:
            headers["x-api-key"] = self._api_key

        content: Any = None
        body = descriptor.body
        if isinstance(body, JsonBody):
            content = self._serializer.dumps(body.value)
            headers["Content-Type"] = "application/json"
        elif isinstance(body, FilePayload):
            encoder = body.encoder()
            headers.update(encoder.headers)
            content = encoder.aiter_bytes() if asynchronous else encoder.iter_bytes()

        return httpx.Request(
            descriptor.method,
            self.url_for(descriptor),
            params=list(descriptor.query) or None,
            headers=headers,
            content=content,
            extensions={"timeout": self._timeout.as_dict()},
        )
