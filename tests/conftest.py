"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
from typing import Callable, List

import httpx
import pytest

from s3clone.sdk import ClientConfig, RequestDispatcher

BASE_URL = "http://storage.test"


class SimulatedServer:
    """Scripted stand-in for the storage service.

    Each request pops the next entry of ``script``; the last entry repeats
    once the script is exhausted. An entry is an ``httpx.Response``, an
    exception instance to raise, or a callable taking the request.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        entry = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(entry, Exception):
            raise entry
        if callable(entry):
            return entry(request)
        return entry

    @property
    def attempts(self) -> int:
        return len(self.requests)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def json_response(status_code: int, payload) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(), headers={"Content-Type": "application/json"})


def parse_single_part(request: httpx.Request) -> tuple[str, bytes]:
    """Split a single-part multipart body into its header block and payload."""
    boundary = request.headers["content-type"].split("boundary=", 1)[1]
    body = request.content
    opening = f"--{boundary}\r\n".encode()
    closing = f"\r\n--{boundary}--\r\n".encode()
    assert body.startswith(opening)
    assert body.endswith(closing)
    head, _, payload = body[len(opening) : -len(closing)].partition(b"\r\n\r\n")
    return head.decode("utf-8"), payload


@pytest.fixture
def config():
    """Client configuration pointing at the simulated server."""
    return ClientConfig(base_url=BASE_URL, api_key="test-key", timeout_seconds=5)


@pytest.fixture
def make_dispatcher(config) -> Callable[..., RequestDispatcher]:
    """Factory for dispatchers wired to a simulated server."""
    created: List[RequestDispatcher] = []

    def factory(server: SimulatedServer, *, cfg: ClientConfig | None = None, **options) -> RequestDispatcher:
        transport = server.transport()
        dispatcher = RequestDispatcher(
            cfg or config, transport=transport, async_transport=transport, **options
        )
        created.append(dispatcher)
        return dispatcher

    yield factory
    for dispatcher in created:
        dispatcher.close()


@pytest.fixture
def recorded_sleeps(monkeypatch):
    """Replace backoff sleeps of a dispatcher with recorders."""

    def install(dispatcher: RequestDispatcher) -> List[float]:
        delays: List[float] = []

        async def asleep(seconds: float) -> None:
            delays.append(seconds)

        monkeypatch.setattr(dispatcher._pool, "sleep", delays.append)
        monkeypatch.setattr(dispatcher._pool, "asleep", asleep)
        return delays

    return install


@pytest.fixture
def binary_file(tmp_path):
    """A 10-byte file containing CR/LF, NUL and non-UTF-8 bytes."""
    path = tmp_path / "blob.bin"
    path.write_bytes(b"\x00\x01\r\n\xff\xfe--\x7f\x80")
    return path
