"""Internal HTTP dispatcher for the s3clone SDK.

This module routes every SDK call through one place: requests are built
from descriptors, sent on a leased pooled connection, decoded, and retried
with bounded exponential backoff when the failure is transient. The same
dispatcher serves blocking callers (:meth:`RequestDispatcher.execute`) and
asyncio callers (:meth:`RequestDispatcher.aexecute`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from ._decoding import (
    PydanticSerializer,
    ResponseEnvelope,
    ResultShape,
    Serializer,
    decode_response,
)
from ._pool import ConnectionPool, PoolStats
from ._request import RequestBuilder, RequestDescriptor
from ._retry import RetryPolicy, RetryState
from .config import ClientConfig
from .exceptions import (
    ClientClosedError,
    ConnectionError,
    TransportError,
    TransportTimeoutError,
)

logger = logging.getLogger(__name__)


@dataclass
class TimeoutConfig:
    """Configuration for HTTP request timeouts."""

    read: float = 30.0
    connect: float = 10.0
    write: float = 30.0
    pool: float = 30.0

    @classmethod
    def from_seconds(cls, seconds: float) -> "TimeoutConfig":
        return cls(read=seconds, connect=seconds, write=seconds, pool=seconds)

    def as_httpx(self) -> httpx.Timeout:
        return httpx.Timeout(
            read=self.read,
            connect=self.connect,
            write=self.write,
            pool=self.pool,
        )


class RequestDispatcher:
    """Execute request descriptors with pooling, decoding and retries.

    Parameters
    ----------
    config : ClientConfig, optional
        Base URL, API key, timeout and pool bounds. Defaults to ``ClientConfig()``
    serializer : Serializer, optional
        JSON (de)serializer for this client. Default is :class:`PydanticSerializer`
    retry_policy : RetryPolicy, optional
        Attempt budget and backoff. Default is 3 attempts with 1s, 2s backoff
    timeout_config : TimeoutConfig, optional
        Fine grained timeouts. Defaults to ``config.timeout_seconds`` everywhere
    transport, async_transport : optional
        Custom httpx transports for the blocking and asyncio conventions

    Notes
    -----
    The dispatcher is safe to share between threads and tasks; the pool is
    its only mutable state.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        serializer: Serializer | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout_config: TimeoutConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or ClientConfig()
        self.serializer = serializer or PydanticSerializer()
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_config = timeout_config or TimeoutConfig.from_seconds(self.config.timeout_seconds)
        self._builder = RequestBuilder(self.config, self.serializer, self.timeout_config.as_httpx())
        self._pool = ConnectionPool(
            max_connections=self.config.max_connections,
            max_connections_per_route=self.config.max_connections_per_route,
            idle_eviction_seconds=self.config.idle_eviction_seconds,
            timeout=self.timeout_config.as_httpx(),
            transport=transport,
            async_transport=async_transport,
        )

    @property
    def base_url(self) -> str:
        return self._builder.base

    @property
    def closed(self) -> bool:
        return self._pool.closed

    def pool_stats(self) -> PoolStats:
        """Snapshot of connection pool usage, for diagnostics only."""
        return self._pool.stats()

    # ---------------- blocking -----------------

    def execute(
        self,
        descriptor: RequestDescriptor,
        expect: ResultShape | None = None,
        *,
        retry_state: RetryState | None = None,
    ) -> Any:
        """Perform a logical call, blocking the calling thread.

        Parameters
        ----------
        descriptor : RequestDescriptor
            What to send
        expect : ResultShape, optional
            How to decode a successful body. Default is untyped JSON
        retry_state : RetryState, optional
            Fresh state to observe the retry state machine of this call

        Returns
        -------
        Any
            The decoded JSON value, raw bytes, or None for no-content shapes

        Raises
        ------
        ApiError
            For non-2xx responses (the last one when retries ran out)
        TransportError
            For connection, timeout or I/O failures after the last attempt
        DecodeError
            If a successful JSON body could not be decoded
        ClientClosedError
            If the dispatcher is, or gets, closed
        """
        expect = expect or ResultShape.json()
        state = retry_state or self.retry_policy.new_state()
        retrying = self.retry_policy.retrying(state, self._pool.sleep)
        try:
            result = retrying(self._attempt, descriptor, expect, state)
        except BaseException as exc:
            state.exhaust(exc)
            raise
        state.succeed()
        return result

    def request(
        self,
        method: str,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        file: Any = None,
        expect: ResultShape | None = None,
    ) -> Any:
        """Shorthand for building a descriptor and calling :meth:`execute`."""
        descriptor = RequestDescriptor.create(
            method, path, query=query, headers=headers, json=json, file=file
        )
        return self.execute(descriptor, expect)

    def _attempt(self, descriptor: RequestDescriptor, expect: ResultShape, state: RetryState) -> Any:
        if self._pool.closed:
            raise ClientClosedError()
        request = self._builder.build(descriptor)
        logger.debug(
            "Attempt %d/%d: %s %s", state.attempt, state.max_attempts, request.method, request.url
        )
        try:
            with self._pool.lease(request.url) as client:
                response = client.send(request)
        except (httpx.TransportError, RuntimeError) as exc:
            translated = self._translate(request, exc)
            if translated is exc:
                raise
            raise translated from exc
        return decode_response(ResponseEnvelope.from_httpx(response), expect, self.serializer)

    # ---------------- asyncio -----------------

    async def aexecute(
        self,
        descriptor: RequestDescriptor,
        expect: ResultShape | None = None,
        *,
        retry_state: RetryState | None = None,
    ) -> Any:
        """Perform a logical call without blocking the event loop.

        Same contract as :meth:`execute`. Cancelling the awaiting task during
        a pool wait, a send, or a backoff delay raises
        ``asyncio.CancelledError`` and no further attempt is made.
        """
        expect = expect or ResultShape.json()
        state = retry_state or self.retry_policy.new_state()
        retrying = self.retry_policy.async_retrying(state, self._pool.asleep)
        try:
            result = await retrying(self._aattempt, descriptor, expect, state)
        except BaseException as exc:
            state.exhaust(exc)
            raise
        state.succeed()
        return result

    async def arequest(
        self,
        method: str,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        file: Any = None,
        expect: ResultShape | None = None,
    ) -> Any:
        """Shorthand for building a descriptor and awaiting :meth:`aexecute`."""
        descriptor = RequestDescriptor.create(
            method, path, query=query, headers=headers, json=json, file=file
        )
        return await self.aexecute(descriptor, expect)

    async def _aattempt(
        self, descriptor: RequestDescriptor, expect: ResultShape, state: RetryState
    ) -> Any:
        if self._pool.closed:
            raise ClientClosedError()
        request = self._builder.build(descriptor, asynchronous=True)
        logger.debug(
            "Attempt %d/%d: %s %s", state.attempt, state.max_attempts, request.method, request.url
        )
        try:
            async with self._pool.alease(request.url) as client:
                response = await client.send(request)
        except (httpx.TransportError, RuntimeError) as exc:
            translated = self._translate(request, exc)
            if translated is exc:
                raise
            raise translated from exc
        return decode_response(ResponseEnvelope.from_httpx(response), expect, self.serializer)

    # ---------------- errors -----------------

    def _translate(self, request: httpx.Request, exc: Exception) -> Exception:
        """Map transport exceptions to SDK errors.

        Errors raised while reading a local upload source are not transport
        faults; they never reach this method and propagate unchanged.
        """
        if self._pool.closed:
            return ClientClosedError(f"Client closed while requesting {request.url}")
        url = str(request.url)
        if isinstance(exc, httpx.TimeoutException):
            return TransportTimeoutError(url, exc)
        if isinstance(exc, httpx.ConnectError):
            return ConnectionError(url, exc)
        if isinstance(exc, httpx.TransportError):
            return TransportError(url, exc)
        return exc

    # ---------------- teardown -----------------

    def close(self) -> None:
        """Close the pool and its transports. Idempotent."""
        self._pool.close()

    async def aclose(self) -> None:
        """Close the pool and its transports from asyncio code. Idempotent."""
        await self._pool.aclose()

    def __enter__(self) -> "RequestDispatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> "RequestDispatcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
