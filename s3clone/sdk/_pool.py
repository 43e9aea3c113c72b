"""Bounded connection pool shared by blocking and asyncio callers.

httpx keeps the sockets; this module decides who may use one. A lease is a
slot counted against a global and a per-route limit, held for exactly one
attempt and released on every exit path. Idle sockets expire through the
httpx keep-alive expiry, and idle route bookkeeping is evicted on the same
interval.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import Optional

import httpx

from .exceptions import ClientClosedError, PoolTimeoutError

logger = logging.getLogger(__name__)

Route = tuple[str, str, int]

_DEFAULT_PORTS = {"http": 80, "https": 443}


def route_of(url: httpx.URL | str) -> Route:
    """Return the ``(scheme, host, port)`` destination of ``url``."""
    url = httpx.URL(url)
    return (url.scheme, url.host, url.port or _DEFAULT_PORTS.get(url.scheme, 0))


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time snapshot of pool usage."""

    leased: int
    pending: int
    available: int
    max: int


class _Waiter:
    """Wakes either a blocked thread or a suspended coroutine."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._event: Optional[threading.Event] = None if loop else threading.Event()
        self.future: Optional[asyncio.Future] = loop.create_future() if loop else None

    def wake(self) -> None:
        if self._event is not None:
            self._event.set()
        else:
            self._loop.call_soon_threadsafe(self._resolve, self.future)

    @staticmethod
    def _resolve(future: asyncio.Future) -> None:
        if not future.done():
            future.set_result(None)

    def wait(self, timeout: float) -> None:
        self._event.wait(timeout)

    def reset(self) -> None:
        if self._event is not None:
            self._event.clear()
        else:
            self.future = self._loop.create_future()


class ConnectionPool:
    """Lease-based connection pool in front of ``httpx.Client``/``AsyncClient``.

    Parameters
    ----------
    max_connections : int
        Maximum number of simultaneously leased connections
    max_connections_per_route : int
        Maximum leased connections to a single ``(scheme, host, port)``
    idle_eviction_seconds : float
        Keep-alive expiry of idle sockets and interval of route eviction
    timeout : httpx.Timeout
        Transport timeouts; ``timeout.pool`` also bounds how long a lease waits
    transport, async_transport : optional
        Custom httpx transports, e.g. ``httpx.MockTransport`` in tests

    Notes
    -----
    The httpx clients are created lazily on first lease, so a pool only
    used from asyncio never opens a blocking client and vice versa.
    """

    def __init__(
        self,
        *,
        max_connections: int = 100,
        max_connections_per_route: int = 20,
        idle_eviction_seconds: float = 30.0,
        timeout: httpx.Timeout | None = None,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.max_connections = max_connections
        self.max_connections_per_route = min(max_connections_per_route, max_connections)
        self.idle_eviction_seconds = idle_eviction_seconds
        self.timeout = timeout or httpx.Timeout(30.0)
        self.lease_timeout = self.timeout.pool if self.timeout.pool is not None else 30.0
        self._transport = transport
        self._async_transport = async_transport

        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._leased = 0
        self._route_leases: dict[Route, int] = {}
        self._route_last_used: dict[Route, float] = {}
        self._waiters: list[_Waiter] = []
        self._sleepers: list[_Waiter] = []
        self._last_eviction = time.monotonic()

        self._client: httpx.Client | None = None
        self._async_client: httpx.AsyncClient | None = None

    # ---------------- observability -----------------

    def stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(
                leased=self._leased,
                pending=len(self._waiters),
                available=self.max_connections - self._leased,
                max=self.max_connections,
            )

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def routes(self) -> list[Route]:
        with self._lock:
            return list(self._route_last_used)

    # ---------------- leasing -----------------

    def _try_acquire(self, route: Route) -> bool:
        # Caller holds self._lock.
        if self._closed.is_set():
            raise ClientClosedError()
        in_route = self._route_leases.get(route, 0)
        if self._leased >= self.max_connections or in_route >= self.max_connections_per_route:
            return False
        self._leased += 1
        self._route_leases[route] = in_route + 1
        self._route_last_used[route] = time.monotonic()
        return True

    def _release(self, route: Route) -> None:
        with self._lock:
            self._leased -= 1
            remaining = self._route_leases.get(route, 1) - 1
            if remaining:
                self._route_leases[route] = remaining
            else:
                self._route_leases.pop(route, None)
            self._route_last_used[route] = time.monotonic()
            waiters = list(self._waiters)
        for waiter in waiters:
            waiter.wake()
        self._maybe_evict()

    def _forget(self, waiter: _Waiter) -> None:
        with self._lock:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def _acquire(self, url: httpx.URL) -> Route:
        route = route_of(url)
        with self._lock:
            if self._try_acquire(route):
                return route
            waiter = _Waiter()
            self._waiters.append(waiter)
        deadline = time.monotonic() + self.lease_timeout
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PoolTimeoutError(str(url), TimeoutError(f"lease wait exceeded {self.lease_timeout}s"))
                waiter.wait(remaining)
                with self._lock:
                    waiter.reset()
                    if self._try_acquire(route):
                        return route
        finally:
            self._forget(waiter)

    async def _aacquire(self, url: httpx.URL) -> Route:
        route = route_of(url)
        with self._lock:
            if self._try_acquire(route):
                return route
            waiter = _Waiter(asyncio.get_running_loop())
            self._waiters.append(waiter)
        deadline = time.monotonic() + self.lease_timeout
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PoolTimeoutError(str(url), TimeoutError(f"lease wait exceeded {self.lease_timeout}s"))
                try:
                    await asyncio.wait_for(waiter.future, remaining)
                except asyncio.TimeoutError:
                    pass
                with self._lock:
                    waiter.reset()
                    if self._try_acquire(route):
                        return route
        finally:
            self._forget(waiter)

    @contextmanager
    def lease(self, url: httpx.URL) -> Iterator[httpx.Client]:
        """Hold one connection slot for ``url`` while the block runs."""
        route = self._acquire(url)
        logger.debug("Leased connection to %s:%s", route[1], route[2])
        try:
            yield self._get_client()
        finally:
            self._release(route)

    @asynccontextmanager
    async def alease(self, url: httpx.URL) -> AsyncIterator[httpx.AsyncClient]:
        """Async variant of :meth:`lease`; waiting does not block the loop."""
        route = await self._aacquire(url)
        logger.debug("Leased connection to %s:%s", route[1], route[2])
        try:
            yield self._get_async_client()
        finally:
            self._release(route)

    # ---------------- transports -----------------

    def _limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_connections=self.max_connections,
            max_keepalive_connections=self.max_connections,
            keepalive_expiry=self.idle_eviction_seconds,
        )

    def _get_client(self) -> httpx.Client:
        with self._lock:
            if self._closed.is_set():
                raise ClientClosedError()
            if self._client is None:
                self._client = httpx.Client(
                    timeout=self.timeout, limits=self._limits(), transport=self._transport
                )
            return self._client

    def _get_async_client(self) -> httpx.AsyncClient:
        with self._lock:
            if self._closed.is_set():
                raise ClientClosedError()
            if self._async_client is None:
                self._async_client = httpx.AsyncClient(
                    timeout=self.timeout, limits=self._limits(), transport=self._async_transport
                )
            return self._async_client

    # ---------------- eviction -----------------

    def evict_idle(self, now: float | None = None) -> int:
        """Forget routes without leases that have been idle past the interval.

        Returns the number of routes evicted.
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            idle = [
                route
                for route, last_used in self._route_last_used.items()
                if route not in self._route_leases and now - last_used >= self.idle_eviction_seconds
            ]
            for route in idle:
                del self._route_last_used[route]
            self._last_eviction = now
        if idle:
            logger.debug("Evicted %d idle route(s)", len(idle))
        return len(idle)

    def _maybe_evict(self) -> None:
        if time.monotonic() - self._last_eviction >= self.idle_eviction_seconds:
            self.evict_idle()

    # ---------------- backoff sleeps -----------------

    def sleep(self, seconds: float) -> None:
        """Block for ``seconds``, returning early if the pool is closed."""
        self._closed.wait(seconds)

    async def asleep(self, seconds: float) -> None:
        """Suspend for ``seconds``, returning early if the pool is closed."""
        waiter = _Waiter(asyncio.get_running_loop())
        with self._lock:
            if self._closed.is_set():
                return
            self._sleepers.append(waiter)
        try:
            await asyncio.wait_for(waiter.future, seconds)
        except asyncio.TimeoutError:
            pass
        finally:
            with self._lock:
                self._sleepers.remove(waiter)

    # ---------------- teardown -----------------

    def _shutdown(self) -> tuple[httpx.Client | None, httpx.AsyncClient | None] | None:
        with self._lock:
            if self._closed.is_set():
                return None
            self._closed.set()
            waiters = self._waiters + self._sleepers
            clients = (self._client, self._async_client)
            self._client = None
            self._async_client = None
        for waiter in waiters:
            waiter.wake()
        logger.info("Connection pool closed")
        return clients

    def close(self) -> None:
        """Close the pool and the blocking transport. Safe to call twice."""
        clients = self._shutdown()
        if clients is None:
            return
        client, async_client = clients
        if client is not None:
            client.close()
        if async_client is not None:
            logger.warning("Async transport left open by close(); use aclose() from asyncio code")

    async def aclose(self) -> None:
        """Close the pool and both transports. Safe to call twice."""
        clients = self._shutdown()
        if clients is None:
            return
        client, async_client = clients
        if client is not None:
            client.close()
        if async_client is not None:
            await async_client.aclose()
