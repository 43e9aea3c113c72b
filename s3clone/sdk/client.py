"""Clients for the s3clone object storage REST API."""

from __future__ import annotations

from typing import Any

from ._http import RequestDispatcher
from ._pool import PoolStats
from .buckets import AsyncBucketClient, BucketClient
from .config import ClientConfig
from .files import AsyncFileClient, FileClient


class StorageClient:
    """Blocking client for the s3clone storage service.

    This client provides:
    - Bucket management (``client.buckets``)
    - File upload, download and management (``client.files``)

    All calls share one connection pool and retry transient failures
    (5xx, 408, 425, 429 and transport errors) up to three attempts with
    1s and 2s backoff.

    Parameters
    ----------
    config : ClientConfig, optional
        Base URL, API key, timeout and pool settings. Default is ``ClientConfig()``
    **dispatcher_options
        Forwarded to :class:`RequestDispatcher` (``serializer``,
        ``retry_policy``, ``timeout_config``, ``transport``)

    Examples
    --------
    >>> with StorageClient(ClientConfig(api_key="key")) as client:
    ...     bucket = client.buckets.create(CreateBucketInput(name="photos"))
    ...     client.files.upload(bucket.bucket_id, "cat.png")
    """

    def __init__(self, config: ClientConfig | None = None, **dispatcher_options: Any):
        self._http = RequestDispatcher(config, **dispatcher_options)
        self.buckets = BucketClient(self._http)
        self.files = FileClient(self._http)

    @classmethod
    def from_environment(cls, **dispatcher_options: Any) -> "StorageClient":
        """Create a client configured from ``S3CLONE_*`` environment variables."""
        return cls(ClientConfig.from_environment(), **dispatcher_options)

    @property
    def config(self) -> ClientConfig:
        return self._http.config

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._http

    def pool_stats(self) -> PoolStats:
        return self._http.pool_stats()

    def close(self) -> None:
        """Close the underlying connection pool.

        Calls still in flight fail with ``ClientClosedError``. Safe to call
        more than once.
        """
        self._http.close()

    def __enter__(self) -> "StorageClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class AsyncStorageClient:
    """Async client for the s3clone storage service.

    Same surface as :class:`StorageClient` with coroutine methods. Backoff
    delays suspend only the calling task, and cancelling that task stops
    the call without further attempts.

    Parameters
    ----------
    config : ClientConfig, optional
        Base URL, API key, timeout and pool settings. Default is ``ClientConfig()``
    **dispatcher_options
        Forwarded to :class:`RequestDispatcher` (``serializer``,
        ``retry_policy``, ``timeout_config``, ``async_transport``)
    """

    def __init__(self, config: ClientConfig | None = None, **dispatcher_options: Any):
        self._http = RequestDispatcher(config, **dispatcher_options)
        self.buckets = AsyncBucketClient(self._http)
        self.files = AsyncFileClient(self._http)

    @classmethod
    def from_environment(cls, **dispatcher_options: Any) -> "AsyncStorageClient":
        return cls(ClientConfig.from_environment(), **dispatcher_options)

    @property
    def config(self) -> ClientConfig:
        return self._http.config

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._http

    def pool_stats(self) -> PoolStats:
        return self._http.pool_stats()

    async def aclose(self) -> None:
        """Close the underlying HTTP client.

        Should be called when done with the client to properly clean up
        connections. Can also be used as an async context manager to
        handle this automatically.
        """
        await self._http.aclose()

    async def __aenter__(self) -> "AsyncStorageClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
