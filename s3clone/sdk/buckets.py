"""Bucket operations of the s3clone API."""

from __future__ import annotations

from typing import TYPE_CHECKING, List
from urllib.parse import quote

from ._decoding import NO_CONTENT, ResultShape
from ._request import JsonBody, RequestDescriptor
from .models import (
    Bucket,
    BucketList,
    BucketStats,
    CreateBucketInput,
    LifecycleInput,
    PolicyResponse,
    UpdateBucketInput,
    UpdatePolicyInput,
    VersioningInput,
    VersioningOutput,
)

if TYPE_CHECKING:
    from ._http import RequestDispatcher

BUCKETS_PATH = "/api/v1/buckets"


def _path(bucket_id: str, suffix: str = "") -> str:
    return f"{BUCKETS_PATH}/{quote(bucket_id, safe='')}{suffix}"


def _get(path: str) -> RequestDescriptor:
    return RequestDescriptor("GET", path)


class BucketClient:
    """Bucket management for :class:`~s3clone.sdk.client.StorageClient`.

    Every method is a single dispatched call; retries, pooling and error
    mapping happen in the dispatcher.
    """

    def __init__(self, dispatcher: RequestDispatcher):
        self._http = dispatcher

    def create(self, input: CreateBucketInput) -> Bucket:
        """Create a bucket.

        Parameters
        ----------
        input : CreateBucketInput
            Bucket name and optional owner

        Returns
        -------
        Bucket
            The created bucket

        Raises
        ------
        ClientError
            If the name is invalid (400) or already taken (409)
        """
        return self._http.execute(
            RequestDescriptor("POST", BUCKETS_PATH, body=JsonBody(input)), ResultShape.json(Bucket)
        )

    def list(self) -> List[Bucket]:
        """List all buckets visible to the API key."""
        return self._http.execute(_get(BUCKETS_PATH), ResultShape.json(BucketList)).buckets

    def get(self, bucket_id: str) -> Bucket:
        """Get a bucket by id.

        Raises
        ------
        ClientError
            With kind ``NOT_FOUND`` if the bucket does not exist
        """
        return self._http.execute(_get(_path(bucket_id)), ResultShape.json(Bucket))

    def update(self, bucket_id: str, input: UpdateBucketInput) -> Bucket:
        return self._http.execute(
            RequestDescriptor("PATCH", _path(bucket_id), body=JsonBody(input)), ResultShape.json(Bucket)
        )

    def delete(self, bucket_id: str) -> None:
        self._http.execute(RequestDescriptor("DELETE", _path(bucket_id)), NO_CONTENT)

    def stats(self, bucket_id: str) -> BucketStats:
        """File count and total size of a bucket."""
        return self._http.execute(_get(_path(bucket_id, "/stats")), ResultShape.json(BucketStats))

    def get_policy(self, bucket_id: str) -> PolicyResponse:
        return self._http.execute(_get(_path(bucket_id, "/policy")), ResultShape.json(PolicyResponse))

    def update_policy(self, bucket_id: str, input: UpdatePolicyInput) -> None:
        """Replace the access policy of a bucket.

        Parameters
        ----------
        bucket_id : str
            Target bucket
        input : UpdatePolicyInput
            Effect, actions, resources and principals of the single statement
        """
        self._http.execute(
            RequestDescriptor("PUT", _path(bucket_id, "/policy"), body=JsonBody(input)), NO_CONTENT
        )

    def get_versioning(self, bucket_id: str) -> VersioningOutput:
        return self._http.execute(
            _get(_path(bucket_id, "/versioning")), ResultShape.json(VersioningOutput)
        )

    def set_versioning(self, bucket_id: str, input: VersioningInput) -> None:
        self._http.execute(
            RequestDescriptor("PUT", _path(bucket_id, "/versioning"), body=JsonBody(input)), NO_CONTENT
        )

    def set_lifecycle(self, bucket_id: str, input: LifecycleInput) -> None:
        """Replace the lifecycle (expiration) rules of a bucket."""
        self._http.execute(
            RequestDescriptor("PUT", _path(bucket_id, "/lifecycle"), body=JsonBody(input)), NO_CONTENT
        )


class AsyncBucketClient:
    """Asyncio variant of :class:`BucketClient` with the same methods."""

    def __init__(self, dispatcher: RequestDispatcher):
        self._http = dispatcher

    async def create(self, input: CreateBucketInput) -> Bucket:
        return await self._http.aexecute(
            RequestDescriptor("POST", BUCKETS_PATH, body=JsonBody(input)), ResultShape.json(Bucket)
        )

    async def list(self) -> List[Bucket]:
        result = await self._http.aexecute(_get(BUCKETS_PATH), ResultShape.json(BucketList))
        return result.buckets

    async def get(self, bucket_id: str) -> Bucket:
        return await self._http.aexecute(_get(_path(bucket_id)), ResultShape.json(Bucket))

    async def update(self, bucket_id: str, input: UpdateBucketInput) -> Bucket:
        return await self._http.aexecute(
            RequestDescriptor("PATCH", _path(bucket_id), body=JsonBody(input)), ResultShape.json(Bucket)
        )

    async def delete(self, bucket_id: str) -> None:
        await self._http.aexecute(RequestDescriptor("DELETE", _path(bucket_id)), NO_CONTENT)

    async def stats(self, bucket_id: str) -> BucketStats:
        return await self._http.aexecute(
            _get(_path(bucket_id, "/stats")), ResultShape.json(BucketStats)
        )

    async def get_policy(self, bucket_id: str) -> PolicyResponse:
        return await self._http.aexecute(
            _get(_path(bucket_id, "/policy")), ResultShape.json(PolicyResponse)
        )

    async def update_policy(self, bucket_id: str, input: UpdatePolicyInput) -> None:
        await self._http.aexecute(
            RequestDescriptor("PUT", _path(bucket_id, "/policy"), body=JsonBody(input)), NO_CONTENT
        )

    async def get_versioning(self, bucket_id: str) -> VersioningOutput:
        return await self._http.aexecute(
            _get(_path(bucket_id, "/versioning")), ResultShape.json(VersioningOutput)
        )

    async def set_versioning(self, bucket_id: str, input: VersioningInput) -> None:
        await self._http.aexecute(
            RequestDescriptor("PUT", _path(bucket_id, "/versioning"), body=JsonBody(input)), NO_CONTENT
        )

    async def set_lifecycle(self, bucket_id: str, input: LifecycleInput) -> None:
        await self._http.aexecute(
            RequestDescriptor("PUT", _path(bucket_id, "/lifecycle"), body=JsonBody(input)), NO_CONTENT
        )
