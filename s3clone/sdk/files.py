"""File (object) operations of the s3clone API."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, List
from urllib.parse import quote

from ._decoding import NO_CONTENT, RAW_BYTES, ResultShape
from ._request import FilePayload, JsonBody, RequestDescriptor
from .models import (
    CopyFileInput,
    FileInfo,
    FileList,
    MoveFileInput,
    UpdateFileMetadataInput,
)

if TYPE_CHECKING:
    from ._http import RequestDispatcher

FILES_PATH = "/api/v1/files"

_FILE_INFO = ResultShape.json(FileInfo)


def _bucket_path(bucket_id: str) -> str:
    return f"{FILES_PATH}/{quote(bucket_id, safe='')}"


def _file_path(bucket_id: str, file_id: str, suffix: str = "") -> str:
    return f"{_bucket_path(bucket_id)}/files/{quote(file_id, safe='')}{suffix}"


def _upload(bucket_id: str, path: str | os.PathLike[str], filename: str | None) -> RequestDescriptor:
    return RequestDescriptor(
        "POST",
        f"{FILES_PATH}/upload/{quote(bucket_id, safe='')}",
        body=FilePayload(Path(path), filename=filename),
    )


class FileClient:
    """File operations for :class:`~s3clone.sdk.client.StorageClient`."""

    def __init__(self, dispatcher: RequestDispatcher):
        self._http = dispatcher

    def upload(
        self, bucket_id: str, path: str | os.PathLike[str], *, filename: str | None = None
    ) -> FileInfo:
        """Upload a local file to a bucket.

        The file is streamed as a ``multipart/form-data`` part named ``file``
        and re-read from disk if the upload has to be retried.

        Parameters
        ----------
        bucket_id : str
            Target bucket
        path : str or PathLike
            Local file to upload
        filename : str, optional
            Name to store the object under. Defaults to the file's base name

        Returns
        -------
        FileInfo
            Metadata of the stored object

        Raises
        ------
        FileNotFoundError
            If ``path`` does not exist; nothing is sent
        ClientError
            If the service rejects the file type or size
        """
        return self._http.execute(_upload(bucket_id, path, filename), _FILE_INFO)

    def list(self, bucket_id: str) -> List[FileInfo]:
        """List the files stored in a bucket."""
        return self._http.execute(
            RequestDescriptor("GET", _bucket_path(bucket_id)), ResultShape.json(FileList)
        ).files

    def get(self, bucket_id: str, file_id: str) -> FileInfo:
        return self._http.execute(RequestDescriptor("GET", _file_path(bucket_id, file_id)), _FILE_INFO)

    def download(self, bucket_id: str, file_id: str) -> bytes:
        """Download the raw content of a file."""
        return self._http.execute(
            RequestDescriptor("GET", _file_path(bucket_id, file_id, "/download")), RAW_BYTES
        )

    def delete(self, bucket_id: str, file_id: str) -> None:
        self._http.execute(RequestDescriptor("DELETE", _file_path(bucket_id, file_id)), NO_CONTENT)

    def update_metadata(
        self, bucket_id: str, file_id: str, input: UpdateFileMetadataInput
    ) -> FileInfo:
        return self._http.execute(
            RequestDescriptor("PATCH", _file_path(bucket_id, file_id), body=JsonBody(input)),
            _FILE_INFO,
        )

    def copy(self, bucket_id: str, file_id: str, input: CopyFileInput) -> FileInfo:
        """Copy a file into ``input.destination_bucket``, optionally renamed."""
        return self._http.execute(
            RequestDescriptor("POST", _file_path(bucket_id, file_id, "/copy"), body=JsonBody(input)),
            _FILE_INFO,
        )

    def move(self, bucket_id: str, file_id: str, input: MoveFileInput) -> FileInfo:
        """Move a file into ``input.destination_bucket``, optionally renamed."""
        return self._http.execute(
            RequestDescriptor("POST", _file_path(bucket_id, file_id, "/move"), body=JsonBody(input)),
            _FILE_INFO,
        )


class AsyncFileClient:
    """Asyncio variant of :class:`FileClient` with the same methods."""

    def __init__(self, dispatcher: RequestDispatcher):
        self._http = dispatcher

    async def upload(
        self, bucket_id: str, path: str | os.PathLike[str], *, filename: str | None = None
    ) -> FileInfo:
        return await self._http.aexecute(_upload(bucket_id, path, filename), _FILE_INFO)

    async def list(self, bucket_id: str) -> List[FileInfo]:
        result = await self._http.aexecute(
            RequestDescriptor("GET", _bucket_path(bucket_id)), ResultShape.json(FileList)
        )
        return result.files

    async def get(self, bucket_id: str, file_id: str) -> FileInfo:
        return await self._http.aexecute(
            RequestDescriptor("GET", _file_path(bucket_id, file_id)), _FILE_INFO
        )

    async def download(self, bucket_id: str, file_id: str) -> bytes:
        return await self._http.aexecute(
            RequestDescriptor("GET", _file_path(bucket_id, file_id, "/download")), RAW_BYTES
        )

    async def delete(self, bucket_id: str, file_id: str) -> None:
        await self._http.aexecute(
            RequestDescriptor("DELETE", _file_path(bucket_id, file_id)), NO_CONTENT
        )

    async def update_metadata(
        self, bucket_id: str, file_id: str, input: UpdateFileMetadataInput
    ) -> FileInfo:
        return await self._http.aexecute(
            RequestDescriptor("PATCH", _file_path(bucket_id, file_id), body=JsonBody(input)),
            _FILE_INFO,
        )

    async def copy(self, bucket_id: str, file_id: str, input: CopyFileInput) -> FileInfo:
        return await self._http.aexecute(
            RequestDescriptor("POST", _file_path(bucket_id, file_id, "/copy"), body=JsonBody(input)),
            _FILE_INFO,
        )

    async def move(self, bucket_id: str, file_id: str, input: MoveFileInput) -> FileInfo:
        return await self._http.aexecute(
            RequestDescriptor("POST", _file_path(bucket_id, file_id, "/move"), body=JsonBody(input)),
            _FILE_INFO,
        )
