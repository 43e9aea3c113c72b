"""Streaming multipart/form-data encoding for file uploads."""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import AsyncIterator, Iterator

CHUNK_SIZE = 64 * 1024

_CRLF = b"\r\n"


def _quote(value: str) -> str:
    # Content-Disposition parameters are quoted strings.
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\r", "").replace("\n", "")


class MultipartEncoder:
    """Encode one file as a single-part ``multipart/form-data`` body.

    The file is read in binary chunks each time the body is iterated, so the
    encoded body is never held in memory and every retry attempt starts from
    the first byte.

    Parameters
    ----------
    path : str or Path
        File to upload
    field_name : str, optional
        Form field name of the part. Default is ``"file"``
    filename : str, optional
        Name reported to the server. Defaults to the file's base name
    boundary : str, optional
        Boundary token. A random one is generated when omitted

    Raises
    ------
    FileNotFoundError
        If ``path`` is not an existing regular file
    """

    content_type_base = "multipart/form-data"
    part_content_type = "application/octet-stream"

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        field_name: str = "file",
        filename: str | None = None,
        boundary: str | None = None,
        chunk_size: int = CHUNK_SIZE,
    ):
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"Upload source not found: {self.path}")
        self.field_name = field_name
        self.filename = filename or self.path.name
        self.boundary = boundary or f"----S3CloneBoundary{secrets.token_hex(16)}"
        self.chunk_size = chunk_size

    @property
    def content_type(self) -> str:
        return f"{self.content_type_base}; boundary={self.boundary}"

    def _preamble(self) -> bytes:
        return (
            f"--{self.boundary}\r\n"
            f'Content-Disposition: form-data; name="{_quote(self.field_name)}"; '
            f'filename="{_quote(self.filename)}"\r\n'
            f"Content-Type: {self.part_content_type}\r\n"
            "\r\n"
        ).encode("utf-8")

    def _epilogue(self) -> bytes:
        return _CRLF + f"--{self.boundary}--\r\n".encode("utf-8")

    @property
    def content_length(self) -> int:
        """Exact body size, so the request is not sent chunked."""
        return len(self._preamble()) + self.path.stat().st_size + len(self._epilogue())

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": self.content_type,
            "Content-Length": str(self.content_length),
        }

    def iter_bytes(self) -> Iterator[bytes]:
        """Yield the encoded body, reading the file lazily."""
        yield self._preamble()
        with open(self.path, "rb") as f:
            while chunk := f.read(self.chunk_size):
                yield chunk
        yield self._epilogue()

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Async counterpart of :meth:`iter_bytes` for ``httpx.AsyncClient``.

        Local file reads are short and are done inline.
        """
        for chunk in self.iter_bytes():
            yield chunk

    def to_bytes(self) -> bytes:
        return b"".join(self.iter_bytes())
