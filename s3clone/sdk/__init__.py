"""Python SDK for the s3clone object storage service."""

from ._decoding import NO_CONTENT, RAW_BYTES, PydanticSerializer, ResultShape, Serializer
from ._http import RequestDispatcher, TimeoutConfig
from ._multipart import MultipartEncoder
from ._pool import ConnectionPool, PoolStats
from ._request import FilePayload, JsonBody, RequestDescriptor
from ._retry import RetryPhase, RetryPolicy, RetryState
from .client import AsyncStorageClient, StorageClient
from .config import ClientConfig, load_dotenv_for_sdk
from .exceptions import (
    ApiError,
    ClientClosedError,
    ClientError,
    ConnectionError,
    DecodeError,
    ErrorKind,
    PoolTimeoutError,
    S3CloneError,
    ServerError,
    TransportError,
    TransportTimeoutError,
    classify_status,
)

__all__ = [
    "ApiError",
    "AsyncStorageClient",
    "ClientClosedError",
    "ClientConfig",
    "ClientError",
    "ConnectionError",
    "ConnectionPool",
    "DecodeError",
    "ErrorKind",
    "FilePayload",
    "JsonBody",
    "MultipartEncoder",
    "NO_CONTENT",
    "PoolStats",
    "PoolTimeoutError",
    "PydanticSerializer",
    "RAW_BYTES",
    "RequestDescriptor",
    "RequestDispatcher",
    "ResultShape",
    "RetryPhase",
    "RetryPolicy",
    "RetryState",
    "S3CloneError",
    "Serializer",
    "ServerError",
    "StorageClient",
    "TimeoutConfig",
    "TransportError",
    "TransportTimeoutError",
    "classify_status",
    "load_dotenv_for_sdk",
]
