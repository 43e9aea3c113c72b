"""Exception classes for the s3clone SDK.

This module defines the errors raised by SDK operations together with the
status-code taxonomy that decides which of them are worth retrying.

Every HTTP failure is represented by a single :class:`ApiError` carrying an
:class:`ErrorKind` tag. The only subclasses are the coarse
:class:`ClientError` (4xx) and :class:`ServerError` (5xx) split, so callers
can either catch broadly or match on ``exc.kind``.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from pydantic import ValidationError

if TYPE_CHECKING:
    from .models import ErrorResponse


class ErrorKind(str, enum.Enum):
    """Closed set of error kinds an HTTP status can map to."""

    BAD_REQUEST = "BadRequest"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    REQUEST_TIMEOUT = "RequestTimeout"
    CONFLICT = "Conflict"
    GONE = "Gone"
    UNPROCESSABLE_ENTITY = "UnprocessableEntity"
    TOO_EARLY = "TooEarly"
    RATE_LIMITED = "RateLimited"
    INTERNAL_SERVER_ERROR = "InternalServerError"
    NOT_IMPLEMENTED = "NotImplemented"
    BAD_GATEWAY = "BadGateway"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    GATEWAY_TIMEOUT = "GatewayTimeout"
    UNEXPECTED_STATUS = "UnexpectedStatus"


# status -> (kind, retryable, reason phrase)
_STATUS_TABLE: dict[int, tuple[ErrorKind, bool, str]] = {
    400: (ErrorKind.BAD_REQUEST, False, "Bad Request"),
    401: (ErrorKind.UNAUTHORIZED, False, "Unauthorized"),
    403: (ErrorKind.FORBIDDEN, False, "Forbidden"),
    404: (ErrorKind.NOT_FOUND, False, "Not Found"),
    405: (ErrorKind.METHOD_NOT_ALLOWED, False, "Method Not Allowed"),
    408: (ErrorKind.REQUEST_TIMEOUT, True, "Request Timeout"),
    409: (ErrorKind.CONFLICT, False, "Conflict"),
    410: (ErrorKind.GONE, False, "Gone"),
    422: (ErrorKind.UNPROCESSABLE_ENTITY, False, "Unprocessable Entity"),
    425: (ErrorKind.TOO_EARLY, True, "Too Early"),
    429: (ErrorKind.RATE_LIMITED, True, "Too Many Requests"),
    500: (ErrorKind.INTERNAL_SERVER_ERROR, True, "Internal Server Error"),
    501: (ErrorKind.NOT_IMPLEMENTED, True, "Not Implemented"),
    502: (ErrorKind.BAD_GATEWAY, True, "Bad Gateway"),
    503: (ErrorKind.SERVICE_UNAVAILABLE, True, "Service Unavailable"),
    504: (ErrorKind.GATEWAY_TIMEOUT, True, "Gateway Timeout"),
}


def classify_status(status_code: int) -> tuple[ErrorKind, bool]:
    """Return ``(kind, retryable)`` for an HTTP status code.

    Unmapped codes fall back to ``UNEXPECTED_STATUS`` and are retryable only
    when they are server errors (``>= 500``).
    """
    entry = _STATUS_TABLE.get(status_code)
    if entry is None:
        return ErrorKind.UNEXPECTED_STATUS, status_code >= 500
    return entry[0], entry[1]


class S3CloneError(Exception):
    """Base exception for all s3clone SDK errors.

    All custom exceptions in the SDK inherit from this base class,
    allowing applications to catch all SDK-specific errors with a
    single except clause if desired.
    """

    pass


class ApiError(S3CloneError):
    """Raised when the storage service answers with a non-2xx status.

    Attributes
    ----------
    status_code : int
        The HTTP status code (e.g., 400, 404, 503)
    kind : ErrorKind
        Classification of the status code
    retryable : bool
        Whether the retry policy may re-attempt the call
    message : str
        Human readable reason
    body : str
        The untouched response body, typically containing error details
    """

    def __init__(
        self,
        status_code: int,
        body: str,
        *,
        message: str | None = None,
    ):
        self.status_code = status_code
        self.kind, self.retryable = classify_status(status_code)
        self.message = message or _reason(status_code)
        self.body = body
        super().__init__(f"HTTP {status_code} {self.message}: {body}")

    @property
    def details(self) -> ErrorResponse | None:
        """Structured error body, or None when the body has another shape."""
        from .models import ErrorResponse

        try:
            details = ErrorResponse.model_validate_json(self.body)
        except ValidationError:
            return None
        if details.error is None and details.message is None:
            return None
        return details


class ClientError(ApiError):
    """Raised for 4xx responses; terminal unless the status says otherwise."""


class ServerError(ApiError):
    """Raised for 5xx responses; retried by the dispatcher."""


def _reason(status_code: int) -> str:
    entry = _STATUS_TABLE.get(status_code)
    return entry[2] if entry else "Unexpected HTTP Error"


def error_from_response(status_code: int, body: str) -> ApiError:
    """Build the typed error for a non-2xx response."""
    if 400 <= status_code < 500:
        cls: type[ApiError] = ClientError
    elif status_code >= 500:
        cls = ServerError
    else:
        cls = ApiError
    return cls(status_code, body)


class TransportError(S3CloneError):
    """Raised when the request never produced an HTTP response.

    Connection failures, timeouts and I/O errors all land here and are
    always treated as transient by the retry policy.

    Attributes
    ----------
    url : str
        The URL that was being requested
    original_error : Exception
        The underlying exception that caused the failure
    """

    retryable = True
    _summary = "Request failed for"

    def __init__(self, url: str, original_error: Exception):
        self.url = url
        self.original_error = original_error
        super().__init__(f"{self._summary} {url}: {original_error}")


class ConnectionError(TransportError):
    """Raised when unable to connect to the storage service.

    This typically indicates network issues, an incorrect base URL,
    or the service being unavailable.
    """

    _summary = "Failed to connect to"


class TransportTimeoutError(TransportError):
    """Raised when connecting, sending or reading timed out."""

    _summary = "Timed out requesting"


class PoolTimeoutError(TransportError):
    """Raised when no pooled connection became free within the timeout."""

    _summary = "No pooled connection available for"


class DecodeError(S3CloneError):
    """Raised when a successful response body cannot be decoded.

    Never retried: the same body would fail the same way.

    Attributes
    ----------
    status_code : int
        The (successful) HTTP status of the response
    body : str
        The raw response body
    """

    retryable = False

    def __init__(self, status_code: int, body: str, reason: str):
        self.status_code = status_code
        self.body = body
        self.reason = reason
        super().__init__(f"Could not decode HTTP {status_code} response: {reason}")


class ClientClosedError(S3CloneError):
    """Raised when a call is made on, or is in flight during, a closed client."""

    retryable = False

    def __init__(self, message: str = "Client has been closed"):
        super().__init__(message)


def is_retryable(exc: BaseException) -> bool:
    """Return True when ``exc`` is a transient failure worth another attempt."""
    if isinstance(exc, (ApiError, TransportError)):
        return exc.retryable
    return False
