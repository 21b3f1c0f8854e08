"""Exception hierarchy for port-sdk.

Every failure that leaves the transport layer is one of the classes below.
All of them inherit from :class:`PortError`, which carries the HTTP
``status_code`` (when there was a response), a stable machine-readable
``code``, the raw ``details`` returned by the API, and the
:class:`RequestContext` of the call that failed.

Each class also declares a class-level :class:`ErrorKind`, the closed set of
failure categories the retry policy reasons about, and an ``exit_code`` from
:mod:`port_sdk.exit_codes` that the ``port-sdk`` CLI exits with.

Subclass hierarchy::

    PortError (GENERIC, exit 1)
    +-- ConfigError            (GENERIC, exit 1)
    +-- AuthError              (AUTH, exit 3)
    +-- ForbiddenError         (FORBIDDEN, exit 3)
    +-- NotFoundError          (NOT_FOUND, exit 4)
    +-- ValidationError        (VALIDATION, exit 2)
    +-- RateLimitError         (RATE_LIMIT, exit 8)
    +-- ServerError            (SERVER, exit 5)
    +-- NetworkError           (NETWORK, exit 6)
    +-- RequestTimeoutError    (TIMEOUT, exit 6)
        +-- RequestCancelledError (TIMEOUT, exit 130)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

from port_sdk.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_RATE_LIMITED,
    EXIT_SERVER_ERROR,
)
from port_sdk.models import FieldError


class ErrorKind(str, enum.Enum):
    """Closed set of failure categories."""

    AUTH = "auth"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    NETWORK = "network"
    TIMEOUT = "timeout"
    GENERIC = "generic"


@dataclass(frozen=True)
class RequestContext:
    """Identifies the logical call an error belongs to.

    ``request_id`` is generated once per call and shared by every attempt,
    so all log lines of one retry sequence can be grouped together.
    """

    method: Optional[str] = None
    url: Optional[str] = None
    request_id: Optional[str] = None


class PortError(Exception):
    """Base exception for all port-sdk errors.

    Used directly for the GENERIC kind: unexpected non-2xx statuses and 2xx
    responses whose body cannot be decoded.

    Args:
        message: Human-readable error description.
        code: Stable error code (e.g. ``"NOT_FOUND"``).
        status_code: HTTP status code, when a response was received.
        details: Decoded error body or other structured detail.
        context: The request the error belongs to.
    """

    kind: ErrorKind = ErrorKind.GENERIC
    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Any = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.context = context

    @property
    def retryable(self) -> bool:
        """Whether this kind of failure is transient."""
        return self.kind in _TRANSIENT_KINDS

    def describe_context(self) -> str:
        """Return ``METHOD url [request-id]`` for log lines, or ``""``."""
        if self.context is None:
            return ""
        parts: list[str] = []
        if self.context.method:
            parts.append(self.context.method)
        if self.context.url:
            parts.append(self.context.url)
        if self.context.request_id:
            parts.append(f"[{self.context.request_id}]")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, code={self.code!r}, "
            f"status_code={self.status_code!r})"
        )


class ConfigError(PortError):
    """Raised for invalid configuration values (e.g. a non-numeric ``PORT_TIMEOUT``)."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message, code="CONFIG_ERROR", details=details)


class AuthError(PortError):
    """Raised on HTTP 401, a failed token exchange, or missing credentials."""

    kind = ErrorKind.AUTH
    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Any = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        super().__init__(message, "AUTH_ERROR", status_code, details, context)


class ForbiddenError(PortError):
    """Raised on HTTP 403 -- the credentials lack permission."""

    kind = ErrorKind.FORBIDDEN
    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        details: Any = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        super().__init__(message, "FORBIDDEN", 403, details, context)
        self.resource = resource


class NotFoundError(PortError):
    """Raised on HTTP 404.

    ``resource`` and ``identifier`` name what was missing, e.g.
    ``("blueprint", "service")``.
    """

    kind = ErrorKind.NOT_FOUND
    exit_code = EXIT_NOT_FOUND

    def __init__(
        self,
        resource: str,
        identifier: str,
        details: Any = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        super().__init__(
            f'{resource} with identifier "{identifier}" not found',
            "NOT_FOUND",
            404,
            details,
            context,
        )
        self.resource = resource
        self.identifier = identifier


class ValidationError(PortError):
    """Raised on HTTP 422 or when a request is rejected before it is sent.

    ``field_errors`` always holds at least one :class:`FieldError`.
    """

    kind = ErrorKind.VALIDATION
    exit_code = EXIT_INVALID_USAGE

    def __init__(
        self,
        message: str,
        field_errors: list[FieldError],
        status_code: Optional[int] = 422,
        details: Any = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        super().__init__(
            message,
            "VALIDATION_ERROR",
            status_code,
            details if details is not None else [e.model_dump() for e in field_errors],
            context,
        )
        self.field_errors = field_errors


class RateLimitError(PortError):
    """Raised on HTTP 429. ``retry_after`` is the server hint in seconds."""

    kind = ErrorKind.RATE_LIMIT
    exit_code = EXIT_RATE_LIMITED

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        details: Any = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        super().__init__(message, "RATE_LIMIT", 429, details, context)
        self.retry_after = retry_after


class ServerError(PortError):
    """Raised on HTTP 5xx after retries are exhausted."""

    kind = ErrorKind.SERVER
    exit_code = EXIT_SERVER_ERROR

    def __init__(
        self,
        message: str,
        status_code: int,
        details: Any = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        super().__init__(message, "SERVER_ERROR", status_code, details, context)


class NetworkError(PortError):
    """Raised on transport failures (DNS, connection refused, TLS).

    The underlying ``httpx`` exception is available as ``__cause__``.
    """

    kind = ErrorKind.NETWORK
    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, context: Optional[RequestContext] = None) -> None:
        super().__init__(message, "NETWORK_ERROR", None, None, context)


class RequestTimeoutError(PortError):
    """Raised when a single attempt exceeds its deadline."""

    kind = ErrorKind.TIMEOUT
    exit_code = EXIT_CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        timeout_ms: Optional[float] = None,
        context: Optional[RequestContext] = None,
        code: str = "TIMEOUT",
    ) -> None:
        super().__init__(message, code, None, {"timeout_ms": timeout_ms}, context)
        self.timeout_ms = timeout_ms


class RequestCancelledError(RequestTimeoutError):
    """Raised when the caller fires the call's cancellation signal.

    Shares the TIMEOUT kind with :class:`RequestTimeoutError` but is never
    retried.
    """

    exit_code = EXIT_CANCELLED

    def __init__(
        self,
        message: str = "Request cancelled",
        reason: Any = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        super().__init__(message, None, context, code="CANCELLED")
        self.reason = reason

    @property
    def retryable(self) -> bool:
        return False


_TRANSIENT_KINDS = frozenset(
    {ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.SERVER, ErrorKind.RATE_LIMIT}
)
