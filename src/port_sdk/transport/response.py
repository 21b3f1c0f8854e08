"""Response interpretation -- maps ``httpx`` outcomes onto the error taxonomy.

:func:`interpret_response` is the single place where an HTTP status becomes
either a decoded payload or one of the typed exceptions from
:mod:`port_sdk.exceptions`; :func:`error_for_transport` does the same for
exceptions raised by ``httpx`` before a response arrived. Both executors use
these functions, so the blocking and async paths classify failures
identically.
"""

from __future__ import annotations

import time
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx

from port_sdk.exceptions import (
    AuthError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    PortError,
    RateLimitError,
    RequestContext,
    RequestTimeoutError,
    ServerError,
    ValidationError,
)
from port_sdk.models import FieldError
from port_sdk.transport.request import PreparedRequest, describe_target


def extract_response_data(response: httpx.Response, context: Optional[RequestContext] = None) -> Any:
    """Decode a 2xx response body.

    Returns ``None`` for 204 and empty bodies.

    Raises:
        PortError: If the body is not valid JSON -- the server broke the
            contract, which is not something a retry can fix.
    """
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise PortError(
            f"Invalid JSON in response body (HTTP {response.status_code})",
            code="INVALID_RESPONSE",
            status_code=response.status_code,
            details=response.text[:500],
            context=context,
        ) from exc


def parse_error_body(response: httpx.Response) -> dict[str, Any]:
    """Decode an error body, falling back to the status line."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        return body
    fallback: dict[str, Any] = {
        "message": response.reason_phrase or "An error occurred",
        "statusCode": response.status_code,
    }
    if body is not None:
        fallback["body"] = body
    elif response.text:
        fallback["body"] = response.text[:500]
    return fallback


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[float]:
    """Parse a ``Retry-After`` header into seconds.

    Accepts delta-seconds (``"2"``) and HTTP dates. Returns ``None`` for a
    missing or unparseable header.
    """
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when is None:
            return None
        seconds = when.timestamp() - (time.time() if now is None else now)
    return max(seconds, 0.0)


def body_message(body: Any, key: str = "message") -> Optional[str]:
    """Return ``body[key]`` as text, or ``None`` when it is missing or empty.

    Error bodies are server-controlled, so a number, list or object under
    ``message`` is rendered with ``str()`` rather than trusted as a string.
    """
    if not isinstance(body, dict):
        return None
    value = body.get(key)
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def parse_field_errors(body: Any, message: str) -> list[FieldError]:
    """Read ``body["errors"]`` as field errors.

    Falls back to a single generic entry when the body carries no usable
    list, so a validation failure always names at least one problem.
    """
    errors: list[FieldError] = []
    raw = body.get("errors") if isinstance(body, dict) else None
    if isinstance(raw, list):
        for item in raw:
            if isinstance(item, dict) and ("field" in item or "message" in item):
                errors.append(
                    FieldError(
                        field=str(item.get("field") or "request"),
                        message=str(item.get("message") or message),
                        value=item.get("value"),
                    )
                )
            elif isinstance(item, str):
                errors.append(FieldError(field="request", message=item))
    if not errors:
        errors.append(FieldError(field="request", message=message))
    return errors


def error_for_response(response: httpx.Response, prepared: PreparedRequest) -> PortError:
    """Build the typed error for a non-2xx response."""
    status = response.status_code
    body = parse_error_body(response)
    context = prepared.context
    message = body_message(body)

    if status == 401:
        return AuthError(message or "Authentication failed", 401, body, context)
    if status == 403:
        resource, _ = describe_target(prepared.path)
        return ForbiddenError(
            message or "Forbidden", str(body.get("resource") or resource), body, context
        )
    if status == 404:
        resource, identifier = describe_target(prepared.path)
        return NotFoundError(
            str(body.get("resource") or resource),
            str(body.get("identifier") or identifier),
            body,
            context,
        )
    if status == 422:
        text = message or "Validation failed"
        return ValidationError(text, parse_field_errors(body, text), 422, body, context)
    if status == 429:
        return RateLimitError(
            message or "Rate limit exceeded",
            parse_retry_after(response.headers.get("Retry-After")),
            body,
            context,
        )
    if status >= 500:
        return ServerError(message or "Server error", status, body, context)

    error_code = body.get("error")
    return PortError(
        message or f"HTTP {status}",
        code=str(error_code) if error_code else None,
        status_code=status,
        details=body,
        context=context,
    )


def interpret_response(response: httpx.Response, prepared: PreparedRequest) -> Any:
    """Return the decoded payload of a 2xx response, or raise its typed error."""
    if response.is_success:
        return extract_response_data(response, prepared.context)
    raise error_for_response(response, prepared)


def error_for_transport(exc: httpx.HTTPError, prepared: PreparedRequest) -> PortError:
    """Classify an ``httpx`` exception raised before a response arrived."""
    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError(
            f"Request timeout after {prepared.timeout_ms}ms",
            prepared.timeout_ms,
            prepared.context,
        )
    return NetworkError(f"Network error occurred: {exc}", prepared.context)
