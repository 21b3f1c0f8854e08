"""Request preparation shared by the async and blocking executors.

A :class:`RequestDescriptor` is the logical call handed in by the resource
layer. :func:`prepare` validates it and turns it into a
:class:`PreparedRequest` once per call; :func:`authorize` adds the bearer
token on every attempt, so a token rotated between retries is picked up
while the logical intent stays the same.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import parse_qsl, unquote, urlencode, urlsplit

import httpx

from port_sdk import __version__
from port_sdk.cancellation import CancellationSignal
from port_sdk.exceptions import RequestContext, ValidationError
from port_sdk.models import FieldError, HTTPMethod, ResolvedConfig

USER_AGENT = f"port-sdk-python/{__version__}"

_METHODS = frozenset(m.value for m in HTTPMethod)


@dataclass(frozen=True)
class RequestDescriptor:
    """One logical API call.

    Args:
        method: GET, POST, PUT, PATCH or DELETE (case-insensitive).
        path: Absolute API path such as ``/v1/blueprints/service``. May carry
            a query string, which is merged with *query*.
        query: Extra query parameters. ``None`` values are dropped, lists are
            comma-joined, booleans become ``true``/``false``. They win over
            the same keys in the path's query string.
        body: JSON-serialisable request body.
        headers: Extra headers; they override the defaults.
        signal: Cancellation handle honoured at every suspension point.
        timeout_ms: Per-attempt timeout overriding the client default. ``0``
            disables the per-attempt timeout.
        skip_retry: Fail on the first error even if it is transient.
    """

    method: str
    path: str
    query: Optional[Mapping[str, Any]] = None
    body: Any = None
    headers: Optional[Mapping[str, str]] = None
    signal: Optional[CancellationSignal] = None
    timeout_ms: Optional[float] = None
    skip_retry: bool = False


@dataclass(frozen=True)
class PreparedRequest:
    """A validated descriptor merged with client defaults."""

    method: str
    path: str
    url: str
    params: dict[str, str]
    headers: dict[str, str]
    body: Any
    timeout_ms: Optional[float]
    context: RequestContext
    signal: Optional[CancellationSignal] = field(default=None, compare=False)

    @property
    def timeout_seconds(self) -> Optional[float]:
        return _seconds(self.timeout_ms)


def _seconds(timeout_ms: Optional[float]) -> Optional[float]:
    # None and 0 both mean "no per-attempt timeout"
    return timeout_ms / 1000 if timeout_ms else None


def validate_descriptor(descriptor: RequestDescriptor) -> None:
    """Reject structurally invalid descriptors before any network I/O.

    Raises:
        ValidationError: Listing every problem found.
    """
    errors: list[FieldError] = []
    method = descriptor.method.upper() if isinstance(descriptor.method, str) else None
    if method not in _METHODS:
        errors.append(
            FieldError(
                field="method",
                message=f"Must be one of {', '.join(sorted(_METHODS))}",
                value=descriptor.method,
            )
        )

    path = descriptor.path
    if not isinstance(path, str) or not path.strip():
        errors.append(FieldError(field="path", message="Required field", value=path))
    elif not path.startswith("/"):
        errors.append(FieldError(field="path", message="Must start with '/'", value=path))
    else:
        segments = path.split("?", 1)[0].split("/")[1:]
        if any(not segment.strip() for segment in segments):
            errors.append(
                FieldError(field="path", message="Path contains an empty segment", value=path)
            )

    if errors:
        raise ValidationError(
            "Invalid request: " + "; ".join(f"{e.field}: {e.message}" for e in errors),
            errors,
            status_code=None,
            context=RequestContext(
                method=method or str(descriptor.method), url=str(path)
            ),
        )


def encode_query(query: Optional[Mapping[str, Any]]) -> dict[str, str]:
    """Flatten query values into strings, dropping ``None``."""
    params: dict[str, str] = {}
    for key, value in (query or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple, set)):
            params[key] = ",".join(str(v) for v in value)
        else:
            params[key] = str(value)
    return params


def prepare(descriptor: RequestDescriptor, config: ResolvedConfig) -> PreparedRequest:
    """Validate *descriptor* and merge it with the client defaults."""
    validate_descriptor(descriptor)
    method = descriptor.method.upper()

    headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
    if descriptor.body is not None:
        headers["Content-Type"] = "application/json"
    headers.update(descriptor.headers or {})

    timeout_ms = descriptor.timeout_ms
    if timeout_ms is None:
        timeout_ms = config.timeout_ms

    # httpx replaces a URL's query string when params are given, so the
    # path's own query is folded into params here.
    parts = urlsplit(descriptor.path)
    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    params.update(encode_query(descriptor.query))
    url = f"{config.base_url}{parts.path}"
    if params:
        url = f"{url}?{urlencode(params)}"

    return PreparedRequest(
        method=method,
        path=parts.path,
        url=url,
        params=params,
        headers=headers,
        body=descriptor.body,
        timeout_ms=timeout_ms,
        context=RequestContext(method=method, url=url, request_id=uuid.uuid4().hex),
        signal=descriptor.signal,
    )


def authorize(prepared: PreparedRequest, token: str) -> dict[str, str]:
    """Return the attempt's headers with the bearer token attached."""
    headers = {"Authorization": f"Bearer {token}"}
    headers.update(prepared.headers)
    return headers


def build_httpx_request(
    client: httpx.Client | httpx.AsyncClient, prepared: PreparedRequest, token: str
) -> httpx.Request:
    return client.build_request(
        prepared.method,
        prepared.path,
        params=prepared.params or None,
        headers=authorize(prepared, token),
        json=prepared.body,
        timeout=httpx.Timeout(prepared.timeout_seconds),
    )


def client_options(
    config: ResolvedConfig, transport: Optional[httpx.BaseTransport | httpx.AsyncBaseTransport]
) -> dict[str, Any]:
    """Keyword arguments for :class:`httpx.Client` / :class:`httpx.AsyncClient`.

    The environment has already been resolved into *config*, so ``httpx`` is
    told not to read proxy variables itself. A custom *transport* takes over
    connection handling, proxying included.
    """
    options: dict[str, Any] = {
        "base_url": config.base_url,
        "timeout": httpx.Timeout(_seconds(config.timeout_ms)),
        "follow_redirects": True,
        "trust_env": False,
    }
    if transport is not None:
        options["transport"] = transport
    elif config.proxy is not None:
        auth = config.proxy.auth
        options["proxy"] = httpx.Proxy(
            config.proxy.url, auth=(auth.username, auth.password) if auth else None,
        )
    return options


# --- 404 target extraction ---


def _singular(collection: str) -> str:
    if collection.endswith("ies"):
        return collection[:-3] + "y"
    if collection.endswith("s") and not collection.endswith("ss"):
        return collection[:-1]
    return collection


def describe_target(path: str) -> tuple[str, str]:
    """Derive ``(resource, identifier)`` from an API path.

    Paths alternate collection and identifier segments after the version
    prefix: ``/v1/blueprints/service/entities/api`` names the entity
    ``api``; ``/v1/blueprints/service/relations`` names the blueprint
    ``service``.
    """
    segments = [s for s in path.split("?", 1)[0].split("/") if s]
    if segments and segments[0][:1] == "v" and segments[0][1:].isdigit():
        segments = segments[1:]
    if not segments:
        return "Resource", "unknown"
    if len(segments) % 2 == 0:
        return _singular(segments[-2]), unquote(segments[-1])
    if len(segments) >= 3:
        return _singular(segments[-3]), unquote(segments[-2])
    return _singular(segments[0]), "unknown"
