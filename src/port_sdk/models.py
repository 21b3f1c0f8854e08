"""Canonical Pydantic models shared across port-sdk modules.

**Configuration models** -- supplied by the caller and resolved once per
client: :class:`OAuthCredentials`, :class:`TokenCredentials`,
:class:`ProxyAuth`, :class:`ProxyConfig`, :class:`ClientConfig` and the
immutable :class:`ResolvedConfig`.

**Runtime models** -- :class:`Token` (the cached bearer token),
:class:`FieldError` (one entry of a validation failure) and
:class:`PaginatedResponse`.

Credential and proxy secrets are excluded from ``repr`` so they never end up
in tracebacks or log lines.
"""

from __future__ import annotations

import enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Region(str, enum.Enum):
    """Port API regions."""

    EU = "eu"
    US = "us"


class HTTPMethod(str, enum.Enum):
    """HTTP methods the transport layer accepts."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


# --- Credentials ---


class OAuthCredentials(BaseModel):
    """Client-credentials pair exchanged for a short-lived access token.

    Accepts both ``client_id`` and the API's ``clientId`` spelling; dumping
    with ``by_alias=True`` yields the token-exchange request body.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    client_id: str
    client_secret: str = Field(repr=False)


class TokenCredentials(BaseModel):
    """A pre-issued bearer token, used as-is without expiry tracking."""

    model_config = ConfigDict(
        frozen=True, extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    access_token: str = Field(repr=False)


Credentials = Union[OAuthCredentials, TokenCredentials]


# --- Proxy ---


class ProxyAuth(BaseModel):
    """Basic-auth credentials for the outbound proxy."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: str = Field(repr=False)


class ProxyConfig(BaseModel):
    """Outbound proxy settings.

    Example::

        ProxyConfig(url="http://proxy.internal:3128",
                    auth=ProxyAuth(username="svc", password="..."))
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Proxy URL without credentials")
    auth: Optional[ProxyAuth] = None


# --- Client configuration ---


class ClientConfig(BaseModel):
    """Explicit configuration passed to :class:`~port_sdk.client.PortClient`.

    Every field is optional; unset fields fall back to ``PORT_*``
    environment variables and then to defaults. See
    :func:`port_sdk.config.resolve_config` for the precedence rules.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    credentials: Optional[Credentials] = None
    base_url: Optional[str] = Field(
        default=None, description="Explicit API base URL; always wins over region"
    )
    region: Optional[Region] = None
    timeout_ms: Optional[int] = Field(
        default=None, ge=0, description="Per-attempt timeout in milliseconds; 0 disables it"
    )
    max_retries: Optional[int] = Field(default=None, ge=0)
    retry_delay_ms: Optional[int] = Field(
        default=None, ge=0, description="Base delay for exponential backoff"
    )
    proxy: Optional[ProxyConfig] = None
    log_level: Optional[str] = Field(
        default=None, description="ERROR, WARN, INFO, DEBUG or TRACE"
    )
    verbose: Optional[bool] = None


class ResolvedConfig(BaseModel):
    """Effective client configuration with every default applied.

    Produced by :func:`port_sdk.config.resolve_config` and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    credentials: Credentials
    base_url: str
    region: Region
    timeout_ms: int = 30000
    max_retries: int = 3
    retry_delay_ms: int = 1000
    proxy: Optional[ProxyConfig] = None
    log_level: Optional[str] = None
    verbose: bool = False

    @property
    def uses_oauth(self) -> bool:
        return isinstance(self.credentials, OAuthCredentials)


# --- Runtime models ---


class Token(BaseModel):
    """A bearer token and the epoch-millisecond instant it expires."""

    model_config = ConfigDict(frozen=True)

    value: str = Field(repr=False)
    expires_at_ms: int

    def expires_within(self, now_ms: float, margin_ms: float) -> bool:
        """True when the token is expired or expires inside *margin_ms*."""
        return now_ms + margin_ms >= self.expires_at_ms


class FieldError(BaseModel):
    """One field-level problem reported by a validation failure."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str
    value: Any = None


class PaginatedResponse(BaseModel):
    """A page of results plus the pagination metadata returned by the API."""

    data: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    limit: int = 50
    offset: int = 0
    has_more: bool = False
    next_cursor: Optional[str] = None
