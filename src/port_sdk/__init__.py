"""port-sdk -- resilient Python client for the Port API.

Every call goes through a request executor that injects a bearer token,
retries transient failures with exponential backoff, enforces a per-attempt
timeout, honours per-call cancellation and maps failures onto a typed
exception hierarchy.

Typical usage::

    from port_sdk import PortClient

    async with PortClient() as port:       # credentials from PORT_* env vars
        entities = await port.entities.list("service")

Modules:
    client: The :class:`PortClient` facade.
    config: Configuration and credential resolution.
    auth: Token manager with single-flight refresh.
    retry: Retry/backoff policy.
    transport: Request executors (async and blocking).
    exceptions: Typed error hierarchy with exit-code mapping.
    app: The ``port-sdk`` command-line tool.
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

from port_sdk.cancellation import CancellationSignal  # noqa: E402
from port_sdk.client import PortClient  # noqa: E402
from port_sdk.config import resolve_config  # noqa: E402
from port_sdk.exceptions import (  # noqa: E402
    AuthError,
    ConfigError,
    ErrorKind,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    PortError,
    RateLimitError,
    RequestCancelledError,
    RequestTimeoutError,
    ServerError,
    ValidationError,
)
from port_sdk.models import ClientConfig, OAuthCredentials, Region, TokenCredentials  # noqa: E402
from port_sdk.transport import AsyncRequestExecutor, RequestDescriptor, SyncRequestExecutor  # noqa: E402

__all__ = [
    "AsyncRequestExecutor",
    "AuthError",
    "CancellationSignal",
    "ClientConfig",
    "ConfigError",
    "ErrorKind",
    "ForbiddenError",
    "NetworkError",
    "NotFoundError",
    "OAuthCredentials",
    "PortClient",
    "PortError",
    "RateLimitError",
    "Region",
    "RequestCancelledError",
    "RequestDescriptor",
    "RequestTimeoutError",
    "ServerError",
    "SyncRequestExecutor",
    "TokenCredentials",
    "ValidationError",
    "__version__",
]
