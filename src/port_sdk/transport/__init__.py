"""HTTP transport: request preparation, execution and response interpretation."""

from port_sdk.transport.async_executor import AsyncRequestExecutor
from port_sdk.transport.request import USER_AGENT, PreparedRequest, RequestDescriptor
from port_sdk.transport.response import (
    error_for_response,
    error_for_transport,
    interpret_response,
    parse_retry_after,
)
from port_sdk.transport.sync_executor import SyncRequestExecutor

__all__ = [
    "AsyncRequestExecutor",
    "PreparedRequest",
    "RequestDescriptor",
    "SyncRequestExecutor",
    "USER_AGENT",
    "error_for_response",
    "error_for_transport",
    "interpret_response",
    "parse_retry_after",
]
