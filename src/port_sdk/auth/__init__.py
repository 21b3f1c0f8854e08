"""Bearer-token lifecycle for port-sdk clients.

- :class:`TokenManager` -- async manager with single-flight refresh.
- :class:`SyncTokenManager` -- thread-safe twin for the blocking executor.
- :func:`parse_token_response` -- shared token-endpoint response validation.

Typical usage::

    manager = TokenManager(config.credentials, http_client)
    token = await manager.get_token()
"""

from port_sdk.auth.manager import SyncTokenManager, TokenManager
from port_sdk.auth.token import (
    DEFAULT_SAFETY_MARGIN_MS,
    TOKEN_PATH,
    build_exchange_body,
    parse_token_response,
)

__all__ = [
    "DEFAULT_SAFETY_MARGIN_MS",
    "SyncTokenManager",
    "TOKEN_PATH",
    "TokenManager",
    "build_exchange_body",
    "parse_token_response",
]
