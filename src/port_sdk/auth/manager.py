"""Token managers -- own the bearer token of one client.

:class:`TokenManager` serves the async executor and :class:`SyncTokenManager`
the blocking one. Both:

* return a static access token unchanged when the client was configured with
  :class:`~port_sdk.models.TokenCredentials`;
* otherwise cache the token obtained through the client-credentials exchange
  and refresh it once it is within ``safety_margin_ms`` of expiry;
* guarantee **single-flight** refreshes: callers arriving while an exchange is
  running attach to it and share its token or its failure;
* never cache anything after a failed exchange, so the next call retries it.

Each client constructs its own manager; there is no process-wide token cache.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import Future
from typing import Callable, Optional

import httpx

from port_sdk.auth.token import (
    DEFAULT_SAFETY_MARGIN_MS,
    TOKEN_PATH,
    TOKEN_REQUEST_HEADERS,
    build_exchange_body,
    parse_token_response,
)
from port_sdk.exceptions import AuthError
from port_sdk.models import Credentials, OAuthCredentials, Token, TokenCredentials

logger = logging.getLogger(__name__)


class _BaseTokenManager:
    """State and bookkeeping shared by the async and blocking managers."""

    def __init__(
        self,
        credentials: Credentials,
        *,
        safety_margin_ms: float = DEFAULT_SAFETY_MARGIN_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._credentials = credentials
        self._safety_margin_ms = safety_margin_ms
        self._clock = clock
        self._token: Optional[Token] = None
        self.exchange_count = 0

    @property
    def is_static(self) -> bool:
        """True when a pre-issued access token is used as-is."""
        return isinstance(self._credentials, TokenCredentials)

    @property
    def token(self) -> Optional[Token]:
        """The cached token, if any (``None`` for static credentials)."""
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next call performs a fresh exchange."""
        if self._token is not None:
            logger.debug("Invalidating cached access token")
        self._token = None

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def _static_token(self) -> str:
        assert isinstance(self._credentials, TokenCredentials)
        return self._credentials.access_token

    def _cached_value(self) -> Optional[str]:
        token = self._token
        if token is None or token.expires_within(self._now_ms(), self._safety_margin_ms):
            return None
        return token.value

    def _oauth_credentials(self) -> OAuthCredentials:
        if not isinstance(self._credentials, OAuthCredentials):
            raise AuthError("Cannot refresh token without client credentials")
        return self._credentials

    def _store(self, response: httpx.Response) -> Token:
        token = parse_token_response(response, self._now_ms())
        self._token = token
        logger.debug(
            "Access token refreshed",
            extra={"expires_at_ms": token.expires_at_ms},
        )
        return token


class TokenManager(_BaseTokenManager):
    """Async token manager used by :class:`~port_sdk.transport.AsyncRequestExecutor`.

    The in-flight exchange is a single :class:`asyncio.Task`. Callers await
    it through :func:`asyncio.shield`, so a caller that is cancelled (or
    whose signal fires) detaches without cancelling the exchange for the
    other waiters.

    Args:
        credentials: The client's resolved credentials.
        http_client: Client whose ``base_url`` is the Port API root.
        safety_margin_ms: Refresh tokens this long before they expire.
        clock: Returns the current epoch time in seconds.
    """

    def __init__(
        self,
        credentials: Credentials,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        safety_margin_ms: float = DEFAULT_SAFETY_MARGIN_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(credentials, safety_margin_ms=safety_margin_ms, clock=clock)
        self._http_client = http_client
        self._pending: Optional[asyncio.Task[Token]] = None

    def bind(self, http_client: httpx.AsyncClient) -> None:
        """Attach the HTTP client used for token exchanges."""
        self._http_client = http_client

    @property
    def refreshing(self) -> bool:
        return self._pending is not None

    async def get_token(self) -> str:
        """Return a bearer token valid for at least the safety margin.

        Raises:
            AuthError: If the token exchange fails.
        """
        if self.is_static:
            return self._static_token()

        cached = self._cached_value()
        if cached is not None:
            return cached

        pending = self._pending
        if pending is None:
            pending = asyncio.ensure_future(self._exchange())
            pending.add_done_callback(self._exchange_done)
            self._pending = pending
        else:
            logger.debug("Token refresh already in progress, waiting")

        token = await asyncio.shield(pending)
        return token.value

    def _exchange_done(self, task: asyncio.Task[Token]) -> None:
        if self._pending is task:
            self._pending = None
        if not task.cancelled():
            # Mark the exception retrieved; waiters re-raise it themselves.
            task.exception()

    async def _exchange(self) -> Token:
        credentials = self._oauth_credentials()
        if self._http_client is None:
            raise AuthError("Token manager has no HTTP client bound")

        self.exchange_count += 1
        logger.debug("Refreshing access token")
        try:
            response = await self._http_client.post(
                TOKEN_PATH,
                json=build_exchange_body(credentials),
                headers=TOKEN_REQUEST_HEADERS,
            )
        except httpx.HTTPError as exc:
            logger.error("Token request failed", extra={"error": str(exc)})
            raise AuthError(f"Token request failed: {exc}") from exc

        try:
            return self._store(response)
        except AuthError:
            logger.error("Token refresh failed", extra={"status_code": response.status_code})
            raise


class SyncTokenManager(_BaseTokenManager):
    """Thread-safe token manager used by :class:`~port_sdk.transport.SyncRequestExecutor`.

    The first thread that finds the cache stale becomes the exchange owner
    and publishes the outcome on a shared :class:`concurrent.futures.Future`;
    threads arriving meanwhile block on that future instead of starting a
    second exchange.
    """

    def __init__(
        self,
        credentials: Credentials,
        http_client: Optional[httpx.Client] = None,
        *,
        safety_margin_ms: float = DEFAULT_SAFETY_MARGIN_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(credentials, safety_margin_ms=safety_margin_ms, clock=clock)
        self._http_client = http_client
        self._lock = threading.Lock()
        self._pending: Optional[Future[Token]] = None

    def bind(self, http_client: httpx.Client) -> None:
        """Attach the HTTP client used for token exchanges."""
        self._http_client = http_client

    def get_token(self) -> str:
        """Return a bearer token valid for at least the safety margin.

        Raises:
            AuthError: If the token exchange fails.
        """
        if self.is_static:
            return self._static_token()

        with self._lock:
            cached = self._cached_value()
            if cached is not None:
                return cached
            pending = self._pending
            owner = pending is None
            if owner:
                pending = self._pending = Future()

        assert pending is not None
        if not owner:
            logger.debug("Token refresh already in progress, waiting")
            return pending.result().value

        try:
            token = self._exchange()
        except Exception as exc:
            pending.set_exception(exc)
            raise
        except BaseException as exc:
            # Waiters must not block on an exchange that will never finish.
            pending.set_exception(AuthError(f"Token refresh interrupted: {exc!r}"))
            raise
        else:
            pending.set_result(token)
            return token.value
        finally:
            with self._lock:
                self._pending = None

    def _exchange(self) -> Token:
        credentials = self._oauth_credentials()
        if self._http_client is None:
            raise AuthError("Token manager has no HTTP client bound")

        self.exchange_count += 1
        logger.debug("Refreshing access token")
        try:
            response = self._http_client.post(
                TOKEN_PATH,
                json=build_exchange_body(credentials),
                headers=TOKEN_REQUEST_HEADERS,
            )
        except httpx.HTTPError as exc:
            logger.error("Token request failed", extra={"error": str(exc)})
            raise AuthError(f"Token request failed: {exc}") from exc

        with self._lock:
            return self._store(response)
