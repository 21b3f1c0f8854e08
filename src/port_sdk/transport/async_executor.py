"""Asynchronous request executor -- the core of the transport layer.

:class:`AsyncRequestExecutor` turns one :class:`RequestDescriptor` into one
or more HTTP exchanges on an :class:`httpx.AsyncClient`:

1. **Prepare** -- validate the descriptor and merge client defaults.
2. **Acquire token** -- ask the :class:`~port_sdk.auth.TokenManager`; an
   :class:`~port_sdk.exceptions.AuthError` ends the call.
3. **Dispatch** -- send the request, racing it against the call's
   cancellation signal and the per-attempt timeout.
4. **Interpret** -- decode the payload or raise the typed error.
5. **Retry wait** -- for transient failures, sleep for the backoff delay
   (cancellable) and go back to step 2.

Native task cancellation (:class:`asyncio.CancelledError`) is never
converted into a typed error; it propagates to the caller unchanged.

See Also:
    :class:`~port_sdk.transport.sync_executor.SyncRequestExecutor` for the
    blocking equivalent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, Optional, TypeVar

import httpx

from port_sdk.auth.manager import TokenManager
from port_sdk.cancellation import CancellationSignal
from port_sdk.exceptions import (
    PortError,
    RequestCancelledError,
    RequestContext,
    RequestTimeoutError,
)
from port_sdk.models import ResolvedConfig
from port_sdk.retry import RetryPolicy
from port_sdk.transport.request import (
    PreparedRequest,
    RequestDescriptor,
    build_httpx_request,
    client_options,
    prepare,
)
from port_sdk.transport.response import error_for_transport, interpret_response

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _raise_if_cancelled(signal: Optional[CancellationSignal], context: RequestContext) -> None:
    if signal is not None and signal.cancelled:
        raise RequestCancelledError(reason=signal.reason, context=context)


async def _race(
    awaitable: Awaitable[T],
    signal: Optional[CancellationSignal],
    prepared: PreparedRequest,
    timeout: Optional[float] = None,
) -> T:
    """Await *awaitable* unless *signal* fires or *timeout* seconds pass first.

    The loser is cancelled and abandoned.
    """
    if signal is None and timeout is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    watchers: set[asyncio.Future[Any]] = {task}
    cancel_watch: Optional[asyncio.Future[Any]] = None
    if signal is not None:
        cancel_watch = asyncio.ensure_future(signal.wait())
        watchers.add(cancel_watch)

    try:
        done, _ = await asyncio.wait(
            watchers, timeout=timeout, return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        for watcher in watchers:
            if not watcher.done():
                watcher.cancel()

    if task in done:
        return task.result()
    if cancel_watch is not None and cancel_watch in done:
        assert signal is not None
        raise RequestCancelledError(reason=signal.reason, context=prepared.context)
    raise RequestTimeoutError(
        f"Request timeout after {prepared.timeout_ms}ms",
        prepared.timeout_ms,
        prepared.context,
    )


async def _cancellable_sleep(
    seconds: float, signal: Optional[CancellationSignal], context: RequestContext
) -> None:
    """Sleep for *seconds*, aborting at once if *signal* fires."""
    if signal is None:
        await asyncio.sleep(seconds)
        return
    _raise_if_cancelled(signal, context)
    try:
        await asyncio.wait_for(signal.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return
    raise RequestCancelledError(reason=signal.reason, context=context)


class AsyncRequestExecutor:
    """Executes API calls with token injection, retry, timeout and cancellation.

    Must be used as an async context manager (or opened with :meth:`open`
    and closed with :meth:`aclose`) so the underlying connection pool is
    released.

    Args:
        config: The resolved client configuration.
        transport: Optional ``httpx`` transport, e.g.
            :class:`httpx.MockTransport` in tests.
        token_manager: Token manager to use; one is created from
            ``config.credentials`` when omitted.
        retry_policy: Backoff policy; defaults to the config's retry
            settings.

    Example::

        async with AsyncRequestExecutor(config) as executor:
            blueprint = await executor.get("/v1/blueprints/service")
    """

    def __init__(
        self,
        config: ResolvedConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_manager: Optional[TokenManager] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._token_manager = token_manager or TokenManager(config.credentials)
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=config.max_retries, base_delay_ms=config.retry_delay_ms,
        )
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def config(self) -> ResolvedConfig:
        return self._config

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def open(self) -> None:
        """Create the HTTP client. Calling it twice is harmless."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(**client_options(self._config, self._transport))
        self._token_manager.bind(self._client)
        logger.info(
            "HTTP client initialized",
            extra={
                "base_url": self._config.base_url,
                "timeout_ms": self._config.timeout_ms,
                "max_retries": self._config.max_retries,
                "has_proxy": self._config.proxy is not None,
            },
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> AsyncRequestExecutor:
        self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def execute(self, descriptor: RequestDescriptor) -> Any:
        """Run one logical call through the retry loop.

        Returns:
            The decoded JSON payload, or ``None`` for empty responses.

        Raises:
            PortError: The typed error of the last attempt once the failure
                is non-retryable or the retry budget is spent.
        """
        prepared = prepare(descriptor, self._config)
        if self._client is None:
            raise PortError(
                "Executor is not open -- use it as an async context manager",
                context=prepared.context,
            )

        attempt = 0
        while True:
            try:
                return await self._attempt(prepared, attempt)
            except PortError as exc:
                logger.warning(
                    "Request failed: %s %s", prepared.method, prepared.path,
                    extra={
                        "attempt": attempt + 1,
                        "request_id": prepared.context.request_id,
                        "error": exc.message,
                    },
                )
                if descriptor.skip_retry or not self._retry_policy.should_retry(exc, attempt):
                    logger.error(
                        "Request failed permanently: %s %s", prepared.method, prepared.path,
                        extra={"attempts": attempt + 1, "error_code": exc.code},
                    )
                    raise

                delay_ms = self._retry_policy.delay_for(attempt, exc)
                logger.info(
                    "Retrying request: %s %s", prepared.method, prepared.path,
                    extra={"attempt": attempt + 1, "delay_ms": delay_ms},
                )
                await _cancellable_sleep(delay_ms / 1000, prepared.signal, prepared.context)
                attempt += 1

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: Optional[dict[str, Any]] = None,
        body: Any = None,
        headers: Optional[dict[str, str]] = None,
        signal: Optional[CancellationSignal] = None,
        timeout_ms: Optional[float] = None,
        skip_retry: bool = False,
    ) -> Any:
        """Build a :class:`RequestDescriptor` and :meth:`execute` it."""
        return await self.execute(
            RequestDescriptor(
                method=method,
                path=path,
                query=query,
                body=body,
                headers=headers,
                signal=signal,
                timeout_ms=timeout_ms,
                skip_retry=skip_retry,
            )
        )

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, body=body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("PUT", path, body=body, **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, body=body, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _attempt(self, prepared: PreparedRequest, attempt: int) -> Any:
        assert self._client is not None
        signal = prepared.signal

        _raise_if_cancelled(signal, prepared.context)
        token = await _race(self._token_manager.get_token(), signal, prepared)

        logger.debug(
            "%s %s", prepared.method, prepared.path,
            extra={
                "attempt": attempt + 1,
                "request_id": prepared.context.request_id,
                "has_body": prepared.body is not None,
            },
        )

        _raise_if_cancelled(signal, prepared.context)
        request = build_httpx_request(self._client, prepared, token)
        try:
            response = await _race(
                self._client.send(request), signal, prepared, prepared.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise error_for_transport(exc, prepared) from exc

        logger.debug(
            "Response %s %s", prepared.method, prepared.path,
            extra={"status_code": response.status_code, "attempt": attempt + 1},
        )
        if response.status_code == 401 and not self._token_manager.is_static:
            self._token_manager.invalidate()
        return interpret_response(response, prepared)
