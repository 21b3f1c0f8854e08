"""Blocking request executor.

Mirrors :class:`~port_sdk.transport.async_executor.AsyncRequestExecutor` on
top of :class:`httpx.Client`. Timeouts are enforced by ``httpx`` itself. A
cancellation signal is checked before token acquisition, before dispatch and
after the response arrives, and it interrupts a retry wait at once; a request
already on the wire runs until it completes or times out.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from port_sdk.auth.manager import SyncTokenManager
from port_sdk.cancellation import CancellationSignal
from port_sdk.exceptions import PortError, RequestCancelledError, RequestContext
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


def _check_signal(signal: Optional[CancellationSignal], context: RequestContext) -> None:
    if signal is not None and signal.cancelled:
        raise RequestCancelledError(reason=signal.reason, context=context)


def _wait(seconds: float, signal: Optional[CancellationSignal], context: RequestContext) -> None:
    if signal is None:
        time.sleep(seconds)
    elif signal.wait_sync(seconds):
        raise RequestCancelledError(reason=signal.reason, context=context)


class SyncRequestExecutor:
    """Blocking executor with the same retry and error semantics as the async one.

    Args:
        config: The resolved client configuration.
        transport: Optional ``httpx`` transport (e.g. ``httpx.MockTransport``).
        token_manager: Token manager; built from ``config.credentials`` when
            omitted.
        retry_policy: Backoff policy; defaults to the config's retry settings.
    """

    def __init__(
        self,
        config: ResolvedConfig,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        token_manager: Optional[SyncTokenManager] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._config = config
        self._token_manager = token_manager or SyncTokenManager(config.credentials)
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=config.max_retries, base_delay_ms=config.retry_delay_ms,
        )
        self._client = httpx.Client(**client_options(config, transport))
        self._token_manager.bind(self._client)

    @property
    def config(self) -> ResolvedConfig:
        return self._config

    @property
    def token_manager(self) -> SyncTokenManager:
        return self._token_manager

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> SyncRequestExecutor:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def execute(self, descriptor: RequestDescriptor) -> Any:
        """Run one logical call through the retry loop.

        Raises:
            PortError: The typed error of the final attempt.
        """
        prepared = prepare(descriptor, self._config)
        attempt = 0
        while True:
            try:
                return self._attempt(prepared)
            except PortError as exc:
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
                _wait(delay_ms / 1000, prepared.signal, prepared.context)
                attempt += 1

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Keyword arguments are the fields of :class:`RequestDescriptor`."""
        return self.execute(RequestDescriptor(method=method, path=path, **kwargs))

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("POST", path, body=body, **kwargs)

    def put(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("PUT", path, body=body, **kwargs)

    def patch(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("PATCH", path, body=body, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)

    def _attempt(self, prepared: PreparedRequest) -> Any:
        signal = prepared.signal
        _check_signal(signal, prepared.context)
        token = self._token_manager.get_token()

        _check_signal(signal, prepared.context)
        request = build_httpx_request(self._client, prepared, token)
        try:
            response = self._client.send(request)
        except httpx.HTTPError as exc:
            raise error_for_transport(exc, prepared) from exc

        _check_signal(signal, prepared.context)
        logger.debug(
            "Response %s %s", prepared.method, prepared.path,
            extra={"status_code": response.status_code},
        )
        if response.status_code == 401 and not self._token_manager.is_static:
            self._token_manager.invalidate()
        return interpret_response(response, prepared)
