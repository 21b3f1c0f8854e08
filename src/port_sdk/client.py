"""The :class:`PortClient` facade."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

import httpx

from port_sdk.cancellation import CancellationSignal
from port_sdk.config import resolve_config
from port_sdk.log import configure_logging
from port_sdk.models import ClientConfig, ResolvedConfig
from port_sdk.resources import BlueprintResource, EntityResource
from port_sdk.transport.async_executor import AsyncRequestExecutor

logger = logging.getLogger(__name__)


class PortClient:
    """Async client for the Port API.

    Configuration is resolved once, at construction: explicit *config*
    values win over ``PORT_*`` environment variables, which win over
    defaults. A client without any credentials cannot be built.

    Args:
        config: A :class:`~port_sdk.models.ClientConfig` or an equivalent
            mapping (``{"credentials": {"client_id": ..., "client_secret": ...}}``).
        transport: Optional ``httpx`` transport, mainly for tests.
        environ: Environment mapping to resolve from instead of
            :data:`os.environ`.

    Raises:
        AuthError: If no credentials are configured.
        ConfigError: If a setting is invalid.

    Example::

        async with PortClient() as port:
            service = await port.blueprints.get("service")
    """

    def __init__(
        self,
        config: Union[ClientConfig, Mapping[str, Any], None] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config: ResolvedConfig = resolve_config(config, environ)
        if self.config.verbose or self.config.log_level:
            configure_logging(self.config.log_level, self.config.verbose, environ)

        self._executor = AsyncRequestExecutor(self.config, transport=transport)
        self._executor.open()
        self.blueprints = BlueprintResource(self._executor)
        self.entities = EntityResource(self._executor)
        logger.info(
            "Port client initialized",
            extra={"base_url": self.config.base_url, "region": self.config.region.value},
        )

    @property
    def executor(self) -> AsyncRequestExecutor:
        return self._executor

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        signal: Optional[CancellationSignal] = None,
        timeout_ms: Optional[float] = None,
    ) -> Any:
        """Call an endpoint that has no resource wrapper."""
        return await self._executor.request(
            method,
            path,
            query=dict(query) if query else None,
            body=body,
            signal=signal,
            timeout_ms=timeout_ms,
        )

    async def aclose(self) -> None:
        await self._executor.aclose()

    async def __aenter__(self) -> PortClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
