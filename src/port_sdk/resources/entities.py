"""Entity operations.

Entities live under their blueprint (``/v1/blueprints/{blueprint}/entities``).
When the blueprint is not known, :meth:`EntityResource.get`,
:meth:`~EntityResource.update` and :meth:`~EntityResource.delete` fall back
to the cross-blueprint ``/v1/entities`` endpoints.
"""

from __future__ import annotations

from typing import Any, Optional

from port_sdk.cancellation import CancellationSignal
from port_sdk.models import PaginatedResponse
from port_sdk.resources.base import (
    BaseResource,
    validate_identifier,
    validate_identifier_format,
)

BLUEPRINTS_PATH = "/v1/blueprints"
ENTITIES_PATH = "/v1/entities"


def _entity_path(identifier: str, blueprint: Optional[str]) -> str:
    if blueprint:
        return f"{BLUEPRINTS_PATH}/{blueprint}/entities/{identifier}"
    return f"{ENTITIES_PATH}/{identifier}"


class EntityResource(BaseResource):
    """CRUD, listing and search for entities."""

    async def create(
        self, data: dict[str, Any], *, signal: Optional[CancellationSignal] = None
    ) -> dict[str, Any]:
        """Create an entity; ``data`` must carry ``identifier`` and ``blueprint``."""
        validate_identifier(data.get("identifier"), "Entity")
        blueprint = validate_identifier(data.get("blueprint"), "Entity blueprint", field="blueprint")
        validate_identifier_format(data["identifier"], "Entity")
        response = await self._request(
            "POST", f"{BLUEPRINTS_PATH}/{blueprint}/entities", body=data, signal=signal,
        )
        return self._unwrap(response, "entity")

    async def get(
        self,
        identifier: str,
        blueprint: Optional[str] = None,
        *,
        signal: Optional[CancellationSignal] = None,
    ) -> dict[str, Any]:
        validate_identifier_format(identifier, "Entity")
        response = await self._request("GET", _entity_path(identifier, blueprint), signal=signal)
        return self._unwrap(response, "entity")

    async def update(
        self,
        identifier: str,
        data: dict[str, Any],
        blueprint: Optional[str] = None,
        *,
        signal: Optional[CancellationSignal] = None,
    ) -> dict[str, Any]:
        validate_identifier_format(identifier, "Entity")
        response = await self._request(
            "PATCH", _entity_path(identifier, blueprint), body=data, signal=signal,
        )
        return self._unwrap(response, "entity")

    async def delete(
        self,
        identifier: str,
        blueprint: Optional[str] = None,
        *,
        signal: Optional[CancellationSignal] = None,
    ) -> None:
        validate_identifier_format(identifier, "Entity")
        await self._request("DELETE", _entity_path(identifier, blueprint), signal=signal)

    async def list(
        self,
        blueprint: Optional[str] = None,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        include: Optional[list[str]] = None,
        signal: Optional[CancellationSignal] = None,
    ) -> PaginatedResponse:
        """List entities, optionally restricted to one blueprint."""
        path = f"{BLUEPRINTS_PATH}/{blueprint}/entities" if blueprint else ENTITIES_PATH
        return await self._paginate(
            path,
            "entities",
            limit=limit,
            offset=offset,
            query={"include": include},
            signal=signal,
        )

    async def search(
        self, query: dict[str, Any], *, signal: Optional[CancellationSignal] = None
    ) -> list[dict[str, Any]]:
        """Search with a rules query, e.g. ``{"combinator": "and", "rules": [...]}``."""
        response = await self._request(
            "POST", f"{ENTITIES_PATH}/search", body=query, signal=signal,
        )
        return self._unwrap(response, "entities", required=False) or []
