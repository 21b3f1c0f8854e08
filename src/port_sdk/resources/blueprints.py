"""Blueprint operations on ``/v1/blueprints``."""

from __future__ import annotations

from typing import Any, Optional

from port_sdk.cancellation import CancellationSignal
from port_sdk.exceptions import ValidationError
from port_sdk.models import FieldError
from port_sdk.resources.base import BaseResource, validate_identifier_format

BASE_PATH = "/v1/blueprints"


class BlueprintResource(BaseResource):
    """Create, read, update and delete blueprints.

    Every method accepts ``signal=`` to cancel the call.
    """

    async def create(
        self, data: dict[str, Any], *, signal: Optional[CancellationSignal] = None
    ) -> dict[str, Any]:
        validate_identifier_format(data.get("identifier"), "Blueprint")
        title = data.get("title")
        if not title or not str(title).strip():
            raise ValidationError(
                "Blueprint title is required",
                [FieldError(field="title", message="Required field")],
                status_code=None,
            )
        response = await self._request("POST", BASE_PATH, body=data, signal=signal)
        return self._unwrap(response, "blueprint")

    async def get(
        self, identifier: str, *, signal: Optional[CancellationSignal] = None
    ) -> dict[str, Any]:
        validate_identifier_format(identifier, "Blueprint")
        response = await self._request("GET", f"{BASE_PATH}/{identifier}", signal=signal)
        return self._unwrap(response, "blueprint")

    async def update(
        self,
        identifier: str,
        data: dict[str, Any],
        *,
        signal: Optional[CancellationSignal] = None,
    ) -> dict[str, Any]:
        validate_identifier_format(identifier, "Blueprint")
        response = await self._request(
            "PATCH", f"{BASE_PATH}/{identifier}", body=data, signal=signal,
        )
        return self._unwrap(response, "blueprint")

    async def delete(
        self, identifier: str, *, signal: Optional[CancellationSignal] = None
    ) -> None:
        validate_identifier_format(identifier, "Blueprint")
        await self._request("DELETE", f"{BASE_PATH}/{identifier}", signal=signal)

    async def list(self, *, signal: Optional[CancellationSignal] = None) -> list[dict[str, Any]]:
        response = await self._request("GET", BASE_PATH, signal=signal)
        return self._unwrap(response, "blueprints", required=False) or []

    async def get_relations(
        self, identifier: str, *, signal: Optional[CancellationSignal] = None
    ) -> list[dict[str, Any]]:
        validate_identifier_format(identifier, "Blueprint")
        response = await self._request(
            "GET", f"{BASE_PATH}/{identifier}/relations", signal=signal,
        )
        return self._unwrap(response, "relations", required=False) or []
