"""Shared plumbing for the resource classes."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Optional

from port_sdk.cancellation import CancellationSignal
from port_sdk.exceptions import PortError, ValidationError
from port_sdk.models import FieldError, PaginatedResponse
from port_sdk.transport.async_executor import AsyncRequestExecutor
from port_sdk.transport.request import RequestDescriptor

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_identifier(value: Optional[str], label: str, field: str = "identifier") -> str:
    """Reject a missing or blank identifier.

    Raises:
        ValidationError: ``"{label} identifier is required"``.
    """
    if not value or not value.strip():
        raise ValidationError(
            f"{label} identifier is required",
            [FieldError(field=field, message="Required field", value=value)],
            status_code=None,
        )
    return value


def validate_identifier_format(value: Optional[str], label: str, field: str = "identifier") -> str:
    """Require a non-blank identifier made of letters, digits, ``-`` and ``_``."""
    validate_identifier(value, label, field)
    assert value is not None
    if not IDENTIFIER_PATTERN.match(value):
        raise ValidationError(
            f"{label} identifier has invalid format",
            [
                FieldError(
                    field=field,
                    message="Must contain only alphanumeric characters, hyphens, and underscores",
                    value=value,
                )
            ],
            status_code=None,
        )
    return value


class BaseResource:
    """Base class of the resource groups exposed on :class:`~port_sdk.PortClient`."""

    def __init__(self, executor: AsyncRequestExecutor) -> None:
        self._executor = executor

    async def _request(
        self,
        method: str,
        path: str,
        *,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        signal: Optional[CancellationSignal] = None,
    ) -> Any:
        return await self._executor.execute(
            RequestDescriptor(method=method, path=path, query=query, body=body, signal=signal)
        )

    @staticmethod
    def _unwrap(payload: Any, key: str, *, required: bool = True) -> Any:
        """Return ``payload[key]`` from a decoded response body.

        Raises:
            PortError: ``INVALID_RESPONSE`` when the body is not an object, or
                when *required* and the key is missing.
        """
        if payload is None and not required:
            return None
        if not isinstance(payload, dict):
            raise PortError(
                "Response body is not a JSON object", code="INVALID_RESPONSE", details=payload,
            )
        value = payload.get(key)
        if required and value is None:
            raise PortError(
                f"Response body is missing '{key}'", code="INVALID_RESPONSE", details=payload,
            )
        return value

    async def _paginate(
        self,
        path: str,
        data_key: str,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        cursor: Optional[str] = None,
        query: Optional[Mapping[str, Any]] = None,
        signal: Optional[CancellationSignal] = None,
    ) -> PaginatedResponse:
        params: dict[str, Any] = dict(query or {})
        params.update(limit=limit, offset=offset, cursor=cursor)
        payload = await self._request("GET", path, query=params, signal=signal)
        self._unwrap(payload, data_key, required=False)
        payload = payload or {}
        return PaginatedResponse(
            data=payload.get(data_key) or [],
            total=payload.get("total") or 0,
            limit=payload.get("limit") or 50,
            offset=payload.get("offset") or 0,
            has_more=bool(payload.get("hasMore")),
            next_cursor=payload.get("nextCursor"),
        )
