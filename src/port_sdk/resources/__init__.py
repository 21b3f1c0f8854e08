"""Resource groups exposed on :class:`~port_sdk.client.PortClient`."""

from port_sdk.resources.base import BaseResource, validate_identifier, validate_identifier_format
from port_sdk.resources.blueprints import BlueprintResource
from port_sdk.resources.entities import EntityResource

__all__ = [
    "BaseResource",
    "BlueprintResource",
    "EntityResource",
    "validate_identifier",
    "validate_identifier_format",
]
