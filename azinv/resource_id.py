"""
Structured Azure resource identifier parsing.

Wraps azure-mgmt-core's ``parse_resource_id`` so callers get typed fields
and a ``ResourceIdError`` on malformed input instead of a partial dict.
"""
from dataclasses import dataclass
from typing import Optional

from azure.mgmt.core.tools import is_valid_resource_id
from azure.mgmt.core.tools import parse_resource_id as _parse_arm_id

# ResourceIdError.kind values
EMPTY = 'empty'
MALFORMED = 'malformed'
MISSING_RESOURCE_GROUP = 'missing_resource_group'
MISSING_NAME = 'missing_name'


class ResourceIdError(ValueError):
    """Raised when a string is not a usable Azure resource identifier."""

    def __init__(self, resource_id: Optional[str], kind: str):
        self.resource_id = resource_id
        self.kind = kind
        super().__init__(f"Invalid Azure resource id ({kind}): {resource_id!r}")


@dataclass(frozen=True)
class ResourceId:
    """Parsed ARM resource id."""
    subscription: str
    resource_group: str
    namespace: str
    type: str
    name: str
    child_type: Optional[str] = None
    child_name: Optional[str] = None

    @property
    def leaf_name(self) -> str:
        """Name of the innermost resource (child name when present)."""
        return self.child_name or self.name

    @property
    def full_type(self) -> str:
        """Provider-qualified type, e.g. ``Microsoft.Compute/disks``."""
        return f"{self.namespace}/{self.type}"


def parse_resource_id(resource_id: Optional[str]) -> ResourceId:
    """
    Parse a resource id into its components.

    Raises:
        ResourceIdError: if the id is empty, malformed, or lacks a resource
            group or resource name.
    """
    if not resource_id:
        raise ResourceIdError(resource_id, EMPTY)

    if not is_valid_resource_id(resource_id):
        raise ResourceIdError(resource_id, MALFORMED)

    parts = _parse_arm_id(resource_id)
    if not parts.get('resource_group'):
        raise ResourceIdError(resource_id, MISSING_RESOURCE_GROUP)
    if not parts.get('name') or not parts.get('type'):
        raise ResourceIdError(resource_id, MISSING_NAME)

    last_child = parts.get('last_child_num')
    return ResourceId(
        subscription=parts['subscription'],
        resource_group=parts['resource_group'],
        namespace=parts.get('namespace', ''),
        type=parts['type'],
        name=parts['name'],
        child_type=parts.get(f'child_type_{last_child}') if last_child else None,
        child_name=parts.get(f'child_name_{last_child}') if last_child else None,
    )


def resource_group_of(resource_id: Optional[str]) -> Optional[str]:
    """Resource group of an id, or None when the id cannot be parsed."""
    try:
        return parse_resource_id(resource_id).resource_group
    except ResourceIdError:
        return None


def name_of(resource_id: Optional[str]) -> Optional[str]:
    """Leaf resource name of an id, or None when the id cannot be parsed."""
    try:
        return parse_resource_id(resource_id).leaf_name
    except ResourceIdError:
        return None
