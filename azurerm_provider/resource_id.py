"""Azure Resource ID codec.

Azure Resource Manager identifies every resource with a slash-delimited path:

    /subscriptions/{sub}/resourceGroups/{rg}/providers/{namespace}/{type}/{name}[/{childType}/{childName}...]

``parse_resource_id`` turns that string into a ``ResourceID`` and
``ResourceID.format`` turns it back. Resource groups themselves have no
provider segment:

    /subscriptions/{sub}/resourceGroups/{rg}
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from .exceptions import ResourceIdFormatError

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_KEY = "subscriptions"
RESOURCE_GROUPS_KEY = "resourceGroups"
PROVIDERS_KEY = "providers"


@dataclass
class ResourceID:
    """Structured form of an Azure resource ID.

    Attributes:
        subscription_id: Subscription the resource lives in
        resource_group: Resource group name
        provider: Provider namespace (e.g. "Microsoft.Web"), empty for resource groups
        path: Ordered mapping of resource-type segment to name segment
            (e.g. {"sites": "my-app"})
    """

    subscription_id: str
    resource_group: str
    provider: str = ""
    path: Dict[str, str] = field(default_factory=dict)

    def format(self) -> str:
        """Format as the canonical ARM ID string."""
        segments = [
            "",
            SUBSCRIPTIONS_KEY,
            self.subscription_id,
            RESOURCE_GROUPS_KEY,
            self.resource_group,
        ]
        if self.provider:
            segments.extend([PROVIDERS_KEY, self.provider])
        for key, value in self.path.items():
            segments.extend([key, value])
        return "/".join(segments)

    def __str__(self) -> str:
        return self.format()

    def name(self, key: str) -> str:
        """Return the name segment following the ``key`` type segment.

        Raises:
            ResourceIdFormatError: If the ID has no such segment
        """
        value = self.path.get(key)
        if not value:
            raise ResourceIdFormatError(
                f"Resource ID has no '{key}' segment",
                resource_id=self.format(),
            )
        return value

    @property
    def resource_type(self) -> Optional[str]:
        """Full ARM type, e.g. ``Microsoft.Web/sites``, or None for resource groups."""
        if not self.provider or not self.path:
            return None
        return "/".join([self.provider, *self.path.keys()])


def parse_resource_id(resource_id: str) -> ResourceID:
    """Parse an ARM resource ID string.

    Args:
        resource_id: Full ARM resource ID

    Returns:
        Parsed ResourceID

    Raises:
        ResourceIdFormatError: If the ID is empty, not slash-prefixed, has an odd
            number of segments, or lacks the subscription or resource group
    """
    if not resource_id or not resource_id.startswith("/"):
        raise ResourceIdFormatError(
            "Resource ID must start with '/'", resource_id=resource_id
        )

    trimmed = resource_id.strip("/")
    components = trimmed.split("/") if trimmed else []
    if len(components) % 2 != 0:
        raise ResourceIdFormatError(
            "The number of path segments is not divisible by 2",
            resource_id=resource_id,
        )
    if any(not component for component in components):
        raise ResourceIdFormatError(
            "Resource ID contains an empty segment", resource_id=resource_id
        )

    subscription_id = ""
    resource_group = ""
    provider = ""
    path: Dict[str, str] = {}

    for i in range(0, len(components), 2):
        key, value = components[i], components[i + 1]
        if key == SUBSCRIPTIONS_KEY and not subscription_id:
            subscription_id = value
        # ARM sometimes returns the resource group key in lower case
        elif key in (RESOURCE_GROUPS_KEY, "resourcegroups") and not resource_group:
            resource_group = value
        elif key == PROVIDERS_KEY and not provider:
            provider = value
        else:
            path[key] = value

    if not subscription_id:
        raise ResourceIdFormatError(
            "No subscription ID found in resource ID", resource_id=resource_id
        )
    if not resource_group:
        raise ResourceIdFormatError(
            "No resource group name found in resource ID", resource_id=resource_id
        )
    if path and not provider:
        raise ResourceIdFormatError(
            "Resource ID has type segments but no provider namespace",
            resource_id=resource_id,
        )

    logger.debug(f"Parsed resource ID {resource_id}")
    return ResourceID(
        subscription_id=subscription_id,
        resource_group=resource_group,
        provider=provider,
        path=path,
    )
