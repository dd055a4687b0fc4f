"""Resource Group handler.

Handles: azurerm_resource_group (Microsoft.Resources/resourceGroups)
"""

import logging
from typing import Any, ClassVar, Optional, Tuple

from azure.mgmt.resource.resources.models import ResourceGroup

from ...clients import ArmClientContext
from ...schema import FieldSchema, FieldType, ResourceSchema, location_schema, tags_schema
from ...state import ResourceData
from .. import resource
from ..base import ResourceHandler

logger = logging.getLogger(__name__)


@resource
class ResourceGroupResource(ResourceHandler):
    """Handler for Azure Resource Groups.

    A resource group's ID has no provider segment; its name is the
    ``resourceGroups`` segment itself.
    """

    TYPE_NAME: ClassVar[str] = "azurerm_resource_group"
    AZURE_TYPE: ClassVar[str] = "Microsoft.Resources/resourceGroups"
    ID_PATH_KEY: ClassVar[Optional[str]] = None
    DISPLAY_NAME: ClassVar[str] = "Resource Group"

    SCHEMA: ClassVar[ResourceSchema] = ResourceSchema(
        "azurerm_resource_group",
        {
            "name": FieldSchema(FieldType.STRING, required=True, force_new=True),
            "location": location_schema(),
            "tags": tags_schema(),
        },
    )

    def target(self, data: ResourceData) -> Tuple[str, str]:
        name = data.get_str("name")
        return name, name

    def get_remote(
        self, clients: ArmClientContext, resource_group: str, name: str, timeout: int
    ) -> Any:
        return clients.resource.resource_groups.get(name, timeout=timeout)

    def put_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        parameters = ResourceGroup(
            location=data.get_str("location"),
            tags=self.expand_tags(data.get_tags()),
        )
        operation = self.write_operation(data)
        # Not a long-running operation: the call returns the group directly
        clients.resource.resource_groups.create_or_update(
            name, parameters, timeout=getattr(data.timeouts, operation)
        )

    def delete_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        poller = clients.resource.resource_groups.begin_delete(name)
        self.wait(poller, data, "delete", name)

    def populate(
        self, data: ResourceData, remote: Any, resource_group: str, name: str
    ) -> None:
        data.set("name", remote.name or name)
        if remote.location:
            data.set("location", remote.location)
        data.set("tags", self.flatten_tags(remote.tags))
