"""Managed Disk handler.

Handles: azurerm_managed_disk (Microsoft.Compute/disks)
"""

import logging
from typing import Any, ClassVar, Dict, List

from azure.mgmt.compute.models import CreationData, Disk, DiskSku

from ...clients import ArmClientContext
from ...schema import (
    FieldSchema,
    FieldType,
    ResourceSchema,
    location_schema,
    resource_group_name_schema,
    tags_schema,
)
from ...state import ResourceData
from .. import resource
from ..base import ResourceHandler

logger = logging.getLogger(__name__)

STORAGE_ACCOUNT_TYPES = ("Standard_LRS", "Premium_LRS")
CREATE_OPTIONS = ("Empty", "Import", "Copy")
OS_TYPES = ("Windows", "Linux")

MIN_DISK_SIZE_GB = 1
MAX_DISK_SIZE_GB = 32767


def _validate_create_option(config: Dict[str, Any]) -> List[str]:
    """Import needs a source VHD and Copy needs a source disk."""
    errors = []
    create_option = str(config.get("create_option", "")).lower()
    if create_option == "import" and not config.get("source_uri"):
        errors.append("source_uri: required when create_option is Import")
    if create_option == "copy" and not config.get("source_resource_id"):
        errors.append("source_resource_id: required when create_option is Copy")
    return errors


@resource
class ManagedDiskResource(ResourceHandler):
    """Handler for Azure Managed Disks."""

    TYPE_NAME: ClassVar[str] = "azurerm_managed_disk"
    AZURE_TYPE: ClassVar[str] = "Microsoft.Compute/disks"
    ID_PATH_KEY: ClassVar[str] = "disks"
    DISPLAY_NAME: ClassVar[str] = "Managed Disk"

    SCHEMA: ClassVar[ResourceSchema] = ResourceSchema(
        "azurerm_managed_disk",
        {
            "name": FieldSchema(FieldType.STRING, required=True, force_new=True),
            "resource_group_name": resource_group_name_schema(),
            "location": location_schema(),
            "storage_account_type": FieldSchema(
                FieldType.STRING,
                required=True,
                ignore_case=True,
                allowed_values=STORAGE_ACCOUNT_TYPES,
            ),
            "create_option": FieldSchema(
                FieldType.STRING,
                required=True,
                force_new=True,
                ignore_case=True,
                allowed_values=CREATE_OPTIONS,
            ),
            "source_uri": FieldSchema(
                FieldType.STRING,
                optional=True,
                computed=True,
                force_new=True,
                description="URI of the VHD blob to import",
            ),
            "storage_account_id": FieldSchema(
                FieldType.STRING,
                optional=True,
                force_new=True,
                description="Storage account holding source_uri",
            ),
            "source_resource_id": FieldSchema(
                FieldType.STRING,
                optional=True,
                force_new=True,
                description="ID of the managed disk to copy",
            ),
            "os_type": FieldSchema(
                FieldType.STRING,
                optional=True,
                computed=True,
                ignore_case=True,
                allowed_values=OS_TYPES,
            ),
            "disk_size_gb": FieldSchema(
                FieldType.INT,
                optional=True,
                computed=True,
                min_value=MIN_DISK_SIZE_GB,
                max_value=MAX_DISK_SIZE_GB,
            ),
            "tags": tags_schema(),
        },
        validators=[_validate_create_option],
    )

    def get_remote(
        self, clients: ArmClientContext, resource_group: str, name: str, timeout: int
    ) -> Any:
        return clients.compute.disks.get(resource_group, name, timeout=timeout)

    def put_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        creation_data = CreationData(create_option=data.get_str("create_option"))
        source_uri = data.get_optional("source_uri")
        if source_uri is not None:
            creation_data.source_uri = source_uri
        storage_account_id = data.get_optional("storage_account_id")
        if storage_account_id is not None:
            creation_data.storage_account_id = storage_account_id
        source_resource_id = data.get_optional("source_resource_id")
        if source_resource_id is not None:
            creation_data.source_resource_id = source_resource_id

        disk = Disk(
            location=data.get_str("location"),
            tags=self.expand_tags(data.get_tags()),
            sku=DiskSku(name=data.get_str("storage_account_type")),
            creation_data=creation_data,
        )
        disk_size_gb = data.get_optional("disk_size_gb")
        if disk_size_gb is not None:
            disk.disk_size_gb = disk_size_gb
        os_type = data.get_optional("os_type")
        if os_type is not None:
            disk.os_type = os_type

        operation = self.write_operation(data)
        poller = clients.compute.disks.begin_create_or_update(
            resource_group, name, disk
        )
        self.wait(poller, data, operation, name)

    def delete_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        poller = clients.compute.disks.begin_delete(resource_group, name)
        self.wait(poller, data, "delete", name)

    def populate(
        self, data: ResourceData, remote: Any, resource_group: str, name: str
    ) -> None:
        data.set("name", name)
        data.set("resource_group_name", resource_group)
        if remote.location:
            data.set("location", remote.location)
        data.set("tags", self.flatten_tags(remote.tags))

        if remote.sku is not None and remote.sku.name is not None:
            data.set("storage_account_type", self.enum_value(remote.sku.name))
        if remote.disk_size_gb is not None:
            data.set("disk_size_gb", remote.disk_size_gb)
        if remote.os_type is not None:
            data.set("os_type", self.enum_value(remote.os_type))

        creation_data = remote.creation_data
        if creation_data is not None:
            data.set("create_option", self.enum_value(creation_data.create_option))
            if creation_data.source_uri:
                data.set("source_uri", creation_data.source_uri)
            if creation_data.storage_account_id:
                data.set("storage_account_id", creation_data.storage_account_id)
            if creation_data.source_resource_id:
                data.set("source_resource_id", creation_data.source_resource_id)
