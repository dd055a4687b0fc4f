"""SQL Server handler.

Handles: azurerm_sql_server (Microsoft.Sql/servers)
"""

import logging
from typing import Any, ClassVar

from azure.mgmt.sql.models import Server

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

SQL_SERVER_VERSIONS = ("2.0", "12.0")


@resource
class SqlServerResource(ResourceHandler):
    """Handler for Azure SQL logical servers.

    The administrator password is write-only: Azure never returns it, so read
    leaves the configured value untouched.
    """

    TYPE_NAME: ClassVar[str] = "azurerm_sql_server"
    AZURE_TYPE: ClassVar[str] = "Microsoft.Sql/servers"
    ID_PATH_KEY: ClassVar[str] = "servers"
    DISPLAY_NAME: ClassVar[str] = "SQL Server"

    SCHEMA: ClassVar[ResourceSchema] = ResourceSchema(
        "azurerm_sql_server",
        {
            "name": FieldSchema(FieldType.STRING, required=True, force_new=True),
            "resource_group_name": resource_group_name_schema(),
            "location": location_schema(),
            "version": FieldSchema(
                FieldType.STRING, required=True, allowed_values=SQL_SERVER_VERSIONS
            ),
            "administrator_login": FieldSchema(
                FieldType.STRING, required=True, force_new=True
            ),
            "administrator_login_password": FieldSchema(
                FieldType.STRING, required=True, sensitive=True
            ),
            "tags": tags_schema(),
            "fully_qualified_domain_name": FieldSchema(FieldType.STRING, computed=True),
        },
    )

    def get_remote(
        self, clients: ArmClientContext, resource_group: str, name: str, timeout: int
    ) -> Any:
        return clients.sql.servers.get(resource_group, name, timeout=timeout)

    def put_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        server = Server(
            location=data.get_str("location"),
            tags=self.expand_tags(data.get_tags()),
            version=data.get_str("version"),
            administrator_login=data.get_str("administrator_login"),
            administrator_login_password=data.get_str("administrator_login_password"),
        )

        operation = self.write_operation(data)
        poller = clients.sql.servers.begin_create_or_update(
            resource_group, name, server
        )
        self.wait(poller, data, operation, name)

    def delete_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        poller = clients.sql.servers.begin_delete(resource_group, name)
        self.wait(poller, data, "delete", name)

    def populate(
        self, data: ResourceData, remote: Any, resource_group: str, name: str
    ) -> None:
        data.set("name", name)
        data.set("resource_group_name", resource_group)
        if remote.location:
            data.set("location", remote.location)
        data.set("tags", self.flatten_tags(remote.tags))
        if remote.version:
            data.set("version", remote.version)
        if remote.administrator_login:
            data.set("administrator_login", remote.administrator_login)
        data.set(
            "fully_qualified_domain_name", remote.fully_qualified_domain_name or ""
        )
