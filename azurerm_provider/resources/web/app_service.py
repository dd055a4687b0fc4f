"""App Service handler.

Handles: azurerm_app_service (Microsoft.Web/sites)
"""

import logging
from typing import Any, ClassVar

from azure.mgmt.web.models import Site, SiteConfig

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


@resource
class AppServiceResource(ResourceHandler):
    """Handler for Azure App Services (web apps).

    The plan reference and ``always_on`` are only sent when configured, so an
    omitted value never overrides what Azure assigns.
    """

    TYPE_NAME: ClassVar[str] = "azurerm_app_service"
    AZURE_TYPE: ClassVar[str] = "Microsoft.Web/sites"
    ID_PATH_KEY: ClassVar[str] = "sites"
    DISPLAY_NAME: ClassVar[str] = "App Service"

    SCHEMA: ClassVar[ResourceSchema] = ResourceSchema(
        "azurerm_app_service",
        {
            "name": FieldSchema(FieldType.STRING, required=True, force_new=True),
            "resource_group_name": resource_group_name_schema(),
            "location": location_schema(),
            "app_service_plan_id": FieldSchema(
                FieldType.STRING,
                optional=True,
                computed=True,
                description="ID of the App Service Plan (server farm) hosting the app",
            ),
            "always_on": FieldSchema(FieldType.BOOL, optional=True, computed=True),
            "tags": tags_schema(),
            "default_site_hostname": FieldSchema(FieldType.STRING, computed=True),
        },
    )

    def get_remote(
        self, clients: ArmClientContext, resource_group: str, name: str, timeout: int
    ) -> Any:
        return clients.web.web_apps.get(resource_group, name, timeout=timeout)

    def put_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        site_config = SiteConfig()
        always_on = data.get_optional("always_on")
        if always_on is not None:
            site_config.always_on = always_on

        site_envelope = Site(
            location=data.get_str("location"),
            tags=self.expand_tags(data.get_tags()),
            site_config=site_config,
        )
        plan_id = data.get_optional("app_service_plan_id")
        if plan_id is not None:
            site_envelope.server_farm_id = plan_id

        operation = self.write_operation(data)
        poller = clients.web.web_apps.begin_create_or_update(
            resource_group, name, site_envelope
        )
        self.wait(poller, data, operation, name)

    def delete_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        features = clients.features
        clients.web.web_apps.delete(
            resource_group,
            name,
            delete_metrics=features.app_service_delete_metrics,
            delete_empty_server_farm=features.app_service_delete_empty_server_farm,
            timeout=data.timeouts.delete,
        )

    def populate(
        self, data: ResourceData, remote: Any, resource_group: str, name: str
    ) -> None:
        data.set("name", name)
        data.set("resource_group_name", resource_group)
        if remote.location:
            data.set("location", remote.location)
        data.set("tags", self.flatten_tags(remote.tags))
        data.set("app_service_plan_id", remote.server_farm_id or "")
        data.set("default_site_hostname", remote.default_host_name or "")

        site_config = remote.site_config
        if site_config is not None and site_config.always_on is not None:
            data.set("always_on", site_config.always_on)
