"""In-memory stand-ins for the Azure management clients used by the handlers.

Each fake keeps remote objects in a dict keyed by (resource group, name),
returns real SDK model instances, and raises the same azure.core exceptions
the real clients raise.
"""

from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import Mock

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from azure.mgmt.compute.models import CreationData, Disk, DiskSku
from azure.mgmt.resource.resources.models import ResourceGroup
from azure.mgmt.sql.models import Server
from azure.mgmt.web.models import Site, SiteConfig

from azurerm_provider.config_manager import FeaturesConfig

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"


def http_error(status_code: int, message: str = "request failed") -> HttpResponseError:
    """Build an HttpResponseError carrying a status code."""
    return HttpResponseError(message=message, response=Mock(status_code=status_code))


class FakePoller:
    """LROPoller double: ``wait`` records the timeout, ``result`` returns or raises."""

    def __init__(self, result: Any = None, error: Optional[Exception] = None, done: bool = True):
        self._result = result
        self._error = error
        self._done = done
        self.wait_timeout: Optional[float] = None

    def wait(self, timeout: Optional[float] = None) -> None:
        self.wait_timeout = timeout

    def done(self) -> bool:
        return self._done

    def result(self, timeout: Optional[float] = None) -> Any:
        if self._error is not None:
            raise self._error
        return self._result


class _Store:
    def __init__(self, kind: str):
        self.kind = kind
        self.items: Dict[Tuple[str, str], Any] = {}
        self.calls: List[Tuple[str, tuple, dict]] = []

    @staticmethod
    def key(resource_group: str, name: str) -> Tuple[str, str]:
        return resource_group.lower(), name.lower()

    def lookup(self, resource_group: str, name: str) -> Any:
        item = self.items.get(self.key(resource_group, name))
        if item is None:
            raise ResourceNotFoundError(
                f"The {self.kind} '{name}' under resource group '{resource_group}' was not found."
            )
        return item


class FakeWebApps(_Store):
    def __init__(self):
        super().__init__("Microsoft.Web/sites")
        self.last_payload: Optional[Site] = None

    def site_id(self, resource_group: str, name: str) -> str:
        return (
            f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Web/sites/{name}"
        )

    def get(self, resource_group: str, name: str, **kwargs: Any) -> Site:
        self.calls.append(("get", (resource_group, name), kwargs))
        return self.lookup(resource_group, name)

    def begin_create_or_update(
        self, resource_group: str, name: str, site_envelope: Site, **kwargs: Any
    ) -> FakePoller:
        self.calls.append(("begin_create_or_update", (resource_group, name), kwargs))
        self.last_payload = site_envelope
        always_on = site_envelope.site_config.always_on if site_envelope.site_config else None
        site = Site(
            location=site_envelope.location,
            tags=dict(site_envelope.tags or {}),
            server_farm_id=site_envelope.server_farm_id,
            site_config=SiteConfig(always_on=False if always_on is None else always_on),
        )
        site.id = self.site_id(resource_group, name)
        site.name = name
        site.default_host_name = f"{name}.azurewebsites.net"
        self.items[self.key(resource_group, name)] = site
        return FakePoller(result=site)

    def delete(self, resource_group: str, name: str, **kwargs: Any) -> None:
        self.calls.append(("delete", (resource_group, name), kwargs))
        self.lookup(resource_group, name)
        del self.items[self.key(resource_group, name)]


class FakeDisks(_Store):
    def __init__(self):
        super().__init__("Microsoft.Compute/disks")
        self.last_payload: Optional[Disk] = None

    def disk_id(self, resource_group: str, name: str) -> str:
        return (
            f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Compute/disks/{name}"
        )

    def get(self, resource_group: str, name: str, **kwargs: Any) -> Disk:
        self.calls.append(("get", (resource_group, name), kwargs))
        return self.lookup(resource_group, name)

    def begin_create_or_update(
        self, resource_group: str, name: str, disk: Disk, **kwargs: Any
    ) -> FakePoller:
        self.calls.append(("begin_create_or_update", (resource_group, name), kwargs))
        self.last_payload = disk
        creation = disk.creation_data
        size = disk.disk_size_gb
        if size is None and creation.create_option == "Copy":
            source = self._by_id(creation.source_resource_id)
            size = source.disk_size_gb
        if size is None:
            error = http_error(400, "Required parameter 'diskSizeGB' is missing (null).")
            return FakePoller(error=error)

        stored = Disk(
            location=disk.location,
            tags=dict(disk.tags or {}),
            sku=DiskSku(name=disk.sku.name),
            creation_data=CreationData(
                create_option=creation.create_option,
                source_uri=creation.source_uri,
                storage_account_id=creation.storage_account_id,
                source_resource_id=creation.source_resource_id,
            ),
            disk_size_gb=size,
            os_type=disk.os_type,
        )
        stored.id = self.disk_id(resource_group, name)
        stored.name = name
        self.items[self.key(resource_group, name)] = stored
        return FakePoller(result=stored)

    def begin_delete(self, resource_group: str, name: str, **kwargs: Any) -> FakePoller:
        self.calls.append(("begin_delete", (resource_group, name), kwargs))
        self.lookup(resource_group, name)
        del self.items[self.key(resource_group, name)]
        return FakePoller()

    def _by_id(self, resource_id: str) -> Disk:
        for disk in self.items.values():
            if disk.id.lower() == resource_id.lower():
                return disk
        raise ResourceNotFoundError(f"Source disk '{resource_id}' was not found.")


class FakeServers(_Store):
    def __init__(self):
        super().__init__("Microsoft.Sql/servers")
        self.last_payload: Optional[Server] = None

    def get(self, resource_group: str, name: str, **kwargs: Any) -> Server:
        self.calls.append(("get", (resource_group, name), kwargs))
        return self.lookup(resource_group, name)

    def begin_create_or_update(
        self, resource_group: str, name: str, parameters: Server, **kwargs: Any
    ) -> FakePoller:
        self.calls.append(("begin_create_or_update", (resource_group, name), kwargs))
        self.last_payload = parameters
        # Azure never echoes the administrator password
        server = Server(
            location=parameters.location,
            tags=dict(parameters.tags or {}),
            version=parameters.version,
            administrator_login=parameters.administrator_login,
        )
        server.id = (
            f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Sql/servers/{name}"
        )
        server.name = name
        server.fully_qualified_domain_name = f"{name}.database.windows.net"
        self.items[self.key(resource_group, name)] = server
        return FakePoller(result=server)

    def begin_delete(self, resource_group: str, name: str, **kwargs: Any) -> FakePoller:
        self.calls.append(("begin_delete", (resource_group, name), kwargs))
        self.lookup(resource_group, name)
        del self.items[self.key(resource_group, name)]
        return FakePoller()


class FakeResourceGroups(_Store):
    def __init__(self):
        super().__init__("Microsoft.Resources/resourceGroups")

    def get(self, resource_group_name: str, **kwargs: Any) -> ResourceGroup:
        self.calls.append(("get", (resource_group_name,), kwargs))
        return self.lookup(resource_group_name, resource_group_name)

    def create_or_update(
        self, resource_group_name: str, parameters: ResourceGroup, **kwargs: Any
    ) -> ResourceGroup:
        self.calls.append(("create_or_update", (resource_group_name,), kwargs))
        group = ResourceGroup(location=parameters.location, tags=dict(parameters.tags or {}))
        group.id = f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{resource_group_name}"
        group.name = resource_group_name
        self.items[self.key(resource_group_name, resource_group_name)] = group
        return group

    def begin_delete(self, resource_group_name: str, **kwargs: Any) -> FakePoller:
        self.calls.append(("begin_delete", (resource_group_name,), kwargs))
        self.lookup(resource_group_name, resource_group_name)
        del self.items[self.key(resource_group_name, resource_group_name)]
        return FakePoller()


class FakeArmClients:
    """Duck-typed ArmClientContext backed by the in-memory fakes."""

    def __init__(self, features: Optional[FeaturesConfig] = None):
        self.subscription_id = SUBSCRIPTION_ID
        self.features = features or FeaturesConfig(
            app_service_delete_metrics=True,
            app_service_delete_empty_server_farm=True,
        )
        self.web = SimpleNamespace(web_apps=FakeWebApps())
        self.compute = SimpleNamespace(disks=FakeDisks())
        self.sql = SimpleNamespace(servers=FakeServers())
        self.resource = SimpleNamespace(resource_groups=FakeResourceGroups())

    def close(self) -> None:
        pass
