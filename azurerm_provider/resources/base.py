"""Base handler interface for AzureRM resource types.

This module defines the abstract base class every resource handler
implements. A handler maps one provider resource type onto the Azure SDK:
it builds the SDK model from ``ResourceData``, issues the blocking call, and
copies the remotely controlled fields back.

Handlers are stateless. Everything they need arrives with each call: the
``ResourceData`` for the resource and the ``ArmClientContext`` holding the
SDK clients.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Optional, Tuple

from azure.core.exceptions import AzureError
from azure.core.polling import LROPoller

from ..clients import ArmClientContext, wait_for_completion
from ..exceptions import MissingResourceIdError, ResourceReadError, is_not_found
from ..resource_id import parse_resource_id
from ..schema import ResourceSchema
from ..state import ResourceData, ResourceState

logger = logging.getLogger(__name__)


class ResourceHandler(ABC):
    """Abstract base class for AzureRM resource handlers.

    Subclasses declare their type and schema and implement the four SDK
    calls; the lifecycle (create/update, read, delete, import) is shared.

    Usage:
        @resource
        class ManagedDiskResource(ResourceHandler):
            TYPE_NAME = "azurerm_managed_disk"
            AZURE_TYPE = "Microsoft.Compute/disks"
            ID_PATH_KEY = "disks"
            DISPLAY_NAME = "Managed Disk"
            SCHEMA = ResourceSchema(...)

            def get_remote(self, clients, resource_group, name, timeout): ...
            def put_remote(self, clients, data, resource_group, name): ...
            def delete_remote(self, clients, data, resource_group, name): ...
            def populate(self, data, remote, resource_group, name): ...
    """

    # Provider type name, e.g. "azurerm_app_service"
    TYPE_NAME: ClassVar[str] = ""

    # ARM resource type, e.g. "Microsoft.Web/sites"
    AZURE_TYPE: ClassVar[str] = ""

    # Resource ID path segment holding the resource name ("sites", "disks").
    # None when the name is the resource group itself.
    ID_PATH_KEY: ClassVar[Optional[str]] = None

    # Used in log and error messages
    DISPLAY_NAME: ClassVar[str] = ""

    SCHEMA: ClassVar[ResourceSchema]

    @classmethod
    def new_data(
        cls,
        config: Optional[Dict[str, Any]] = None,
        state: Optional[ResourceState] = None,
    ) -> ResourceData:
        return ResourceData(cls.SCHEMA, config=config, state=state)

    # Lifecycle

    def create(self, data: ResourceData, clients: ArmClientContext) -> None:
        self.create_or_update(data, clients)

    def update(self, data: ResourceData, clients: ArmClientContext) -> None:
        self.create_or_update(data, clients)

    def create_or_update(self, data: ResourceData, clients: ArmClientContext) -> None:
        """Create or update the remote resource, then read it back.

        SDK errors from the write and the confirming get propagate unmodified.

        Raises:
            MissingResourceIdError: If the confirming get returns no ID
            OperationTimeoutError: If the write outlives its timeout
        """
        resource_group, name = self.target(data)
        logger.info(
            f"[INFO] preparing arguments for Azure ARM {self.DISPLAY_NAME} creation."
        )
        self.put_remote(clients, data, resource_group, name)

        remote = self.get_remote(clients, resource_group, name, data.timeouts.read)
        data.set_id(self.confirm_id(remote, name, resource_group))

        self.read(data, clients)

    def read(self, data: ResourceData, clients: ArmClientContext) -> None:
        """Refresh ``data`` from the remote resource.

        A resource that no longer exists clears the ID instead of raising.

        Raises:
            ResourceIdFormatError: If the stored ID cannot be parsed
            ResourceReadError: For any failure other than not-found
        """
        resource_group, name = self.parse_id(data.id)
        logger.debug(f"[DEBUG] Reading {self.DISPLAY_NAME} details {data.id}")

        try:
            remote = self.get_remote(clients, resource_group, name, data.timeouts.read)
        except AzureError as e:
            self.handle_read_error(data, e, name, resource_group)
            return

        if remote is None:
            self.mark_gone(data, name, resource_group)
            return

        self.populate(data, remote, resource_group, name)

    def delete(self, data: ResourceData, clients: ArmClientContext) -> None:
        """Delete the remote resource.

        Not-found counts as success; any other SDK error propagates unmodified.
        """
        resource_group, name = self.parse_id(data.id)
        logger.debug(f"[DEBUG] Deleting {self.DISPLAY_NAME} {resource_group}: {name}")

        try:
            self.delete_remote(clients, data, resource_group, name)
        except AzureError as e:
            if not is_not_found(e):
                raise
            logger.info(
                f"{self.DISPLAY_NAME} {name} (resource group {resource_group}) "
                "was already deleted"
            )
        data.set_id("")

    def import_state(self, resource_id: str) -> ResourceData:
        """Accept an existing resource ID as-is; read hydrates the rest."""
        data = self.new_data()
        data.set_id(resource_id)
        return data

    # SDK calls implemented per resource type

    @abstractmethod
    def get_remote(
        self,
        clients: ArmClientContext,
        resource_group: str,
        name: str,
        timeout: int,
    ) -> Any:
        """Fetch the remote object. Not-found must raise an AzureError."""
        raise NotImplementedError

    @abstractmethod
    def put_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        """Send the create-or-update request and block until it completes."""
        raise NotImplementedError

    @abstractmethod
    def delete_remote(
        self,
        clients: ArmClientContext,
        data: ResourceData,
        resource_group: str,
        name: str,
    ) -> None:
        """Send the delete request and block until it completes."""
        raise NotImplementedError

    @abstractmethod
    def populate(
        self,
        data: ResourceData,
        remote: Any,
        resource_group: str,
        name: str,
    ) -> None:
        """Copy the fields the remote system controls into ``data``."""
        raise NotImplementedError

    # Utility methods available to all handlers

    def target(self, data: ResourceData) -> Tuple[str, str]:
        """Resource group and name the configuration addresses."""
        return data.get_str("resource_group_name"), data.get_str("name")

    def parse_id(self, resource_id: str) -> Tuple[str, str]:
        """Extract (resource group, name) from a resource ID.

        Raises:
            ResourceIdFormatError: If the ID is malformed or lacks the name segment
        """
        parsed = parse_resource_id(resource_id)
        if self.ID_PATH_KEY is None:
            return parsed.resource_group, parsed.resource_group
        return parsed.resource_group, parsed.name(self.ID_PATH_KEY)

    def wait(
        self,
        poller: LROPoller,
        data: ResourceData,
        operation: str,
        name: str,
    ) -> Any:
        """Wait on a long-running operation with the resource's timeout for it."""
        timeout = getattr(data.timeouts, operation)
        return wait_for_completion(
            poller,
            timeout=timeout,
            operation=f"{operation} {self.DISPLAY_NAME}",
            resource_name=name,
        )

    @staticmethod
    def write_operation(data: ResourceData) -> str:
        return "create" if data.is_new_resource() else "update"

    def confirm_id(self, remote: Any, name: str, resource_group: str) -> str:
        remote_id = getattr(remote, "id", None) if remote is not None else None
        if not remote_id:
            raise MissingResourceIdError(
                f"Cannot read {self.DISPLAY_NAME} {name} "
                f"(resource group {resource_group}) ID",
                name=name,
                resource_group=resource_group,
            )
        return remote_id

    def mark_gone(self, data: ResourceData, name: str, resource_group: str) -> None:
        logger.info(
            f"{self.DISPLAY_NAME} {name} (resource group {resource_group}) "
            "no longer exists; removing from state"
        )
        data.set_id("")

    def handle_read_error(
        self,
        data: ResourceData,
        error: AzureError,
        name: str,
        resource_group: str,
    ) -> None:
        """Translate a failed get: not-found clears the ID, anything else raises."""
        if is_not_found(error):
            self.mark_gone(data, name, resource_group)
            return
        raise ResourceReadError(
            f"Error making Read request on AzureRM {self.DISPLAY_NAME} {name}: {error}",
            name=name,
            resource_group=resource_group,
            cause=error,
        ) from error

    @staticmethod
    def expand_tags(tags: Dict[str, str]) -> Dict[str, str]:
        """Convert configured tags to the SDK's tag mapping."""
        return {str(k): str(v) for k, v in tags.items()}

    @staticmethod
    def flatten_tags(tags: Optional[Dict[str, Any]]) -> Dict[str, str]:
        """Convert SDK tags (possibly None) to a plain mapping."""
        if not tags:
            return {}
        return {k: "" if v is None else str(v) for k, v in tags.items()}

    @staticmethod
    def enum_value(value: Any) -> Any:
        """Return the string value of an SDK enum (or the value unchanged)."""
        return getattr(value, "value", value)
