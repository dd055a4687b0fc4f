"""Resource registry for type dispatch.

This module provides the ResourceRegistry class that manages registration
and lookup of resource handlers by provider type name
(e.g. ``azurerm_managed_disk``) or ARM type (e.g. ``Microsoft.Compute/disks``).
"""

import logging
from typing import Dict, List, Optional, Type

from .base import ResourceHandler

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """Registry of resource handler classes.

    Usage:
        @resource
        class ManagedDiskResource(ResourceHandler):
            TYPE_NAME = "azurerm_managed_disk"
            AZURE_TYPE = "Microsoft.Compute/disks"
            ...

        # Later:
        handler = ResourceRegistry.get_handler("azurerm_managed_disk", clients)
    """

    _handlers: Dict[str, Type[ResourceHandler]] = {}
    _azure_type_cache: Dict[str, Type[ResourceHandler]] = {}

    @classmethod
    def register(cls, handler_class: Type[ResourceHandler]) -> Type[ResourceHandler]:
        """Register a handler class.

        Args:
            handler_class: Handler class to register

        Returns:
            The handler class (unchanged)

        Raises:
            ValueError: If the class declares no TYPE_NAME or another class
                already claims it
        """
        type_name = handler_class.TYPE_NAME
        if not type_name:
            raise ValueError(f"{handler_class.__name__} does not declare TYPE_NAME")
        existing = cls._handlers.get(type_name)
        if existing is not None and existing is not handler_class:
            raise ValueError(
                f"{type_name} is already handled by {existing.__name__}"
            )
        if existing is None:
            cls._handlers[type_name] = handler_class
            if handler_class.AZURE_TYPE:
                cls._azure_type_cache[handler_class.AZURE_TYPE.lower()] = handler_class
            logger.debug(f"Registered handler {handler_class.__name__} for {type_name}")
        return handler_class

    @classmethod
    def get_handler_class(cls, type_name: str) -> Optional[Type[ResourceHandler]]:
        """Look up a handler class by provider type name or ARM type."""
        handler_class = cls._handlers.get(type_name)
        if handler_class is None:
            handler_class = cls._azure_type_cache.get(type_name.lower())
        return handler_class

    @classmethod
    def get_all_type_names(cls) -> List[str]:
        """Get all registered provider type names, sorted."""
        return sorted(cls._handlers)

    @classmethod
    def get_all_handlers(cls) -> List[Type[ResourceHandler]]:
        """Get all registered handler classes (copy)."""
        return list(cls._handlers.values())

    @classmethod
    def clear(cls) -> None:
        """Clear all registered handlers.

        Primarily for testing.
        """
        cls._handlers = {}
        cls._azure_type_cache = {}


def resource(cls: Type[ResourceHandler]) -> Type[ResourceHandler]:
    """Decorator to register a handler class."""
    return ResourceRegistry.register(cls)


def _register_all_resources() -> None:
    """Import all handler modules to trigger registration."""
    from .compute import managed_disk
    from .database import sql_server
    from .misc import resource_group
    from .web import app_service

    logger.debug(
        f"Registered {len(ResourceRegistry._handlers)} resource types: "
        f"{', '.join(ResourceRegistry.get_all_type_names())}"
    )


_resources_registered = False


def ensure_resources_registered() -> None:
    """Ensure all handlers are registered.

    Called lazily on first lookup. Safe to call after ``ResourceRegistry.clear``
    in tests: handlers are re-registered from the already imported modules.
    """
    global _resources_registered
    if not _resources_registered:
        _register_all_resources()
        _resources_registered = True
    if not ResourceRegistry._handlers:
        from .compute.managed_disk import ManagedDiskResource
        from .database.sql_server import SqlServerResource
        from .misc.resource_group import ResourceGroupResource
        from .web.app_service import AppServiceResource

        for handler_class in (
            ResourceGroupResource,
            AppServiceResource,
            ManagedDiskResource,
            SqlServerResource,
        ):
            ResourceRegistry.register(handler_class)


__all__ = [
    "ResourceHandler",
    "ResourceRegistry",
    "ensure_resources_registered",
    "resource",
]
