"""Tests for ResourceRegistry and handler registration."""

from typing import ClassVar

import pytest

from azurerm_provider.resources import (
    ResourceRegistry,
    ensure_resources_registered,
    resource,
)
from azurerm_provider.resources.base import ResourceHandler
from azurerm_provider.resources.compute import ManagedDiskResource
from azurerm_provider.resources.database import SqlServerResource
from azurerm_provider.resources.misc import ResourceGroupResource
from azurerm_provider.resources.web import AppServiceResource


@pytest.fixture(autouse=True)
def registered():
    ensure_resources_registered()
    yield
    ensure_resources_registered()


class TestResourceRegistry:
    def test_all_types_registered(self):
        assert ResourceRegistry.get_all_type_names() == [
            "azurerm_app_service",
            "azurerm_managed_disk",
            "azurerm_resource_group",
            "azurerm_sql_server",
        ]

    def test_lookup_by_type_name(self):
        assert ResourceRegistry.get_handler_class("azurerm_sql_server") is SqlServerResource

    def test_lookup_by_azure_type_ignores_case(self):
        assert (
            ResourceRegistry.get_handler_class("microsoft.compute/DISKS")
            is ManagedDiskResource
        )
        assert (
            ResourceRegistry.get_handler_class("Microsoft.Web/sites") is AppServiceResource
        )

    def test_unknown_type(self):
        assert ResourceRegistry.get_handler_class("azurerm_virtual_machine") is None

    def test_registering_same_class_twice_is_harmless(self):
        assert resource(ResourceGroupResource) is ResourceGroupResource
        assert len(ResourceRegistry.get_all_handlers()) == 4

    def test_conflicting_type_name_rejected(self):
        class OtherGroupResource(ResourceGroupResource):
            TYPE_NAME: ClassVar[str] = "azurerm_resource_group"

        with pytest.raises(ValueError, match="already handled by ResourceGroupResource"):
            ResourceRegistry.register(OtherGroupResource)

    def test_missing_type_name_rejected(self):
        class NamelessResource(ResourceGroupResource):
            TYPE_NAME: ClassVar[str] = ""

        with pytest.raises(ValueError, match="does not declare TYPE_NAME"):
            ResourceRegistry.register(NamelessResource)

    def test_clear_then_ensure_re_registers(self):
        ResourceRegistry.clear()
        assert ResourceRegistry.get_all_type_names() == []

        ensure_resources_registered()

        assert len(ResourceRegistry.get_all_type_names()) == 4
        assert (
            ResourceRegistry.get_handler_class("Microsoft.Resources/resourceGroups")
            is ResourceGroupResource
        )


class TestHandlerDeclarations:
    @pytest.mark.parametrize(
        "handler_class",
        [AppServiceResource, ManagedDiskResource, SqlServerResource, ResourceGroupResource],
    )
    def test_declares_type_and_schema(self, handler_class):
        assert issubclass(handler_class, ResourceHandler)
        assert handler_class.TYPE_NAME.startswith("azurerm_")
        assert handler_class.SCHEMA.type_name == handler_class.TYPE_NAME
        assert handler_class.DISPLAY_NAME
        assert "name" in handler_class.SCHEMA
        assert "tags" in handler_class.SCHEMA

    def test_name_changes_force_replacement(self):
        for handler_class in ResourceRegistry.get_all_handlers():
            assert "name" in handler_class.SCHEMA.force_new_fields
            assert "location" in handler_class.SCHEMA.force_new_fields
