"""AzureRM provider: declarative lifecycle management for Azure resources."""

from .clients import ArmClientContext, wait_for_completion
from .config_manager import ProviderConfig, create_config_from_env
from .engine import Engine
from .exceptions import ProviderError
from .provider import PlanAction, PlannedChange, Provider
from .resource_id import ResourceID, parse_resource_id
from .state import ResourceData, ResourceState, StateStore

__version__ = "0.1.0"

__all__ = [
    "ArmClientContext",
    "Engine",
    "PlanAction",
    "PlannedChange",
    "Provider",
    "ProviderConfig",
    "ProviderError",
    "ResourceData",
    "ResourceID",
    "ResourceState",
    "StateStore",
    "create_config_from_env",
    "parse_resource_id",
    "wait_for_completion",
]
