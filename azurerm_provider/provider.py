"""Provider: schema validation, planning and lifecycle dispatch.

The provider sits between the engine and the resource handlers. It validates
configuration against a handler's schema, compares it with prior state to
decide what has to happen, and runs the matching handler operation.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .clients import ArmClientContext
from .exceptions import (
    InconsistentResultError,
    InvalidConfigurationError,
    MissingConfigurationError,
    ResourceError,
    ResourceIdFormatError,
    UnknownResourceTypeError,
)
from .resource_id import parse_resource_id
from .resources import ResourceHandler, ResourceRegistry, ensure_resources_registered
from .schema import TIMEOUTS_KEY, UNKNOWN, ResourceSchema
from .state import ResourceState

logger = logging.getLogger(__name__)


class PlanAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NO_OP = "no-op"


@dataclass
class PlannedChange:
    """Outcome of comparing one resource's configuration with its prior state."""

    address: str
    type_name: str
    action: PlanAction
    config: Dict[str, Any] = field(default_factory=dict)
    prior: Optional[ResourceState] = None
    changes: Dict[str, Tuple[Any, Any]] = field(default_factory=dict)
    replace_fields: List[str] = field(default_factory=list)

    @property
    def is_no_op(self) -> bool:
        return self.action == PlanAction.NO_OP


class Provider:
    """Dispatches resource operations to registered handlers."""

    def __init__(self, clients: Optional[ArmClientContext] = None):
        ensure_resources_registered()
        self.clients = clients
        self._handlers: Dict[str, ResourceHandler] = {}

    def handler_for(self, type_name: str) -> ResourceHandler:
        """Return the handler for a provider type name.

        Raises:
            UnknownResourceTypeError: If no handler is registered for the type
        """
        if type_name not in self._handlers:
            handler_class = ResourceRegistry.get_handler_class(type_name)
            if handler_class is None:
                raise UnknownResourceTypeError(
                    f"Unsupported resource type: {type_name}", resource_type=type_name
                )
            self._handlers[type_name] = handler_class()
        return self._handlers[type_name]

    def require_clients(self) -> ArmClientContext:
        """Return the Azure clients, failing if the provider was built without them.

        Validation and planning need no clients; anything touching Azure does.
        """
        if self.clients is None:
            raise MissingConfigurationError(
                "Azure clients are not configured for this provider",
                missing_keys=["ARM_SUBSCRIPTION_ID"],
            )
        return self.clients

    def resource_types(self) -> List[str]:
        return ResourceRegistry.get_all_type_names()

    def schema(self, type_name: str) -> ResourceSchema:
        return self.handler_for(type_name).SCHEMA

    def validate(self, type_name: str, config: Dict[str, Any]) -> Dict[str, Any]:
        """Validate configuration and return it normalized with defaults applied.

        Raises:
            SchemaValidationError: If the configuration does not match the schema
        """
        return self.schema(type_name).validate(config)

    def plan(
        self,
        type_name: str,
        config: Optional[Dict[str, Any]],
        prior: Optional[ResourceState],
        address: Optional[str] = None,
    ) -> PlannedChange:
        """Decide what applying ``config`` on top of ``prior`` requires.

        A None ``config`` means the resource is no longer declared.
        """
        address = address or type_name
        if config is None:
            action = PlanAction.DELETE if prior is not None else PlanAction.NO_OP
            return PlannedChange(address, type_name, action, prior=prior)

        schema = self.schema(type_name)
        normalized = schema.validate(config)
        attributes = {k: v for k, v in normalized.items() if k != TIMEOUTS_KEY}

        if prior is None:
            changes = schema.diff(attributes, {})
            return PlannedChange(
                address, type_name, PlanAction.CREATE, normalized, None, changes
            )

        changes = schema.diff(attributes, prior.attributes)
        replace_fields = schema.requires_replace(changes)
        if replace_fields:
            action = PlanAction.REPLACE
        elif changes:
            action = PlanAction.UPDATE
        else:
            action = PlanAction.NO_OP
        logger.debug(
            f"Planned {action.value} for {address}"
            + (f" (forces replacement: {', '.join(replace_fields)})" if replace_fields else "")
        )
        return PlannedChange(
            address, type_name, action, normalized, prior, changes, replace_fields
        )

    def apply(self, change: PlannedChange) -> Optional[ResourceState]:
        """Carry out a planned change.

        Returns:
            The new state, or None when the resource was deleted

        Raises:
            InconsistentResultError: If the resource is missing right after
                being written
        """
        handler = self.handler_for(change.type_name)

        if change.action == PlanAction.NO_OP:
            return change.prior
        if change.action == PlanAction.DELETE:
            if change.prior is not None:
                self.destroy(change.type_name, change.prior)
            return None

        unresolved = [k for k, v in change.config.items() if v is UNKNOWN]
        if unresolved:
            raise InvalidConfigurationError(
                f"Cannot apply {change.address} with unresolved values: "
                f"{', '.join(unresolved)}",
                config_section=change.address,
            )

        prior = change.prior
        timeouts = change.config.get(TIMEOUTS_KEY)
        if change.action == PlanAction.REPLACE and prior is not None:
            logger.info(
                f"Replacing {change.address}: {', '.join(change.replace_fields)} changed"
            )
            self.destroy(change.type_name, prior, timeouts)
            prior = None

        data = handler.new_data(config=change.config, state=prior)
        if prior is None:
            handler.create(data, self.require_clients())
        else:
            handler.update(data, self.require_clients())

        state = data.state()
        if state is None:
            resource_group, name = handler.target(data)
            raise InconsistentResultError(
                f"{handler.DISPLAY_NAME} {name} was not found after apply",
                name=name,
                resource_group=resource_group,
            )
        return state

    def refresh(
        self,
        type_name: str,
        state: ResourceState,
        timeouts: Optional[Dict[str, Any]] = None,
    ) -> Optional[ResourceState]:
        """Re-read a resource; None means it no longer exists."""
        handler = self.handler_for(type_name)
        config = self._timeouts_config(type_name, timeouts)
        data = handler.new_data(config=config, state=state)
        handler.read(data, self.require_clients())
        return data.state()

    def destroy(
        self,
        type_name: str,
        state: ResourceState,
        timeouts: Optional[Dict[str, Any]] = None,
    ) -> None:
        handler = self.handler_for(type_name)
        config = self._timeouts_config(type_name, timeouts)
        data = handler.new_data(config=config, state=state)
        handler.delete(data, self.require_clients())

    def import_resource(self, type_name: str, resource_id: str) -> ResourceState:
        """Adopt an existing remote resource by ID.

        Raises:
            ResourceIdFormatError: If the ID is malformed or names another type
            ResourceError: If the remote resource does not exist
        """
        handler = self.handler_for(type_name)
        self._check_id_type(handler, resource_id)

        data = handler.import_state(resource_id)
        handler.read(data, self.require_clients())
        state = data.state()
        if state is None:
            raise ResourceError(
                f"Cannot import non-existent remote object {resource_id}",
                error_code="IMPORT_NOT_FOUND",
                context={"resource_id": resource_id},
            )
        logger.info(f"Imported {type_name} {resource_id}")
        return state

    @staticmethod
    def _check_id_type(handler: ResourceHandler, resource_id: str) -> None:
        parsed = parse_resource_id(resource_id)
        if handler.ID_PATH_KEY is None:
            matches = not parsed.path
        else:
            actual = parsed.resource_type or ""
            matches = actual.lower() == handler.AZURE_TYPE.lower()
        if not matches:
            raise ResourceIdFormatError(
                f"Resource ID does not identify a {handler.AZURE_TYPE}",
                resource_id=resource_id,
            )

    def _timeouts_config(
        self, type_name: str, timeouts: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        if not timeouts:
            return {}
        return {TIMEOUTS_KEY: self.schema(type_name).normalize_timeouts(timeouts)}
