"""
Engine: orders declared resources and drives the provider over them.

Dependencies come from ``${type.label.field}`` references: a resource is
planned and applied after every resource it references, and destroyed
before them. Ordering uses a networkx dependency graph. State is written
after every resource so a failed run keeps what was already applied.
"""

from typing import Any, Dict, Iterable, List, Optional

import networkx as nx
import structlog

from .config_loader import ResourceBlock, resolve_interpolations
from .exceptions import InterpolationError, InvalidConfigurationError, StateError
from .provider import PlanAction, PlannedChange, Provider
from .schema import TIMEOUTS_KEY, UNKNOWN
from .state import ResourceState, StateStore

logger = structlog.get_logger(__name__)


def split_address(address: str) -> List[str]:
    """Split ``<type>.<label>`` into its parts.

    Raises:
        InvalidConfigurationError: If the address is not of that form
    """
    parts = address.split(".")
    if len(parts) != 2 or not all(parts):
        raise InvalidConfigurationError(
            f"Invalid resource address {address!r}: expected <type>.<label>"
        )
    return parts


class Engine:
    """Plans, applies, refreshes, imports and destroys a set of resource blocks."""

    def __init__(self, provider: Provider, state: StateStore):
        self.provider = provider
        self.state = state

    def dependency_graph(self, blocks: Iterable[ResourceBlock]) -> "nx.DiGraph[str]":
        """Build a graph with an edge from each referenced resource to its dependent.

        Raises:
            InterpolationError: If a block references an undeclared resource
        """
        blocks = list(blocks)
        declared = {block.address for block in blocks}
        graph: "nx.DiGraph[str]" = nx.DiGraph()
        for block in blocks:
            graph.add_node(block.address)
            for reference in block.references():
                if reference not in declared:
                    raise InterpolationError(
                        f"{block.address} references undeclared resource {reference}",
                        reference=reference,
                        address=block.address,
                    )
                graph.add_edge(reference, block.address)
        return graph

    def order(self, blocks: Iterable[ResourceBlock]) -> List[ResourceBlock]:
        """Return blocks in dependency order (ties broken by address).

        Raises:
            InvalidConfigurationError: If the references form a cycle
        """
        blocks = list(blocks)
        by_address = {block.address: block for block in blocks}
        graph = self.dependency_graph(blocks)
        try:
            ordered = list(nx.lexicographical_topological_sort(graph))
        except nx.NetworkXUnfeasible as e:
            cycle = " -> ".join(edge[0] for edge in nx.find_cycle(graph))
            raise InvalidConfigurationError(
                f"Dependency cycle between resources: {cycle}", cause=e
            ) from e
        return [by_address[address] for address in ordered]

    def validate(self, blocks: Iterable[ResourceBlock]) -> None:
        """Schema-validate every block, treating interpolated values as unknown.

        Raises:
            SchemaValidationError: On the first invalid block
            UnknownResourceTypeError: If a block has an unsupported type
        """
        for block in self.order(blocks):
            config = resolve_interpolations(
                block.config, lambda address, attr: UNKNOWN, block.address
            )
            self.provider.validate(block.type_name, config)
            logger.debug("Validated resource", address=block.address)

    def plan(self, blocks: Iterable[ResourceBlock]) -> List[PlannedChange]:
        """Plan every declared block plus deletion of resources no longer declared."""
        blocks = self.order(blocks)
        planned: Dict[str, Dict[str, Any]] = {}
        changes: List[PlannedChange] = []

        for block in blocks:

            def lookup(address: str, attr: str) -> Any:
                attributes = planned[address]
                if attr in attributes:
                    return attributes[attr]
                if attr in self.provider.schema(split_address(address)[0]).fields:
                    return UNKNOWN
                raise InterpolationError(
                    f"{address} has no attribute {attr!r}",
                    reference=f"{address}.{attr}",
                    address=block.address,
                )

            config = resolve_interpolations(block.config, lookup, block.address)
            change = self.provider.plan(
                block.type_name, config, self.state.get(block.address), block.address
            )
            planned[block.address] = self._planned_attributes(change)
            changes.append(change)
            logger.info(
                "Planned resource change",
                address=block.address,
                action=change.action.value,
                changed_fields=sorted(change.changes),
            )

        changes.extend(self._plan_orphans({block.address for block in blocks}))
        return changes

    def apply(self, blocks: Iterable[ResourceBlock]) -> List[PlannedChange]:
        """Apply every declared block in order, then delete orphans.

        Interpolations are resolved against state as it is written, so each
        resource sees the real IDs of the resources it references.
        """
        blocks = self.order(blocks)
        applied: List[PlannedChange] = []

        for block in blocks:
            config = resolve_interpolations(
                block.config, self._state_lookup(block.address), block.address
            )
            change = self.provider.plan(
                block.type_name, config, self.state.get(block.address), block.address
            )
            self._apply_change(change, sorted(block.references()))
            applied.append(change)

        for change in self._plan_orphans({block.address for block in blocks}):
            self._apply_change(change)
            applied.append(change)
        return applied

    def refresh(self, blocks: Optional[Iterable[ResourceBlock]] = None) -> List[str]:
        """Re-read every resource in state.

        Returns:
            Addresses of resources that no longer exist and were dropped
        """
        timeouts = self._timeouts_by_address(blocks)
        dropped: List[str] = []
        for address, current in self.state.items():
            refreshed = self.provider.refresh(
                current.type_name, current, timeouts.get(address)
            )
            if refreshed is None:
                logger.info("Resource vanished; dropping from state", address=address)
                self.state.remove(address)
                dropped.append(address)
            else:
                self.state.set(address, refreshed)
        self.state.save()
        return dropped

    def destroy(self, blocks: Optional[Iterable[ResourceBlock]] = None) -> List[str]:
        """Destroy every resource in state, dependents first.

        Order comes from the dependencies recorded in state at apply time,
        together with the references of ``blocks`` when given.

        Returns:
            Destroyed addresses, in order
        """
        blocks = self.order(blocks) if blocks is not None else []
        timeouts = self._timeouts_by_address(blocks)
        destroyed: List[str] = []
        for address in self.teardown_order(self.state.addresses(), blocks):
            current = self.state.get(address)
            if current is None:
                continue
            logger.info("Destroying resource", address=address, id=current.id)
            try:
                self.provider.destroy(
                    current.type_name, current, timeouts.get(address)
                )
            except Exception as e:
                logger.error(
                    "Resource destroy failed", address=address, error=str(e)
                )
                raise
            self.state.remove(address)
            self.state.save()
            destroyed.append(address)
        return destroyed

    def import_resource(self, address: str, resource_id: str) -> ResourceState:
        """Adopt an existing remote resource at ``address``.

        Raises:
            InvalidConfigurationError: If the address is malformed or already managed
            ResourceError: If the remote resource does not exist
        """
        type_name, _ = split_address(address)
        if address in self.state:
            raise InvalidConfigurationError(
                f"{address} is already managed; remove it from state before importing",
                config_section=address,
            )
        imported = self.provider.import_resource(type_name, resource_id)
        self.state.set(address, imported)
        self.state.save()
        logger.info("Imported resource", address=address, id=resource_id)
        return imported

    def teardown_order(
        self,
        addresses: Iterable[str],
        blocks: Optional[Iterable[ResourceBlock]] = None,
    ) -> List[str]:
        """Order state addresses so that dependents come before their dependencies.

        Raises:
            StateError: If the recorded dependencies form a cycle
        """
        addresses = set(addresses)
        graph: "nx.DiGraph[str]" = nx.DiGraph()
        graph.add_nodes_from(addresses)
        for address in addresses:
            current = self.state.get(address)
            for dependency in current.dependencies if current else []:
                if dependency in addresses:
                    graph.add_edge(dependency, address)
        for block in blocks or []:
            if block.address not in addresses:
                continue
            for reference in block.references():
                if reference in addresses:
                    graph.add_edge(reference, block.address)
        try:
            ordered = list(nx.lexicographical_topological_sort(graph))
        except nx.NetworkXUnfeasible as e:
            raise StateError(
                "Dependency cycle between resources in state",
                path=str(self.state.path) if self.state.path else None,
                cause=e,
            ) from e
        return list(reversed(ordered))

    # Internals

    def _apply_change(
        self, change: PlannedChange, dependencies: Optional[List[str]] = None
    ) -> None:
        log = logger.bind(address=change.address, action=change.action.value)
        if change.is_no_op:
            log.debug("No changes")
            prior = change.prior
            if prior is not None and dependencies is not None:
                if sorted(prior.dependencies) != dependencies:
                    prior.dependencies = dependencies
                    self.state.save()
            return
        log.info("Applying resource change")
        try:
            new_state = self.provider.apply(change)
        except Exception as e:
            log.error("Resource change failed", error=str(e))
            raise
        if new_state is None:
            self.state.remove(change.address)
        else:
            if dependencies is not None:
                new_state.dependencies = dependencies
            self.state.set(change.address, new_state)
        self.state.save()
        log.info("Applied resource change", id=new_state.id if new_state else None)

    def _plan_orphans(self, declared: Iterable[str]) -> List[PlannedChange]:
        declared = set(declared)
        orphans = self.teardown_order(
            a for a in self.state.addresses() if a not in declared
        )
        changes = []
        for address in orphans:
            prior = self.state.get(address)
            assert prior is not None
            change = self.provider.plan(prior.type_name, None, prior, address)
            logger.info(
                "Planned resource change", address=address, action=change.action.value
            )
            changes.append(change)
        return changes

    def _state_lookup(self, dependent: str):
        def lookup(address: str, attr: str) -> Any:
            current = self.state.get(address)
            if current is None:
                raise InterpolationError(
                    f"{address} does not exist in state",
                    reference=f"{address}.{attr}",
                    address=dependent,
                )
            if attr == "id":
                return current.id
            if attr in current.attributes:
                return current.attributes[attr]
            raise InterpolationError(
                f"{address} has no attribute {attr!r}",
                reference=f"{address}.{attr}",
                address=dependent,
            )

        return lookup

    @staticmethod
    def _planned_attributes(change: PlannedChange) -> Dict[str, Any]:
        """Attribute values other resources will see once ``change`` is applied."""
        config = {k: v for k, v in change.config.items() if k != TIMEOUTS_KEY}
        if change.action in (PlanAction.CREATE, PlanAction.REPLACE):
            return {**config, "id": UNKNOWN}
        assert change.prior is not None
        if change.action == PlanAction.UPDATE:
            return {**change.prior.attributes, **config, "id": change.prior.id}
        return {**change.prior.attributes, "id": change.prior.id}

    def _timeouts_by_address(
        self, blocks: Optional[Iterable[ResourceBlock]]
    ) -> Dict[str, Dict[str, int]]:
        """Validated ``timeouts`` blocks in seconds, keyed by address.

        Raises:
            SchemaValidationError: If a block's timeouts are invalid
        """
        return {
            block.address: self.provider.schema(block.type_name).normalize_timeouts(
                block.config[TIMEOUTS_KEY]
            )
            for block in blocks or []
            if TIMEOUTS_KEY in block.config
        }
