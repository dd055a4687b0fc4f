"""
Acceptance test harness.

Acceptance tests create real Azure resources from templated configuration
documents, check them through direct SDK reads, and destroy them afterwards.
They only run with ``ARM_ACC=1`` and valid credentials.

Usage:
    def test_managed_disk_empty():
        ri = rand_int()
        run_test_case(
            AccTestCase(
                pre_check=pre_check,
                check_destroy=check_destroy_for("azurerm_managed_disk"),
                steps=[
                    Step(
                        config=DISK_EMPTY % (ri, acc_location(), ri),
                        check=check_resource_exists("azurerm_managed_disk.test"),
                    )
                ],
            )
        )
"""

import logging
import os
import random
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from azure.core.exceptions import AzureError

from .clients import ArmClientContext
from .config_loader import ResourceBlock, load_configuration
from .config_manager import AzureConfig, create_config_from_env
from .engine import Engine
from .exceptions import ConfigurationError, is_not_found
from .provider import Provider
from .resources import ResourceRegistry, ensure_resources_registered
from .state import ResourceState, StateStore
from .timeout_config import Timeouts

logger = logging.getLogger(__name__)

ACC_ENV_VAR = "ARM_ACC"

CheckFunc = Callable[[StateStore, ArmClientContext], None]
Getter = Callable[[ArmClientContext, str, str], Any]


def rand_int() -> int:
    """Random suffix for names of throwaway resources."""
    return random.randint(100000, 999999)


def acc_location() -> str:
    """Azure region acceptance tests create resources in (ARM_LOCATION)."""
    return AzureConfig().location


def pre_check() -> None:
    """Skip the calling test unless acceptance tests are enabled and configured."""
    if os.getenv(ACC_ENV_VAR) != "1":
        pytest.skip(f"Acceptance tests skipped unless env '{ACC_ENV_VAR}' set to 1")
    try:
        create_config_from_env()
    except ConfigurationError as e:
        pytest.skip(f"Acceptance tests need Azure credentials: {e}")


@dataclass
class Step:
    """One step of an acceptance test.

    A step either applies ``config`` (or destroys it when ``destroy`` is set),
    only plans it (``plan_only``), or imports ``resource_name`` by the ID it
    has in state (``import_state``).
    """

    config: str = ""
    check: Optional[CheckFunc] = None
    plan_only: bool = False
    expect_non_empty_plan: bool = False
    destroy: bool = False
    import_state: bool = False
    import_state_verify: bool = False
    import_state_verify_ignore: List[str] = field(default_factory=list)
    resource_name: str = ""


@dataclass
class AccTestCase:
    steps: List[Step]
    pre_check: Optional[Callable[[], None]] = None
    check_destroy: Optional[CheckFunc] = None


def run_test_case(case: AccTestCase, clients: Optional[ArmClientContext] = None) -> None:
    """
    Run every step against a fresh temporary state, then destroy what is left.

    ``check_destroy`` receives a snapshot of the state taken before the final
    destroy, so it can confirm each resource is really gone.

    Raises:
        AssertionError: If a check, plan expectation or import verification fails
    """
    if case.pre_check is not None:
        case.pre_check()
    owns_clients = clients is None
    if clients is None:
        clients = ArmClientContext.from_config(create_config_from_env())

    provider = Provider(clients)
    try:
        with tempfile.TemporaryDirectory(prefix="azurerm-acc-") as tmp:
            state = StateStore(Path(tmp) / "state.json")
            engine = Engine(provider, state)
            applied: List[ResourceBlock] = []
            step_failed = True
            try:
                for index, step in enumerate(case.steps, start=1):
                    logger.info(f"Running acceptance step {index}/{len(case.steps)}")
                    blocks = _run_step(step, engine, provider, state, clients)
                    if blocks is not None:
                        applied = blocks
                step_failed = False
            finally:
                try:
                    snapshot = state.snapshot()
                    engine.destroy(applied)
                    if case.check_destroy is not None:
                        case.check_destroy(snapshot, clients)
                except Exception as e:
                    if not step_failed:
                        raise
                    # The step failure is re-raised once this block ends
                    logger.error(f"Teardown after a failed step also failed: {e}")
    finally:
        if owns_clients:
            clients.close()


def _run_step(
    step: Step,
    engine: Engine,
    provider: Provider,
    state: StateStore,
    clients: ArmClientContext,
) -> Optional[List[ResourceBlock]]:
    if step.import_state:
        _run_import_step(step, provider, state, clients)
        return None

    blocks = load_configuration(step.config)
    if step.plan_only:
        _check_plan(engine, blocks, step, "Plan-only step")
        return None

    if step.destroy:
        engine.destroy(blocks)
    else:
        engine.apply(blocks)
    if step.check is not None:
        step.check(state, clients)
    if step.destroy:
        return []

    engine.refresh(blocks)
    _check_plan(engine, blocks, step, "After applying this step and refreshing")
    return blocks


def _check_plan(
    engine: Engine, blocks: List[ResourceBlock], step: Step, context: str
) -> None:
    pending = [change for change in engine.plan(blocks) if not change.is_no_op]
    if pending and not step.expect_non_empty_plan:
        summary = ", ".join(
            f"{change.address} ({change.action.value}: {', '.join(sorted(change.changes))})"
            for change in pending
        )
        raise AssertionError(f"{context}, the plan was not empty: {summary}")


def _run_import_step(
    step: Step, provider: Provider, state: StateStore, clients: ArmClientContext
) -> None:
    current = state.get(step.resource_name)
    if current is None:
        raise AssertionError(f"Not found in state: {step.resource_name}")

    import_state = StateStore()
    Engine(provider, import_state).import_resource(step.resource_name, current.id)
    imported = import_state.get(step.resource_name)
    assert imported is not None

    if step.import_state_verify:
        mismatches = _diff_attributes(
            current, imported, set(step.import_state_verify_ignore)
        )
        if mismatches:
            raise AssertionError(
                "ImportStateVerify attributes not equivalent:\n" + "\n".join(mismatches)
            )
    if step.check is not None:
        step.check(import_state, clients)


def _diff_attributes(
    expected: ResourceState, actual: ResourceState, ignore: set
) -> List[str]:
    mismatches = []
    if expected.id != actual.id:
        mismatches.append(f"id: {expected.id!r} != {actual.id!r}")
    for key in sorted(set(expected.attributes) | set(actual.attributes)):
        if key in ignore:
            continue
        want = expected.attributes.get(key)
        got = actual.attributes.get(key)
        if want != got:
            mismatches.append(f"{key}: {want!r} != {got!r}")
    return mismatches


# Check helpers


def compose_checks(*checks: CheckFunc) -> CheckFunc:
    """Run several checks in order, reporting which one failed."""

    def check(state: StateStore, clients: ArmClientContext) -> None:
        for index, func in enumerate(checks, start=1):
            try:
                func(state, clients)
            except AssertionError as e:
                raise AssertionError(f"Check {index}/{len(checks)} error: {e}") from e

    return check


def _format_attr(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def _lookup_attr(resource_state: ResourceState, key: str) -> Optional[str]:
    """Resolve ``id``, plain fields, ``<map>.%`` counts and ``<map>.<key>`` lookups."""
    if key == "id":
        return resource_state.id
    attributes = resource_state.attributes
    if key in attributes:
        return _format_attr(attributes[key])
    if "." in key:
        map_name, sub_key = key.split(".", 1)
        mapping: Dict[str, Any] = attributes.get(map_name) or {}
        if sub_key == "%":
            return str(len(mapping))
        if sub_key in mapping:
            return _format_attr(mapping[sub_key])
    return None


def check_resource_attr(address: str, key: str, value: str) -> CheckFunc:
    """Assert that ``address`` has attribute ``key`` equal to ``value`` in state."""

    def check(state: StateStore, clients: ArmClientContext) -> None:
        resource_state = state.get(address)
        if resource_state is None:
            raise AssertionError(f"Not found: {address}")
        actual = _lookup_attr(resource_state, key)
        if actual is None:
            raise AssertionError(f"{address}: Attribute '{key}' not found")
        if actual != value:
            raise AssertionError(
                f"{address}: Attribute '{key}' expected {value!r}, got {actual!r}"
            )

    return check


def default_getter(type_name: str) -> Getter:
    """Fetch a remote object the way the resource's handler reads it."""
    ensure_resources_registered()
    handler_class = ResourceRegistry.get_handler_class(type_name)
    if handler_class is None:
        raise AssertionError(f"No handler registered for {type_name}")
    handler = handler_class()

    def getter(clients: ArmClientContext, resource_group: str, name: str) -> Any:
        return handler.get_remote(clients, resource_group, name, Timeouts.READ)

    return getter


def _locate(resource_state: ResourceState, address: str):
    name = resource_state.attributes.get("name")
    if resource_state.type_name == "azurerm_resource_group":
        return name, name
    resource_group = resource_state.attributes.get("resource_group_name")
    if not resource_group:
        raise AssertionError(
            f"Bad: no resource group found in state for {address}: {name}"
        )
    return resource_group, name


def _fetch(getter: Getter, clients: ArmClientContext, resource_group: str, name: str):
    """Return the remote object, or None when it does not exist."""
    try:
        return getter(clients, resource_group, name)
    except AzureError as e:
        if is_not_found(e):
            return None
        raise AssertionError(f"Bad: Get on {name}: {e}") from e


def check_resource_exists(
    address: str, getter: Optional[Getter] = None, should_exist: bool = True
) -> CheckFunc:
    """Assert that the remote object behind ``address`` exists (or does not)."""

    def check(state: StateStore, clients: ArmClientContext) -> None:
        resource_state = state.get(address)
        if resource_state is None:
            raise AssertionError(f"Not found: {address}")
        resource_group, name = _locate(resource_state, address)
        fetch = getter or default_getter(resource_state.type_name)
        remote = _fetch(fetch, clients, resource_group, name)
        if remote is None and should_exist:
            raise AssertionError(
                f"Bad: {address} {name!r} (resource group {resource_group!r}) does not exist"
            )
        if remote is not None and not should_exist:
            raise AssertionError(
                f"Bad: {address} {name!r} (resource group {resource_group!r}) still exists"
            )

    return check


def check_destroy_for(type_name: str, getter: Optional[Getter] = None) -> CheckFunc:
    """Assert that every ``type_name`` resource in a state snapshot is gone."""

    def check(state: StateStore, clients: ArmClientContext) -> None:
        fetch = getter or default_getter(type_name)
        for address, resource_state in state.items():
            if resource_state.type_name != type_name:
                continue
            resource_group, name = _locate(resource_state, address)
            if _fetch(fetch, clients, resource_group, name) is not None:
                raise AssertionError(f"{type_name} still exists: {name}")

    return check
