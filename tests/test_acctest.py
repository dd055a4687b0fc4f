"""Tests for the acceptance harness, driven against in-memory clients."""

import logging
import os
from unittest.mock import patch

import pytest

from azurerm_provider.acctest import (
    AccTestCase,
    Step,
    check_destroy_for,
    check_resource_attr,
    check_resource_exists,
    compose_checks,
    pre_check,
    rand_int,
    run_test_case,
)
from azurerm_provider.state import ResourceState, StateStore

DISK = """
resources:
  azurerm_resource_group:
    test:
      name: acctestRG-%(ri)d
      location: westus2
  azurerm_managed_disk:
    test:
      name: acctestd-%(ri)d
      resource_group_name: "${azurerm_resource_group.test.name}"
      location: westus2
      storage_account_type: %(sku)s
      create_option: Empty
      disk_size_gb: %(size)d
      tags: %(tags)s
"""

SQL = """
resources:
  azurerm_resource_group:
    test:
      name: acctestRG-%(ri)d
      location: westus2
  azurerm_sql_server:
    test:
      name: acctestsqlserver%(ri)d
      resource_group_name: "${azurerm_resource_group.test.name}"
      location: westus2
      version: "12.0"
      administrator_login: mradministrator
      administrator_login_password: thisIsDog11
"""


def _disk(ri, sku="Standard_LRS", size=1, tags="{environment: acctest, cost-center: ops}"):
    return DISK % {"ri": ri, "sku": sku, "size": size, "tags": tags}


def _record_deletes(clients):
    """Wrap disk and resource group deletes to record their order by ARM type."""
    deleted = []
    for store in (clients.compute.disks, clients.resource.resource_groups):

        def begin_delete(*args, _store=store, _original=store.begin_delete, **kwargs):
            deleted.append(_store.kind)
            return _original(*args, **kwargs)

        store.begin_delete = begin_delete
    return deleted


def _destroyed(clients):
    return (
        clients.compute.disks.items == {}
        and clients.sql.servers.items == {}
        and clients.resource.resource_groups.items == {}
    )


class TestRunTestCase:
    def test_apply_check_and_destroy(self, clients):
        ri = rand_int()
        run_test_case(
            AccTestCase(
                check_destroy=check_destroy_for("azurerm_managed_disk"),
                steps=[
                    Step(
                        config=_disk(ri),
                        check=compose_checks(
                            check_resource_exists("azurerm_managed_disk.test"),
                            check_resource_attr("azurerm_managed_disk.test", "tags.%", "2"),
                            check_resource_attr(
                                "azurerm_managed_disk.test", "tags.environment", "acctest"
                            ),
                        ),
                    )
                ],
            ),
            clients=clients,
        )

        assert _destroyed(clients)

    def test_update_steps(self, clients):
        ri = rand_int()
        address = "azurerm_managed_disk.test"
        run_test_case(
            AccTestCase(
                steps=[
                    Step(
                        config=_disk(ri),
                        check=compose_checks(
                            check_resource_attr(address, "tags.%", "2"),
                            check_resource_attr(address, "disk_size_gb", "1"),
                            check_resource_attr(address, "storage_account_type", "Standard_LRS"),
                        ),
                    ),
                    Step(
                        config=_disk(ri, sku="Premium_LRS", size=2, tags="{environment: acctest}"),
                        check=compose_checks(
                            check_resource_attr(address, "tags.%", "1"),
                            check_resource_attr(address, "disk_size_gb", "2"),
                            check_resource_attr(address, "storage_account_type", "Premium_LRS"),
                        ),
                    ),
                ],
            ),
            clients=clients,
        )

        assert _destroyed(clients)

    def test_plan_only_step_with_non_standard_casing(self, clients):
        ri = rand_int()
        run_test_case(
            AccTestCase(
                steps=[
                    Step(config=_disk(ri)),
                    Step(config=_disk(ri, sku="standard_lrs"), plan_only=True),
                ],
            ),
            clients=clients,
        )

    def test_import_step_verifies_attributes(self, clients):
        ri = rand_int()
        run_test_case(
            AccTestCase(
                check_destroy=check_destroy_for("azurerm_sql_server"),
                steps=[
                    Step(config=SQL % {"ri": ri}),
                    Step(
                        resource_name="azurerm_sql_server.test",
                        import_state=True,
                        import_state_verify=True,
                        import_state_verify_ignore=["administrator_login_password"],
                    ),
                ],
            ),
            clients=clients,
        )

        assert _destroyed(clients)

    def test_import_verify_reports_mismatch(self, clients):
        ri = rand_int()
        case = AccTestCase(
            steps=[
                Step(config=SQL % {"ri": ri}),
                Step(
                    resource_name="azurerm_sql_server.test",
                    import_state=True,
                    import_state_verify=True,
                ),
            ],
        )

        with pytest.raises(AssertionError, match="administrator_login_password"):
            run_test_case(case, clients=clients)

        assert _destroyed(clients)

    def test_failed_check_still_destroys(self, clients):
        ri = rand_int()
        case = AccTestCase(
            steps=[
                Step(
                    config=_disk(ri),
                    check=check_resource_attr("azurerm_managed_disk.test", "disk_size_gb", "5"),
                )
            ],
        )

        with pytest.raises(AssertionError, match="expected '5', got '1'"):
            run_test_case(case, clients=clients)

        assert _destroyed(clients)

    def test_failed_first_step_tears_down_dependents_first(self, clients):
        ri = rand_int()
        deleted = _record_deletes(clients)
        case = AccTestCase(
            steps=[
                Step(
                    config=_disk(ri),
                    check=check_resource_attr("azurerm_managed_disk.test", "disk_size_gb", "5"),
                )
            ],
        )

        with pytest.raises(AssertionError):
            run_test_case(case, clients=clients)

        assert deleted == ["Microsoft.Compute/disks", "Microsoft.Resources/resourceGroups"]
        assert _destroyed(clients)

    def test_step_failure_survives_failed_teardown(self, clients, caplog):
        ri = rand_int()

        def survivors(state, clients):
            raise AssertionError("resources survived destroy")

        case = AccTestCase(
            check_destroy=survivors,
            steps=[
                Step(
                    config=_disk(ri),
                    check=check_resource_attr("azurerm_managed_disk.test", "disk_size_gb", "5"),
                )
            ],
        )

        with caplog.at_level(logging.ERROR, logger="azurerm_provider.acctest"):
            with pytest.raises(AssertionError, match="expected '5', got '1'"):
                run_test_case(case, clients=clients)

        assert "Teardown after a failed step also failed" in caplog.text
        assert "resources survived destroy" in caplog.text

    def test_teardown_failure_raised_when_steps_pass(self, clients):
        def survivors(state, clients):
            raise AssertionError("resources survived destroy")

        with pytest.raises(AssertionError, match="resources survived destroy"):
            run_test_case(
                AccTestCase(check_destroy=survivors, steps=[Step(config=_disk(rand_int()))]),
                clients=clients,
            )

    def test_closes_clients_it_creates(self, clients):
        with patch(
            "azurerm_provider.acctest.ArmClientContext.from_config", return_value=clients
        ), patch("azurerm_provider.acctest.create_config_from_env"), patch.object(
            clients, "close"
        ) as close:
            run_test_case(AccTestCase(steps=[Step(config=_disk(rand_int()))]))

        close.assert_called_once_with()
        assert _destroyed(clients)

    def test_leaves_supplied_clients_open(self, clients):
        with patch.object(clients, "close") as close:
            run_test_case(AccTestCase(steps=[]), clients=clients)

        close.assert_not_called()

    def test_drift_after_apply_fails_unless_expected(self, clients):
        ri = rand_int()

        def resize_outside(state, clients):
            disk = state.get("azurerm_managed_disk.test")
            remote = clients.compute.disks.items[
                (f"acctestrg-{ri}", f"acctestd-{ri}")
            ]
            assert disk.id == remote.id
            remote.disk_size_gb = 9

        with pytest.raises(AssertionError, match="the plan was not empty"):
            run_test_case(
                AccTestCase(steps=[Step(config=_disk(ri), check=resize_outside)]),
                clients=clients,
            )

        run_test_case(
            AccTestCase(
                steps=[
                    Step(config=_disk(ri), check=resize_outside, expect_non_empty_plan=True)
                ]
            ),
            clients=clients,
        )
        assert _destroyed(clients)

    def test_pre_check_runs_first(self, clients):
        calls = []

        run_test_case(
            AccTestCase(pre_check=lambda: calls.append("pre"), steps=[]),
            clients=clients,
        )

        assert calls == ["pre"]


class TestChecks:
    def _state(self):
        store = StateStore()
        store.set(
            "azurerm_app_service.test",
            ResourceState(
                "azurerm_app_service",
                "/subscriptions/s/resourceGroups/rg/providers/Microsoft.Web/sites/app",
                {
                    "name": "app",
                    "resource_group_name": "rg",
                    "always_on": True,
                    "tags": {"env": "test"},
                },
            ),
        )
        return store

    def test_attr_formats_bools(self, clients):
        check_resource_attr("azurerm_app_service.test", "always_on", "true")(self._state(), clients)

    def test_attr_missing(self, clients):
        with pytest.raises(AssertionError, match="Attribute 'app_service_plan_id' not found"):
            check_resource_attr("azurerm_app_service.test", "app_service_plan_id", "")(
                self._state(), clients
            )

    def test_attr_unknown_address(self, clients):
        with pytest.raises(AssertionError, match="Not found: azurerm_app_service.other"):
            check_resource_attr("azurerm_app_service.other", "id", "x")(self._state(), clients)

    def test_compose_reports_position(self, clients):
        check = compose_checks(
            check_resource_attr("azurerm_app_service.test", "tags.%", "1"),
            check_resource_attr("azurerm_app_service.test", "tags.env", "prod"),
        )

        with pytest.raises(AssertionError, match="Check 2/2 error"):
            check(self._state(), clients)

    def test_exists_and_absent(self, clients):
        state = self._state()

        with pytest.raises(AssertionError, match="does not exist"):
            check_resource_exists("azurerm_app_service.test")(state, clients)
        check_resource_exists("azurerm_app_service.test", should_exist=False)(state, clients)

    def test_custom_getter(self, clients):
        seen = []

        def getter(clients, resource_group, name):
            seen.append((resource_group, name))
            return object()

        check_resource_exists("azurerm_app_service.test", getter=getter)(self._state(), clients)

        assert seen == [("rg", "app")]

    def test_check_destroy_flags_survivors(self, clients):
        def getter(clients, resource_group, name):
            return object()

        with pytest.raises(AssertionError, match="azurerm_app_service still exists: app"):
            check_destroy_for("azurerm_app_service", getter=getter)(self._state(), clients)


class TestPreCheck:
    @pytest.mark.usefixtures("clean_arm_env")
    def test_skips_without_flag(self):
        with patch.dict(os.environ, {"ARM_ACC": ""}):
            with pytest.raises(pytest.skip.Exception, match="ARM_ACC"):
                pre_check()

    @pytest.mark.usefixtures("clean_arm_env")
    def test_skips_without_credentials(self):
        with patch.dict(os.environ, {"ARM_ACC": "1"}):
            with pytest.raises(pytest.skip.Exception, match="credentials"):
                pre_check()


def test_rand_int_range():
    assert 100000 <= rand_int() <= 999999
