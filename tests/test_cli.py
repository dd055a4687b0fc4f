"""Tests for the azurerm-provider command line."""

import json
import logging
from unittest.mock import patch

import click
import pytest
from click.testing import CliRunner
from rich.console import Console

from azurerm_provider.cli import cli
from azurerm_provider.commands.base import CommandContext
from azurerm_provider.engine import Engine
from azurerm_provider.provider import Provider
from azurerm_provider.state import StateStore

CONFIG = """
resources:
  azurerm_resource_group:
    test:
      name: acctestRG-1
      location: westus2
  azurerm_sql_server:
    test:
      name: acctestsqlserver1
      resource_group_name: "${azurerm_resource_group.test.name}"
      location: westus2
      version: "12.0"
      administrator_login: mradministrator
      administrator_login_password: thisIsDog11
"""


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "main.yaml"
    path.write_text(CONFIG)
    return str(path)


@pytest.fixture
def state_path(tmp_path):
    return str(tmp_path / "azurerm.state.json")


@pytest.fixture
def fake_engine(clients):
    """Route every command's engine through the in-memory clients."""

    def get_engine(self, state_path, with_clients=True):
        return Engine(Provider(clients), StateStore(state_path or None))

    with patch.object(CommandContext, "get_engine", get_engine):
        yield


class TestStandaloneCommands:
    def test_resource_types(self, runner):
        with patch("azurerm_provider.commands.state_cmd.console", Console(width=200)):
            result = runner.invoke(cli, ["resource-types"])

        assert result.exit_code == 0
        for type_name in (
            "azurerm_app_service",
            "azurerm_managed_disk",
            "azurerm_resource_group",
            "azurerm_sql_server",
        ):
            assert type_name in result.output

    def test_validate(self, runner, config_file):
        result = runner.invoke(cli, ["validate", config_file])

        assert result.exit_code == 0, result.output
        assert "Configuration is valid (2 resources)" in result.output

    def test_validate_reports_errors(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(CONFIG.replace('version: "12.0"', 'version: "99.0"'))

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Error: [SCHEMA_VALIDATION_FAILED]" in result.output

    def test_plan_without_refresh_needs_no_credentials(self, runner, config_file, state_path):
        result = runner.invoke(
            cli, ["plan", config_file, "--state", state_path, "--no-refresh"]
        )

        assert result.exit_code == 0, result.output
        assert "Plan: 2 to create, 0 to update, 0 to replace, 0 to delete." in result.output

    def test_show_empty_state(self, runner, state_path):
        result = runner.invoke(cli, ["show", "--state", state_path])

        assert result.exit_code == 0
        assert "State is empty." in result.output

    def test_invalid_log_level(self, runner):
        result = runner.invoke(cli, ["--log-level", "LOUD", "resource-types"])

        assert result.exit_code == 2


@pytest.mark.usefixtures("fake_engine")
class TestLifecycleCommands:
    def test_apply_show_and_destroy(self, runner, config_file, state_path, clients):
        result = runner.invoke(cli, ["apply", config_file, "--state", state_path])
        assert result.exit_code == 0, result.output
        assert "Apply complete." in result.output
        assert len(clients.sql.servers.items) == 1

        result = runner.invoke(cli, ["show", "--state", state_path, "--json"])
        assert result.exit_code == 0
        document = json.loads(result.output)
        server = document["resources"]["azurerm_sql_server.test"]
        assert server["attributes"]["administrator_login_password"] == "(sensitive)"
        assert document["serial"] == 3

        result = runner.invoke(cli, ["plan", config_file, "--state", state_path])
        assert result.exit_code == 0
        assert "No changes." in result.output

        result = runner.invoke(cli, ["destroy", config_file, "--state", state_path])
        assert result.exit_code == 0, result.output
        assert "Destroy complete. 2 destroyed." in result.output
        assert clients.resource.resource_groups.items == {}

    def test_refresh_drops_vanished(self, runner, config_file, state_path, clients):
        runner.invoke(cli, ["apply", config_file, "--state", state_path])
        clients.sql.servers.items.clear()

        result = runner.invoke(cli, ["refresh", "--state", state_path])

        assert result.exit_code == 0, result.output
        assert "Refreshed 1 resources." in result.output
        assert "azurerm_sql_server.test" not in StateStore(state_path)

    def test_import(self, runner, config_file, state_path, clients, tmp_path):
        runner.invoke(cli, ["apply", config_file, "--state", state_path])
        server_id = StateStore(state_path).get("azurerm_sql_server.test").id
        other_state = str(tmp_path / "other.state.json")

        result = runner.invoke(
            cli, ["import", "azurerm_sql_server.main", server_id, "--state", other_state]
        )

        assert result.exit_code == 0, result.output
        assert "Imported azurerm_sql_server.main" in result.output
        assert StateStore(other_state).get("azurerm_sql_server.main").id == server_id

    def test_import_missing_resource(self, runner, state_path, rg_id):
        result = runner.invoke(
            cli, ["import", "azurerm_resource_group.main", rg_id("nope"), "--state", state_path]
        )

        assert result.exit_code == 1
        assert "Cannot import non-existent remote object" in result.output

    def test_import_malformed_id(self, runner, state_path):
        result = runner.invoke(
            cli, ["import", "azurerm_resource_group.main", "not-an-id", "--state", state_path]
        )

        assert result.exit_code == 1
        assert "Resource ID must start with '/'" in result.output

    @pytest.mark.parametrize("command", ["apply", "plan", "destroy"])
    def test_invalid_timeouts_reported_as_error(
        self, runner, config_file, state_path, tmp_path, command
    ):
        runner.invoke(cli, ["apply", config_file, "--state", state_path])
        bad = tmp_path / "bad_timeouts.yaml"
        bad.write_text(
            CONFIG.replace(
                "      location: westus2\n  azurerm_sql_server:",
                "      location: westus2\n      timeouts:\n        create: soon\n"
                "  azurerm_sql_server:",
            )
        )

        result = runner.invoke(cli, [command, str(bad), "--state", state_path])

        assert result.exit_code == 1
        assert "Error: [SCHEMA_VALIDATION_FAILED]" in result.output
        assert "timeouts.create: invalid duration: 'soon'" in result.output
        assert not isinstance(result.exception, ValueError)


class TestCommandContext:
    def test_engine_clients_closed_with_context(self, clients):
        ctx = click.Context(cli, obj={})
        with patch(
            "azurerm_provider.commands.base.ArmClientContext.from_config",
            return_value=clients,
        ), patch.object(CommandContext, "get_config"), patch.object(
            clients, "close"
        ) as close:
            engine = CommandContext(ctx).get_engine("")
            assert engine.provider.clients is clients
            close.assert_not_called()

            ctx.close()

        close.assert_called_once_with()

    def test_engine_without_clients_registers_nothing(self):
        ctx = click.Context(cli, obj={})

        engine = CommandContext(ctx).get_engine("", with_clients=False)
        ctx.close()

        assert engine.provider.clients is None
