"""Tests for the SQL Server handler against in-memory SQL clients."""

import pytest

from azurerm_provider.exceptions import SchemaValidationError
from azurerm_provider.resources.database import SqlServerResource


@pytest.fixture
def handler():
    return SqlServerResource()


@pytest.fixture
def servers(clients):
    return clients.sql.servers


def _config(**overrides):
    config = {
        "name": "acctestsqlserver1",
        "resource_group_name": "acctestRG-1",
        "location": "westus2",
        "version": "12.0",
        "administrator_login": "mradministrator",
        "administrator_login_password": "thisIsDog11",
    }
    config.update(overrides)
    return SqlServerResource.SCHEMA.validate(config)


def _create(handler, clients, **overrides):
    data = handler.new_data(config=_config(**overrides))
    handler.create(data, clients)
    return data


class TestSchema:
    def test_password_is_sensitive(self):
        assert SqlServerResource.SCHEMA.sensitive_fields == ["administrator_login_password"]

    def test_password_required(self):
        config = {
            "name": "s",
            "resource_group_name": "rg",
            "location": "westus2",
            "version": "12.0",
            "administrator_login": "admin",
        }
        with pytest.raises(SchemaValidationError) as exc_info:
            SqlServerResource.SCHEMA.validate(config)

        assert exc_info.value.validation_errors == [
            "administrator_login_password: required field is not set"
        ]

    def test_version_must_be_known(self):
        with pytest.raises(SchemaValidationError):
            _config(version="13.0")

    def test_fqdn_cannot_be_set(self):
        with pytest.raises(SchemaValidationError):
            _config(fully_qualified_domain_name="x.database.windows.net")


class TestLifecycle:
    def test_create_sends_password_and_keeps_it_in_state(self, handler, clients, servers):
        data = _create(handler, clients)

        assert servers.last_payload.administrator_login_password == "thisIsDog11"
        state = data.state()
        assert state.attributes["administrator_login_password"] == "thisIsDog11"
        assert state.attributes["fully_qualified_domain_name"] == (
            "acctestsqlserver1.database.windows.net"
        )
        assert state.attributes["version"] == "12.0"

    def test_read_does_not_clear_password(self, handler, clients):
        data = _create(handler, clients)

        handler.read(data, clients)

        assert data.get_str("administrator_login_password") == "thisIsDog11"

    def test_import_has_no_password(self, handler, clients):
        created = _create(handler, clients).state()

        data = handler.import_state(created.id)
        handler.read(data, clients)

        imported = data.state()
        assert "administrator_login_password" not in imported.attributes
        assert imported.attributes["administrator_login"] == "mradministrator"
        assert imported.attributes["resource_group_name"] == "acctestRG-1"

    def test_update_tags(self, handler, clients, servers):
        state = _create(handler, clients).state()

        data = handler.new_data(config=_config(tags={"database": "test"}), state=state)
        handler.update(data, clients)

        assert servers.last_payload.tags == {"database": "test"}
        assert data.get_tags() == {"database": "test"}

    def test_delete(self, handler, clients, servers):
        state = _create(handler, clients).state()
        data = handler.new_data(state=state)

        handler.delete(data, clients)

        assert data.id == ""
        assert servers.calls[-1][0] == "begin_delete"

    def test_read_missing_server(self, handler, clients, servers):
        data = _create(handler, clients)
        servers.items.clear()

        handler.read(data, clients)

        assert data.state() is None
