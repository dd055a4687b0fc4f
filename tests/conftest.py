import os
from unittest.mock import patch

import pytest

from fake_azure import SUBSCRIPTION_ID, FakeArmClients

from azurerm_provider.provider import Provider
from azurerm_provider.state import StateStore

# ============================================================================
# Environment isolation
# ============================================================================

_ARM_ENV_VARS = [
    "ARM_SUBSCRIPTION_ID",
    "ARM_TENANT_ID",
    "ARM_CLIENT_ID",
    "ARM_CLIENT_SECRET",
    "ARM_LOCATION",
    "AZURE_SUBSCRIPTION_ID",
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "ARM_APP_SERVICE_DELETE_METRICS",
    "ARM_APP_SERVICE_DELETE_EMPTY_SERVER_FARM",
]


@pytest.fixture
def clean_arm_env():
    """Run a test with no ARM_/AZURE_ credentials in the environment."""
    cleaned = {k: v for k, v in os.environ.items() if k not in _ARM_ENV_VARS}
    with patch.dict(os.environ, cleaned, clear=True):
        yield


# ============================================================================
# Fake Azure clients
# ============================================================================


@pytest.fixture
def clients():
    """In-memory Azure clients."""
    return FakeArmClients()


@pytest.fixture
def provider(clients):
    """Provider wired to the in-memory clients."""
    return Provider(clients)


@pytest.fixture
def state_file(tmp_path):
    """Path for a state file that does not exist yet."""
    return tmp_path / "azurerm.state.json"


@pytest.fixture
def memory_state():
    return StateStore()


@pytest.fixture
def subscription_id():
    return SUBSCRIPTION_ID


@pytest.fixture
def rg_id(subscription_id):
    """Factory building resource group IDs."""

    def build(name: str) -> str:
        return f"/subscriptions/{subscription_id}/resourceGroups/{name}"

    return build
