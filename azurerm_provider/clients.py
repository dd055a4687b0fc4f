"""Shared Azure management clients.

``ArmClientContext`` is created once per provider run and handed to every
resource handler. Service clients are built lazily so a run that only touches
managed disks never constructs a web or SQL client.
"""

import logging
from functools import cached_property
from typing import Any, Dict, Optional

from azure.core.credentials import TokenCredential
from azure.core.polling import LROPoller
from azure.identity import ClientSecretCredential, DefaultAzureCredential
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.sql import SqlManagementClient
from azure.mgmt.web import WebSiteManagementClient

from .config_manager import FeaturesConfig, ProviderConfig
from .exceptions import OperationTimeoutError
from .timeout_config import Timeouts, log_timeout_event

logger = logging.getLogger(__name__)


class ArmClientContext:
    """Credential, subscription and per-service management clients."""

    def __init__(
        self,
        subscription_id: str,
        credential: TokenCredential,
        features: Optional[FeaturesConfig] = None,
        client_kwargs: Optional[Dict[str, Any]] = None,
    ):
        self.subscription_id = subscription_id
        self.credential = credential
        self.features = features or FeaturesConfig()
        self.client_kwargs = client_kwargs or {
            "connection_timeout": Timeouts.AZURE_SDK_CONNECTION,
            "read_timeout": Timeouts.AZURE_SDK_READ,
        }

    @classmethod
    def from_config(cls, config: ProviderConfig) -> "ArmClientContext":
        """Build clients from provider configuration.

        Service principal credentials are used when all three of tenant, client
        and secret are set; otherwise DefaultAzureCredential is tried.
        """
        config.azure.validate()
        credential: TokenCredential
        if config.azure.has_service_principal():
            logger.debug(
                f"Using service principal {config.azure.get_safe_client_id()}"
            )
            credential = ClientSecretCredential(
                tenant_id=config.azure.tenant_id,
                client_id=config.azure.client_id,
                client_secret=config.azure.client_secret,
            )
        else:
            logger.debug("Using DefaultAzureCredential")
            credential = DefaultAzureCredential()
        return cls(
            subscription_id=config.azure.subscription_id,
            credential=credential,
            features=config.features,
        )

    @cached_property
    def web(self) -> WebSiteManagementClient:
        return WebSiteManagementClient(
            self.credential, self.subscription_id, **self.client_kwargs
        )

    @cached_property
    def compute(self) -> ComputeManagementClient:
        return ComputeManagementClient(
            self.credential, self.subscription_id, **self.client_kwargs
        )

    @cached_property
    def sql(self) -> SqlManagementClient:
        return SqlManagementClient(
            self.credential, self.subscription_id, **self.client_kwargs
        )

    @cached_property
    def resource(self) -> ResourceManagementClient:
        return ResourceManagementClient(
            self.credential, self.subscription_id, **self.client_kwargs
        )

    def close(self) -> None:
        """Close any clients that were created."""
        for name in ("web", "compute", "sql", "resource"):
            client = self.__dict__.get(name)
            if client is not None:
                client.close()


def wait_for_completion(
    poller: LROPoller,
    timeout: int,
    operation: str,
    resource_name: Optional[str] = None,
) -> Any:
    """Block until a long-running operation finishes or ``timeout`` seconds pass.

    Returns:
        The operation's final result

    Raises:
        OperationTimeoutError: If the operation is still running at the deadline
        HttpResponseError: If the operation itself failed (unmodified)
    """
    poller.wait(timeout=timeout)
    if not poller.done():
        log_timeout_event(operation, timeout, resource_name)
        raise OperationTimeoutError(
            f"Timed out waiting for {operation}",
            operation=operation,
            timeout_value=timeout,
            name=resource_name,
        )
    return poller.result()
