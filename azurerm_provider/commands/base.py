"""Base command infrastructure and shared utilities.

This module provides common utilities used across command modules:
- CommandContext for shared command execution context
- handle_provider_errors to report failures as ``Error: ...`` and exit 1
"""

import functools
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import click
from azure.core.exceptions import AzureError

from ..clients import ArmClientContext
from ..config_loader import ResourceBlock, load_configuration_file
from ..config_manager import (
    LoggingConfig,
    ProviderConfig,
    create_config_from_env,
    setup_logging,
)
from ..engine import Engine
from ..exceptions import ProviderError
from ..logging_config import configure_structlog
from ..provider import Provider
from ..state import StateStore

DEFAULT_STATE_PATH = "azurerm.state.json"


class CommandContext:
    """Shared context for command execution."""

    def __init__(
        self,
        ctx: click.Context,
        log_level: str = "INFO",
        subscription_id: Optional[str] = None,
    ):
        self.click_ctx = ctx
        self.log_level = log_level
        self.subscription_id = subscription_id
        self._logging_ready = False

    def setup_logging(self) -> None:
        """Configure console and structured logging once per invocation."""
        if self._logging_ready:
            return
        logging_config = LoggingConfig(level=self.log_level)
        setup_logging(logging_config)
        configure_structlog(logging_config.get_log_level())
        self._logging_ready = True

    def get_config(self) -> ProviderConfig:
        """Get validated configuration from environment."""
        self.setup_logging()
        config = create_config_from_env(self.subscription_id, self.log_level)
        config.log_configuration_summary()
        return config

    def load_blocks(self, config_path: str) -> list[ResourceBlock]:
        return load_configuration_file(config_path)

    def get_engine(self, state_path: str, with_clients: bool = True) -> Engine:
        """Build an engine over the state file.

        Without clients the engine can validate and plan but not touch Azure.
        """
        self.setup_logging()
        clients = ArmClientContext.from_config(self.get_config()) if with_clients else None
        if clients is not None:
            self.click_ctx.call_on_close(clients.close)
        state = StateStore(Path(state_path) if state_path else None)
        return Engine(Provider(clients), state)


def command_context(ctx: click.Context) -> CommandContext:
    """Create CommandContext from click context."""
    ctx.ensure_object(dict)
    return CommandContext(
        ctx=ctx,
        log_level=ctx.obj.get("log_level", "INFO"),
        subscription_id=ctx.obj.get("subscription_id"),
    )


def exit_with_error(message: str, code: int = 1) -> None:
    """Exit with error message."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def handle_provider_errors(f: Callable[..., Any]) -> Callable[..., Any]:
    """Report provider and Azure SDK errors without a traceback."""

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except (ProviderError, AzureError) as e:
            exit_with_error(str(e))

    return wrapper


state_option = click.option(
    "--state",
    "state_path",
    default=DEFAULT_STATE_PATH,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Path to the state file",
)
