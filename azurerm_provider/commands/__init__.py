"""CLI commands for the AzureRM provider."""

from .base import CommandContext, command_context, exit_with_error
from .lifecycle import apply, destroy, import_cmd, plan, refresh, validate
from .state_cmd import resource_types, show

__all__ = [
    "CommandContext",
    "apply",
    "command_context",
    "destroy",
    "exit_with_error",
    "import_cmd",
    "plan",
    "refresh",
    "resource_types",
    "show",
    "validate",
]
