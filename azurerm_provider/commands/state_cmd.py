"""State inspection commands.

- 'show': Print the resources recorded in a state file
- 'resource-types': List the resource types this provider supports
"""

import json
from pathlib import Path
from typing import Any, Dict

import click
from rich.console import Console
from rich.table import Table

from ..provider import Provider
from ..state import StateStore
from .base import handle_provider_errors, state_option

console = Console()

SENSITIVE_PLACEHOLDER = "(sensitive)"


def _masked_state(provider: Provider, state: StateStore) -> Dict[str, Any]:
    document = state.to_dict()
    for entry in document["resources"].values():
        sensitive = provider.schema(entry["type"]).sensitive_fields
        for name in sensitive:
            if name in entry["attributes"]:
                entry["attributes"][name] = SENSITIVE_PLACEHOLDER
    return document


@click.command("show")
@state_option
@click.option("--json", "as_json", is_flag=True, help="Print the state as JSON")
@handle_provider_errors
def show(state_path: str, as_json: bool) -> None:
    """Print the resources recorded in state. Sensitive values are masked."""
    state = StateStore(Path(state_path))
    provider = Provider()

    if as_json:
        click.echo(json.dumps(_masked_state(provider, state), indent=2, sort_keys=True))
        return

    if not len(state):
        console.print("[dim]State is empty.[/dim]")
        return

    table = Table(title=f"State ({state_path}, serial {state.serial})", show_header=True)
    table.add_column("Address", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("ID", style="dim")
    for address, resource_state in state.items():
        table.add_row(address, resource_state.type_name, resource_state.id)
    console.print(table)


@click.command("resource-types")
def resource_types() -> None:
    """List the resource types this provider supports."""
    provider = Provider()
    table = Table(title="Supported Resource Types", show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Azure Type", style="green")
    table.add_column("Force-new fields", style="dim")
    for type_name in provider.resource_types():
        handler = provider.handler_for(type_name)
        table.add_row(
            type_name,
            handler.AZURE_TYPE,
            ", ".join(handler.SCHEMA.force_new_fields),
        )
    console.print(table)
