"""Resource lifecycle commands.

This module provides the commands that change or inspect remote resources:
- 'validate': Schema-validate a configuration document
- 'plan': Show what apply would do
- 'apply': Create, update or replace resources to match the configuration
- 'destroy': Delete every resource in state
- 'refresh': Re-read resources and drop the ones that vanished
- 'import': Adopt an existing Azure resource
"""

from typing import List

import click
from rich.console import Console
from rich.table import Table

from ..provider import PlanAction, PlannedChange
from .base import command_context, handle_provider_errors, state_option

console = Console()

_ACTION_STYLES = {
    PlanAction.CREATE: "green",
    PlanAction.UPDATE: "yellow",
    PlanAction.REPLACE: "magenta",
    PlanAction.DELETE: "red",
    PlanAction.NO_OP: "dim",
}


def _render_plan(changes: List[PlannedChange], title: str) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("Address", style="cyan")
    table.add_column("Action")
    table.add_column("Changes", style="dim")

    for change in changes:
        style = _ACTION_STYLES[change.action]
        fields = ", ".join(
            f"{name} (forces replacement)" if name in change.replace_fields else name
            for name in sorted(change.changes)
        )
        table.add_row(
            change.address, f"[{style}]{change.action.value}[/{style}]", fields
        )
    console.print(table)

    pending = [c for c in changes if not c.is_no_op]
    if not pending:
        console.print("[green]No changes. Infrastructure matches the configuration.[/green]")
        return
    counts = {action: 0 for action in PlanAction}
    for change in pending:
        counts[change.action] += 1
    console.print(
        f"Plan: {counts[PlanAction.CREATE]} to create, "
        f"{counts[PlanAction.UPDATE]} to update, "
        f"{counts[PlanAction.REPLACE]} to replace, "
        f"{counts[PlanAction.DELETE]} to delete."
    )


@click.command("validate")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
@handle_provider_errors
def validate(ctx: click.Context, config_path: str) -> None:
    """Validate every resource in CONFIG_PATH against its schema.

    Examples:
        azurerm-provider validate main.yaml
    """
    cmd_ctx = command_context(ctx)
    blocks = cmd_ctx.load_blocks(config_path)
    engine = cmd_ctx.get_engine(state_path="", with_clients=False)
    engine.validate(blocks)
    console.print(f"[green]Configuration is valid ({len(blocks)} resources).[/green]")


@click.command("plan")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@state_option
@click.option(
    "--refresh/--no-refresh",
    default=True,
    help="Re-read resources in state before planning (needs Azure credentials)",
)
@click.pass_context
@handle_provider_errors
def plan(ctx: click.Context, config_path: str, state_path: str, refresh: bool) -> None:
    """Show the changes apply would make for CONFIG_PATH.

    Examples:
        azurerm-provider plan main.yaml
        azurerm-provider plan main.yaml --no-refresh
    """
    cmd_ctx = command_context(ctx)
    blocks = cmd_ctx.load_blocks(config_path)
    engine = cmd_ctx.get_engine(state_path, with_clients=refresh)
    if refresh:
        engine.refresh(blocks)
    _render_plan(engine.plan(blocks), "Planned Changes")


@click.command("apply")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@state_option
@click.pass_context
@handle_provider_errors
def apply(ctx: click.Context, config_path: str, state_path: str) -> None:
    """Create, update or replace resources to match CONFIG_PATH.

    Resources in state that are no longer declared are deleted.

    Examples:
        azurerm-provider apply main.yaml --state prod.state.json
    """
    cmd_ctx = command_context(ctx)
    blocks = cmd_ctx.load_blocks(config_path)
    engine = cmd_ctx.get_engine(state_path)
    engine.refresh(blocks)
    applied = engine.apply(blocks)
    _render_plan(applied, "Applied Changes")
    console.print("[green]Apply complete.[/green]")


@click.command("destroy")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@state_option
@click.pass_context
@handle_provider_errors
def destroy(ctx: click.Context, config_path: str, state_path: str) -> None:
    """Destroy every resource in state, dependents first.

    Examples:
        azurerm-provider destroy main.yaml
    """
    cmd_ctx = command_context(ctx)
    blocks = cmd_ctx.load_blocks(config_path)
    engine = cmd_ctx.get_engine(state_path)
    destroyed = engine.destroy(blocks)
    for address in destroyed:
        console.print(f"[red]-[/red] {address}")
    console.print(f"[green]Destroy complete. {len(destroyed)} destroyed.[/green]")


@click.command("refresh")
@state_option
@click.pass_context
@handle_provider_errors
def refresh(ctx: click.Context, state_path: str) -> None:
    """Re-read every resource in state.

    Resources that no longer exist in Azure are removed from state.
    """
    cmd_ctx = command_context(ctx)
    engine = cmd_ctx.get_engine(state_path)
    dropped = engine.refresh()
    for address in dropped:
        console.print(f"[yellow]{address} no longer exists; removed from state[/yellow]")
    console.print(f"[green]Refreshed {len(engine.state)} resources.[/green]")


@click.command("import")
@click.argument("address")
@click.argument("resource_id")
@state_option
@click.pass_context
@handle_provider_errors
def import_cmd(ctx: click.Context, address: str, resource_id: str, state_path: str) -> None:
    """Adopt the Azure resource RESOURCE_ID into state at ADDRESS.

    Examples:
        azurerm-provider import azurerm_sql_server.main \\
            /subscriptions/.../resourceGroups/rg/providers/Microsoft.Sql/servers/sql1
    """
    cmd_ctx = command_context(ctx)
    engine = cmd_ctx.get_engine(state_path)
    imported = engine.import_resource(address, resource_id)
    console.print(f"[green]Imported {address}[/green] ({imported.id})")
