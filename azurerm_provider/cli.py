"""Command line entry point: ``azurerm-provider``."""

import click

from .commands import (
    apply,
    destroy,
    import_cmd,
    plan,
    refresh,
    resource_types,
    show,
    validate,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.group()
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level (DEBUG, INFO, WARNING, ERROR)",
)
@click.option(
    "--subscription-id",
    default=None,
    help="Azure subscription ID (defaults to ARM_SUBSCRIPTION_ID from .env)",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, subscription_id: str) -> None:
    """AzureRM provider - manage App Services, Managed Disks, SQL Servers and
    Resource Groups from declarative configuration."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level.upper()
    ctx.obj["subscription_id"] = subscription_id


cli.add_command(validate)
cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(refresh)
cli.add_command(import_cmd, "import")
cli.add_command(show)
cli.add_command(resource_types)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
