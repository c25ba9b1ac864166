# src/finfocus/cli/plugin.py
"""
Implements the `plugin` commands for inspecting installed plugins.
"""

import asyncio
import json
import logging

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from ..core.exceptions import FinFocusError
from ..engine.engine import Engine
from ..pluginhost.registry import PluginRegistry
from .utils import check_output_format, open_plugin_session

logger = logging.getLogger(__name__)

app = typer.Typer(help="Inspect installed cost plugins.", add_completion=False)


@app.command("list")
def list_plugins(
    output_format: Annotated[str, typer.Option("--output", "-o", help="Output format: table or json.")] = "table",
):
    """
    List the latest installed version of every plugin.
    """
    output_format = check_output_format(output_format)
    registry = PluginRegistry()
    plugins, warnings = registry.list_latest_plugins()
    for warning in warnings:
        logger.warning(warning)

    if output_format != "table":
        typer.echo(json.dumps([p.model_dump() for p in plugins], indent=2, sort_keys=True))
        return

    console = Console()
    if not plugins:
        console.print(f"No plugins installed in {registry.root}.", style="yellow")
        return
    table = Table(title="Installed Plugins", header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Path", style="dim")
    for plugin in plugins:
        table.add_row(plugin.name, plugin.version, plugin.path)
    console.print(table)


@app.command()
def inspect(
    plugin: Annotated[str, typer.Argument(help="Name of the installed plugin.")],
    resource_type: Annotated[str, typer.Argument(help="Resource type, e.g. 'aws:ec2/instance:Instance'.")],
    output_format: Annotated[str, typer.Option("--output", "-o", help="Output format: table or json.")] = "table",
):
    """
    Show which request fields a plugin uses to price a resource type.
    """
    output_format = check_output_format(output_format)
    provider = resource_type.split(":", 1)[0] if ":" in resource_type else ""

    async def _run():
        async with await open_plugin_session(plugin) as session:
            if not session.clients:
                reasons = "; ".join(e.message for e in session.launch_failures) or "plugin not installed"
                raise FinFocusError(f"Could not start plugin '{plugin}': {reasons}")
            client = session.clients[0]
            mappings = await Engine(session.clients).dry_run(resource_type, provider)
            return client, mappings.get(client.name)

    try:
        client, mappings = asyncio.run(_run())
    except FinFocusError as e:
        logger.error(str(e))
        raise typer.Exit(code=1)

    if mappings is None:
        logger.error(f"Plugin '{plugin}' does not support field discovery for {resource_type}.")
        raise typer.Exit(code=1)

    if output_format != "table":
        typer.echo(json.dumps([m.model_dump(mode="json") for m in mappings], indent=2, sort_keys=True))
        return

    console = Console()
    if client.metadata is not None:
        console.print(
            f"{client.metadata.name} {client.metadata.version} (spec {client.metadata.spec_version or 'unknown'})"
        )
    table = Table(title=f"Field mappings for {resource_type}", header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Condition", style="dim")
    table.add_column("Expected Type", style="dim")
    for mapping in mappings:
        table.add_row(mapping.field_name, mapping.status.value, mapping.condition, mapping.expected_type)
    console.print(table)
