# src/finfocus/cli/cost.py
"""
Implements the `cost` commands: projected, actual, and recommendations.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from ..core.exceptions import FinFocusError
from ..engine.aggregation import GroupBy, filter_resources, group_results, matches_tags
from ..engine.engine import Engine
from ..models.plugins import RecommendationActionType
from ..proto.mapping import ProviderDefaults
from ..reporters.console_reporter import ConsoleReporter
from ..reporters.json_reporter import JSONReporter, NDJSONReporter
from .utils import (
    check_output_format,
    emit_cost_report,
    load_resources,
    open_plugin_session,
    parse_tags,
    resolve_time_range,
)

logger = logging.getLogger(__name__)

app = typer.Typer(help="Calculate projected and actual cloud costs.", add_completion=False)

ResourcesArg = Annotated[
    Path,
    typer.Argument(help="JSON file with the list of resources to cost.", exists=True, dir_okay=False, readable=True),
]
FilterOpt = Annotated[
    Optional[str], typer.Option("--filter", help="Only cost matching resources, e.g. 'provider=aws' or 'type=ec2'.")
]
PluginOpt = Annotated[Optional[str], typer.Option("--plugin", help="Only use the named plugin.")]
OutputOpt = Annotated[str, typer.Option("--output", "-o", help="Output format: table, json or ndjson.")]
OutputPathOpt = Annotated[
    Optional[Path],
    typer.Option("--output-path", help="Write the results to this file instead of the console.", dir_okay=False),
]


def _load(resources_path: Path, filter_expr: Optional[str], tags: Optional[str] = None):
    resources = filter_resources(load_resources(resources_path), filter_expr)
    tag_filter = parse_tags(tags)
    if tag_filter:
        resources = [r for r in resources if matches_tags(r, tag_filter)]
    logger.info(f"Loaded {len(resources)} resource(s) from {resources_path}")
    return resources


@app.command()
def projected(
    resources_path: ResourcesArg,
    filter_expr: FilterOpt = None,
    plugin: PluginOpt = None,
    output_format: OutputOpt = "table",
    output_path: OutputPathOpt = None,
):
    """
    Estimate the monthly cost of each resource.
    """
    output_format = check_output_format(output_format)
    resources = _load(resources_path, filter_expr)

    async def _run():
        async with await open_plugin_session(plugin) as session:
            engine = Engine.from_session(session, defaults=ProviderDefaults.from_env())
            return await engine.get_projected_cost(resources)

    try:
        result = asyncio.run(_run())
    except FinFocusError as e:
        logger.error(f"Projected cost calculation failed: {e}")
        raise typer.Exit(code=1)

    emit_cost_report(result, output_format, output_path, title="FinFocus Projected Costs")


@app.command()
def actual(
    resources_path: ResourcesArg,
    start: Annotated[Optional[str], typer.Option("--from", help="Start date (YYYY-MM-DD or RFC 3339).")] = None,
    end: Annotated[Optional[str], typer.Option("--to", help="End date (YYYY-MM-DD or RFC 3339). Default: now.")] = None,
    last: Annotated[
        Optional[str], typer.Option("--last", help="Time range ending now (e.g. '2h', '7d', '1m'). Default: 7d.")
    ] = None,
    group_by: Annotated[
        str, typer.Option("--group-by", help="Group rows by none, resource, type, provider, daily or monthly.")
    ] = "none",
    tags: Annotated[Optional[str], typer.Option("--tags", help="Only cost resources with these tags: 'k=v,k2=v2'.")] = None,
    no_estimate: Annotated[
        bool, typer.Option("--no-estimate", help="Do not estimate costs from resource creation time.")
    ] = False,
    filter_expr: FilterOpt = None,
    plugin: PluginOpt = None,
    output_format: OutputOpt = "table",
    output_path: OutputPathOpt = None,
):
    """
    Report the actual cost of each resource over a time range.

    Uses billing data from plugins when available, and otherwise estimates the
    cost from the resource's creation time and its projected hourly rate.
    """
    output_format = check_output_format(output_format)
    try:
        grouping = GroupBy(group_by.lower())
    except ValueError:
        raise typer.BadParameter(f"Invalid --group-by '{group_by}'.")
    time_range = resolve_time_range(start, end, last)
    resources = _load(resources_path, filter_expr, tags)

    async def _run():
        async with await open_plugin_session(plugin) as session:
            engine = Engine.from_session(session, defaults=ProviderDefaults.from_env())
            return await engine.get_actual_cost(resources, time_range, estimate=not no_estimate)

    try:
        result = asyncio.run(_run())
    except FinFocusError as e:
        logger.error(f"Actual cost calculation failed: {e}")
        raise typer.Exit(code=1)

    if grouping != GroupBy.NONE:
        result = result.model_copy(update={"results": group_results(result.results, grouping)})
    emit_cost_report(result, output_format, output_path, title="FinFocus Actual Costs")


@app.command()
def recommendations(
    resources_path: ResourcesArg,
    action_type: Annotated[
        Optional[str],
        typer.Option("--action-type", help="Only show these action types, e.g. 'rightsize,terminate'."),
    ] = None,
    filter_expr: FilterOpt = None,
    plugin: PluginOpt = None,
    output_format: OutputOpt = "table",
):
    """
    Show cost-optimisation recommendations from the installed plugins.
    """
    output_format = check_output_format(output_format)
    try:
        wanted = RecommendationActionType.parse_list(action_type) if action_type else []
    except ValueError as e:
        raise typer.BadParameter(str(e))
    resources = _load(resources_path, filter_expr)

    async def _run():
        async with await open_plugin_session(plugin) as session:
            engine = Engine.from_session(session, defaults=ProviderDefaults.from_env())
            return await engine.get_recommendations(resources)

    try:
        result = asyncio.run(_run())
    except FinFocusError as e:
        logger.error(f"Fetching recommendations failed: {e}")
        raise typer.Exit(code=1)

    if wanted:
        values = {w.value for w in wanted}
        result = result.model_copy(
            update={"recommendations": [r for r in result.recommendations if r.action_type in values]}
        )

    if output_format == "json":
        JSONReporter().report_recommendations(result)
    elif output_format == "ndjson":
        NDJSONReporter().report_recommendations(result)
    else:
        ConsoleReporter().report_recommendations(result)
