# src/finfocus/cli/utils.py
import asyncio
import json
import logging
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import typer
from pydantic import ValidationError

from ..exporters.json_exporter import JSONExporter, NDJSONExporter
from ..models.costs import CostResultWithErrors
from ..models.resources import ResourceDescriptor, TimeRange
from ..pluginhost.registry import PluginRegistry, PluginSession
from ..reporters.base_reporter import rows_for_export
from ..reporters.console_reporter import ConsoleReporter
from ..reporters.json_reporter import JSONReporter, NDJSONReporter
from ..utils.date_utils import ensure_utc, parse_iso_date, utcnow

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("table", "json", "ndjson")


def parse_last_duration(last: str) -> timedelta:
    """Parses a duration string (e.g., '3h', '7d', '2w') into a timedelta."""
    match = re.match(r"^(\d+)(min|[hdwmy])$", last.lower())
    if not match:
        raise typer.BadParameter(
            f"Invalid format for --last: '{last}'. Use format like '10min', '2h', '7d', '3w', '1m' (month), '1y'."
        )

    value, unit = int(match.group(1)), match.group(2)
    if unit == "min":
        return timedelta(minutes=value)
    elif unit == "h":
        return timedelta(hours=value)
    elif unit == "d":
        return timedelta(days=value)
    elif unit == "w":
        return timedelta(weeks=value)
    elif unit == "m":
        # Approximate month as 30 days
        return timedelta(days=value * 30)
    # Approximate year as 365 days.
    return timedelta(days=value * 365)


def _parse_cli_date(value: str, option: str) -> datetime:
    parsed = parse_iso_date(value)
    if parsed is None:
        raise typer.BadParameter(f"Invalid date for {option}: '{value}'. Use YYYY-MM-DD or an RFC 3339 timestamp.")
    return ensure_utc(parsed)


def resolve_time_range(
    start: Optional[str], end: Optional[str], last: Optional[str], now: Optional[datetime] = None
) -> TimeRange:
    """
    Builds the query window from --from/--to, or from --last ending now.
    With neither, the last 7 days are used.
    """
    now = now or utcnow()
    end_dt = _parse_cli_date(end, "--to") if end else now
    if start:
        start_dt = _parse_cli_date(start, "--from")
    else:
        start_dt = end_dt - parse_last_duration(last or "7d")
    if end_dt <= start_dt:
        raise typer.BadParameter("--to must be after --from.")
    return TimeRange(start=start_dt, end=end_dt)


def parse_tags(raw: Optional[str]) -> Dict[str, str]:
    """Parses 'env=prod,team=web' into a dict."""
    tags: Dict[str, str] = {}
    if not raw:
        return tags
    for pair in raw.split(","):
        if not pair.strip():
            continue
        if "=" not in pair:
            raise typer.BadParameter(f"Invalid tag filter '{pair}'. Use key=value pairs separated by commas.")
        key, value = pair.split("=", 1)
        tags[key.strip()] = value.strip()
    return tags


def load_resources(path: Path) -> List[ResourceDescriptor]:
    """
    Reads a JSON list of resource descriptors (type, id, provider, properties).
    A document with a top-level 'resources' list is accepted as well.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise typer.BadParameter(f"Could not read resources from {path}: {e}")

    if isinstance(raw, dict):
        raw = raw.get("resources", [])
    if not isinstance(raw, list):
        raise typer.BadParameter(f"{path} must contain a JSON list of resources.")

    try:
        return [ResourceDescriptor.model_validate(item) for item in raw]
    except ValidationError as e:
        raise typer.BadParameter(f"Invalid resource descriptor in {path}: {e}")


async def open_plugin_session(only_name: Optional[str] = None) -> PluginSession:
    return await PluginRegistry().open_session(only_name=only_name)


def check_output_format(output_format: str) -> str:
    fmt = output_format.lower()
    if fmt not in OUTPUT_FORMATS:
        raise typer.BadParameter(f"Invalid output format '{output_format}'. Choose from: {', '.join(OUTPUT_FORMATS)}.")
    return fmt


def emit_cost_report(
    result: CostResultWithErrors,
    output_format: str,
    output_path: Optional[Path] = None,
    title: str = "FinFocus Cost Report",
):
    """Renders to stdout, or writes the rows to `output_path` with the matching exporter."""
    if output_path is not None:
        exporter = NDJSONExporter() if output_format == "ndjson" else JSONExporter()
        try:
            written = asyncio.run(exporter.export(rows_for_export(result), str(output_path)))
        except OSError as e:
            logger.error(f"Failed to export report to {output_path}: {e}")
            raise typer.Exit(code=1)
        typer.echo(f"Report exported to: {written}", err=True)
        if result.has_errors():
            typer.echo(result.error_summary(), err=True)
        return

    if output_format == "json":
        JSONReporter().report(result)
    elif output_format == "ndjson":
        NDJSONReporter().report(result)
    else:
        ConsoleReporter().report(result, title=title)
