# src/finfocus/reporters/console_reporter.py
"""
A reporter that displays cost results in formatted tables in the console.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..engine.aggregation import aggregate_results
from ..engine.confidence import confidence_label
from ..engine.engine import STATE_ESTIMATE_ADAPTER
from ..engine.state_cost import UPTIME_ASSUMPTION_NOTE
from ..models.costs import CostResultWithErrors
from ..models.plugins import RecommendationsResult, action_type_label
from .base_reporter import BaseReporter

logger = logging.getLogger(__name__)


class ConsoleReporter(BaseReporter):
    """
    Renders cost results to the console using the 'rich' library.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def report(self, data: CostResultWithErrors, title: str = "FinFocus Cost Report"):
        """
        Displays one row per resource, a summary by provider, and any errors
        or warnings collected while building the batch.
        """
        if not data.results:
            self.console.print("No resources to report.", style="yellow")
        else:
            has_total = any(r.total_cost for r in data.results)
            has_confidence = any(r.confidence for r in data.results)

            table = Table(title=title, header_style="bold magenta", show_lines=True)
            table.add_column("Resource", style="cyan")
            table.add_column("Type", style="cyan")
            table.add_column("Adapter", style="blue")
            table.add_column("Monthly", style="green", justify="right")
            table.add_column("Hourly", style="green", justify="right")
            if has_total:
                table.add_column("Total", style="green", justify="right")
                table.add_column("Period", style="magenta")
            if has_confidence:
                table.add_column("Confidence", style="yellow")
            table.add_column("Notes", style="dim")

            for item in data.results:
                row = [
                    escape(item.resource_id),
                    escape(item.resource_type),
                    escape(item.adapter),
                    f"{item.monthly:.2f} {escape(item.currency)}",
                    f"{item.hourly:.4f}",
                ]
                if has_total:
                    row.extend([f"{item.total_cost:.2f}", escape(item.cost_period)])
                if has_confidence:
                    row.append(confidence_label(item.confidence))
                row.append(escape(item.notes))
                table.add_row(*row)

            self.console.print(table)
            self._report_summary(data)

            if any(r.adapter == STATE_ESTIMATE_ADAPTER for r in data.results):
                self.console.print(UPTIME_ASSUMPTION_NOTE, style="dim")

        if data.warnings:
            self.console.print("\nWARNINGS", style="bold yellow")
            for warning in data.warnings:
                self.console.print(f"  - {warning}", style="yellow", markup=False)

        if data.has_errors():
            self.console.print("\nERRORS", style="bold red")
            self.console.print(data.error_summary().rstrip("\n"), style="red", markup=False)

    def _report_summary(self, data: CostResultWithErrors):
        summary = aggregate_results(data.results)
        table = Table(title="Summary by Provider", header_style="bold magenta")
        table.add_column("Provider", style="cyan")
        table.add_column(f"Monthly ({summary.currency})", style="green", justify="right")
        for provider, monthly in summary.by_provider.items():
            table.add_row(escape(provider), f"{monthly:.2f}")
        table.add_row("[bold]Total[/]", f"[bold]{summary.total_monthly:.2f}[/]")
        self.console.print(table)

    def report_recommendations(self, data: RecommendationsResult):
        """
        Displays optimization recommendations, sorted as received from the engine.
        """
        if not data.recommendations:
            self.console.print("No recommendations to display.", style="green")
        else:
            table = Table(title="FinFocus Recommendations", header_style="bold magenta", show_lines=True)
            table.add_column("Resource", style="cyan")
            table.add_column("Action", style="bold")
            table.add_column("Description", style="white")
            table.add_column("Savings", style="green", justify="right")
            table.add_column("Source", style="blue")

            for rec in data.recommendations:
                table.add_row(
                    escape(rec.resource_id),
                    action_type_label(rec.action_type),
                    escape(rec.description),
                    f"{rec.estimated_savings:.2f} {escape(rec.currency)}",
                    escape(rec.source),
                )
            self.console.print(table)
            if data.currency:
                self.console.print(f"Total potential savings: {data.total_savings:.2f} {data.currency}")

        if data.has_errors():
            self.console.print("\nERRORS", style="bold red")
            for error in data.errors:
                self.console.print(f"  - {error.plugin_name}: {error.message}", style="red", markup=False)
