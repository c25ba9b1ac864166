# src/finfocus/cli/main.py
"""
This module is the main entry point for the FinFocus CLI.

It aggregates all commands from the submodules (cost, plugin).
"""

import logging

import typer

from ..core.config import config
from ..core.telemetry import initialize_telemetry
from . import cost, plugin

# --- Setup Logger ---
logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


app = typer.Typer(
    name="finfocus",
    help="Calculate cloud infrastructure costs through pluggable pricing sources.",
    add_completion=False,
)


def version_callback(value: bool):
    """
    Prints the version of FinFocus.
    """
    if value:
        from .. import __version__

        typer.echo(f"FinFocus version: {__version__}")
        raise typer.Exit()


@app.command()
def version():
    """
    Show the version of FinFocus and the plugin protocol it speaks.
    """
    from .. import __version__
    from ..pluginhost.version import SPEC_VERSION

    typer.echo(f"FinFocus version: {__version__}")
    typer.echo(f"Plugin spec version: {SPEC_VERSION}")


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    """
    FinFocus CLI main entry point.
    """
    initialize_telemetry()


# Register command sub-apps
app.add_typer(cost.app, name="cost")
app.add_typer(plugin.app, name="plugin")


if __name__ == "__main__":
    app()
