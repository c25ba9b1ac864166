# tests/cli/test_plugin_commands.py
"""
Tests for the `finfocus plugin` commands.
"""

import json
import stat
import sys
from unittest.mock import AsyncMock

from typer.testing import CliRunner

from finfocus.cli import app
from finfocus.core.config import config
from finfocus.core.exceptions import PluginLaunchError
from finfocus.models.costs import ErrorDetail, ErrorKind
from finfocus.pluginhost.registry import PluginSession

runner = CliRunner()


def _install(root, name, version):
    path = root / name / version / f"finfocus-plugin-{name}"
    path.parent.mkdir(parents=True)
    path.write_text(f"#!{sys.executable}\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


def test_plugin_list_json(monkeypatch, plugin_root):
    _install(plugin_root, "kubecost", "1.0.0")
    _install(plugin_root, "aws-public", "0.1.0")
    _install(plugin_root, "aws-public", "0.2.0")
    monkeypatch.setattr(config, "PLUGIN_DIR", str(plugin_root))

    result = runner.invoke(app, ["plugin", "list", "-o", "json"])

    assert result.exit_code == 0, result.output
    plugins = json.loads(result.stdout)
    assert [(p["name"], p["version"]) for p in plugins] == [("aws-public", "0.2.0"), ("kubecost", "1.0.0")]


def test_plugin_list_empty(monkeypatch, plugin_root):
    monkeypatch.setattr(config, "PLUGIN_DIR", str(plugin_root))
    result = runner.invoke(app, ["plugin", "list"])
    assert result.exit_code == 0
    assert "No plugins installed" in result.stdout


def test_plugin_inspect(mocker, fake_source):
    source = fake_source(name="aws-public", prices={"t3.micro": 0.01})
    mocker.patch("finfocus.cli.plugin.open_plugin_session", new=AsyncMock(return_value=PluginSession([source])))

    result = runner.invoke(app, ["plugin", "inspect", "aws-public", "aws:ec2/instance:Instance", "-o", "json"])

    assert result.exit_code == 0, result.output
    mappings = json.loads(result.stdout)
    assert [(m["field_name"], m["status"]) for m in mappings] == [("sku", "SUPPORTED"), ("region", "CONDITIONAL")]


def test_plugin_inspect_table(mocker, fake_source):
    source = fake_source(name="aws-public", prices={"t3.micro": 0.01})
    mocker.patch("finfocus.cli.plugin.open_plugin_session", new=AsyncMock(return_value=PluginSession([source])))

    result = runner.invoke(app, ["plugin", "inspect", "aws-public", "aws:ec2/instance:Instance"])

    assert result.exit_code == 0, result.output
    assert "CONDITIONAL" in result.stdout
    assert "aws-public" in result.stdout


def test_plugin_inspect_without_dry_run_support(mocker, fake_source):
    source = fake_source(name="legacy", legacy=True)
    mocker.patch("finfocus.cli.plugin.open_plugin_session", new=AsyncMock(return_value=PluginSession([source])))

    result = runner.invoke(app, ["plugin", "inspect", "legacy", "aws:ec2/instance:Instance"])

    assert result.exit_code == 1


def test_plugin_inspect_launch_failure(mocker):
    failure = ErrorDetail(plugin_name="broken", error=PluginLaunchError("exited early"), kind=ErrorKind.LAUNCH)
    mocker.patch(
        "finfocus.cli.plugin.open_plugin_session", new=AsyncMock(return_value=PluginSession([], [failure]))
    )

    result = runner.invoke(app, ["plugin", "inspect", "broken", "aws:ec2/instance:Instance"])

    assert result.exit_code == 1
