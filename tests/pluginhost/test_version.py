# tests/pluginhost/test_version.py
"""
Tests for semantic-version parsing and plugin compatibility negotiation.
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from finfocus.core.exceptions import PluginCallError, PluginIncompatibleError, PluginUnimplementedError
from finfocus.models.plugins import PluginMetadata
from finfocus.pluginhost.version import (
    SPEC_VERSION,
    CompatibilityNegotiator,
    NegotiationState,
    SemVer,
    compare_spec_versions,
    parse_semver,
)


def _client(spec_version: str = SPEC_VERSION, error: Exception = None):
    client = MagicMock()
    client.name = "aws-public"
    if error is not None:
        client.get_plugin_info = AsyncMock(side_effect=error)
    else:
        client.get_plugin_info = AsyncMock(
            return_value=PluginMetadata(name="aws-public", version="1.2.0", spec_version=spec_version)
        )
    return client


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1.2.3", SemVer(1, 2, 3)),
        ("v0.4.0", SemVer(0, 4, 0)),
        ("2.0.0-rc.1", SemVer(2, 0, 0, "rc.1")),
        ("1.0.0+build.5", SemVer(1, 0, 0)),
    ],
)
def test_parse_semver(value, expected):
    assert parse_semver(value) == expected


@pytest.mark.parametrize("value", ["", "latest", "1.2", "1.2.3.4", "one.two.three"])
def test_parse_semver_invalid(value):
    assert parse_semver(value) is None


def test_prerelease_sorts_before_release():
    assert parse_semver("1.0.0-rc.1").sort_key() < parse_semver("1.0.0").sort_key()
    assert parse_semver("1.0.0").sort_key() < parse_semver("1.0.1-alpha").sort_key()


@pytest.mark.parametrize(
    "plugin_version, state",
    [
        ("0.4.0", NegotiationState.COMPATIBLE),
        ("0.4.7", NegotiationState.COMPATIBLE),
        ("0.3.0", NegotiationState.MINOR_MISMATCH),
        ("0.5.1", NegotiationState.MINOR_MISMATCH),
        ("1.0.0", NegotiationState.MAJOR_MISMATCH),
        ("garbage", NegotiationState.LEGACY_UNKNOWN),
        ("", NegotiationState.LEGACY_UNKNOWN),
    ],
)
def test_compare_spec_versions(plugin_version, state):
    assert compare_spec_versions("0.4.0", plugin_version) == state


@pytest.mark.asyncio
async def test_negotiate_compatible():
    negotiator = CompatibilityNegotiator(strict=False, skip_version_check=False)
    assert negotiator.state == NegotiationState.UNINITIALIZED

    report = await negotiator.negotiate(_client())

    assert report.state == NegotiationState.COMPATIBLE
    assert report.metadata.version == "1.2.0"
    assert report.plugin_version == SPEC_VERSION
    assert negotiator.state == NegotiationState.COMPATIBLE


@pytest.mark.asyncio
async def test_negotiate_legacy_plugin(caplog):
    """A plugin without GetPluginInfo is legacy: no metadata, no warning."""
    negotiator = CompatibilityNegotiator(strict=True, skip_version_check=False)
    with caplog.at_level(logging.DEBUG, logger="finfocus.pluginhost.version"):
        report = await negotiator.negotiate(_client(error=PluginUnimplementedError("nope")))

    assert report.is_legacy
    assert report.metadata is None
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


@pytest.mark.asyncio
async def test_negotiate_call_failure_continues(caplog):
    negotiator = CompatibilityNegotiator(strict=True, skip_version_check=False)
    with caplog.at_level(logging.WARNING, logger="finfocus.pluginhost.version"):
        report = await negotiator.negotiate(_client(error=PluginCallError("timed out")))

    assert report.is_legacy
    assert "Continuing without metadata" in caplog.text


@pytest.mark.asyncio
async def test_negotiate_minor_mismatch_warns_and_proceeds(caplog):
    negotiator = CompatibilityNegotiator(strict=True, skip_version_check=False)
    with caplog.at_level(logging.WARNING, logger="finfocus.pluginhost.version"):
        report = await negotiator.negotiate(_client("0.3.0"))

    assert report.state == NegotiationState.MINOR_MISMATCH
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "0.3.0" in warnings[0].getMessage()


@pytest.mark.asyncio
async def test_negotiate_major_mismatch_warns_when_not_strict(caplog):
    negotiator = CompatibilityNegotiator(strict=False, skip_version_check=False)
    with caplog.at_level(logging.WARNING, logger="finfocus.pluginhost.version"):
        report = await negotiator.negotiate(_client("1.0.0"))

    assert report.state == NegotiationState.MAJOR_MISMATCH
    assert report.metadata is not None
    assert "incompatible" in caplog.text


@pytest.mark.asyncio
async def test_negotiate_major_mismatch_strict_raises():
    negotiator = CompatibilityNegotiator(strict=True, skip_version_check=False)
    with pytest.raises(PluginIncompatibleError) as exc_info:
        await negotiator.negotiate(_client("1.0.0"))
    assert exc_info.value.plugin_name == "aws-public"
    assert negotiator.state == NegotiationState.MAJOR_MISMATCH


@pytest.mark.asyncio
async def test_skip_version_check_overrides_strict(caplog):
    negotiator = CompatibilityNegotiator(strict=True, skip_version_check=True)
    with caplog.at_level(logging.INFO, logger="finfocus.pluginhost.version"):
        report = await negotiator.negotiate(_client("1.0.0"))

    assert report.state == NegotiationState.MAJOR_MISMATCH
    assert caplog.records == []


@pytest.mark.asyncio
async def test_invalid_plugin_spec_version_keeps_metadata(caplog):
    negotiator = CompatibilityNegotiator(strict=True, skip_version_check=False)
    with caplog.at_level(logging.WARNING, logger="finfocus.pluginhost.version"):
        report = await negotiator.negotiate(_client("next"))

    assert report.is_legacy
    assert report.metadata.name == "aws-public"
    assert "invalid spec version" in caplog.text
