# src/finfocus/pluginhost/version.py
"""
Protocol-version negotiation between the core and a freshly connected plugin.
"""

import logging
import re
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple, Optional

from pydantic import BaseModel

from ..core.config import config
from ..core.exceptions import PluginCallError, PluginIncompatibleError, PluginUnimplementedError
from ..models.plugins import PluginMetadata

if TYPE_CHECKING:
    from .client import PluginClient

logger = logging.getLogger(__name__)

# Protocol specification version implemented by this core.
SPEC_VERSION = "0.4.0"

_SEMVER_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$")


class SemVer(NamedTuple):
    major: int
    minor: int
    patch: int
    prerelease: str = ""

    def sort_key(self):
        # A release sorts after any of its pre-releases.
        return (self.major, self.minor, self.patch, self.prerelease == "", self.prerelease)

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.prerelease}" if self.prerelease else base


def parse_semver(value: str) -> Optional[SemVer]:
    """Parses '1.2.3', 'v1.2.3' or '1.2.3-rc.1'. Returns None for anything else."""
    if not value:
        return None
    match = _SEMVER_RE.match(value.strip())
    if not match:
        return None
    major, minor, patch, prerelease = match.groups()
    return SemVer(int(major), int(minor), int(patch), prerelease or "")


class NegotiationState(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    CHECKING = "CHECKING"
    COMPATIBLE = "COMPATIBLE"
    MINOR_MISMATCH = "MINOR_MISMATCH"
    MAJOR_MISMATCH = "MAJOR_MISMATCH"
    LEGACY_UNKNOWN = "LEGACY_UNKNOWN"


def compare_spec_versions(core_version: str, plugin_version: str) -> NegotiationState:
    """
    Compares two protocol versions. Same major and minor is compatible; a
    different minor is tolerated; a different major is not. Unparseable
    versions yield LEGACY_UNKNOWN.
    """
    core = parse_semver(core_version)
    plugin = parse_semver(plugin_version)
    if core is None or plugin is None:
        return NegotiationState.LEGACY_UNKNOWN
    if core.major != plugin.major:
        return NegotiationState.MAJOR_MISMATCH
    if core.minor != plugin.minor:
        return NegotiationState.MINOR_MISMATCH
    return NegotiationState.COMPATIBLE


class CompatibilityReport(BaseModel):
    state: NegotiationState
    core_version: str = SPEC_VERSION
    plugin_version: Optional[str] = None
    metadata: Optional[PluginMetadata] = None

    @property
    def is_legacy(self) -> bool:
        return self.state == NegotiationState.LEGACY_UNKNOWN


class CompatibilityNegotiator:
    """
    Runs the metadata handshake for one plugin and classifies the result.

    Only strict mode can turn the outcome into an error; every other outcome,
    including a plugin that does not implement GetPluginInfo, lets the session
    continue.
    """

    def __init__(
        self,
        core_version: str = SPEC_VERSION,
        strict: Optional[bool] = None,
        skip_version_check: Optional[bool] = None,
        timeout: Optional[float] = None,
    ):
        self.core_version = core_version
        self.strict = config.STRICT_PLUGIN_COMPATIBILITY if strict is None else strict
        self.skip_version_check = config.SKIP_VERSION_CHECK if skip_version_check is None else skip_version_check
        self.timeout = config.PLUGIN_INFO_TIMEOUT if timeout is None else timeout
        self.state = NegotiationState.UNINITIALIZED

    async def negotiate(self, client: "PluginClient") -> CompatibilityReport:
        self.state = NegotiationState.CHECKING
        try:
            metadata = await client.get_plugin_info(timeout=self.timeout)
        except PluginUnimplementedError:
            logger.debug(f"Plugin '{client.name}' does not support GetPluginInfo (legacy plugin).")
            return self._finish(CompatibilityReport(state=NegotiationState.LEGACY_UNKNOWN, core_version=self.core_version))
        except PluginCallError as e:
            logger.warning(f"Failed to get plugin info from '{client.name}': {e}. Continuing without metadata.")
            return self._finish(CompatibilityReport(state=NegotiationState.LEGACY_UNKNOWN, core_version=self.core_version))

        state = compare_spec_versions(self.core_version, metadata.spec_version)
        report = CompatibilityReport(
            state=state,
            core_version=self.core_version,
            plugin_version=metadata.spec_version or None,
            metadata=metadata,
        )

        if self.skip_version_check:
            return self._finish(report)

        if state == NegotiationState.MINOR_MISMATCH:
            logger.warning(
                f"Plugin '{client.name}' implements spec {metadata.spec_version}, core is {self.core_version}. "
                f"Proceeding; fields unknown to either side are ignored."
            )
        elif state == NegotiationState.MAJOR_MISMATCH:
            message = (
                f"Plugin '{client.name}' implements spec {metadata.spec_version}, "
                f"which is incompatible with core spec {self.core_version}."
            )
            if self.strict:
                self._finish(report)
                raise PluginIncompatibleError(message, plugin_name=client.name)
            logger.warning(f"{message} Results may be incomplete or wrong.")
        elif state == NegotiationState.LEGACY_UNKNOWN:
            logger.warning(
                f"Plugin '{client.name}' reported an invalid spec version {metadata.spec_version!r}; "
                f"skipping the compatibility check."
            )
        return self._finish(report)

    def _finish(self, report: CompatibilityReport) -> CompatibilityReport:
        self.state = report.state
        return report
