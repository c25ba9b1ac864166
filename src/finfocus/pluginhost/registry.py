# src/finfocus/pluginhost/registry.py
"""
Discovers installed plugins and opens sessions of connected plugin clients.

Installed plugins live at ``<plugin_dir>/<name>/<version>/<executable>``; when
several versions of a plugin are installed the highest semantic version wins.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel

from ..core.config import config
from ..core.exceptions import PluginError
from ..models.costs import ErrorDetail, ErrorKind
from .client import PluginClient, connect_plugin
from .process import ProcessLauncher
from .version import CompatibilityNegotiator, parse_semver

logger = logging.getLogger(__name__)

BINARY_PREFIX = "finfocus-plugin-"


class PluginInfo(BaseModel):
    name: str
    version: str
    path: str


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def find_binary(version_dir: Path) -> Optional[Path]:
    """
    Finds the plugin executable in a version directory: first by the
    conventional names, then any executable file (sorted for stability).
    """
    plugin_name = version_dir.parent.name
    for candidate in (f"{BINARY_PREFIX}{plugin_name}", plugin_name):
        path = version_dir / candidate
        if _is_executable(path):
            return path
    try:
        entries = sorted(version_dir.iterdir())
    except OSError:
        return None
    for entry in entries:
        if _is_executable(entry):
            return entry
    return None


class PluginSession:
    """
    The set of plugin clients opened for one command, plus the launches that
    failed. Closing the session stops every plugin process it started.
    """

    def __init__(
        self,
        clients: List[PluginClient],
        launch_failures: Optional[List[ErrorDetail]] = None,
        launcher: Optional[ProcessLauncher] = None,
    ):
        self.clients = clients
        self.launch_failures = launch_failures or []
        self._launcher = launcher

    async def close(self):
        results = await asyncio.gather(*(c.close() for c in self.clients), return_exceptions=True)
        for client, result in zip(self.clients, results):
            if isinstance(result, Exception):
                logger.warning(f"Error while closing plugin '{client.name}': {result}")
        if self._launcher is not None:
            await self._launcher.shutdown_all()

    async def __aenter__(self) -> "PluginSession":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        # Shielded so plugin processes are reaped even when the caller is cancelled.
        await asyncio.shield(self.close())


class PluginRegistry:
    def __init__(
        self,
        root: Optional[Path] = None,
        launcher: Optional[ProcessLauncher] = None,
        negotiator_factory: Optional[Callable[[], CompatibilityNegotiator]] = None,
    ):
        self.root = Path(root) if root is not None else config.plugin_dir
        self.launcher = launcher or ProcessLauncher()
        self.negotiator_factory = negotiator_factory or CompatibilityNegotiator

    def list_plugins(self) -> List[PluginInfo]:
        """Every installed (name, version) pair that has an executable, sorted."""
        plugins: List[PluginInfo] = []
        if not self.root.is_dir():
            return plugins

        for plugin_dir in sorted(p for p in self.root.iterdir() if p.is_dir()):
            for version_dir in sorted(v for v in plugin_dir.iterdir() if v.is_dir()):
                binary = find_binary(version_dir)
                if binary is not None:
                    plugins.append(PluginInfo(name=plugin_dir.name, version=version_dir.name, path=str(binary)))
        return plugins

    def list_latest_plugins(self) -> Tuple[List[PluginInfo], List[str]]:
        """
        The highest installed version of each plugin, sorted by name, plus
        warnings for versions that are not valid semantic versions.
        """
        latest = {}
        warnings: List[str] = []
        for plugin in self.list_plugins():
            version = parse_semver(plugin.version)
            if version is None:
                warnings.append(f"Plugin {plugin.name} version {plugin.version} has invalid semver format")
                continue
            existing = latest.get(plugin.name)
            if existing is None or version.sort_key() > existing[0].sort_key():
                latest[plugin.name] = (version, plugin)
        return [latest[name][1] for name in sorted(latest)], warnings

    def get_latest_plugin(self, name: str) -> Optional[PluginInfo]:
        plugins, _ = self.list_latest_plugins()
        for plugin in plugins:
            if plugin.name == name:
                return plugin
        return None

    async def _open_one(self, plugin: PluginInfo) -> PluginClient:
        logger.debug(f"Connecting to plugin {plugin.name} {plugin.version} at {plugin.path}")
        process = await self.launcher.launch(plugin.path, name=plugin.name)
        return await connect_plugin(process, negotiator=self.negotiator_factory())

    async def open_session(self, only_name: Optional[str] = None) -> PluginSession:
        """
        Launches the latest version of every installed plugin (or only
        `only_name`) concurrently. A plugin that fails to start is logged and
        recorded as a launch failure; the others are still returned.
        """
        plugins, warnings = self.list_latest_plugins()
        for warning in warnings:
            logger.warning(warning)
        if only_name:
            plugins = [p for p in plugins if p.name == only_name]

        tasks = [asyncio.ensure_future(self._open_one(p)) for p in plugins]
        try:
            if tasks:
                await asyncio.wait(tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            for task in tasks:
                if not task.cancelled() and task.exception() is None:
                    await task.result().close()
            await self.launcher.shutdown_all()
            raise

        clients: List[PluginClient] = []
        failures: List[ErrorDetail] = []
        for plugin, task in zip(plugins, tasks):
            error = task.exception()
            if error is None:
                clients.append(task.result())
                continue
            if not isinstance(error, PluginError):
                logger.error(f"Unexpected error while starting plugin '{plugin.name}': {error}")
            else:
                logger.warning(f"Failed to start plugin '{plugin.name}': {error}")
            failures.append(ErrorDetail(plugin_name=plugin.name, error=error, kind=ErrorKind.LAUNCH))

        logger.debug(f"Opened {len(clients)} plugin(s), {len(failures)} failed to start.")
        return PluginSession(clients, failures, launcher=self.launcher)
