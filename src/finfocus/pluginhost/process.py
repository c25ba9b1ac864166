# src/finfocus/pluginhost/process.py
"""
Supervises plugin processes: reserves a loopback port, spawns the plugin
executable with that port, waits for it to accept connections, and tears it
down again.
"""

import asyncio
import errno
import logging
import os
import socket
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..core.config import config
from ..core.exceptions import PluginBindTimeoutError, PluginLaunchError, PortAllocationError

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
PORT_ENV_VAR = "FINFOCUS_PLUGIN_PORT"

INITIAL_BACKOFF = 0.1
MAX_BACKOFF = 2.0
BACKOFF_MULTIPLIER = 2


class PluginProcess:
    """A running plugin executable bound to a loopback port."""

    def __init__(
        self,
        name: str,
        path: str,
        port: int,
        process: asyncio.subprocess.Process,
        shutdown_grace: float,
        launcher: Optional["ProcessLauncher"] = None,
    ):
        self.name = name
        self.path = path
        self.port = port
        self._process = process
        self._shutdown_grace = shutdown_grace
        self._launcher = launcher
        self._closed = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def address(self) -> str:
        return f"{LOOPBACK_HOST}:{self.port}"

    @property
    def base_url(self) -> str:
        return f"http://{self.address}"

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    def is_running(self) -> bool:
        return self._process.returncode is None

    async def shutdown(self):
        """
        Stops the plugin: SIGTERM, then SIGKILL once the grace period expires.
        Safe to call more than once and after the process has already exited.
        """
        if self._closed:
            return
        self._closed = True
        try:
            if self._process.returncode is None:
                try:
                    self._process.terminate()
                except ProcessLookupError:
                    pass
                try:
                    await asyncio.wait_for(self._process.wait(), timeout=self._shutdown_grace)
                except asyncio.TimeoutError:
                    logger.warning(f"Plugin '{self.name}' did not exit after SIGTERM; killing it.")
                    try:
                        self._process.kill()
                    except ProcessLookupError:
                        pass
                    await self._process.wait()
            logger.debug(f"Plugin '{self.name}' (pid {self.pid}) stopped with code {self._process.returncode}.")
        finally:
            if self._launcher is not None:
                self._launcher._forget(self)

    async def __aenter__(self) -> "PluginProcess":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.shutdown()

    def __repr__(self) -> str:
        return f"PluginProcess(name={self.name!r}, pid={self.pid}, port={self.port})"


class ProcessLauncher:
    """
    Starts plugin executables and keeps a table of the processes it started
    so they can all be shut down together.
    """

    def __init__(
        self,
        bind_timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        port_retries: Optional[int] = None,
        shutdown_grace: Optional[float] = None,
        analyzer_mode: Optional[bool] = None,
    ):
        self.bind_timeout = bind_timeout
        self.poll_interval = poll_interval if poll_interval is not None else config.PLUGIN_POLL_INTERVAL
        if port_retries is None:
            port_retries = config.PLUGIN_PORT_RETRIES * 2 if config.IS_CI else config.PLUGIN_PORT_RETRIES
        self.port_retries = max(1, port_retries)
        self.shutdown_grace = shutdown_grace if shutdown_grace is not None else config.PLUGIN_SHUTDOWN_GRACE
        self.analyzer_mode = analyzer_mode if analyzer_mode is not None else config.ANALYZER_MODE
        self._lock = threading.Lock()
        self._processes: Dict[int, PluginProcess] = {}

    @property
    def processes(self) -> List[PluginProcess]:
        with self._lock:
            return list(self._processes.values())

    async def launch(self, path: str, args: Sequence[str] = (), name: Optional[str] = None) -> PluginProcess:
        """
        Launches the plugin at `path` and waits until it accepts connections.

        Port allocation is retried with exponential backoff when the address
        is already in use. Raises PluginLaunchError when the executable cannot
        be started or exits early, and PluginBindTimeoutError when it never binds.
        """
        name = name or Path(path).name
        backoff = INITIAL_BACKOFF
        last_error: Optional[Exception] = None

        for attempt in range(self.port_retries):
            if attempt > 0:
                logger.debug(
                    f"Retrying launch of plugin '{name}' after port collision "
                    f"(attempt {attempt + 1}/{self.port_retries}, backoff {backoff:.1f}s)."
                )
                await asyncio.sleep(backoff)
                backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF)
            try:
                return await self._launch_once(path, args, name)
            except PortAllocationError as e:
                last_error = e
                continue

        raise PluginLaunchError(
            f"Failed to launch plugin '{name}' after {self.port_retries} attempts: {last_error}",
            plugin_name=name,
        )

    async def _launch_once(self, path: str, args: Sequence[str], name: str) -> PluginProcess:
        port = self._allocate_port(name)

        env = dict(os.environ)
        env[PORT_ENV_VAR] = str(port)
        if "PORT" in env:
            logger.debug(f"Inherited PORT={env['PORT']} is ignored by plugin '{name}'; --port={port} takes precedence.")

        stderr = asyncio.subprocess.DEVNULL if self.analyzer_mode else None
        try:
            process = await asyncio.create_subprocess_exec(
                path,
                f"--port={port}",
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=stderr,
                env=env,
            )
        except OSError as e:
            raise PluginLaunchError(f"Could not start plugin '{name}' at {path}: {e}", plugin_name=name) from e

        plugin = PluginProcess(name, path, port, process, self.shutdown_grace, launcher=self)
        with self._lock:
            self._processes[process.pid] = plugin
        logger.debug(f"Started plugin '{name}' (pid {process.pid}) on port {port}.")

        try:
            await self._wait_for_bind(plugin)
        except BaseException:
            await plugin.shutdown()
            raise
        return plugin

    def _allocate_port(self, name: str) -> int:
        # Bind to port 0 so the OS picks a free ephemeral port, then release it
        # for the plugin to claim.
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.bind((LOOPBACK_HOST, 0))
                return sock.getsockname()[1]
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                raise PortAllocationError(f"address already in use: {e}", plugin_name=name) from e
            raise PluginLaunchError(f"Could not allocate a port for plugin '{name}': {e}", plugin_name=name) from e

    async def _wait_for_bind(self, plugin: PluginProcess):
        timeout = self.bind_timeout if self.bind_timeout is not None else config.bind_timeout_for(plugin.name)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            if not plugin.is_running():
                raise PluginLaunchError(
                    f"Plugin '{plugin.name}' exited with code {plugin.returncode} before binding to port {plugin.port}.",
                    plugin_name=plugin.name,
                )
            if await _port_accepts_connections(plugin.port, self.poll_interval):
                logger.debug(f"Plugin '{plugin.name}' is listening on {plugin.address}.")
                return
            if loop.time() >= deadline:
                raise PluginBindTimeoutError(
                    f"Plugin '{plugin.name}' did not bind to port {plugin.port} within {timeout:.1f}s. "
                    f"The plugin binary may be out of date: if using an older plugin, ensure it supports the --port flag.",
                    plugin_name=plugin.name,
                )
            await asyncio.sleep(self.poll_interval)

    def _forget(self, plugin: PluginProcess):
        with self._lock:
            self._processes.pop(plugin.pid, None)

    async def shutdown_all(self):
        """Stops every process this launcher started and has not yet stopped."""
        processes = self.processes
        if processes:
            await asyncio.gather(*(p.shutdown() for p in processes), return_exceptions=True)


async def _port_accepts_connections(port: int, timeout: float) -> bool:
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(LOOPBACK_HOST, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True
