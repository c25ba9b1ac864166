# src/finfocus/pluginhost/client.py
"""
Typed handle for talking to one running plugin over its local HTTP endpoint.
"""

import logging
from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..core.config import config
from ..core.exceptions import PluginCallError, PluginUnimplementedError
from ..core.telemetry import tracer
from ..models.plugins import PluginMetadata
from ..proto import wire
from ..utils.http_client import get_async_http_client
from .process import PluginProcess
from .version import CompatibilityNegotiator, CompatibilityReport

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

UNIMPLEMENTED_STATUS_CODES = (404, 501)


class PluginClient:
    """
    A connected plugin. Holds the HTTP channel, the cached metadata from the
    compatibility handshake (None for legacy plugins) and, when the core
    launched the plugin, the process to stop on close.
    """

    def __init__(
        self,
        name: str,
        http_client: httpx.AsyncClient,
        process: Optional[PluginProcess] = None,
    ):
        self.name = name
        self._http = http_client
        self.process = process
        self.metadata: Optional[PluginMetadata] = None
        self.compatibility: Optional[CompatibilityReport] = None
        self._closed = False

    def supports_provider(self, provider: str) -> bool:
        if self.metadata is None:
            return True
        return self.metadata.supports_provider(provider)

    async def _call(
        self,
        method: str,
        request: Optional[BaseModel],
        response_model: Type[ResponseT],
        timeout: Optional[float] = None,
    ) -> ResponseT:
        path = f"{wire.SERVICE_PATH}/{method}"
        payload = request.model_dump(mode="json") if request is not None else {}
        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = httpx.Timeout(timeout, connect=config.PLUGIN_CONNECT_TIMEOUT)

        with tracer.start_as_current_span(f"plugin.{method}") as span:
            span.set_attribute("finfocus.plugin", self.name)
            try:
                response = await self._http.post(path, json=payload, **kwargs)
            except httpx.TimeoutException as e:
                raise PluginCallError(
                    f"{method} call to plugin '{self.name}' timed out", plugin_name=self.name, method=method
                ) from e
            except httpx.HTTPError as e:
                raise PluginCallError(
                    f"{method} call to plugin '{self.name}' failed: {e}", plugin_name=self.name, method=method
                ) from e

            span.set_attribute("http.status_code", response.status_code)
            if response.status_code in UNIMPLEMENTED_STATUS_CODES:
                raise PluginUnimplementedError(
                    f"plugin '{self.name}' does not implement {method}",
                    plugin_name=self.name,
                    method=method,
                    status_code=response.status_code,
                )
            if response.is_error:
                raise PluginCallError(
                    f"{method} call to plugin '{self.name}' returned {response.status_code}: {_error_message(response)}",
                    plugin_name=self.name,
                    method=method,
                    status_code=response.status_code,
                )

            try:
                return response_model.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                logger.debug("Raw %s response from %s: %s", method, self.name, response.text[:500])
                raise PluginCallError(
                    f"{method} call to plugin '{self.name}' returned an invalid payload: {e}",
                    plugin_name=self.name,
                    method=method,
                    status_code=response.status_code,
                ) from e

    async def fetch_name(self) -> str:
        response = await self._call("Name", None, wire.NameResponse, timeout=config.PLUGIN_INFO_TIMEOUT)
        return response.name

    async def get_plugin_info(self, timeout: Optional[float] = None) -> PluginMetadata:
        response = await self._call("GetPluginInfo", None, wire.GetPluginInfoResponse, timeout=timeout)
        return PluginMetadata(
            name=response.name or self.name,
            version=response.version,
            spec_version=response.spec_version,
            supported_providers=response.providers,
            metadata=response.metadata,
        )

    async def dry_run(self, request: wire.DryRunRequest) -> wire.DryRunResponse:
        return await self._call("DryRun", request, wire.DryRunResponse, timeout=config.PLUGIN_DRY_RUN_TIMEOUT)

    async def get_projected_cost(self, request: wire.GetProjectedCostRequest) -> wire.GetProjectedCostResponse:
        return await self._call("GetProjectedCost", request, wire.GetProjectedCostResponse)

    async def get_actual_cost(self, request: wire.GetActualCostRequest) -> wire.GetActualCostResponse:
        return await self._call("GetActualCost", request, wire.GetActualCostResponse)

    async def get_recommendations(self, request: wire.GetRecommendationsRequest) -> wire.GetRecommendationsResponse:
        return await self._call("GetRecommendations", request, wire.GetRecommendationsResponse)

    async def close(self):
        """Closes the channel and stops the plugin process if this client owns one."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._http.aclose()
        finally:
            if self.process is not None:
                await self.process.shutdown()

    async def __aenter__(self) -> "PluginClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def __repr__(self) -> str:
        return f"PluginClient(name={self.name!r})"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


async def connect_plugin(
    process: PluginProcess,
    negotiator: Optional[CompatibilityNegotiator] = None,
) -> PluginClient:
    """
    Opens a channel to a launched plugin, resolves its display name, and runs
    the compatibility handshake. The returned client owns the process.
    """
    http_client = get_async_http_client(base_url=process.base_url)
    client = PluginClient(process.name, http_client, process=process)
    try:
        try:
            name = await client.fetch_name()
            if name:
                client.name = name
        except PluginCallError as e:
            logger.debug(f"Name call failed for plugin '{process.name}', using its directory name: {e}")

        negotiator = negotiator or CompatibilityNegotiator()
        report = await negotiator.negotiate(client)
        client.compatibility = report
        client.metadata = report.metadata
    except BaseException:
        await client.close()
        raise
    return client
