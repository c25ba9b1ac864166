# tests/conftest.py

import os
import stat
import sys
from typing import Callable, Dict, List, Optional

import pytest

from finfocus.core.exceptions import PluginCallError, PluginUnimplementedError
from finfocus.models.plugins import PluginMetadata
from finfocus.proto import wire


@pytest.fixture(autouse=True)
def mock_settings_env_vars(monkeypatch, tmp_path):
    """
    Pytest fixture to isolate tests from the caller's environment.

    Runs for every test: clears cloud-region and CI variables that change
    request building and bind timeouts, and points the plugin directory at an
    empty temporary directory.
    """
    for key in ("AWS_REGION", "AWS_DEFAULT_REGION", "CI", "PORT", "OTEL_EXPORTER_OTLP_ENDPOINT"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("FINFOCUS_HOME", str(tmp_path / "finfocus-home"))


class FakeCostSource:
    """
    In-memory stand-in for a plugin client. Records every request it receives
    and answers from the configured prices, or raises the configured error.
    """

    def __init__(
        self,
        name: str = "fake",
        prices: Optional[Dict[str, float]] = None,
        providers: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        actual: Optional[Dict[str, List[float]]] = None,
        recommendations: Optional[List[wire.WireRecommendation]] = None,
        legacy: bool = False,
    ):
        self.name = name
        self.prices = prices or {}
        self.error = error
        self.actual = actual or {}
        self.recommendations_response = recommendations or []
        self.metadata = None if legacy else PluginMetadata(name=name, spec_version="0.4.0", supported_providers=providers or [])
        self.projected_requests: List[wire.GetProjectedCostRequest] = []
        self.actual_requests: List[wire.GetActualCostRequest] = []
        self.recommendation_requests: List[wire.GetRecommendationsRequest] = []
        self.closed = False

    def supports_provider(self, provider: str) -> bool:
        if self.metadata is None:
            return True
        return self.metadata.supports_provider(provider)

    async def get_projected_cost(self, request):
        self.projected_requests.append(request)
        if self.error is not None:
            raise self.error
        sku = request.resource.sku
        if sku not in self.prices:
            raise PluginCallError(f"no price for {sku}", plugin_name=self.name, method="GetProjectedCost")
        return wire.GetProjectedCostResponse(unit_price=self.prices[sku], currency="USD", billing_detail="on-demand")

    async def get_actual_cost(self, request):
        self.actual_requests.append(request)
        if self.error is not None:
            raise self.error
        costs = self.actual.get(request.resource_id, [])
        return wire.GetActualCostResponse(
            results=[wire.ActualCostResult(cost=c, source="billing") for c in costs], currency="USD"
        )

    async def get_recommendations(self, request):
        self.recommendation_requests.append(request)
        if self.error is not None:
            raise self.error
        return wire.GetRecommendationsResponse(recommendations=self.recommendations_response)

    async def dry_run(self, request):
        if self.error is not None:
            raise self.error
        if not self.prices:
            raise PluginUnimplementedError("DryRun not implemented", plugin_name=self.name, method="DryRun")
        return wire.DryRunResponse(
            field_mappings=[
                wire.WireFieldMapping(field_name="sku", support_status="SUPPORTED", expected_type="string"),
                wire.WireFieldMapping(field_name="region", support_status="conditional", condition_description="spot"),
            ]
        )

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_source() -> Callable[..., FakeCostSource]:
    return FakeCostSource


FAKE_PLUGIN_TEMPLATE = """\
#!{python}
import json
import sys
from http.server import BaseHTTPRequestHandler, HTTPServer

PORT = int([a for a in sys.argv if a.startswith("--port=")][0].split("=", 1)[1])
PRICES = {prices}
SPEC_VERSION = {spec_version!r}
INFO = {info}


class Handler(BaseHTTPRequestHandler):
    def log_message(self, *args):
        pass

    def _send(self, status, body):
        data = json.dumps(body).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        payload = json.loads(self.rfile.read(length) or b"{{}}")
        method = self.path.rsplit("/", 1)[-1]
        if method == "Name":
            self._send(200, {{"name": {name!r}}})
        elif method == "GetPluginInfo":
            if not INFO:
                self._send(501, {{"message": "unimplemented"}})
            else:
                self._send(200, {{"name": {name!r}, "version": "1.0.0", "spec_version": SPEC_VERSION, "providers": ["aws"]}})
        elif method == "GetProjectedCost":
            sku = payload["resource"]["sku"]
            if sku in PRICES:
                self._send(200, {{"unit_price": PRICES[sku], "currency": "USD", "extra_field": True}})
            else:
                self._send(500, {{"message": "no price for " + sku}})
        else:
            self._send(501, {{"message": "unimplemented"}})


HTTPServer(("127.0.0.1", PORT), Handler).serve_forever()
"""

SILENT_PLUGIN_TEMPLATE = """\
#!{python}
import time

time.sleep(60)
"""


def _write_executable(path, content: str):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def make_plugin(tmp_path):
    """
    Factory writing an executable fake plugin that serves the HTTP wire
    protocol on the port passed with --port. Returns the executable path.
    """

    def _make(
        name: str = "fakecloud",
        version: str = "1.0.0",
        prices: Optional[Dict[str, float]] = None,
        spec_version: str = "0.4.0",
        info: bool = True,
        root=None,
    ):
        root = root or tmp_path / "plugins"
        content = FAKE_PLUGIN_TEMPLATE.format(
            python=sys.executable,
            prices=repr(prices if prices is not None else {"t3.micro": 0.0104}),
            spec_version=spec_version,
            info=repr(info),
            name=name,
        )
        return _write_executable(root / name / version / f"finfocus-plugin-{name}", content)

    return _make


@pytest.fixture
def make_silent_plugin(tmp_path):
    """Factory writing an executable that never binds its port."""

    def _make(name: str = "silent", version: str = "1.0.0", root=None):
        root = root or tmp_path / "plugins"
        content = SILENT_PLUGIN_TEMPLATE.format(python=sys.executable)
        return _write_executable(root / name / version / f"finfocus-plugin-{name}", content)

    return _make


@pytest.fixture
def plugin_root(tmp_path):
    root = tmp_path / "plugins"
    os.makedirs(root, exist_ok=True)
    return root
