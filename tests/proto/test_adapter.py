# tests/proto/test_adapter.py
"""
Tests for the per-plugin batch functions: one row per resource in input order,
validation failures that never reach the plugin, and response conversion.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from finfocus.core.exceptions import PluginCallError, PluginUnimplementedError
from finfocus.models.costs import Confidence, ErrorKind
from finfocus.models.plugins import FieldSupportStatus
from finfocus.models.resources import ResourceDescriptor, TimeRange
from finfocus.proto import adapter, wire
from finfocus.proto.mapping import ProviderDefaults

DEFAULTS = ProviderDefaults(regions={"aws": "us-east-1"})
WEEK = TimeRange(start=datetime(2024, 1, 1, tzinfo=timezone.utc), end=datetime(2024, 1, 8, tzinfo=timezone.utc))


def _ec2(resource_id: str, sku: str = "t3.micro") -> ResourceDescriptor:
    properties = {"instanceType": sku} if sku else {}
    return ResourceDescriptor(type="aws:ec2/instance:Instance", id=resource_id, properties=properties)


@pytest.mark.asyncio
async def test_projected_cost_success(fake_source):
    client = fake_source(prices={"t3.micro": 0.0104})
    batch = await adapter.get_projected_cost_with_errors(client, client.name, [_ec2("i-1")], DEFAULTS)

    assert not batch.has_errors()
    row = batch.results[0]
    assert row.adapter == "fake"
    assert row.hourly == pytest.approx(0.0104)
    assert row.monthly == pytest.approx(0.0104 * 730)
    assert row.notes == "on-demand"
    assert row.confidence is None


@pytest.mark.asyncio
async def test_validation_failure_skips_plugin_call(fake_source):
    """A resource failing pre-flight validation is never sent to the plugin."""
    client = fake_source(prices={"t3.micro": 0.0104})
    batch = await adapter.get_projected_cost_with_errors(client, client.name, [_ec2("i-1", sku="")], DEFAULTS)

    assert client.projected_requests == []
    assert len(batch.results) == 1
    assert batch.results[0].notes.startswith("VALIDATION: ")
    assert batch.results[0].monthly == 0.0
    assert len(batch.errors) == 1
    error = batch.errors[0]
    assert error.kind == ErrorKind.VALIDATION
    assert error.resource_id == "i-1"
    assert error.plugin_name == "fake"
    assert error.message.startswith("pre-flight validation failed: ")
    assert error.error.field == "sku"


@pytest.mark.asyncio
async def test_missing_aws_region_fails_validation_without_defaults(fake_source):
    client = fake_source(prices={"t3.micro": 0.0104})
    batch = await adapter.get_projected_cost_with_errors(client, client.name, [_ec2("i-1")])
    assert client.projected_requests == []
    assert batch.errors[0].error.field == "region"


@pytest.mark.asyncio
async def test_one_row_per_resource_in_input_order(fake_source):
    """Mixed successes and failures keep input order and one row per resource."""
    client = fake_source(prices={"t3.micro": 0.01, "m5.large": 0.096})
    resources = [_ec2("i-1", "m5.large"), _ec2("i-2", ""), _ec2("i-3", "x9.huge"), _ec2("i-4")]

    batch = await adapter.get_projected_cost_with_errors(client, client.name, resources, DEFAULTS, concurrency=2)

    assert [r.resource_id for r in batch.results] == ["i-1", "i-2", "i-3", "i-4"]
    assert batch.results[0].hourly == pytest.approx(0.096)
    assert batch.results[1].notes.startswith("VALIDATION: ")
    assert batch.results[2].notes.startswith("ERROR: ")
    assert batch.results[3].hourly == pytest.approx(0.01)
    assert [e.resource_id for e in batch.errors] == ["i-2", "i-3"]
    assert [e.kind for e in batch.errors] == [ErrorKind.VALIDATION, ErrorKind.PLUGIN]
    assert len(client.projected_requests) == 3


@pytest.mark.asyncio
async def test_concurrency_limit_bounds_in_flight_calls(fake_source):
    """At most `concurrency` plugin calls run at once; rows still follow input order."""

    class SlowSource(fake_source):
        def __init__(self, **kwargs):
            super().__init__(**kwargs)
            self.in_flight = 0
            self.peak = 0

        async def get_projected_cost(self, request):
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            try:
                # Later resources finish first.
                await asyncio.sleep(0.01 * (10 - int(request.resource.id.split("-")[1])))
                return await super().get_projected_cost(request)
            finally:
                self.in_flight -= 1

    client = SlowSource(prices={"t3.micro": 0.01})
    resources = [_ec2(f"i-{n}") for n in range(10)]

    batch = await adapter.get_projected_cost_with_errors(client, client.name, resources, DEFAULTS, concurrency=3)

    assert client.peak == 3
    assert [r.resource_id for r in batch.results] == [r.id for r in resources]
    assert not batch.has_errors()


@pytest.mark.asyncio
async def test_plugin_error_becomes_placeholder(fake_source):
    client = fake_source(error=PluginCallError("connection refused", plugin_name="fake"))
    batch = await adapter.get_projected_cost_with_errors(client, client.name, [_ec2("i-1")], DEFAULTS)
    assert batch.results[0].notes == "ERROR: connection refused"
    assert batch.errors[0].kind == ErrorKind.PLUGIN


def test_projected_result_prefers_cost_per_month():
    response = wire.GetProjectedCostResponse(unit_price=1.0, cost_per_month=73.0, currency="EUR")
    row = adapter.projected_result_from_response(_ec2("i-1"), "p", response)
    assert row.monthly == 73.0
    assert row.hourly == pytest.approx(0.1)
    assert row.currency == "EUR"


@pytest.mark.asyncio
async def test_actual_cost_success(fake_source):
    client = fake_source(actual={"i-1": [1.0, 2.0, 4.0]})
    batch = await adapter.get_actual_cost_with_errors(client, client.name, [_ec2("i-1")], WEEK)

    row = batch.results[0]
    assert row.total_cost == pytest.approx(7.0)
    assert row.hourly == pytest.approx(7.0 / 168)
    assert row.monthly == pytest.approx(7.0 * 30.44 / 7)
    assert row.confidence == Confidence.HIGH
    assert row.cost_period == "1 week"
    assert row.breakdown == {"billing": 7.0}
    assert row.notes == "Actual cost from 2024-01-01 to 2024-01-08"
    assert client.actual_requests[0].start == "2024-01-01T00:00:00Z"


@pytest.mark.asyncio
async def test_actual_cost_without_records_is_no_data(fake_source):
    client = fake_source()
    batch = await adapter.get_actual_cost_with_errors(client, client.name, [_ec2("i-1")], WEEK)
    row = batch.results[0]
    assert row.notes == adapter.NO_ACTUAL_DATA_NOTE
    assert row.confidence is None
    assert not batch.has_errors()


@pytest.mark.asyncio
async def test_actual_cost_requires_resource_id(fake_source):
    client = fake_source(actual={"": [1.0]})
    batch = await adapter.get_actual_cost_with_errors(client, client.name, [_ec2("")], WEEK)
    assert client.actual_requests == []
    assert batch.errors[0].error.field == "resource_id"


@pytest.mark.asyncio
async def test_recommendations_normalised(fake_source):
    client = fake_source(
        recommendations=[
            wire.WireRecommendation(resource_id="i-1", action_type="rightsize", estimated_savings=12.0),
            wire.WireRecommendation(resource_id="i-2", action_type="", source="trusted-advisor"),
        ]
    )
    result = await adapter.get_recommendations_with_errors(client, client.name, [_ec2("i-1"), _ec2("i-2")], DEFAULTS)

    assert [r.action_type for r in result.recommendations] == ["RIGHTSIZE", "OTHER"]
    assert [r.source for r in result.recommendations] == ["fake", "trusted-advisor"]
    assert len(client.recommendation_requests) == 1
    assert len(client.recommendation_requests[0].target_resources) == 2
    assert client.recommendation_requests[0].target_resources[0].region == "us-east-1"


@pytest.mark.asyncio
async def test_recommendations_error_is_recorded(fake_source):
    client = fake_source(error=PluginUnimplementedError("no recommendations", plugin_name="fake"))
    result = await adapter.get_recommendations_with_errors(client, client.name, [_ec2("i-1")])
    assert result.recommendations == []
    assert result.has_errors()
    assert result.errors[0].plugin_name == "fake"


@pytest.mark.asyncio
async def test_dry_run_maps_statuses(fake_source):
    client = fake_source(prices={"t3.micro": 0.01})
    mappings = await adapter.dry_run(client, "aws:ec2/instance:Instance", "aws")
    assert [(m.field_name, m.status) for m in mappings] == [
        ("sku", FieldSupportStatus.SUPPORTED),
        ("region", FieldSupportStatus.CONDITIONAL),
    ]
    assert mappings[1].condition == "spot"


@pytest.mark.asyncio
async def test_dry_run_unimplemented_propagates(fake_source):
    with pytest.raises(PluginUnimplementedError):
        await adapter.dry_run(fake_source(), "aws:ec2/instance:Instance")


def test_fake_source_satisfies_cost_source(fake_source):
    assert isinstance(fake_source(), adapter.CostSource)
