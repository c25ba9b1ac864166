# src/finfocus/proto/adapter.py
"""
The boundary between the engine and a single plugin.

Each function here takes one plugin and a batch of resources, validates and
issues one request per resource, and converts the answers back into
CostResult rows. A failure for one resource becomes an ErrorDetail plus a
zero-cost placeholder row; it never aborts the batch, so the output always
has exactly one row per input resource, in input order.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence, TypeVar, runtime_checkable

from ..core.config import config
from ..core.exceptions import RequestValidationError
from ..models.costs import (
    ERROR_PREFIX,
    VALIDATION_PREFIX,
    Confidence,
    CostResult,
    CostResultWithErrors,
    ErrorDetail,
    ErrorKind,
)
from ..models.plugins import FieldMapping, FieldSupportStatus, PluginMetadata, Recommendation, RecommendationsResult
from ..models.resources import ResourceDescriptor, TimeRange
from ..utils.date_utils import format_period
from . import wire
from .mapping import ProviderDefaults, build_actual_cost_request, build_projected_cost_request, to_wire_resource
from .validation import validate_actual_cost_request, validate_projected_cost_request

logger = logging.getLogger(__name__)

T = TypeVar("T")

HOURS_PER_DAY = 24.0
AVG_DAYS_PER_MONTH = 30.44
NO_ACTUAL_DATA_NOTE = "No actual cost data available"


@runtime_checkable
class CostSource(Protocol):
    """What the engine needs from a plugin. PluginClient satisfies it."""

    name: str
    metadata: Optional[PluginMetadata]

    def supports_provider(self, provider: str) -> bool: ...

    async def get_projected_cost(self, request: wire.GetProjectedCostRequest) -> wire.GetProjectedCostResponse: ...

    async def get_actual_cost(self, request: wire.GetActualCostRequest) -> wire.GetActualCostResponse: ...

    async def get_recommendations(
        self, request: wire.GetRecommendationsRequest
    ) -> wire.GetRecommendationsResponse: ...

    async def dry_run(self, request: wire.DryRunRequest) -> wire.DryRunResponse: ...


async def _bounded_map(
    items: Sequence[T], worker: Callable[[int, T], Awaitable[None]], concurrency: Optional[int]
) -> None:
    semaphore = asyncio.Semaphore(concurrency or config.PLUGIN_CONCURRENCY)

    async def _run(index: int, item: T):
        async with semaphore:
            await worker(index, item)

    await asyncio.gather(*(_run(i, item) for i, item in enumerate(items)))


def placeholder_result(
    resource: ResourceDescriptor, adapter: str, notes: str, currency: Optional[str] = None
) -> CostResult:
    """A zero-cost row standing in for a resource that could not be priced."""
    return CostResult(
        resource_type=resource.type,
        resource_id=resource.id,
        adapter=adapter,
        currency=currency or config.DEFAULT_CURRENCY,
        notes=notes,
    )


def _validation_failure(
    resource: ResourceDescriptor, plugin_name: str, error: RequestValidationError
) -> ErrorDetail:
    wrapped = RequestValidationError(f"pre-flight validation failed: {error}", field=error.field)
    wrapped.__cause__ = error
    return ErrorDetail(
        resource_type=resource.type,
        resource_id=resource.id,
        plugin_name=plugin_name,
        error=wrapped,
        kind=ErrorKind.VALIDATION,
    )


def _plugin_failure(resource: ResourceDescriptor, plugin_name: str, error: Exception) -> ErrorDetail:
    return ErrorDetail(
        resource_type=resource.type,
        resource_id=resource.id,
        plugin_name=plugin_name,
        error=error,
        kind=ErrorKind.PLUGIN,
    )


def _flatten(slots: List[List[ErrorDetail]]) -> List[ErrorDetail]:
    return [error for slot in slots for error in slot]


async def get_projected_cost_with_errors(
    client: CostSource,
    plugin_name: str,
    resources: Sequence[ResourceDescriptor],
    defaults: Optional[ProviderDefaults] = None,
    concurrency: Optional[int] = None,
) -> CostResultWithErrors:
    results: List[Optional[CostResult]] = [None] * len(resources)
    error_slots: List[List[ErrorDetail]] = [[] for _ in resources]

    async def _one(index: int, resource: ResourceDescriptor):
        request = build_projected_cost_request(resource, defaults)
        try:
            validate_projected_cost_request(request)
        except RequestValidationError as e:
            logger.debug(f"Skipping {resource.type} ({resource.id}) for {plugin_name}: {e}")
            error_slots[index].append(_validation_failure(resource, plugin_name, e))
            results[index] = placeholder_result(resource, plugin_name, f"{VALIDATION_PREFIX} {e}")
            return

        try:
            response = await client.get_projected_cost(request)
        except Exception as e:
            logger.debug(f"GetProjectedCost failed for {resource.type} ({resource.id}) on {plugin_name}: {e}")
            error_slots[index].append(_plugin_failure(resource, plugin_name, e))
            results[index] = placeholder_result(resource, plugin_name, f"{ERROR_PREFIX} {e}")
            return

        results[index] = projected_result_from_response(resource, plugin_name, response)

    await _bounded_map(resources, _one, concurrency)
    return CostResultWithErrors(results=results, errors=_flatten(error_slots))


def projected_result_from_response(
    resource: ResourceDescriptor, plugin_name: str, response: wire.GetProjectedCostResponse
) -> CostResult:
    hours = config.HOURS_PER_MONTH
    if response.cost_per_month:
        monthly = response.cost_per_month
        hourly = monthly / hours
    else:
        hourly = response.unit_price
        monthly = hourly * hours
    return CostResult(
        resource_type=resource.type,
        resource_id=resource.id,
        adapter=plugin_name,
        currency=response.currency or config.DEFAULT_CURRENCY,
        monthly=monthly,
        hourly=hourly,
        cost_period="monthly",
        notes=response.billing_detail,
    )


async def get_actual_cost_with_errors(
    client: CostSource,
    plugin_name: str,
    resources: Sequence[ResourceDescriptor],
    time_range: Optional[TimeRange],
    concurrency: Optional[int] = None,
) -> CostResultWithErrors:
    results: List[Optional[CostResult]] = [None] * len(resources)
    error_slots: List[List[ErrorDetail]] = [[] for _ in resources]

    async def _one(index: int, resource: ResourceDescriptor):
        request = build_actual_cost_request(resource, time_range)
        try:
            validate_actual_cost_request(request)
        except RequestValidationError as e:
            logger.debug(f"Skipping {resource.type} ({resource.id}) for {plugin_name}: {e}")
            error_slots[index].append(_validation_failure(resource, plugin_name, e))
            results[index] = placeholder_result(resource, plugin_name, f"{VALIDATION_PREFIX} {e}")
            return

        try:
            response = await client.get_actual_cost(request)
        except Exception as e:
            logger.debug(f"GetActualCost failed for {resource.type} ({resource.id}) on {plugin_name}: {e}")
            error_slots[index].append(_plugin_failure(resource, plugin_name, e))
            results[index] = placeholder_result(resource, plugin_name, f"{ERROR_PREFIX} {e}")
            return

        results[index] = actual_result_from_response(resource, plugin_name, response, time_range)

    await _bounded_map(resources, _one, concurrency)
    return CostResultWithErrors(results=results, errors=_flatten(error_slots))


def actual_result_from_response(
    resource: ResourceDescriptor,
    plugin_name: str,
    response: wire.GetActualCostResponse,
    time_range: TimeRange,
) -> CostResult:
    """
    Converts billing records into a row with HIGH confidence. The total is
    projected to hourly and monthly rates over the queried window; a response
    with no records yields a no-data row without confidence.
    """
    currency = response.currency or config.DEFAULT_CURRENCY
    if not response.results:
        return placeholder_result(resource, plugin_name, NO_ACTUAL_DATA_NOTE, currency)

    total = sum(r.cost for r in response.results)
    breakdown = defaultdict(float)
    for record in response.results:
        breakdown[record.source or plugin_name] += record.cost

    hours = time_range.hours
    days = hours / HOURS_PER_DAY
    hourly = total / hours if hours > 0 else 0.0
    if days >= 1:
        monthly = total * AVG_DAYS_PER_MONTH / days
    else:
        monthly = hourly * config.HOURS_PER_MONTH

    return CostResult(
        resource_type=resource.type,
        resource_id=resource.id,
        adapter=plugin_name,
        currency=currency,
        monthly=monthly,
        hourly=hourly,
        total_cost=total,
        cost_period=format_period(time_range.start, time_range.end),
        start_date=time_range.start,
        end_date=time_range.end,
        daily_costs=[r.cost for r in response.results],
        breakdown={k: breakdown[k] for k in sorted(breakdown)},
        notes=f"Actual cost from {time_range.start:%Y-%m-%d} to {time_range.end:%Y-%m-%d}",
        confidence=Confidence.HIGH,
    )


async def get_recommendations_with_errors(
    client: CostSource,
    plugin_name: str,
    resources: Sequence[ResourceDescriptor],
    defaults: Optional[ProviderDefaults] = None,
) -> RecommendationsResult:
    """Asks one plugin for recommendations covering the whole batch in a single call."""
    request = wire.GetRecommendationsRequest(target_resources=[to_wire_resource(r, defaults) for r in resources])
    try:
        response = await client.get_recommendations(request)
    except Exception as e:
        logger.debug(f"GetRecommendations failed on {plugin_name}: {e}")
        return RecommendationsResult(errors=[ErrorDetail(plugin_name=plugin_name, error=e, kind=ErrorKind.PLUGIN)])

    recommendations = [
        Recommendation(
            resource_id=r.resource_id,
            action_type=(r.action_type or "OTHER").upper(),
            description=r.description,
            estimated_savings=r.estimated_savings,
            currency=r.currency or config.DEFAULT_CURRENCY,
            source=r.source or plugin_name,
        )
        for r in response.recommendations
    ]
    return RecommendationsResult(recommendations=recommendations)


async def dry_run(client: CostSource, resource_type: str, provider: str = "") -> List[FieldMapping]:
    """
    Asks a plugin which request fields it uses for `resource_type`. Errors
    propagate: a plugin without DryRun raises PluginUnimplementedError.
    """
    response = await client.dry_run(wire.DryRunRequest(resource_type=resource_type, provider=provider))
    mappings = []
    for m in response.field_mappings:
        try:
            status = FieldSupportStatus(m.support_status.upper())
        except ValueError:
            logger.debug(f"Unknown field support status {m.support_status!r} from {client.name}")
            status = FieldSupportStatus.UNSUPPORTED
        mappings.append(
            FieldMapping(
                field_name=m.field_name,
                status=status,
                condition=m.condition_description,
                expected_type=m.expected_type,
            )
        )
    return mappings
