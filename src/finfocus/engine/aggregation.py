# src/finfocus/engine/aggregation.py
"""
Summaries, grouping, and cross-provider aggregation over CostResult rows,
plus resource filtering. Every map-keyed output is built in sorted-key order
so that rendering the same results twice produces identical output.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..core.config import config
from ..core.exceptions import AggregationError
from ..models.costs import CostResult
from ..models.resources import ResourceDescriptor, extract_provider, extract_service

AVG_DAYS_PER_MONTH = 30.44


class GroupBy(str, Enum):
    NONE = "none"
    RESOURCE = "resource"
    TYPE = "type"
    PROVIDER = "provider"
    DAILY = "daily"
    MONTHLY = "monthly"

    @property
    def is_time_based(self) -> bool:
        return self in (GroupBy.DAILY, GroupBy.MONTHLY)


class CostSummary(BaseModel):
    currency: str = "USD"
    total_monthly: float = 0.0
    total_hourly: float = 0.0
    total_cost: float = 0.0
    by_provider: Dict[str, float] = Field(default_factory=dict)
    by_service: Dict[str, float] = Field(default_factory=dict)
    by_adapter: Dict[str, float] = Field(default_factory=dict)


class CrossProviderAggregation(BaseModel):
    period: str
    providers: Dict[str, float]
    total: float
    currency: str


def _sorted_dict(values: Dict[str, float]) -> Dict[str, float]:
    return {k: values[k] for k in sorted(values)}


def aggregate_results(results: Sequence[CostResult]) -> CostSummary:
    """Totals plus monthly cost broken down by provider, service, and adapter."""
    if not results:
        return CostSummary(currency=config.DEFAULT_CURRENCY)

    by_provider = defaultdict(float)
    by_service = defaultdict(float)
    by_adapter = defaultdict(float)
    summary = CostSummary(currency=results[0].currency or config.DEFAULT_CURRENCY)
    for result in results:
        summary.total_monthly += result.monthly
        summary.total_hourly += result.hourly
        summary.total_cost += result.total_cost
        by_provider[extract_provider(result.resource_type)] += result.monthly
        by_service[extract_service(result.resource_type)] += result.monthly
        by_adapter[result.adapter] += result.monthly

    summary.by_provider = _sorted_dict(by_provider)
    summary.by_service = _sorted_dict(by_service)
    summary.by_adapter = _sorted_dict(by_adapter)
    return summary


def aggregate_group(results: Sequence[CostResult], group_name: str) -> CostResult:
    """
    Collapses several rows into one. Totals and breakdowns are summed, daily
    series are summed index by index (padded to the longest series), and
    currency and dates come from the first row.
    """
    if not results:
        return CostResult(resource_type=group_name)

    first = results[0]
    breakdown = defaultdict(float)
    daily: List[float] = []
    monthly = hourly = total = 0.0
    for result in results:
        monthly += result.monthly
        hourly += result.hourly
        total += result.total_cost
        for key, value in result.breakdown.items():
            breakdown[key] += value
        if len(daily) < len(result.daily_costs):
            daily.extend([0.0] * (len(result.daily_costs) - len(daily)))
        for i, value in enumerate(result.daily_costs):
            daily[i] += value

    return CostResult(
        resource_type=group_name,
        resource_id=f"aggregated-{len(results)}-resources",
        adapter="aggregated",
        currency=first.currency,
        monthly=monthly,
        hourly=hourly,
        total_cost=total,
        cost_period=first.cost_period,
        start_date=first.start_date,
        end_date=first.end_date,
        daily_costs=daily,
        breakdown=_sorted_dict(breakdown),
        notes=f"Aggregated costs from {len(results)} resources",
    )


def _group_key(result: CostResult, group_by: GroupBy) -> str:
    if group_by == GroupBy.RESOURCE:
        return f"{result.resource_type}/{result.resource_id}"
    if group_by == GroupBy.TYPE:
        return result.resource_type
    if group_by == GroupBy.PROVIDER:
        return extract_provider(result.resource_type)
    if group_by == GroupBy.DAILY:
        return result.start_date.strftime("%Y-%m-%d") if result.start_date else "unknown"
    if group_by == GroupBy.MONTHLY:
        return result.start_date.strftime("%Y-%m") if result.start_date else "unknown"
    return "default"


def group_results(results: Sequence[CostResult], group_by: GroupBy) -> List[CostResult]:
    """
    Groups rows by `group_by`; groups with more than one row are collapsed
    with aggregate_group. Output is ordered by group key.
    """
    if group_by == GroupBy.NONE:
        return list(results)

    groups: Dict[str, List[CostResult]] = defaultdict(list)
    for result in results:
        groups[_group_key(result, group_by)].append(result)

    grouped = []
    for key in sorted(groups):
        items = groups[key]
        grouped.append(items[0] if len(items) == 1 else aggregate_group(items, key))
    return grouped


def _cost_for_period(result: CostResult, group_by: GroupBy) -> float:
    if result.daily_costs:
        return sum(result.daily_costs)
    if result.total_cost == 0 and result.monthly > 0:
        return result.monthly / AVG_DAYS_PER_MONTH if group_by == GroupBy.DAILY else result.monthly
    return result.total_cost


def _period_key(date: datetime, group_by: GroupBy) -> str:
    return date.strftime("%Y-%m-%d") if group_by == GroupBy.DAILY else date.strftime("%Y-%m")


def create_cross_provider_aggregation(
    results: Sequence[CostResult], group_by: GroupBy
) -> List[CrossProviderAggregation]:
    """
    Per-period cost totals broken down by provider, sorted by period.

    Raises AggregationError for empty input, a non time-based grouping, a
    row whose end date is not after its start date, or mixed currencies
    (an empty currency counts as the default currency).
    """
    if not results:
        raise AggregationError("empty results provided for aggregation")
    if not group_by.is_time_based:
        raise AggregationError(f"invalid grouping {group_by.value!r} for cross-provider aggregation: use daily or monthly")
    for result in results:
        if result.start_date and result.end_date and result.end_date <= result.start_date:
            raise AggregationError(
                f"invalid date range for {result.resource_id}: end date must be after start date"
            )

    base_currency = results[0].currency or config.DEFAULT_CURRENCY
    for result in results:
        currency = result.currency or config.DEFAULT_CURRENCY
        if currency != base_currency:
            raise AggregationError(
                f"mixed currencies not supported in cross-provider aggregation: found {base_currency} and {currency}"
            )

    periods: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for result in results:
        provider = extract_provider(result.resource_type)
        if result.daily_costs and result.start_date:
            for i, cost in enumerate(result.daily_costs):
                day = result.start_date + timedelta(days=i)
                periods[_period_key(day, group_by)][provider] += cost
            continue
        if result.start_date is None:
            continue
        periods[_period_key(result.start_date, group_by)][provider] += _cost_for_period(result, group_by)

    return [
        CrossProviderAggregation(
            period=period,
            providers=_sorted_dict(periods[period]),
            total=sum(periods[period].values()),
            currency=base_currency,
        )
        for period in sorted(periods)
    ]


def _matches_filter(resource: ResourceDescriptor, expression: str) -> bool:
    if "=" not in expression:
        return True
    key, value = (part.strip().lower() for part in expression.split("=", 1))
    if key == "type":
        return value in resource.type.lower()
    if key == "provider":
        return value in (resource.provider or extract_provider(resource.type)).lower()
    if key == "service":
        return value in extract_service(resource.type).lower()
    if key == "id":
        return value in resource.id.lower()
    for prop_key, prop_value in resource.properties.items():
        if prop_key.lower() == key:
            return value in str(prop_value).lower()
    return False


def filter_resources(resources: Iterable[ResourceDescriptor], expression: Optional[str]) -> List[ResourceDescriptor]:
    """
    Keeps resources matching a 'key=value' expression (substring,
    case-insensitive). Keys: type, provider, service, id, or any property name.
    An empty or malformed expression keeps everything.
    """
    resources = list(resources)
    if not expression:
        return resources
    return [r for r in resources if _matches_filter(r, expression)]


def matches_tags(resource: ResourceDescriptor, tags: Dict[str, str]) -> bool:
    """True when every tag matches exactly, looking in the 'tags' property and then top-level properties."""
    if not tags:
        return True
    resource_tags = resource.properties.get("tags")
    if not isinstance(resource_tags, dict):
        resource_tags = {}
    for key, expected in tags.items():
        actual = resource_tags.get(key, resource.properties.get(key))
        if actual is None or str(actual) != expected:
            return False
    return True
