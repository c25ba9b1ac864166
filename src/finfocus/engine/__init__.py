from ..proto.adapter import CostSource
from .aggregation import (
    CostSummary,
    CrossProviderAggregation,
    GroupBy,
    aggregate_results,
    create_cross_provider_aggregation,
    filter_resources,
    group_results,
    matches_tags,
)
from .confidence import determine_confidence
from .engine import Engine, PricingSpec, SpecLoader
from .state_cost import UPTIME_ASSUMPTION_NOTE, StateCostEstimate, estimate_batch, estimate_state_cost

__all__ = [
    "UPTIME_ASSUMPTION_NOTE",
    "CostSource",
    "CostSummary",
    "CrossProviderAggregation",
    "Engine",
    "GroupBy",
    "PricingSpec",
    "SpecLoader",
    "StateCostEstimate",
    "aggregate_results",
    "create_cross_provider_aggregation",
    "determine_confidence",
    "estimate_batch",
    "estimate_state_cost",
    "filter_resources",
    "group_results",
    "matches_tags",
]
