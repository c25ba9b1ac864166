# src/finfocus/engine/engine.py
"""
The cost aggregation engine: fans each batch of resources out to the plugins
that serve them, keeps the first answer per resource, falls back to local
pricing specs or state-based estimates, and returns one row per resource with
every failure recorded beside the rows.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, Field

from ..core.config import config
from ..core.exceptions import NoCostSourceError, PluginUnimplementedError
from ..models.costs import CostResult, CostResultWithErrors, ErrorDetail
from ..models.plugins import FieldMapping, RecommendationsResult
from ..models.resources import ResourceDescriptor, TimeRange, extract_service
from ..proto import adapter
from ..proto.adapter import NO_ACTUAL_DATA_NOTE, CostSource, placeholder_result
from ..proto.mapping import ProviderDefaults, resolve_sku
from ..utils.date_utils import ensure_utc, format_period, utcnow
from .state_cost import estimate_batch, extract_created_timestamp

logger = logging.getLogger(__name__)

NO_PRICING_NOTE = "No pricing information available"
LOCAL_SPEC_ADAPTER = "local-spec"
STATE_ESTIMATE_ADAPTER = "state-estimate"
NO_ADAPTER = "none"

STORAGE_SIZE_KEYS = ("size", "sizeGb", "volumeSize", "allocatedStorage")


class PricingSpec(BaseModel):
    """A local pricing document for one provider/service/SKU."""

    provider: str
    service: str
    sku: str
    currency: str = "USD"
    pricing: Dict[str, Any] = Field(default_factory=dict)


class SpecLoader(Protocol):
    """Looks up local pricing specs. Returns None (or raises LookupError) when none exists."""

    def load_spec(self, provider: str, service: str, sku: str) -> Optional[PricingSpec]: ...


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def costs_from_spec(spec: PricingSpec, resource: ResourceDescriptor) -> Optional[Tuple[float, float]]:
    """(monthly, hourly) from a pricing spec, or None when it carries no usable rate."""
    hours = config.HOURS_PER_MONTH
    monthly = _as_float(spec.pricing.get("monthlyEstimate"))
    if monthly is not None:
        return monthly, monthly / hours
    for key in ("onDemandHourly", "hourlyRate"):
        hourly = _as_float(spec.pricing.get(key))
        if hourly is not None:
            return hourly * hours, hourly
    per_gb = _as_float(spec.pricing.get("pricePerGBMonth"))
    if per_gb is not None:
        for key in STORAGE_SIZE_KEYS:
            size = _as_float(resource.properties.get(key))
            if size is not None:
                monthly = size * per_gb
                return monthly, monthly / hours
    return None


class Engine:
    """
    Orchestrates cost queries across a registry of plugin clients.

    Clients are consulted in registry order. A client serves a resource when
    its metadata lists the resource's provider, or when it has no metadata
    (legacy plugin) or lists no providers.
    """

    def __init__(
        self,
        clients: Sequence[CostSource],
        spec_loader: Optional[SpecLoader] = None,
        defaults: Optional[ProviderDefaults] = None,
        concurrency: Optional[int] = None,
        launch_failures: Optional[Sequence[ErrorDetail]] = None,
    ):
        self.clients = list(clients)
        self.spec_loader = spec_loader
        self.defaults = defaults if defaults is not None else ProviderDefaults.from_env()
        self.concurrency = concurrency or config.PLUGIN_CONCURRENCY
        self.launch_failures = list(launch_failures or [])

    @classmethod
    def from_session(cls, session, **kwargs) -> "Engine":
        """Builds an engine over an open PluginSession's clients and launch failures."""
        return cls(session.clients, launch_failures=session.launch_failures, **kwargs)

    def _ensure_cost_source(self):
        # Plugins that failed to start still yield placeholder rows plus LAUNCH errors.
        if not self.clients and not self.launch_failures and self.spec_loader is None:
            raise NoCostSourceError("No plugins are installed and no local pricing specs are configured")

    def _served_indexes(self, client: CostSource, resources: Sequence[ResourceDescriptor], pending: set) -> List[int]:
        return [i for i in sorted(pending) if client.supports_provider(resources[i].provider)]

    def _finish(self, rows: List[CostResult], errors: List[ErrorDetail], warnings: List[str]) -> CostResultWithErrors:
        return CostResultWithErrors(results=rows, errors=errors + self.launch_failures, warnings=warnings)

    # --- Projected cost ---

    async def _projected_rows(
        self, resources: Sequence[ResourceDescriptor]
    ) -> Tuple[List[CostResult], List[ErrorDetail]]:
        rows: List[Optional[CostResult]] = [None] * len(resources)
        first_failure: Dict[int, CostResult] = {}
        errors: List[ErrorDetail] = []
        pending = set(range(len(resources)))

        for client in self.clients:
            indexes = self._served_indexes(client, resources, pending)
            if not indexes:
                continue
            batch = await adapter.get_projected_cost_with_errors(
                client, client.name, [resources[i] for i in indexes], self.defaults, self.concurrency
            )
            errors.extend(batch.errors)
            for i, row in zip(indexes, batch.results):
                if row.is_placeholder:
                    first_failure.setdefault(i, row)
                else:
                    rows[i] = row
                    pending.discard(i)

        for i in sorted(pending):
            resource = resources[i]
            rows[i] = (
                self._projected_from_spec(resource)
                or first_failure.get(i)
                or placeholder_result(resource, NO_ADAPTER, NO_PRICING_NOTE)
            )
        return rows, errors

    def _load_spec(self, provider: str, service: str, sku: str) -> Optional[PricingSpec]:
        for candidate in (sku, "default", "standard", "basic"):
            if not candidate:
                continue
            try:
                spec = self.spec_loader.load_spec(provider, service, candidate)
            except (LookupError, OSError, ValueError) as e:
                logger.debug(f"No local spec for {provider}/{service}/{candidate}: {e}")
                continue
            if spec is not None:
                return spec
        return None

    def _projected_from_spec(self, resource: ResourceDescriptor) -> Optional[CostResult]:
        if self.spec_loader is None:
            return None
        spec = self._load_spec(resource.provider, extract_service(resource.type), resolve_sku(resource))
        if spec is None:
            return None
        costs = costs_from_spec(spec, resource)
        if costs is None:
            return None
        monthly, hourly = costs
        return CostResult(
            resource_type=resource.type,
            resource_id=resource.id,
            adapter=LOCAL_SPEC_ADAPTER,
            currency=spec.currency,
            monthly=monthly,
            hourly=hourly,
            cost_period="monthly",
            breakdown={"base_cost": monthly},
            notes=f"Calculated from local spec: {spec.provider}-{spec.service}-{spec.sku}",
        )

    async def get_projected_cost(self, resources: Sequence[ResourceDescriptor]) -> CostResultWithErrors:
        """
        Projected monthly cost per resource: the first plugin with an answer
        wins, then local specs, then the first failure placeholder, then a
        'no pricing' placeholder.
        """
        self._ensure_cost_source()
        rows, errors = await self._projected_rows(resources)
        return self._finish(rows, errors, [])

    # --- Actual cost ---

    async def get_actual_cost(
        self,
        resources: Sequence[ResourceDescriptor],
        time_range: TimeRange,
        estimate: bool = True,
        now: Optional[datetime] = None,
    ) -> CostResultWithErrors:
        """
        Actual cost per resource over `time_range`. Plugin billing data
        (HIGH confidence) is preferred; otherwise, when `estimate` is set, the
        cost is estimated from the resource's creation time and its projected
        hourly rate (MEDIUM or LOW confidence).
        """
        self._ensure_cost_source()
        now = ensure_utc(now) if now is not None else utcnow()
        rows: List[Optional[CostResult]] = [None] * len(resources)
        first_failure: Dict[int, CostResult] = {}
        errors: List[ErrorDetail] = []
        warnings: List[str] = []
        pending = set(range(len(resources)))

        for client in self.clients:
            indexes = self._served_indexes(client, resources, pending)
            if not indexes:
                continue
            batch = await adapter.get_actual_cost_with_errors(
                client, client.name, [resources[i] for i in indexes], time_range, self.concurrency
            )
            errors.extend(batch.errors)
            for i, row in zip(indexes, batch.results):
                if row.confidence is not None:
                    rows[i] = row
                    pending.discard(i)
                elif row.is_placeholder:
                    first_failure.setdefault(i, row)

        if estimate and pending:
            estimated, estimate_warnings = await self._estimate(resources, sorted(pending), now)
            warnings.extend(estimate_warnings)
            for i, row in estimated.items():
                rows[i] = row
                pending.discard(i)

        for i in sorted(pending):
            rows[i] = first_failure.get(i) or placeholder_result(resources[i], NO_ADAPTER, NO_ACTUAL_DATA_NOTE)
        return self._finish(rows, errors, warnings)

    async def _estimate(
        self, resources: Sequence[ResourceDescriptor], indexes: List[int], now: datetime
    ) -> Tuple[Dict[int, CostResult], List[str]]:
        subset = [resources[i] for i in indexes]
        projected, projected_errors = await self._projected_rows(subset)
        for error in projected_errors:
            logger.debug(f"Rate lookup for estimate failed: {error.resource_id}: {error.message}")

        rates: List[Optional[float]] = []
        for row in projected:
            priced = not row.is_placeholder and row.adapter != NO_ADAPTER
            rates.append(row.hourly if priced else None)

        estimates, warnings = estimate_batch(subset, rates, now)
        rows: Dict[int, CostResult] = {}
        for position, est in estimates.items():
            resource = subset[position]
            created_at = extract_created_timestamp(resource.properties)
            rate = rates[position]
            rows[indexes[position]] = CostResult(
                resource_type=resource.type,
                resource_id=resource.id,
                adapter=STATE_ESTIMATE_ADAPTER,
                currency=projected[position].currency,
                monthly=rate * config.HOURS_PER_MONTH,
                hourly=rate,
                total_cost=est.total_cost,
                cost_period=format_period(created_at, now),
                start_date=created_at,
                end_date=now,
                notes=est.notes,
                confidence=est.confidence,
                runtime_hours=est.runtime_hours,
            )
        return rows, warnings

    # --- Recommendations and capability discovery ---

    async def get_recommendations(self, resources: Sequence[ResourceDescriptor]) -> RecommendationsResult:
        """Recommendations from every plugin, sorted by (resource_id, action_type, source)."""
        tasks = []
        for client in self.clients:
            served = [r for r in resources if client.supports_provider(r.provider)]
            if served:
                tasks.append(adapter.get_recommendations_with_errors(client, client.name, served, self.defaults))
        batches = await asyncio.gather(*tasks)

        recommendations = [rec for batch in batches for rec in batch.recommendations]
        recommendations.sort(key=lambda r: (r.resource_id, r.action_type, r.source))
        errors = [err for batch in batches for err in batch.errors]
        return RecommendationsResult(recommendations=recommendations, errors=errors + self.launch_failures)

    async def dry_run(self, resource_type: str, provider: str = "") -> Dict[str, List[FieldMapping]]:
        """
        Field mappings per plugin for `resource_type`. Plugins without DryRun
        support, or whose call fails, are left out of the result.
        """
        mappings: Dict[str, List[FieldMapping]] = {}
        for client in self.clients:
            if provider and not client.supports_provider(provider):
                continue
            try:
                mappings[client.name] = await adapter.dry_run(client, resource_type, provider)
            except PluginUnimplementedError:
                logger.debug(f"Plugin '{client.name}' does not support DryRun.")
            except Exception as e:
                logger.warning(f"DryRun failed for plugin '{client.name}': {e}")
        return mappings
