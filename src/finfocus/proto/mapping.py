# src/finfocus/proto/mapping.py
"""
Builds plugin requests from resource descriptors.

SKU and region are read from provider-specific property keys. Defaults taken
from the environment live in a ProviderDefaults object keyed by provider, so
a default for one cloud can never be applied to another cloud's resources.
"""

import re
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..core.config import config
from ..models.resources import ResourceDescriptor, TimeRange
from ..utils.date_utils import to_iso_z
from .wire import GetActualCostRequest, GetProjectedCostRequest, WireResource

UTILIZATION_KEY = "finfocus:utilization"

SKU_KEYS: Dict[str, Tuple[str, ...]] = {
    "aws": ("instanceType", "instanceClass", "volumeType", "nodeType", "sku", "type"),
    "azure": ("vmSize", "skuName", "sku", "size"),
    "azure-native": ("vmSize", "skuName", "sku", "size"),
    "gcp": ("machineType", "tier", "sku"),
}
GENERIC_SKU_KEYS = ("instanceType", "sku", "size", "type")

REGION_KEYS: Dict[str, Tuple[str, ...]] = {
    "aws": ("region",),
    "azure": ("location", "region"),
    "azure-native": ("location", "region"),
    "gcp": ("region",),
}
GENERIC_REGION_KEYS = ("region", "location")

ZONE_KEYS: Dict[str, Tuple[str, ...]] = {
    "aws": ("availabilityZone",),
    "gcp": ("zone",),
}

# us-east-1a -> us-east-1
_AWS_ZONE_RE = re.compile(r"^([a-z]{2}(?:-gov)?-[a-z]+-\d+)[a-z]$")
# us-central1-a -> us-central1
_GCP_ZONE_RE = re.compile(r"^([a-z]+-[a-z]+\d+)-[a-z]$")


class ProviderDefaults(BaseModel):
    """Fallback request values scoped to a provider."""

    model_config = ConfigDict(frozen=True)

    regions: Dict[str, str] = Field(default_factory=dict)

    def region_for(self, provider: str) -> Optional[str]:
        return self.regions.get(provider.lower())

    @classmethod
    def from_env(cls) -> "ProviderDefaults":
        regions = {}
        if config.AWS_REGION:
            regions["aws"] = config.AWS_REGION
        return cls(regions=regions)


def _first_string(properties: Dict, keys) -> str:
    for key in keys:
        value = properties.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def region_from_zone(provider: str, zone: str) -> str:
    pattern = {"aws": _AWS_ZONE_RE, "gcp": _GCP_ZONE_RE}.get(provider)
    if pattern is None or not zone:
        return ""
    match = pattern.match(zone)
    return match.group(1) if match else ""


def resolve_sku(resource: ResourceDescriptor) -> str:
    keys = SKU_KEYS.get(resource.provider.lower(), GENERIC_SKU_KEYS)
    return _first_string(resource.properties, keys)


def resolve_region(resource: ResourceDescriptor, defaults: Optional[ProviderDefaults] = None) -> str:
    """
    Region from, in order: an explicit region/location property, a zone
    property of the same provider, then that provider's default.
    """
    provider = resource.provider.lower()
    region = _first_string(resource.properties, REGION_KEYS.get(provider, GENERIC_REGION_KEYS))
    if region:
        return region
    zone = _first_string(resource.properties, ZONE_KEYS.get(provider, ()))
    region = region_from_zone(provider, zone)
    if region:
        return region
    if defaults is not None:
        return defaults.region_for(provider) or ""
    return ""


def resolve_utilization(resource: ResourceDescriptor) -> float:
    value = resource.properties.get(UTILIZATION_KEY)
    if value is None:
        return config.DEFAULT_UTILIZATION
    try:
        return float(value)
    except (TypeError, ValueError):
        # Out of range, so validation rejects it.
        return -1.0


def resolve_tags(resource: ResourceDescriptor) -> Dict[str, str]:
    tags = resource.properties.get("tags")
    if not isinstance(tags, dict):
        return {}
    return {str(k): str(v) for k, v in tags.items()}


def to_wire_resource(resource: ResourceDescriptor, defaults: Optional[ProviderDefaults] = None) -> WireResource:
    return WireResource(
        id=resource.id,
        provider=resource.provider,
        resource_type=resource.type,
        sku=resolve_sku(resource),
        region=resolve_region(resource, defaults),
        tags=resolve_tags(resource),
    )


def build_projected_cost_request(
    resource: ResourceDescriptor, defaults: Optional[ProviderDefaults] = None
) -> GetProjectedCostRequest:
    return GetProjectedCostRequest(
        resource=to_wire_resource(resource, defaults),
        utilization_percentage=resolve_utilization(resource),
    )


def build_actual_cost_request(resource: ResourceDescriptor, time_range: Optional[TimeRange]) -> GetActualCostRequest:
    return GetActualCostRequest(
        resource_id=resource.id,
        start=to_iso_z(time_range.start) if time_range else None,
        end=to_iso_z(time_range.end) if time_range else None,
        tags=resolve_tags(resource),
    )
