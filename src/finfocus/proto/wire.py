# src/finfocus/proto/wire.py
"""
JSON request and response records exchanged with plugins over the
CostSourceService endpoints. Responses are permissive: fields a plugin adds
that this core does not know about are kept in `model_extra` but otherwise
ignored, and every field has a default
so older plugins that omit newer fields still parse.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

SERVICE_PATH = "/finfocus.v1.CostSourceService"


class WireModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# --- Requests ---


class WireResource(WireModel):
    id: str = ""
    provider: str = ""
    resource_type: str = ""
    sku: str = ""
    region: str = ""
    tags: Dict[str, str] = Field(default_factory=dict)


class GetProjectedCostRequest(WireModel):
    resource: Optional[WireResource] = None
    utilization_percentage: float = 0.5


class GetActualCostRequest(WireModel):
    resource_id: str = ""
    start: Optional[str] = None
    end: Optional[str] = None
    tags: Dict[str, str] = Field(default_factory=dict)


class DryRunRequest(WireModel):
    resource_type: str
    provider: str = ""


class GetRecommendationsRequest(WireModel):
    target_resources: List[WireResource] = Field(default_factory=list)


# --- Responses ---


class NameResponse(WireModel):
    name: str = ""


class GetPluginInfoResponse(WireModel):
    name: str = ""
    version: str = ""
    spec_version: str = ""
    providers: List[str] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)


class GetProjectedCostResponse(WireModel):
    unit_price: float = 0.0
    currency: str = ""
    cost_per_month: float = 0.0
    billing_detail: str = ""


class ActualCostResult(WireModel):
    timestamp: Optional[str] = None
    cost: float = 0.0
    usage_amount: float = 0.0
    usage_unit: str = ""
    source: str = ""


class GetActualCostResponse(WireModel):
    results: List[ActualCostResult] = Field(default_factory=list)
    currency: str = ""


class WireFieldMapping(WireModel):
    field_name: str = ""
    support_status: str = "SUPPORTED"
    condition_description: str = ""
    expected_type: str = ""


class DryRunResponse(WireModel):
    field_mappings: List[WireFieldMapping] = Field(default_factory=list)
    resource_type_supported: bool = True


class WireRecommendation(WireModel):
    id: str = ""
    resource_id: str = ""
    action_type: str = "OTHER"
    description: str = ""
    estimated_savings: float = 0.0
    currency: str = ""
    source: str = ""


class GetRecommendationsResponse(WireModel):
    recommendations: List[WireRecommendation] = Field(default_factory=list)
