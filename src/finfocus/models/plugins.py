# src/finfocus/models/plugins.py
"""
Models describing what a plugin is (its metadata and field-support map) and
what it can suggest (cost-optimisation recommendations).
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .costs import ErrorDetail


class PluginMetadata(BaseModel):
    """Self-description returned by a plugin's GetPluginInfo call."""

    name: str = Field(..., description="Plugin name.")
    version: str = Field("", description="Plugin implementation version.")
    spec_version: str = Field("", description="Protocol specification version the plugin implements.")
    supported_providers: List[str] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)

    def supports_provider(self, provider: str) -> bool:
        # A plugin that declares no providers is treated as provider-agnostic.
        if not self.supported_providers:
            return True
        return provider.lower() in (p.lower() for p in self.supported_providers)


class FieldSupportStatus(str, Enum):
    SUPPORTED = "SUPPORTED"
    UNSUPPORTED = "UNSUPPORTED"
    CONDITIONAL = "CONDITIONAL"
    DYNAMIC = "DYNAMIC"


class FieldMapping(BaseModel):
    """One entry of a plugin's DryRun answer: how it treats a given field."""

    field_name: str
    status: FieldSupportStatus = FieldSupportStatus.SUPPORTED
    condition: str = ""
    expected_type: str = ""


class RecommendationActionType(str, Enum):
    """Kinds of optimisation a plugin may recommend."""

    RIGHTSIZE = "RIGHTSIZE"
    TERMINATE = "TERMINATE"
    PURCHASE_COMMITMENT = "PURCHASE_COMMITMENT"
    ADJUST_REQUESTS = "ADJUST_REQUESTS"
    MODIFY = "MODIFY"
    DELETE_UNUSED = "DELETE_UNUSED"
    MIGRATE = "MIGRATE"
    CONSOLIDATE = "CONSOLIDATE"
    SCHEDULE = "SCHEDULE"
    REFACTOR = "REFACTOR"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        """'PURCHASE_COMMITMENT' -> 'Purchase Commitment'."""
        return " ".join(word.capitalize() for word in self.value.split("_"))

    @classmethod
    def parse(cls, value: str) -> "RecommendationActionType":
        """
        Parses a filter value case-insensitively. Raises ValueError for unknown
        names (including UNSPECIFIED), listing the valid ones.
        """
        normalized = (value or "").strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            raise ValueError(f"invalid action type {value!r}; valid types are: {valid}") from None

    @classmethod
    def parse_list(cls, value: str) -> List["RecommendationActionType"]:
        """Parses a comma-separated filter like 'rightsize,terminate'."""
        return [cls.parse(part) for part in value.split(",") if part.strip()]


def action_type_label(action_type: str) -> str:
    """Display label for a raw action type string; unknown values are returned unchanged."""
    if not action_type:
        return ""
    try:
        return RecommendationActionType.parse(action_type).label
    except ValueError:
        return action_type


class Recommendation(BaseModel):
    resource_id: str = ""
    action_type: str = Field(RecommendationActionType.OTHER.value, description="A RecommendationActionType value.")
    description: str = ""
    estimated_savings: float = 0.0
    currency: str = "USD"
    source: str = Field("", description="Name of the plugin that produced the recommendation.")
    details: Dict[str, Any] = Field(default_factory=dict)


class RecommendationsResult(BaseModel):
    recommendations: List[Recommendation] = Field(default_factory=list)
    errors: List[ErrorDetail] = Field(default_factory=list)

    @property
    def total_savings(self) -> float:
        return sum(r.estimated_savings for r in self.recommendations)

    @property
    def currency(self) -> Optional[str]:
        currencies = {r.currency for r in self.recommendations}
        if len(currencies) == 1:
            return currencies.pop()
        return None

    def has_errors(self) -> bool:
        return len(self.errors) > 0
