from .costs import Confidence, CostResult, CostResultWithErrors, ErrorDetail, ErrorKind
from .plugins import (
    FieldMapping,
    FieldSupportStatus,
    PluginMetadata,
    Recommendation,
    RecommendationActionType,
    RecommendationsResult,
)
from .resources import ResourceDescriptor, TimeRange

__all__ = [
    "Confidence",
    "CostResult",
    "CostResultWithErrors",
    "ErrorDetail",
    "ErrorKind",
    "FieldMapping",
    "FieldSupportStatus",
    "PluginMetadata",
    "Recommendation",
    "RecommendationActionType",
    "RecommendationsResult",
    "ResourceDescriptor",
    "TimeRange",
]
