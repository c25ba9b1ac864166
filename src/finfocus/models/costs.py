# src/finfocus/models/costs.py
"""
Pydantic models for cost results and the per-resource error annotations that
travel alongside them. A batch never fails as a whole: every input resource
yields exactly one CostResult row and failures are recorded as ErrorDetail
entries next to the rows.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Number of errors listed by error_summary() before the remainder is elided.
ERROR_SUMMARY_LIMIT = 5

VALIDATION_PREFIX = "VALIDATION:"
ERROR_PREFIX = "ERROR:"


class Confidence(str, Enum):
    """How much an actual-cost figure can be trusted."""

    HIGH = "HIGH"  # real billing data from a plugin
    MEDIUM = "MEDIUM"  # runtime estimate for a natively created resource
    LOW = "LOW"  # runtime estimate for an imported resource

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    PLUGIN = "PLUGIN"
    LAUNCH = "LAUNCH"


class ErrorDetail(BaseModel):
    """A single failed per-resource operation (or a failed plugin launch)."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    resource_type: str = Field("", description="Type of the resource whose call failed.")
    resource_id: str = Field("", description="ID of the resource whose call failed.")
    plugin_name: str = Field("", description="The plugin that was being called or launched.")
    error: Exception = Field(..., description="The underlying exception.")
    kind: ErrorKind = Field(ErrorKind.PLUGIN, description="Where in the pipeline the failure happened.")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the failure was recorded.",
    )

    @property
    def message(self) -> str:
        return str(self.error)

    def to_dict(self) -> Dict[str, str]:
        return {
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "plugin_name": self.plugin_name,
            "kind": self.kind.value,
            "error": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


class CostResult(BaseModel):
    """The cost of one resource, as reported by a plugin, a fallback, or an estimate."""

    resource_type: str = Field(..., description="Provider-qualified resource type.")
    resource_id: str = Field("", description="The resource identifier.")
    adapter: str = Field("none", description="Plugin name, 'local-spec', 'state-estimate' or 'none'.")
    currency: str = Field("USD", description="ISO 4217 currency code.")
    monthly: float = Field(0.0, description="Projected or extrapolated monthly cost.")
    hourly: float = Field(0.0, description="Hourly cost rate.")
    total_cost: float = Field(0.0, description="Total cost over the queried period.")
    cost_period: str = Field("", description="Human-readable period, e.g. '7 days'.")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    daily_costs: List[float] = Field(default_factory=list, description="One entry per day of the period.")
    breakdown: Dict[str, float] = Field(default_factory=dict, description="Cost components by name.")
    notes: str = Field("", description="Human notes or VALIDATION:/ERROR: markers.")
    confidence: Optional[Confidence] = None
    runtime_hours: Optional[float] = Field(None, description="Elapsed hours used by a state estimate.")

    @property
    def is_placeholder(self) -> bool:
        return self.notes.startswith((VALIDATION_PREFIX, ERROR_PREFIX))


class CostResultWithErrors(BaseModel):
    """
    The outcome of one batch: ordered results (one per input resource), the
    failures encountered along the way, and batch-level warnings that are not
    tied to a plugin call (e.g. resources skipped by the estimator).
    """

    results: List[CostResult] = Field(default_factory=list)
    errors: List[ErrorDetail] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def error_summary(self) -> str:
        """
        Renders the errors as a short human-readable list. Resource failures
        and plugin launch failures are reported separately; each list shows at
        most ERROR_SUMMARY_LIMIT entries followed by an '...and N more' line.
        """
        if not self.errors:
            return ""

        resource_errors = [e for e in self.errors if e.kind != ErrorKind.LAUNCH]
        launch_errors = [e for e in self.errors if e.kind == ErrorKind.LAUNCH]

        lines: List[str] = []
        if resource_errors:
            lines.append(f"{len(resource_errors)} resource(s) failed:")
            for err in resource_errors[:ERROR_SUMMARY_LIMIT]:
                lines.append(f"  - {err.resource_type} ({err.resource_id}): {err.message}")
            if len(resource_errors) > ERROR_SUMMARY_LIMIT:
                lines.append(f"  ...and {len(resource_errors) - ERROR_SUMMARY_LIMIT} more")
        if launch_errors:
            lines.append(f"{len(launch_errors)} plugin(s) failed to start:")
            for err in launch_errors[:ERROR_SUMMARY_LIMIT]:
                lines.append(f"  - {err.plugin_name}: {err.message}")
            if len(launch_errors) > ERROR_SUMMARY_LIMIT:
                lines.append(f"  ...and {len(launch_errors) - ERROR_SUMMARY_LIMIT} more")
        return "\n".join(lines) + "\n"
