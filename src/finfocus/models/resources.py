# src/finfocus/models/resources.py
"""
Input-side data models: the cloud resources to be costed and the time window
used for actual-cost queries.
"""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.date_utils import ensure_utc

# Lifecycle metadata injected into resource properties by the state reader.
CREATED_KEY = "pulumi:created"
MODIFIED_KEY = "pulumi:modified"
EXTERNAL_KEY = "pulumi:external"


class ResourceDescriptor(BaseModel):
    """
    A cloud resource to be costed. Immutable once constructed so it can be
    shared between concurrent plugin calls.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Provider-qualified resource type, e.g. 'aws:ec2/instance:Instance'.")
    id: str = Field("", description="The resource identifier (URN or cloud ID).")
    provider: str = Field("", description="Cloud provider, e.g. 'aws', 'azure', 'gcp'.")
    properties: Dict[str, Any] = Field(
        default_factory=dict, description="Provider attributes plus injected lifecycle metadata."
    )

    @model_validator(mode="before")
    @classmethod
    def _derive_provider(cls, data: Any) -> Any:
        # "aws:ec2/instance:Instance" -> "aws" when the provider is omitted.
        if isinstance(data, dict) and not data.get("provider"):
            resource_type = data.get("type") or ""
            if ":" in resource_type:
                data = {**data, "provider": resource_type.split(":", 1)[0].lower()}
        return data

    @property
    def service(self) -> str:
        """The service segment of the type token: 'aws:ec2/instance:Instance' -> 'ec2'."""
        return extract_service(self.type)


class TimeRange(BaseModel):
    """A half-open UTC window [start, end) for actual-cost queries."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600.0

    @property
    def days(self) -> float:
        return self.hours / 24.0


def extract_service(resource_type: str) -> str:
    parts = resource_type.split(":")
    if len(parts) >= 2:
        module = parts[1]
        if "/" in module:
            return module.split("/", 1)[0]
        return module
    return "default"


def extract_provider(resource_type: str) -> str:
    if ":" in resource_type:
        return resource_type.split(":", 1)[0].lower()
    return "unknown"
