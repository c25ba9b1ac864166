# src/finfocus/proto/validation.py
"""
Pre-flight checks for outgoing plugin requests. Each check runs in a fixed
order and stops at the first problem, so the error always names exactly one
field. Nothing here performs I/O or mutates the request.
"""

from typing import Optional

from ..core.exceptions import RequestValidationError
from ..utils.date_utils import ensure_utc, parse_iso_date
from .wire import GetActualCostRequest, GetProjectedCostRequest


def validate_projected_cost_request(request: Optional[GetProjectedCostRequest]) -> None:
    if request is None or request.resource is None:
        raise RequestValidationError("resource is required: the request carries no resource descriptor", field="resource")

    resource = request.resource
    if not resource.provider:
        raise RequestValidationError(
            "provider is empty: set the provider (e.g. 'aws') or use a provider-qualified resource type",
            field="provider",
        )
    if not resource.resource_type:
        raise RequestValidationError(
            "resource_type is empty: use a provider-qualified type such as 'aws:ec2/instance:Instance'",
            field="resource_type",
        )
    if not resource.sku:
        raise RequestValidationError(
            f"sku is empty for {resource.resource_type}: set an instance type or SKU property "
            f"(e.g. instanceType for AWS, vmSize for Azure, machineType for GCP)",
            field="sku",
        )
    if not resource.region:
        hint = "derive it from an availability-zone attribute (e.g. availabilityZone)"
        if resource.provider.lower() == "aws":
            hint += " or set AWS_REGION for AWS resources"
        else:
            hint += " or set a region/location property on the resource"
        raise RequestValidationError(f"region is empty for {resource.resource_type}: {hint}", field="region")
    if not 0.0 <= request.utilization_percentage <= 1.0:
        raise RequestValidationError(
            f"utilization_percentage {request.utilization_percentage} is out of range: use a value between 0.0 and 1.0",
            field="utilization_percentage",
        )


def validate_actual_cost_request(request: Optional[GetActualCostRequest]) -> None:
    if request is None:
        raise RequestValidationError("request is required", field="request")
    if not request.resource_id:
        raise RequestValidationError(
            "resource_id is empty: actual costs are looked up by the cloud resource ID", field="resource_id"
        )
    if not request.start:
        raise RequestValidationError("start time is required: pass --from or --last", field="start")
    if not request.end:
        raise RequestValidationError("end time is required: pass --to or --last", field="end")

    start = parse_iso_date(request.start)
    end = parse_iso_date(request.end)
    if start is None:
        raise RequestValidationError(f"start time {request.start!r} is not an RFC 3339 timestamp", field="start")
    if end is None:
        raise RequestValidationError(f"end time {request.end!r} is not an RFC 3339 timestamp", field="end")
    if ensure_utc(end) <= ensure_utc(start):
        raise RequestValidationError(
            f"end time {request.end} must be after start time {request.start}: swap or widen the time range",
            field="end",
        )
