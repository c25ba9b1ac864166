# src/finfocus/engine/state_cost.py
"""
State-based cost estimation: when no plugin can report billing data for a
resource, its cost so far is estimated as hourly rate × hours since creation,
using the creation timestamp recorded in the infrastructure state.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from ..core.exceptions import EstimationInputError
from ..models.costs import Confidence
from ..models.resources import CREATED_KEY, EXTERNAL_KEY, ResourceDescriptor
from ..utils.date_utils import ensure_utc, parse_iso_date
from .confidence import determine_confidence

logger = logging.getLogger(__name__)

UPTIME_ASSUMPTION_NOTE = "Note: Estimate assumes 100% uptime. Stopped/restarted resources are not tracked."
IMPORTED_RESOURCE_NOTE = "Note: Imported resource - timestamp reflects import time, not actual creation"


class StateCostEstimate(BaseModel):
    total_cost: float
    runtime_hours: float
    confidence: Confidence
    notes: str = ""


def extract_created_timestamp(properties: Dict[str, Any]) -> Optional[datetime]:
    raw = properties.get(CREATED_KEY)
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if isinstance(raw, str):
        parsed = parse_iso_date(raw)
        return ensure_utc(parsed) if parsed else None
    return None


def is_external_resource(properties: Dict[str, Any]) -> bool:
    raw = properties.get(EXTERNAL_KEY)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip().lower() == "true"
    return False


def find_earliest_created_timestamp(resources: Sequence[ResourceDescriptor]) -> Optional[datetime]:
    """The oldest creation timestamp across resources, or None when none has one."""
    timestamps = [t for t in (extract_created_timestamp(r.properties) for r in resources) if t is not None]
    return min(timestamps) if timestamps else None


def estimate_state_cost(
    created_at: Optional[datetime],
    hourly_rate: float,
    is_external: bool,
    now: datetime,
) -> StateCostEstimate:
    """
    Estimates the cost accrued since `created_at`.

    Pure: the same inputs always give the same estimate. Raises
    EstimationInputError for a missing timestamp, a negative rate, or a
    creation time after `now`.
    """
    if created_at is None:
        raise EstimationInputError("created_at is required for state-based estimation")
    if hourly_rate < 0:
        raise EstimationInputError(f"hourly rate must not be negative, got {hourly_rate}")

    created_at = ensure_utc(created_at)
    now = ensure_utc(now)
    if created_at > now:
        raise EstimationInputError(f"created_at {created_at.isoformat()} is in the future (now {now.isoformat()})")

    runtime_hours = (now - created_at).total_seconds() / 3600.0
    return StateCostEstimate(
        total_cost=hourly_rate * runtime_hours,
        runtime_hours=runtime_hours,
        confidence=determine_confidence(False, is_external),
        notes=IMPORTED_RESOURCE_NOTE if is_external else "",
    )


def estimate_batch(
    resources: Sequence[ResourceDescriptor],
    rates: Sequence[Optional[float]],
    now: datetime,
) -> Tuple[Dict[int, StateCostEstimate], List[str]]:
    """
    Estimates every resource that has a rate and a creation timestamp.
    `rates` is aligned with `resources` (None where no rate is known) and the
    returned mapping is keyed by input position, since resources that are not
    yet deployed may share an empty ID. Resources that cannot be estimated are
    left out of the mapping and reported in the warnings list instead.
    """
    estimates: Dict[int, StateCostEstimate] = {}
    warnings: List[str] = []
    for index, (resource, rate) in enumerate(zip(resources, rates)):
        if rate is None:
            continue
        created_at = extract_created_timestamp(resource.properties)
        if created_at is None:
            warnings.append(f"{resource.type} ({resource.id}): no {CREATED_KEY} timestamp, skipping estimate")
            continue
        try:
            estimates[index] = estimate_state_cost(created_at, rate, is_external_resource(resource.properties), now)
        except EstimationInputError as e:
            logger.debug(f"Cannot estimate {resource.id}: {e}")
            warnings.append(f"{resource.type} ({resource.id}): {e}")
    return estimates, warnings
