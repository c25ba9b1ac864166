from typing import Optional

from ..models.costs import Confidence


def determine_confidence(has_billing_data: bool, is_external: bool) -> Confidence:
    """
    HIGH for real billing data; otherwise the figure is a runtime estimate,
    MEDIUM for resources created natively and LOW for imported resources whose
    timestamp reflects the import rather than the creation.
    """
    if has_billing_data:
        return Confidence.HIGH
    if is_external:
        return Confidence.LOW
    return Confidence.MEDIUM


def confidence_label(confidence: Optional[Confidence]) -> str:
    if confidence is None:
        return ""
    return confidence.label
