# tests/models/test_costs.py
"""
Tests for CostResult, ErrorDetail and the error summary of a batch.
"""

from finfocus.core.exceptions import PluginCallError, PluginLaunchError
from finfocus.models.costs import (
    Confidence,
    CostResult,
    CostResultWithErrors,
    ErrorDetail,
    ErrorKind,
)


def _error(i: int) -> ErrorDetail:
    return ErrorDetail(
        resource_type="aws:ec2/instance:Instance",
        resource_id=f"i-{i}",
        plugin_name="aws-public",
        error=PluginCallError(f"boom {i}"),
    )


def test_is_placeholder_detects_markers():
    """Rows whose notes start with VALIDATION: or ERROR: are placeholders."""
    assert CostResult(resource_type="t", notes="VALIDATION: sku is empty").is_placeholder
    assert CostResult(resource_type="t", notes="ERROR: timeout").is_placeholder
    assert not CostResult(resource_type="t", notes="on-demand").is_placeholder
    assert not CostResult(resource_type="t").is_placeholder


def test_confidence_label():
    assert Confidence.HIGH.label == "High"
    assert Confidence.LOW.label == "Low"


def test_error_summary_empty():
    assert CostResultWithErrors().error_summary() == ""
    assert not CostResultWithErrors().has_errors()


def test_error_summary_lists_resource_errors():
    batch = CostResultWithErrors(errors=[_error(1), _error(2)])
    assert batch.has_errors()
    assert batch.error_summary() == (
        "2 resource(s) failed:\n"
        "  - aws:ec2/instance:Instance (i-1): boom 1\n"
        "  - aws:ec2/instance:Instance (i-2): boom 2\n"
    )


def test_error_summary_truncates_after_five():
    """Only the first five errors are listed, followed by a count of the rest."""
    batch = CostResultWithErrors(errors=[_error(i) for i in range(8)])
    summary = batch.error_summary()
    assert summary.startswith("8 resource(s) failed:\n")
    assert "(i-4)" in summary
    assert "(i-5)" not in summary
    assert summary.endswith("  ...and 3 more\n")


def test_error_summary_separates_launch_failures():
    launch = ErrorDetail(plugin_name="kubecost", error=PluginLaunchError("exited early"), kind=ErrorKind.LAUNCH)
    batch = CostResultWithErrors(errors=[_error(1), launch])
    summary = batch.error_summary()
    assert "1 resource(s) failed:" in summary
    assert "1 plugin(s) failed to start:\n  - kubecost: exited early\n" in summary


def test_error_detail_to_dict():
    detail = _error(7)
    data = detail.to_dict()
    assert data["resource_id"] == "i-7"
    assert data["kind"] == "PLUGIN"
    assert data["error"] == "boom 7"
    assert data["timestamp"].endswith("+00:00")
