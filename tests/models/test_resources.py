# tests/models/test_resources.py
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from finfocus.models.resources import ResourceDescriptor, TimeRange, extract_provider, extract_service


def test_provider_derived_from_type():
    resource = ResourceDescriptor(type="aws:ec2/instance:Instance", id="i-1")
    assert resource.provider == "aws"
    assert resource.service == "ec2"


def test_explicit_provider_is_kept():
    resource = ResourceDescriptor(type="custom-thing", id="x", provider="gcp")
    assert resource.provider == "gcp"


def test_descriptor_is_frozen():
    resource = ResourceDescriptor(type="aws:s3/bucket:Bucket", id="b")
    with pytest.raises(ValidationError):
        resource.id = "other"


def test_time_range_normalises_to_utc():
    time_range = TimeRange(start=datetime(2024, 1, 1), end=datetime(2024, 1, 3))
    assert time_range.start.tzinfo == timezone.utc
    assert time_range.hours == 48.0
    assert time_range.days == 2.0


@pytest.mark.parametrize(
    "resource_type, service, provider",
    [
        ("aws:ec2/instance:Instance", "ec2", "aws"),
        ("azure-native:compute:VirtualMachine", "compute", "azure-native"),
        ("kubernetes", "default", "unknown"),
    ],
)
def test_extract_service_and_provider(resource_type, service, provider):
    assert extract_service(resource_type) == service
    assert extract_provider(resource_type) == provider
