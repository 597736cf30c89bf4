"""Unit tests for region resolution."""

import pytest

from s3du.models import Region
from s3du.providers.base import ConfigurationError
from s3du.region import (
    DEFAULT_REGION,
    is_custom_region,
    known_regions,
    resolve_region,
    translate_location_constraint,
)


def test_resolve_region_explicit_wins() -> None:
    """Test that an explicit region beats the environment."""
    environ = {"AWS_REGION": "us-west-2", "AWS_DEFAULT_REGION": "ap-south-1"}
    assert resolve_region("eu-central-1", environ) == Region("eu-central-1")


def test_resolve_region_environment_order() -> None:
    """Test that AWS_REGION is preferred over AWS_DEFAULT_REGION."""
    environ = {"AWS_REGION": "us-west-2", "AWS_DEFAULT_REGION": "ap-south-1"}
    assert resolve_region(None, environ) == Region("us-west-2")


def test_resolve_region_skips_empty_environment_values() -> None:
    """Test that empty variables fall through to the next one."""
    environ = {"AWS_REGION": "", "AWS_DEFAULT_REGION": "ap-south-1"}
    assert resolve_region(None, environ) == Region("ap-south-1")


def test_resolve_region_fallback() -> None:
    """Test the hard-coded fallback region."""
    assert resolve_region(None, {}) == Region(DEFAULT_REGION)
    assert DEFAULT_REGION == "us-east-1"


@pytest.mark.parametrize("region", ["eu west 1", "EU_WEST_1", "-eu-west-1", "eu--west-1"])
def test_resolve_region_invalid_explicit(region: str) -> None:
    """Test that unparseable regions are configuration errors."""
    with pytest.raises(ConfigurationError, match="Invalid region"):
        resolve_region(region, {})


def test_resolve_region_invalid_environment() -> None:
    """Test that garbage in the environment is reported with its source."""
    with pytest.raises(ConfigurationError, match="AWS_REGION"):
        resolve_region(None, {"AWS_REGION": "not a region"})


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, "us-east-1"),
        ("", "us-east-1"),
        ("EU", "eu-west-1"),
        ("eu-west-1", "eu-west-1"),
        ("ap-southeast-2", "ap-southeast-2"),
        ("garage", "garage"),
    ],
)
def test_translate_location_constraint(raw, expected: str) -> None:
    """Test translation of legacy location constraints."""
    assert translate_location_constraint(raw) == Region(expected)


@pytest.mark.parametrize("raw", [None, "", "EU", "eu-west-1", "us-east-1", "garage"])
def test_translate_location_constraint_idempotent(raw) -> None:
    """Test that translating an already translated region changes nothing."""
    once = translate_location_constraint(raw)
    assert translate_location_constraint(once.name) == once


def test_known_regions_contains_common_regions() -> None:
    """Test that botocore's region data is loaded."""
    regions = known_regions()
    assert "us-east-1" in regions
    assert "eu-west-1" in regions


@pytest.mark.parametrize(
    ("region", "custom"),
    [
        ("eu-west-1", False),
        ("us-east-1", False),
        ("garage", True),
        ("minio-local-1", True),
    ],
)
def test_is_custom_region(region: str, custom: bool) -> None:
    """Test detection of regions that aren't published by AWS."""
    assert is_custom_region(Region(region)) is custom


def test_is_custom_region_ignores_endpoint() -> None:
    """Test that only the region name decides."""
    region = Region("eu-west-1", endpoint="https://s3.example.com")
    assert is_custom_region(region) is False
