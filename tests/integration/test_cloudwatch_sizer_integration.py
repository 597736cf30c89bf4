"""Integration tests for the CloudWatch sizer.

These tests require real AWS credentials. CloudWatch only has metrics for
buckets that have existed for at least a day.

Run with: pytest tests/integration/test_cloudwatch_sizer_integration.py -v -s \
    --test-bucket=my-test-bucket --region=eu-west-1
"""

import boto3
import pytest

from s3du.providers.base import AccessDeniedError, AuthenticationError
from s3du.providers.cloudwatch import CloudWatchSizer
from s3du.reporter import BucketReporter
from s3du.region import resolve_region


@pytest.fixture(scope="module")
def region(request):
    if boto3.session.Session().get_credentials() is None:
        pytest.skip("AWS credentials not configured")
    return resolve_region(request.config.getoption("--region"))


def test_report(region):
    """Test sizing every bucket with storage metrics."""
    reporter = BucketReporter(CloudWatchSizer(region, rate_limit=10))

    try:
        report = reporter.report()
    except (AuthenticationError, AccessDeniedError) as e:
        pytest.skip(f"AWS credentials rejected: {e}")

    assert report.total == sum(entry.size for entry in report.entries if entry.available)
    print(f"\n✓ {len(report.entries)} bucket(s), {report.total} bytes")


@pytest.mark.skipif(
    "not config.getoption('--test-bucket')",
    reason="Requires --test-bucket option with a real test bucket name",
)
def test_size_single_bucket(region, request):
    """Test discovering and sizing one bucket."""
    name = request.config.getoption("--test-bucket")
    sizer = CloudWatchSizer(region, bucket_name=name, rate_limit=10)

    buckets = sizer.discover_buckets()

    assert [bucket.name for bucket in buckets] == [name]
    assert buckets[0].storage_classes
    assert sizer.size(buckets[0]) >= 0
