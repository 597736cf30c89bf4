"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import Callable
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError
from structlog.testing import capture_logs

from s3du.models import Bucket, Region


def pytest_addoption(parser):
    """Add custom command line options for integration tests."""
    parser.addoption(
        "--test-bucket",
        action="store",
        default=None,
        help="Real bucket to size in integration tests",
    )
    parser.addoption(
        "--region",
        action="store",
        default=None,
        help="AWS region for integration tests (default: AWS_REGION)",
    )


@pytest.fixture(autouse=True)
def captured_logs():
    """Capture log events instead of printing them."""
    with capture_logs() as logs:
        yield logs


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run without S3DU_* or AWS region variables and outside any .env file."""
    for name in (
        "S3DU_MODE",
        "S3DU_REGION",
        "S3DU_ENDPOINT",
        "S3DU_BUCKET",
        "S3DU_OBJECT_VERSIONS",
        "S3DU_INCLUDE_MULTIPART",
        "S3DU_UNIT",
        "S3DU_CONCURRENCY",
        "S3DU_TIMEOUT",
        "S3DU_RATE_LIMIT",
        "LOG_FILE",
        "VERBOSE",
        "AWS_REGION",
        "AWS_DEFAULT_REGION",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def client_error() -> Callable[..., ClientError]:
    """Factory for botocore ClientErrors."""

    def make(code: str, status: int = 400, operation: str = "Operation") -> ClientError:
        return ClientError(
            {
                "Error": {"Code": code, "Message": f"{code} message"},
                "ResponseMetadata": {"HTTPStatusCode": status},
            },
            operation,
        )

    return make


@pytest.fixture
def eu_west_1() -> Region:
    return Region("eu-west-1")


@pytest.fixture
def test_bucket() -> Bucket:
    return Bucket(name="test-bucket", region=Region("eu-west-1"))


@pytest.fixture
def list_objects_pages() -> list[dict]:
    """ListObjectsV2 responses holding 33,792 bytes, with an empty middle page."""
    return [
        {
            "IsTruncated": True,
            "NextContinuationToken": "token-1",
            "Contents": [
                {"Key": "a.txt", "Size": 1024, "StorageClass": "STANDARD"},
                {"Key": "b.txt", "Size": 2048, "StorageClass": "STANDARD"},
                {"Key": "c.txt", "Size": 4096, "StorageClass": "STANDARD_IA"},
            ],
        },
        {
            "IsTruncated": True,
            "NextContinuationToken": "token-2",
            "KeyCount": 0,
        },
        {
            "IsTruncated": False,
            "Contents": [
                {"Key": "d.txt", "Size": 26624, "StorageClass": "STANDARD"},
            ],
        },
    ]


@pytest.fixture
def list_object_versions_pages() -> list[dict]:
    """ListObjectVersions responses.

    Current versions total 434,234 bytes and non-current versions 166,498
    bytes, 600,732 bytes altogether.
    """
    return [
        {
            "IsTruncated": True,
            "NextKeyMarker": "photos/b.jpg",
            "NextVersionIdMarker": "v-b-2",
            "Versions": [
                {"Key": "photos/a.jpg", "VersionId": "v-a-2", "IsLatest": True, "Size": 10240},
                {"Key": "photos/a.jpg", "VersionId": "v-a-1", "IsLatest": False, "Size": 20480},
                {"Key": "photos/b.jpg", "VersionId": "v-b-2", "IsLatest": False, "Size": 146018},
            ],
        },
        {
            "IsTruncated": False,
            "Versions": [
                {"Key": "photos/c.jpg", "VersionId": "v-c-1", "IsLatest": True, "Size": 423994},
            ],
            "DeleteMarkers": [
                {"Key": "photos/b.jpg", "VersionId": "v-b-3", "IsLatest": True},
            ],
        },
    ]


@pytest.fixture
def list_multipart_uploads_pages() -> list[dict]:
    """ListMultipartUploads response with one upload that has no parts yet."""
    return [
        {
            "IsTruncated": False,
            "Uploads": [
                {"Key": "test.zip", "UploadId": "abc123"},
                {"Key": "empty.bin", "UploadId": "def456"},
            ],
        },
    ]


@pytest.fixture
def list_parts_pages() -> list[dict]:
    """ListParts responses, in call order, totalling 204,800 bytes."""
    return [
        {
            "IsTruncated": True,
            "NextPartNumberMarker": 1,
            "Parts": [{"PartNumber": 1, "Size": 102400}],
        },
        {
            "IsTruncated": False,
            "Parts": [{"PartNumber": 2, "Size": 102400}],
        },
        {
            "IsTruncated": False,
        },
    ]


@pytest.fixture
def s3_client(
    list_objects_pages: list[dict],
    list_object_versions_pages: list[dict],
    list_multipart_uploads_pages: list[dict],
    list_parts_pages: list[dict],
) -> Mock:
    """Mock S3 client serving the list fixtures above."""
    client = Mock()
    client.list_objects_v2.side_effect = list_objects_pages
    client.list_object_versions.side_effect = list_object_versions_pages
    client.list_multipart_uploads.side_effect = list_multipart_uploads_pages
    client.list_parts.side_effect = list_parts_pages
    return client


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 3, 2, 12, 0, tzinfo=timezone.utc)
