"""Input validation utilities."""

import re
from urllib.parse import urlparse

# AWS style region names ("eu-west-1", "us-gov-east-1") as well as the
# single word regions S3-compatible stores tend to use ("garage", "minio").
REGION_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.\-_]{1,253}[a-z0-9]$")


def validate_region_name(region: str) -> str:
    """Validate the syntax of a region name.

    Args:
        region: Region name, e.g. "eu-west-1".

    Returns:
        The region name, stripped of surrounding whitespace.

    Raises:
        ValueError: If the region name cannot be parsed.
    """
    region = region.strip()

    if not region:
        raise ValueError("Region name cannot be empty")

    if not REGION_PATTERN.match(region):
        raise ValueError(f"Invalid region name '{region}'")

    return region


def validate_bucket_name(bucket: str) -> str:
    """Validate a bucket name.

    Underscores are accepted for legacy us-east-1 buckets.

    Raises:
        ValueError: If the bucket name is invalid.
    """
    if not BUCKET_NAME_PATTERN.match(bucket):
        raise ValueError(f"Invalid bucket name '{bucket}'")

    if ".." in bucket:
        raise ValueError(f"Invalid bucket name '{bucket}': consecutive periods")

    return bucket


def validate_endpoint_url(endpoint: str) -> str:
    """Validate a custom S3 endpoint URL.

    Args:
        endpoint: Endpoint URL, e.g. "https://minio.example.com:9000".

    Returns:
        The endpoint URL.

    Raises:
        ValueError: If the URL has no http(s) scheme or no host.
    """
    parsed = urlparse(endpoint)

    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Endpoint '{endpoint}' must use http or https")

    if not parsed.netloc:
        raise ValueError(f"Endpoint '{endpoint}' has no host")

    return endpoint
