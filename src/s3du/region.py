"""Region resolution and S3 location constraint handling."""

import os
from functools import lru_cache
from typing import Mapping, Optional

import boto3

from s3du.models import Region
from s3du.providers.base import ConfigurationError
from s3du.utils.logging import get_logger
from s3du.utils.validators import validate_region_name

logger = get_logger(__name__)

DEFAULT_REGION = "us-east-1"

# Checked in order when no region is given explicitly.
REGION_ENVIRONMENT_VARIABLES = ("AWS_REGION", "AWS_DEFAULT_REGION")

# GetBucketLocation returns an empty constraint for buckets in us-east-1 and
# "EU" for some buckets created in eu-west-1 before regions had names.
LEGACY_LOCATION_CONSTRAINTS = {
    "": "us-east-1",
    "EU": "eu-west-1",
}


def _parse_region(name: str, source: str) -> str:
    try:
        return validate_region_name(name)
    except ValueError as e:
        raise ConfigurationError(f"{e} (from {source})") from e


def resolve_region(
    explicit: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Region:
    """Work out the region the AWS clients are created in.

    An explicit region wins, then the first non-empty environment variable
    in REGION_ENVIRONMENT_VARIABLES, then DEFAULT_REGION.

    Args:
        explicit: Region given on the command line or in configuration.
        environ: Environment to read, os.environ if not given.

    Raises:
        ConfigurationError: If the chosen region name cannot be parsed.
    """
    if explicit:
        return Region(_parse_region(explicit, "--region"))

    if environ is None:
        environ = os.environ

    for variable in REGION_ENVIRONMENT_VARIABLES:
        value = environ.get(variable, "").strip()
        if value:
            logger.debug("region_from_environment", variable=variable, region=value)
            return Region(_parse_region(value, variable))

    return Region(DEFAULT_REGION)


def translate_location_constraint(raw: Optional[str]) -> Region:
    """Turn a GetBucketLocation constraint into a Region.

    Already canonical region names pass through unchanged, so applying this
    to its own output is a no-op.
    """
    location = raw or ""
    return Region(LEGACY_LOCATION_CONSTRAINTS.get(location, location))


@lru_cache(maxsize=None)
def known_regions() -> frozenset[str]:
    """Every S3 region botocore knows about, across all partitions."""
    session = boto3.session.Session()
    regions: set[str] = set()

    for partition in session.get_available_partitions():
        regions.update(session.get_available_regions("s3", partition_name=partition))

    return frozenset(regions)


def is_custom_region(region: Region) -> bool:
    """Return True if the region is not a published AWS region.

    S3-compatible stores use their own region names and don't report
    bucket locations that match them, so region filtering is skipped for
    custom regions.
    """
    return region.name not in known_regions()
