"""Bucket sizes from listing S3 objects, object versions and multipart uploads."""

from functools import partial
from operator import attrgetter
from typing import Any, Optional

import boto3

from s3du.accounting import SizeAccumulator
from s3du.models import Bucket, ObjectVersions, Region
from s3du.pagination import Page, next_cursor, paginate
from s3du.providers.base import (
    AccessDeniedError,
    BucketNotFoundError,
    CLIENT_CONFIG,
    BucketSizer,
    ConfigurationError,
)
from s3du.region import is_custom_region, translate_location_constraint
from s3du.utils.logging import get_logger

logger = get_logger(__name__)


class S3Sizer(BucketSizer):
    """Sizes buckets by summing what the S3 list APIs report.

    Which objects count is fixed by `object_versions`. With
    `include_multipart` the parts of in-progress multipart uploads are added
    on top; they are not object versions until the upload completes, so the
    two never overlap.
    """

    def __init__(
        self,
        region: Region,
        bucket_name: Optional[str] = None,
        object_versions: ObjectVersions = ObjectVersions.CURRENT,
        include_multipart: bool = False,
        rate_limit: float = 0,
        client: Any = None,
    ) -> None:
        """Initialize the S3 sizer.

        Args:
            region: Client region, with an optional custom endpoint.
            bucket_name: Only report this bucket, if given.
            object_versions: Which objects to sum.
            include_multipart: Also add in-progress multipart upload parts.
            rate_limit: Maximum API calls per second, 0 for unlimited.
            client: S3 client to use instead of creating one.

        Raises:
            ConfigurationError: If multipart uploads would be counted twice.
        """
        if include_multipart and object_versions is ObjectVersions.MULTIPART:
            raise ConfigurationError(
                "include_multipart cannot be combined with the multipart object versions"
            )

        super().__init__(rate_limit)
        self.region = region
        self.bucket_name = bucket_name
        self.object_versions = object_versions
        self.include_multipart = include_multipart
        self.client = client if client is not None else boto3.client(
            "s3", region_name=region.name, endpoint_url=region.endpoint, config=CLIENT_CONFIG
        )
        logger.debug(
            "s3_sizer_initialized",
            region=region.name,
            endpoint=region.endpoint,
            bucket=bucket_name,
            object_versions=object_versions.value,
            include_multipart=include_multipart,
        )

    # Bucket discovery

    def _fetch_buckets_page(self, continuation_token: Optional[str]) -> Page:
        params = {"ContinuationToken": continuation_token} if continuation_token else {}
        response = self._request("ListBuckets", self.client.list_buckets, **params)
        return Page(
            response.get("Buckets") or [],
            next_cursor(response, "ContinuationToken", truncated_key=None),
        )

    def list_bucket_names(self) -> list[str]:
        """Return the names of every bucket visible to the credentials."""
        buckets = paginate(self._fetch_buckets_page, self.cancel_event, "ListBuckets")
        return [bucket["Name"] for bucket in buckets if bucket.get("Name")]

    def get_bucket_location(self, bucket: str) -> Region:
        """Return the region a bucket lives in."""
        response = self._request(
            "GetBucketLocation", self.client.get_bucket_location, bucket, Bucket=bucket
        )
        location = translate_location_constraint(response.get("LocationConstraint"))

        logger.debug("bucket_location", bucket=bucket, region=location.name)
        return location.with_endpoint(self.region.endpoint)

    def head_bucket(self, bucket: str) -> bool:
        """Return True if the bucket exists and we may access it."""
        try:
            self._request("HeadBucket", self.client.head_bucket, bucket, Bucket=bucket)
        except (AccessDeniedError, BucketNotFoundError) as e:
            logger.info("bucket_inaccessible", bucket=bucket, error=str(e))
            return False
        return True

    def discover_buckets(self) -> list[Bucket]:
        """List buckets in the client region that we can size.

        Buckets in other regions are skipped unless the client region is a
        custom one. Buckets we are denied access to, or that vanish while
        listing, are left out rather than reported as errors.
        """
        names = self.list_bucket_names()

        if self.bucket_name:
            names = [name for name in names if name == self.bucket_name]

        custom_region = is_custom_region(self.region)
        buckets = []

        for name in names:
            try:
                location = self.get_bucket_location(name)
            except (AccessDeniedError, BucketNotFoundError) as e:
                logger.info("bucket_inaccessible", bucket=name, error=str(e))
                continue

            if location != self.region and not custom_region:
                logger.debug(
                    "bucket_skipped",
                    bucket=name,
                    reason="region_mismatch",
                    bucket_region=location.name,
                )
                continue

            if not self.head_bucket(name):
                continue

            buckets.append(Bucket(name=name, region=location))

        buckets.sort(key=attrgetter("name"))
        logger.info("buckets_discovered", backend="s3", count=len(buckets))
        return buckets

    # Sizing

    def _fetch_objects_page(self, bucket: str, continuation_token: Optional[str]) -> Page:
        params = {"Bucket": bucket}
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        response = self._request("ListObjectsV2", self.client.list_objects_v2, bucket, **params)
        return Page(
            response.get("Contents") or [],
            next_cursor(response, "NextContinuationToken"),
        )

    def size_current_objects(self, bucket: str) -> int:
        """Sum the size of the current version of every object."""
        total = SizeAccumulator()
        objects = paginate(partial(self._fetch_objects_page, bucket), self.cancel_event, "ListObjectsV2")

        for obj in objects:
            total.add(obj.get("Size"))

        return total.total

    def _fetch_versions_page(self, bucket: str, markers: Optional[tuple]) -> Page:
        params = {"Bucket": bucket}
        if markers:
            key_marker, version_id_marker = markers
            if key_marker:
                params["KeyMarker"] = key_marker
            if version_id_marker:
                params["VersionIdMarker"] = version_id_marker

        response = self._request(
            "ListObjectVersions", self.client.list_object_versions, bucket, **params
        )
        return Page(
            response.get("Versions") or [],
            next_cursor(response, "NextKeyMarker", "NextVersionIdMarker"),
        )

    def size_object_versions(self, bucket: str) -> int:
        """Sum the size of the object versions selected by `object_versions`.

        Delete markers have no size and are not listed under Versions.
        """
        total = SizeAccumulator()
        versions = paginate(
            partial(self._fetch_versions_page, bucket), self.cancel_event, "ListObjectVersions"
        )

        for version in versions:
            if self.object_versions.includes(bool(version.get("IsLatest"))):
                total.add(version.get("Size"))

        return total.total

    def _fetch_uploads_page(self, bucket: str, markers: Optional[tuple]) -> Page:
        params = {"Bucket": bucket}
        if markers:
            key_marker, upload_id_marker = markers
            if key_marker:
                params["KeyMarker"] = key_marker
            if upload_id_marker:
                params["UploadIdMarker"] = upload_id_marker

        response = self._request(
            "ListMultipartUploads", self.client.list_multipart_uploads, bucket, **params
        )
        return Page(
            response.get("Uploads") or [],
            next_cursor(response, "NextKeyMarker", "NextUploadIdMarker"),
        )

    def _fetch_parts_page(
        self, bucket: str, key: str, upload_id: str, part_number_marker: Optional[int]
    ) -> Page:
        params = {"Bucket": bucket, "Key": key, "UploadId": upload_id}
        if part_number_marker:
            params["PartNumberMarker"] = part_number_marker

        response = self._request("ListParts", self.client.list_parts, bucket, **params)
        return Page(
            response.get("Parts") or [],
            next_cursor(response, "NextPartNumberMarker"),
        )

    def size_parts(self, bucket: str, key: str, upload_id: str) -> int:
        """Sum the size of the parts uploaded so far for one multipart upload."""
        total = SizeAccumulator()
        parts = paginate(
            partial(self._fetch_parts_page, bucket, key, upload_id), self.cancel_event, "ListParts"
        )

        for part in parts:
            total.add(part.get("Size"))

        return total.total

    def size_multipart_uploads(self, bucket: str) -> int:
        """Sum the parts of every in-progress multipart upload."""
        total = SizeAccumulator()
        uploads = paginate(
            partial(self._fetch_uploads_page, bucket), self.cancel_event, "ListMultipartUploads"
        )

        for upload in uploads:
            total.add(self.size_parts(bucket, upload["Key"], upload["UploadId"]))

        return total.total

    def size(self, bucket: Bucket) -> int:
        """Return the bucket size for the configured object versions."""
        name = bucket.name
        total = SizeAccumulator()

        if self.object_versions is ObjectVersions.CURRENT:
            total.add(self.size_current_objects(name))
        elif self.object_versions is ObjectVersions.MULTIPART:
            total.add(self.size_multipart_uploads(name))
        else:
            total.add(self.size_object_versions(name))

        if self.include_multipart:
            total.add(self.size_multipart_uploads(name))

        logger.debug(
            "bucket_size_calculated",
            bucket=name,
            object_versions=self.object_versions.value,
            include_multipart=self.include_multipart,
            size=total.total,
        )
        return total.total
