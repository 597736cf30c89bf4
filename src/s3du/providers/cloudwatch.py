"""Bucket sizes from CloudWatch S3 storage metrics."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional

import boto3

from s3du.accounting import SizeAccumulator
from s3du.models import Bucket, Region
from s3du.pagination import Page, next_cursor, paginate
from s3du.providers.base import (
    CLIENT_CONFIG,
    BucketSizer,
    NoUsableDataError,
    TransportError,
)
from s3du.utils.logging import get_logger

logger = get_logger(__name__)

NAMESPACE = "AWS/S3"
METRIC_NAME = "BucketSizeBytes"
BUCKET_NAME_DIMENSION = "BucketName"
STORAGE_TYPE_DIMENSION = "StorageType"

# S3 publishes BucketSizeBytes once a day.
STATISTICS_WINDOW = timedelta(days=1)

MAX_STATISTICS_WORKERS = 8


@dataclass(frozen=True)
class BucketMetrics:
    """Storage classes CloudWatch has BucketSizeBytes metrics for, per bucket."""

    storage_classes: Mapping[str, frozenset[str]]

    @classmethod
    def from_metrics(cls, metrics: Iterable[Mapping[str, Any]]) -> "BucketMetrics":
        """Build from ListMetrics results.

        A metric looks like::

            {
                "Namespace": "AWS/S3",
                "MetricName": "BucketSizeBytes",
                "Dimensions": [
                    {"Name": "StorageType", "Value": "StandardStorage"},
                    {"Name": "BucketName", "Value": "some-bucket-name"},
                ],
            }

        Metrics without both dimensions are skipped.
        """
        found: dict[str, set[str]] = {}

        for metric in metrics:
            dimensions = {
                dimension.get("Name"): dimension.get("Value")
                for dimension in metric.get("Dimensions") or []
            }
            name = dimensions.get(BUCKET_NAME_DIMENSION)
            storage_class = dimensions.get(STORAGE_TYPE_DIMENSION)

            if not name or not storage_class:
                logger.debug("metric_skipped", dimensions=dimensions)
                continue

            found.setdefault(name, set()).add(storage_class)

        return cls(
            MappingProxyType(
                {name: frozenset(classes) for name, classes in found.items()}
            )
        )

    def bucket_names(self) -> list[str]:
        return sorted(self.storage_classes)

    def buckets(self) -> list[Bucket]:
        return [
            Bucket(name=name, storage_classes=self.storage_classes[name])
            for name in self.bucket_names()
        ]


def latest_datapoint(datapoints: Iterable[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """Return the most recent datapoint, or None if there are none.

    Datapoints come back in no particular order.
    """
    ordered = sorted(datapoints, key=lambda datapoint: datapoint["Timestamp"], reverse=True)
    return ordered[0] if ordered else None


class CloudWatchSizer(BucketSizer):
    """Sizes buckets from the daily BucketSizeBytes metric.

    The reported size is the current snapshot across all storage classes.
    """

    def __init__(
        self,
        region: Region,
        bucket_name: Optional[str] = None,
        rate_limit: float = 0,
        client: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the CloudWatch sizer.

        Args:
            region: Region to create the CloudWatch client in.
            bucket_name: Only report this bucket, if given.
            rate_limit: Maximum API calls per second, 0 for unlimited.
            client: CloudWatch client to use instead of creating one.
            clock: Returns the current UTC time.
        """
        super().__init__(rate_limit)
        self.region = region
        self.bucket_name = bucket_name
        self.client = client if client is not None else boto3.client(
            "cloudwatch", region_name=region.name, config=CLIENT_CONFIG
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.metrics: Optional[BucketMetrics] = None
        logger.debug("cloudwatch_sizer_initialized", region=region.name, bucket=bucket_name)

    def _fetch_metrics_page(self, next_token: Optional[str]) -> Page:
        params: dict[str, Any] = {"Namespace": NAMESPACE, "MetricName": METRIC_NAME}

        if self.bucket_name:
            params["Dimensions"] = [{"Name": BUCKET_NAME_DIMENSION, "Value": self.bucket_name}]
        if next_token:
            params["NextToken"] = next_token

        response = self._request("ListMetrics", self.client.list_metrics, **params)
        return Page(
            response.get("Metrics") or [],
            next_cursor(response, "NextToken", truncated_key=None),
        )

    def list_metrics(self) -> list[Mapping[str, Any]]:
        """Return every BucketSizeBytes metric in the catalog."""
        return list(paginate(self._fetch_metrics_page, self.cancel_event, "ListMetrics"))

    def discover_buckets(self) -> list[Bucket]:
        """List buckets that have storage metrics, with their storage classes."""
        self.metrics = BucketMetrics.from_metrics(self.list_metrics())
        buckets = self.metrics.buckets()

        logger.info("buckets_discovered", backend="cloudwatch", count=len(buckets))
        return buckets

    def _storage_classes(self, bucket: Bucket) -> frozenset[str]:
        if bucket.storage_classes is not None:
            return bucket.storage_classes
        if self.metrics is not None:
            return self.metrics.storage_classes.get(bucket.name, frozenset())
        return frozenset()

    def latest_average(self, bucket: str, storage_class: str, now: datetime) -> Optional[float]:
        """Return the newest daily average size of one storage class.

        Returns:
            The average in bytes, or None if CloudWatch has no datapoint for
            the last day.
        """
        self._raise_if_cancelled(bucket)

        response = self._request(
            "GetMetricStatistics",
            self.client.get_metric_statistics,
            bucket,
            Namespace=NAMESPACE,
            MetricName=METRIC_NAME,
            Dimensions=[
                {"Name": BUCKET_NAME_DIMENSION, "Value": bucket},
                {"Name": STORAGE_TYPE_DIMENSION, "Value": storage_class},
            ],
            StartTime=now - STATISTICS_WINDOW,
            EndTime=now,
            Period=int(STATISTICS_WINDOW.total_seconds()),
            Statistics=["Average"],
            Unit="Bytes",
        )

        datapoint = latest_datapoint(response.get("Datapoints") or [])
        if datapoint is None:
            logger.info("no_datapoints", bucket=bucket, storage_class=storage_class)
            return None

        if "Average" not in datapoint:
            raise TransportError(
                f"GetMetricStatistics returned a datapoint without Average for {bucket}"
            )

        return datapoint["Average"]

    def size(self, bucket: Bucket) -> int:
        """Sum the latest average size of every storage class in the bucket.

        Storage classes without a datapoint count as zero, but if none of
        them has one the bucket is most likely stale or deleted and
        NoUsableDataError is raised instead of reporting zero.
        """
        storage_classes = sorted(self._storage_classes(bucket))
        if not storage_classes:
            raise NoUsableDataError(f"No storage metrics known for bucket {bucket.name}")

        now = self._clock()
        workers = min(len(storage_classes), MAX_STATISTICS_WORKERS)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            averages = list(
                executor.map(
                    lambda storage_class: self.latest_average(bucket.name, storage_class, now),
                    storage_classes,
                )
            )

        if all(average is None for average in averages):
            raise NoUsableDataError(
                f"CloudWatch returned no datapoints for bucket {bucket.name}"
            )

        total = SizeAccumulator()
        total.extend(average for average in averages if average is not None)

        logger.debug("bucket_size_calculated", bucket=bucket.name, size=total.total)
        return total.total
