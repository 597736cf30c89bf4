"""Sizes every discovered bucket and totals the results."""

import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Optional, Sequence

from s3du.accounting import SizeAccumulator
from s3du.models import Bucket, BucketSize, SizeReport
from s3du.providers.base import BucketSizer, SizingCancelledError
from s3du.utils.logging import get_logger

logger = get_logger(__name__)


def _failure(future: Future) -> Optional[BaseException]:
    """Return the error a finished future raised, ignoring cancellation."""
    if future.cancelled():
        return None
    error = future.exception()
    if isinstance(error, SizingCancelledError):
        return None
    return error


class BucketReporter:
    """Runs a BucketSizer over all of its buckets.

    Buckets are sized concurrently; each bucket's own listing stays
    sequential. If a deadline is given and passes, unfinished buckets are
    reported as unavailable straight away instead of with a partial size;
    their requests are left to finish or time out in the background.
    """

    def __init__(
        self,
        sizer: BucketSizer,
        concurrency: int = 4,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize reporter.

        Args:
            sizer: Backend used to discover and size buckets.
            concurrency: Number of buckets sized at once.
            timeout: Seconds to wait for all sizes before giving up.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.sizer = sizer
        self.concurrency = concurrency
        self.timeout = timeout

    def _size_bucket(self, bucket: Bucket) -> int:
        size = self.sizer.size(bucket)
        logger.info("bucket_sized", bucket=bucket.name, size=size)
        return size

    def measure(self, buckets: Sequence[Bucket]) -> list[BucketSize]:
        """Size the given buckets.

        Returns:
            One BucketSize per bucket, in the order given.

        Raises:
            S3duError: The first error raised while sizing a bucket, other
                than cancellation. Remaining work is cancelled first.
        """
        if not buckets:
            return []

        workers = min(self.concurrency, len(buckets))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="s3du")
        futures: list[Future] = [executor.submit(self._size_bucket, bucket) for bucket in buckets]

        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        pending = set(futures)

        try:
            # Only a real error or the deadline ends the wait early.
            while pending:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    break

                done, pending = wait(pending, timeout=remaining, return_when=FIRST_EXCEPTION)

                errors = [_failure(future) for future in futures if future in done]
                errors = [error for error in errors if error is not None]
                if errors:
                    self._stop(pending)
                    raise errors[0]

                if not done:
                    break

            if pending:
                logger.warning(
                    "sizing_deadline_reached",
                    timeout=self.timeout,
                    unfinished=len(pending),
                )
                self._stop(pending)
        finally:
            # Requests still in flight are not awaited.
            executor.shutdown(wait=False, cancel_futures=True)

        results = []
        for bucket, future in zip(buckets, futures):
            if (
                future in pending
                or future.cancelled()
                or isinstance(future.exception(), SizingCancelledError)
            ):
                logger.warning("bucket_size_unavailable", bucket=bucket.name)
                results.append(BucketSize(bucket=bucket.name, size=None))
                continue

            error = future.exception()
            if error is not None:
                raise error

            results.append(BucketSize(bucket=bucket.name, size=future.result()))

        return results

    def _stop(self, pending: set) -> None:
        self.sizer.cancel()
        for future in pending:
            future.cancel()

    def report(self) -> SizeReport:
        """Discover buckets, size them and total the sizes.

        Raises:
            S3duError: If discovery or sizing fails.
        """
        buckets = self.sizer.discover_buckets()
        logger.info("sizing_started", buckets=len(buckets), concurrency=self.concurrency)

        entries = self.measure(buckets)

        total = SizeAccumulator()
        total.extend(entry.size for entry in entries if entry.available)

        report = SizeReport(entries=tuple(entries), total=total.total)
        logger.info(
            "sizing_completed",
            buckets=len(entries),
            unavailable=len(report.unavailable),
            total=report.total,
        )
        return report
