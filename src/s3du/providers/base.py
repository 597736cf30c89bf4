"""Bucket sizing contract shared by the CloudWatch and S3 backends."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from threading import Event
from typing import Callable, Iterator, Optional, TypeVar

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from s3du.models import Bucket
from s3du.utils.rate_limiter import RateLimiter

T = TypeVar("T")


class S3duError(Exception):
    """Base exception for bucket sizing."""

    pass


class ConfigurationError(S3duError, ValueError):
    """Invalid or contradictory configuration, raised before any request."""

    pass


class TransportError(S3duError):
    """An AWS request failed or returned something unusable."""

    pass


class AuthenticationError(TransportError):
    """Credentials are missing or were rejected."""

    pass


class AccessDeniedError(TransportError):
    """The credentials are valid but access to the resource was denied."""

    pass


class BucketNotFoundError(TransportError):
    """Bucket does not exist."""

    pass


class PaginationError(TransportError):
    """A list response claimed more results but gave no cursor to fetch them."""

    pass


class NoUsableDataError(S3duError):
    """CloudWatch had no datapoints for any of a bucket's storage classes."""

    pass


class SizeOverflowError(S3duError):
    """A reported size was negative, not a number, or overflowed the total."""

    pass


class SizingCancelledError(S3duError):
    """Sizing was cancelled before pagination finished."""

    pass


# Rejected credentials fail every request, not just one bucket.
CREDENTIAL_ERROR_CODES = frozenset(
    {
        "ExpiredToken",
        "ExpiredTokenException",
        "InvalidAccessKeyId",
        "InvalidClientTokenId",
        "InvalidToken",
        "SignatureDoesNotMatch",
        "UnrecognizedClientException",
    }
)

ACCESS_DENIED_CODES = frozenset(
    {
        "403",
        "AccessDenied",
        "AccessDeniedException",
        "AllAccessDisabled",
        "Forbidden",
    }
)

NOT_FOUND_CODES = frozenset({"404", "NoSuchBucket", "NotFound"})

# Bounds how long a request abandoned after the sizing deadline keeps its
# worker thread alive.
CLIENT_CONFIG = Config(
    connect_timeout=10,
    read_timeout=30,
    retries={"max_attempts": 3, "mode": "standard"},
)


@contextmanager
def aws_errors(operation: str, bucket: Optional[str] = None) -> Iterator[None]:
    """Translate botocore exceptions raised inside the block.

    Args:
        operation: API operation name, used in error messages.
        bucket: Bucket the operation targets, if any.

    Raises:
        AuthenticationError: If no credentials could be found or they
            were rejected.
        AccessDeniedError: For 403 style client errors with valid credentials.
        BucketNotFoundError: For missing buckets.
        TransportError: For every other botocore failure.
    """
    target = f" for bucket {bucket}" if bucket else ""

    try:
        yield
    except ClientError as e:
        code = str(e.response.get("Error", {}).get("Code", ""))
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

        if code in CREDENTIAL_ERROR_CODES:
            raise AuthenticationError(f"{operation}: AWS credentials rejected: {e}") from e
        if code in NOT_FOUND_CODES:
            raise BucketNotFoundError(f"{operation}: bucket not found{target}") from e
        if code in ACCESS_DENIED_CODES or status == 403:
            raise AccessDeniedError(f"{operation}: access denied{target}: {e}") from e
        raise TransportError(f"{operation} failed{target}: {e}") from e
    except NoCredentialsError as e:
        raise AuthenticationError(f"{operation}: no AWS credentials found") from e
    except BotoCoreError as e:
        raise TransportError(f"{operation} failed{target}: {e}") from e


class BucketSizer(ABC):
    """Lists buckets and reports their size in bytes.

    Implementations hold no per-bucket state between calls, so `size` may be
    called concurrently for different buckets. Once `cancel` has been called
    the sizer stops at the next page boundary and cannot be reused.
    """

    def __init__(self, rate_limit: float = 0) -> None:
        """Initialize shared request plumbing.

        Args:
            rate_limit: Maximum API calls per second, 0 for unlimited.
        """
        self.rate_limiter = RateLimiter(rate=float(rate_limit))
        self.cancel_event = Event()

    @abstractmethod
    def discover_buckets(self) -> list[Bucket]:
        """List the buckets this sizer can report on.

        Returns:
            Every discovered bucket, sorted by name. Never a partial list.

        Raises:
            TransportError: If any listing request fails.
        """
        pass

    @abstractmethod
    def size(self, bucket: Bucket) -> int:
        """Return the size of a bucket in bytes.

        Args:
            bucket: A bucket previously returned by `discover_buckets`.

        Raises:
            S3duError: If no trustworthy total could be established.
        """
        pass

    def cancel(self) -> None:
        """Ask in-progress pagination to stop."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def _raise_if_cancelled(self, bucket: Optional[str] = None) -> None:
        if self.cancelled:
            target = f" for bucket {bucket}" if bucket else ""
            raise SizingCancelledError(f"Sizing cancelled{target}")

    def _request(
        self,
        operation: str,
        call: Callable[..., T],
        bucket: Optional[str] = None,
        **params: object,
    ) -> T:
        """Make one throttled API call with error translation."""
        self.rate_limiter.acquire()
        with aws_errors(operation, bucket):
            return call(**params)
