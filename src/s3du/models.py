"""Immutable data models for bucket sizing."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

BINARY_SUFFIXES = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")
DECIMAL_SUFFIXES = ("B", "KB", "MB", "GB", "TB", "PB", "EB")


class ClientMode(str, Enum):
    """Backend used to obtain bucket sizes."""

    CLOUDWATCH = "cloudwatch"
    S3 = "s3"


class ObjectVersions(str, Enum):
    """Which objects are summed when sizing a bucket through S3."""

    ALL = "all"
    CURRENT = "current"
    MULTIPART = "multipart"
    NON_CURRENT = "non-current"

    def includes(self, is_latest: bool) -> bool:
        """Return True if an object version with this latest flag is counted.

        Raises:
            ValueError: For MULTIPART, which never looks at object versions.
        """
        if self is ObjectVersions.ALL:
            return True
        if self is ObjectVersions.CURRENT:
            return is_latest
        if self is ObjectVersions.NON_CURRENT:
            return not is_latest
        raise ValueError("Multipart uploads are not object versions")


class SizeUnit(str, Enum):
    """Units used when printing bucket sizes."""

    BINARY = "binary"
    BYTES = "bytes"
    DECIMAL = "decimal"

    def format(self, size: int) -> str:
        """Format a byte count.

        No space is put between number and suffix so the output can be
        piped through `sort -h`.

        Examples:
            0 (binary) -> "0B", 1024 (binary) -> "1KiB",
            1024 (decimal) -> "1.02KB", 1024 (bytes) -> "1024".
        """
        if self is SizeUnit.BYTES:
            return str(size)

        if self is SizeUnit.BINARY:
            base, suffixes = 1024, BINARY_SUFFIXES
        else:
            base, suffixes = 1000, DECIMAL_SUFFIXES

        value = float(size)
        index = 0
        while value >= base and index < len(suffixes) - 1:
            value /= base
            index += 1

        number = f"{value:.2f}".rstrip("0").rstrip(".")
        return f"{number}{suffixes[index]}"


@dataclass(frozen=True)
class Region:
    """A normalized region name plus an optional endpoint override.

    Equality only considers the region name.
    """

    name: str
    endpoint: Optional[str] = field(default=None, compare=False)

    def with_name(self, name: str) -> "Region":
        return replace(self, name=name)

    def with_endpoint(self, endpoint: Optional[str]) -> "Region":
        return replace(self, endpoint=endpoint)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Bucket:
    """A bucket discovered by one of the sizers.

    Identity is the bucket name; region and storage classes are annotations
    filled in by whichever backend discovered the bucket.
    """

    name: str
    region: Optional[Region] = field(default=None, compare=False)
    storage_classes: Optional[frozenset[str]] = field(default=None, compare=False)


@dataclass(frozen=True)
class BucketSize:
    """Size of one bucket. A size of None means it could not be determined."""

    bucket: str
    size: Optional[int]

    @property
    def available(self) -> bool:
        return self.size is not None


@dataclass(frozen=True)
class SizeReport:
    """Result of sizing every discovered bucket."""

    entries: tuple[BucketSize, ...]
    total: int

    @property
    def complete(self) -> bool:
        """True if every bucket produced a size."""
        return all(entry.available for entry in self.entries)

    @property
    def unavailable(self) -> list[str]:
        return [entry.bucket for entry in self.entries if not entry.available]
